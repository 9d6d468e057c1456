"""Adapter-specific exceptions."""


class AdapterError(Exception):
    """Base exception for adapter errors."""


class ConnectionError(AdapterError):
    """Raised when the adapter cannot connect to the store, or is used before connecting."""


class MappingError(AdapterError):
    """Raised when the store rejects a mapping or template update during connect."""


class TransportFailure(AdapterError):
    """Raised when a whole search, multi-get or bulk call fails at the network or HTTP level."""


class ConfigurationError(AdapterError):
    """Raised when adapter configuration is invalid."""
