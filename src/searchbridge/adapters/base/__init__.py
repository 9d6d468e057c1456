"""Base adapter interface — Abstract classes for record-store connectors."""

from searchbridge.adapters.base.adapter import AdapterHealth, DefaultAdapter, RecordAdapter

__all__ = ["AdapterHealth", "DefaultAdapter", "RecordAdapter"]
