"""Base record adapter — Abstract interface for all record-store connectors.

Every store backend implements this interface so the caller layer can treat
it as a generic record store.  The adapter is responsible for:
  1. Connecting to the backend and preparing its schema
  2. Creating, finding, updating and deleting records by record type
  3. Reporting health status

``DefaultAdapter`` holds the state that is identical for every backend
(record types, lifecycle, primary key assignment).  Concrete adapters own
one and delegate to it instead of inheriting from it.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Any, ClassVar

from pydantic import BaseModel, Field

from searchbridge.adapters.base.exceptions import ConnectionError
from searchbridge.models.records import (
    AdapterFeatures,
    FieldDescriptor,
    QuerySpec,
    Record,
    RecordPage,
    RecordTypes,
    UpdateSpec,
)


class AdapterHealth(BaseModel):
    """Health status of a record adapter."""

    status: str = Field(description="Health status: healthy, degraded, unhealthy")
    latency_ms: int = Field(default=0, description="Latency of last health check in ms")
    last_check: str | None = Field(default=None, description="ISO timestamp of last health check")
    message: str | None = Field(default=None, description="Additional health message")


class RecordAdapter(ABC):
    """Abstract base class for record-store adapters.

    All adapters must implement:
      - connect() / disconnect(): Manage the backend connection
      - create(): Store fully-populated records
      - find(): Look records up by id and/or query options
      - update(): Apply partial updates
      - delete(): Remove records by id, or a whole record type
      - health_check(): Report adapter health status
    """

    features: ClassVar[AdapterFeatures] = AdapterFeatures()

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique adapter name (e.g., 'elasticsearch')."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the backend connection and reconcile its schema.

        Called once before any other operation.
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the backend connection and release resources."""

    @abstractmethod
    async def create(self, record_type: str, records: list[Record]) -> list[Record]:
        """Store new records.

        Args:
            record_type: Name of the record type.
            records: Records with every declared field populated.

        Returns:
            The stored records.
        """

    @abstractmethod
    async def find(
        self,
        record_type: str,
        ids: list[Any] | None = None,
        options: QuerySpec | None = None,
    ) -> RecordPage:
        """Find records by id and/or query options.

        Returns:
            Matching records, with ``count`` set to the total number of matches.
        """

    @abstractmethod
    async def update(self, record_type: str, updates: list[UpdateSpec]) -> int:
        """Apply partial updates.

        Returns:
            Number of records successfully updated.
        """

    @abstractmethod
    async def delete(self, record_type: str, ids: list[Any] | None = None) -> int:
        """Delete records by id, or every record of the type when ``ids`` is empty.

        Returns:
            Number of records deleted.
        """

    @abstractmethod
    async def health_check(self) -> AdapterHealth:
        """Check the health of the backend."""


class DefaultAdapter:
    """Backend-independent adapter state.

    Args:
        record_types: Record type name -> field name -> descriptor.
        primary_key: Name of the primary key field.
    """

    def __init__(self, record_types: RecordTypes, primary_key: str = "id") -> None:
        self.record_types: RecordTypes = {
            name: {field: FieldDescriptor.model_validate(desc) for field, desc in fields.items()}
            for name, fields in record_types.items()
        }
        self.primary_key = primary_key
        self.connected = False

    def fields(self, record_type: str) -> dict[str, FieldDescriptor]:
        """Field descriptors of a record type (empty for unknown types)."""
        return self.record_types.get(record_type, {})

    def assign_primary_key(self, record: Record) -> Record:
        """Give a record a generated primary key if it has none."""
        if record.get(self.primary_key) is None:
            record[self.primary_key] = uuid.uuid4().hex
        return record

    def mark_connected(self) -> None:
        self.connected = True

    def mark_disconnected(self) -> None:
        self.connected = False

    def ensure_connected(self, adapter_name: str) -> None:
        if not self.connected:
            raise ConnectionError(f"{adapter_name} adapter not connected. Call connect() first.")
