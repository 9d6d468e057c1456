"""Data models shared by every adapter."""

from searchbridge.models.records import (
    FieldDescriptor,
    QuerySpec,
    Record,
    RecordPage,
    RecordTypes,
    UpdateSpec,
)

__all__ = ["FieldDescriptor", "QuerySpec", "Record", "RecordPage", "RecordTypes", "UpdateSpec"]
