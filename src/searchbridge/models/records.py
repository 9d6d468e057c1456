"""Record, query and update models shared by every adapter.

A record is a plain ``dict`` mapping field names to values.  The models here
describe what callers hand to an adapter (record types, query options,
update specifications) and what comes back (``RecordPage``).
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

Record = dict[str, Any]

BINARY_TYPE = "buffer"
"""Type tag for opaque byte sequences."""

DATE_TYPE = "date"
"""Type tag for timestamp fields."""


class FieldDescriptor(BaseModel):
    """Declared shape of a single record field."""

    type: str | None = Field(default=None, description="Type tag, e.g. 'string', 'integer', 'date', 'buffer'")
    is_array: bool = Field(default=False, description="Whether the field holds a sequence of values")
    link: str | None = Field(default=None, description="Linked record type, for relationship fields")

    @property
    def is_binary(self) -> bool:
        return self.type == BINARY_TYPE

    @property
    def is_date(self) -> bool:
        return self.type == DATE_TYPE


RecordTypes = dict[str, dict[str, FieldDescriptor]]


class QuerySpec(BaseModel):
    """Abstract find options.

    Every attribute is optional; an absent attribute means no constraint of
    that kind.  ``match`` and id values prefixed with the negation sentinel
    exclude instead of require.
    """

    sort: dict[str, bool] | None = Field(default=None, description="Field -> ascending (True) / descending (False)")
    fields: dict[str, bool] | None = Field(default=None, description="Field -> include (True) / exclude (False)")
    exists: dict[str, bool] | None = Field(default=None, description="Field -> present (True) / absent (False)")
    match: dict[str, Any] | None = Field(default=None, description="Field -> value or list of alternative values")
    range: dict[str, list[Any]] | None = Field(default=None, description="Field -> [low, high], bounds nullable")
    query: str | None = Field(default=None, description="Free-text query string")
    limit: int | None = Field(default=None, ge=0, description="Page size; 0 applies the default cap")
    offset: int | None = Field(default=None, ge=0, description="Number of records to skip")


class UpdateSpec(BaseModel):
    """Partial update of one record.

    Kinds apply in fixed order: pull, push, replace, operate.
    """

    id: Any = Field(description="Primary key of the record to update")
    replace: dict[str, Any] | None = Field(default=None, description="Field -> new value; None clears the field")
    push: dict[str, Any] | None = Field(default=None, description="Field -> value(s) appended to a sequence")
    pull: dict[str, Any] | None = Field(default=None, description="Field -> value(s) removed from a sequence")
    operate: dict[str, Any] | None = Field(default=None, description="Field -> value, applied last without validation")

    @property
    def array_fields(self) -> list[str]:
        """Fields whose current value must be read before patching."""
        names: list[str] = []
        for group in (self.push, self.pull):
            for name in group or {}:
                if name not in names:
                    names.append(name)
        return names


class BulkAction(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class BulkOperation(BaseModel):
    """One item of a bulk request: an action header plus optional payload."""

    action: BulkAction
    header: dict[str, Any] = Field(description="Addressing metadata (_index, _type, _id)")
    payload: dict[str, Any] | None = Field(default=None, description="Document or partial document")

    def lines(self) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = [{self.action.value: self.header}]
        if self.payload is not None:
            out.append(self.payload)
        return out


class AdapterFeatures(BaseModel):
    """Optional query features an adapter supports."""

    logical_operators: bool = Field(default=False, description="Whether and/or query composition is supported")


class RecordPage(list[Record]):
    """Ordered records with the total number of matches.

    ``count`` reflects matches across the whole collection, independent of
    limit and offset.
    """

    def __init__(self, records: list[Record] | None = None, count: int = 0) -> None:
        super().__init__(records or [])
        self.count = count

    def __repr__(self) -> str:
        return f"RecordPage({list.__repr__(self)}, count={self.count})"
