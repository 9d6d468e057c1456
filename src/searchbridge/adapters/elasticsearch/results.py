"""Result normalizer — raw multi-get and search responses to ``RecordPage``."""

from __future__ import annotations

import contextlib
from datetime import datetime
from typing import Any

from searchbridge.adapters.elasticsearch import codec
from searchbridge.adapters.elasticsearch.dialect import ApiShim
from searchbridge.models.records import FieldDescriptor, Record, RecordPage


class ResultNormalizer:
    """Turns stored documents back into caller records.

    Args:
        shim: Dialect-aware request shaping.
        primary_key: Primary key field, filled from ``_id`` when missing.
    """

    def __init__(self, shim: ApiShim, primary_key: str = "id") -> None:
        self.shim = shim
        self.primary_key = primary_key

    def to_record(self, doc_id: Any, source: Record, fields: dict[str, FieldDescriptor]) -> Record:
        record = {name: codec.decode_value(value) for name, value in source.items()}
        self.shim.strip(record)
        for name, desc in fields.items():
            if desc.is_date and name in record:
                record[name] = _restore_date(record[name])
        if record.get(self.primary_key) is None and doc_id is not None:
            record[self.primary_key] = doc_id
        return record

    def from_multi_get(
        self,
        record_type: str,
        response: dict[str, Any],
        requested: int,
        fields: dict[str, FieldDescriptor],
    ) -> RecordPage:
        """Records of the found documents, in request order.

        ``count`` is the number of requested ids, found or not.
        """
        records = [
            self.to_record(doc.get("_id"), doc.get("_source") or {}, fields)
            for doc in response.get("docs", [])
            if doc.get("found") and self.shim.owns(record_type, doc.get("_source") or {})
        ]
        return RecordPage(records, count=requested)

    def from_search(self, response: dict[str, Any], fields: dict[str, FieldDescriptor]) -> RecordPage:
        hits = response.get("hits", {})
        records = [self.to_record(hit.get("_id"), hit.get("_source") or {}, fields) for hit in hits.get("hits", [])]
        return RecordPage(records, count=self.shim.total_hits(hits))


def _restore_date(value: Any) -> Any:
    if isinstance(value, list):
        return [_restore_date(v) for v in value]
    if not isinstance(value, str):
        return value
    with contextlib.suppress(ValueError):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return value
