"""Bulk mutation builder — one ``_bulk`` request per create/update/delete batch.

Bulk items succeed or fail independently; nothing here is transactional.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from searchbridge.adapters.elasticsearch import codec
from searchbridge.adapters.elasticsearch.dialect import ApiShim
from searchbridge.models.records import BulkAction, BulkOperation, Record

logger = logging.getLogger(__name__)


def create_operations(
    shim: ApiShim, record_type: str, records: Iterable[Record], primary_key: str
) -> list[BulkOperation]:
    return [
        BulkOperation(
            action=BulkAction.CREATE,
            header=shim.bulk_header(record_type, record[primary_key]),
            payload=codec.encode_document(shim.document_body(record_type, record)),
        )
        for record in records
    ]


def update_operations(shim: ApiShim, record_type: str, patches: Iterable[tuple[Any, Record]]) -> list[BulkOperation]:
    return [
        BulkOperation(
            action=BulkAction.UPDATE,
            header=shim.bulk_header(record_type, doc_id),
            payload={"doc": codec.encode_document(patch)},
        )
        for doc_id, patch in patches
    ]


def delete_operations(shim: ApiShim, record_type: str, ids: Iterable[Any]) -> list[BulkOperation]:
    return [BulkOperation(action=BulkAction.DELETE, header=shim.bulk_header(record_type, doc_id)) for doc_id in ids]


def bulk_lines(operations: Iterable[BulkOperation]) -> list[dict[str, Any]]:
    """Interleaved header and payload lines of a bulk body."""
    lines: list[dict[str, Any]] = []
    for op in operations:
        lines.extend(op.lines())
    return lines


def count_successes(response: dict[str, Any], action: BulkAction) -> int:
    """Number of bulk items whose own status is 2xx.

    Deleting a missing document reports 404 and is not counted.
    """
    count = 0
    failed = 0
    for item in response.get("items", []):
        result = item.get(action.value, {})
        if 200 <= int(result.get("status", 0)) < 300:
            count += 1
        else:
            failed += 1
    if failed:
        logger.warning("Bulk %s: %d of %d item(s) failed", action.value, failed, count + failed)
    return count
