"""JSON encoding of values the engine cannot carry natively.

Byte strings travel as a tagged structure ``{"type": "Buffer", "data": [..]}``
(one integer per byte), the same shape Node.js produces for a ``Buffer``, so
documents written by other clients of the same index decode identically.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any

BUFFER_TAG = "Buffer"


def encode_binary(value: bytes | bytearray | memoryview) -> dict[str, Any]:
    return {"type": BUFFER_TAG, "data": list(bytes(value))}


def is_tagged_binary(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and value.get("type") == BUFFER_TAG
        and isinstance(value.get("data"), list)
    )


def decode_value(value: Any) -> Any:
    """Restore tagged byte arrays to ``bytes``, descending into lists."""
    if is_tagged_binary(value):
        return bytes(value["data"])
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value


def encode_value(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return encode_binary(value)
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def encode_document(record: dict[str, Any]) -> dict[str, Any]:
    return {name: encode_value(value) for name, value in record.items()}


def json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return encode_binary(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(value: Any) -> str:
    return json.dumps(value, default=json_default, separators=(",", ":"))
