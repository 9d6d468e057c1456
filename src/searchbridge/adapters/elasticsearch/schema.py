"""Schema consistency — align index mappings with declared binary fields.

Binary fields are stored as tagged byte arrays (see ``codec``).  Left to
dynamic mapping, every byte would be indexed as a number, so each record
type with binary fields gets an explicit mapping that turns indexing off
for the byte array.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from searchbridge.adapters.base.exceptions import MappingError
from searchbridge.adapters.elasticsearch.dialect import ApiShim
from searchbridge.adapters.elasticsearch.transport import ElasticTransport
from searchbridge.models.records import RecordTypes

logger = logging.getLogger(__name__)


def binary_field_mapping(shim: ApiShim) -> dict[str, Any]:
    return {
        "properties": {
            "type": dict(shim.keyword),
            "data": {"type": "long", "index": shim.not_indexed},
        }
    }


def build_mapping_requests(shim: ApiShim, record_types: RecordTypes) -> list[tuple[str, str, dict[str, Any]]]:
    """Mapping updates for every record type that declares binary fields.

    Returns:
        ``(record_type, path, body)`` triples in record type order.
    """
    requests: list[tuple[str, str, dict[str, Any]]] = []
    for record_type, fields in record_types.items():
        properties = {
            name: binary_field_mapping(shim) for name, desc in fields.items() if desc.is_binary
        }
        if not properties:
            continue
        path, body = shim.mapping_request(record_type, properties)
        requests.append((record_type, path, body))
    return requests


async def ensure_type_template(shim: ApiShim, transport: ElasticTransport) -> None:
    """Install the discriminator template, replacing any previous copy."""
    if not shim.needs_type_template:
        return
    try:
        await transport.perform_request("DELETE", shim.template_path, ignore=(404,))
        await transport.perform_request("PUT", shim.template_path, body=shim.type_template())
    except httpx.HTTPError as e:
        raise MappingError(f"Failed to install index template '{shim.template_name}': {e}") from e
    logger.info("Installed index template %s", shim.template_name)


async def ensure_mapping_consistency(
    shim: ApiShim,
    transport: ElasticTransport,
    record_types: RecordTypes,
) -> None:
    """Put one mapping per record type with binary fields, concurrently.

    Raises:
        MappingError: If any of the mapping calls fails.
    """
    requests = build_mapping_requests(shim, record_types)
    if not requests:
        return

    results = await asyncio.gather(
        *(transport.perform_request("PUT", path, body=body) for _, path, body in requests),
        return_exceptions=True,
    )

    failures = [(record_type, r) for (record_type, _, _), r in zip(requests, results) if isinstance(r, BaseException)]
    if failures:
        record_type, error = failures[0]
        logger.error("Mapping update failed for %d record type(s): %s", len(failures), [t for t, _ in failures])
        raise MappingError(f"Failed to update mapping for record type '{record_type}': {error}") from error

    logger.info("Updated binary field mappings for %d record type(s)", len(requests))
