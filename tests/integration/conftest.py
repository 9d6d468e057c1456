"""Integration test fixtures — a live Elasticsearch node.

Expects a node to be running, e.g.:
    docker run -p 9200:9200 -e discovery.type=single-node docker.elastic.co/elasticsearch/elasticsearch:7.17.10

The node's own version selects the wire dialect.  The test index and its
template are dropped before the session starts.
"""

from __future__ import annotations

import asyncio
import os
import time
from typing import Any

import httpx
import pytest

ES_HOST = os.environ.get("SEARCHBRIDGE_TEST_ES_HOST", "http://localhost:9200")
TEST_INDEX = "searchbridge-test"


def _wait_for_service(url: str, timeout: float = 30.0) -> dict[str, Any] | None:
    """Block until *url* returns HTTP 200 and return its body, or None on timeout."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            r = httpx.get(url, timeout=10)
            if r.status_code == 200:
                return r.json()
        except httpx.HTTPError:
            pass
        time.sleep(2)
    return None


async def _reset_elasticsearch(host: str, index: str) -> None:
    async with httpx.AsyncClient(base_url=host, timeout=30) as client:
        await client.delete(f"/{index}")
        await client.delete(f"/_template/{index}-record-type")


@pytest.fixture(scope="session")
def elasticsearch_ready() -> tuple[str, str, str]:
    """Ensure Elasticsearch is running and clean; returns ``(host, major.minor, index)``."""
    info = _wait_for_service(ES_HOST)
    if info is None:
        pytest.skip(f"Elasticsearch not available at {ES_HOST}")
    asyncio.run(_reset_elasticsearch(ES_HOST, TEST_INDEX))
    number = info["version"]["number"]
    return ES_HOST, ".".join(number.split(".")[:2]), TEST_INDEX
