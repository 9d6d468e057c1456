"""HTTP transport — one pooled ``httpx.AsyncClient`` shared by every request.

Requests rotate over the configured hosts.  There is no retry or backoff
here: a failed request raises the ``httpx`` error to the caller.
"""

from __future__ import annotations

import itertools
import logging
import time
from collections.abc import Iterable
from typing import Any

import httpx

from searchbridge.adapters.elasticsearch import codec
from searchbridge.observability.logging import transport_log_level

logger = logging.getLogger(__name__)

_instances = itertools.count(1)


class ElasticTransport:
    """Thin JSON-over-HTTP client for the Elasticsearch REST API.

    Args:
        hosts: Node URLs, used round-robin.
        timeout: Request timeout in seconds.
        username: Optional HTTP basic-auth username.
        password: Optional HTTP basic-auth password.
        log_level: Level of this transport's request log (``trace``, ``debug``,
            ``info``, ``warning`` or ``error``).  Each transport logs through
            its own child of the module logger, so adapters do not share it.
        **kwargs: Additional keyword arguments forwarded to ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        hosts: list[str],
        timeout: float = 30.0,
        username: str | None = None,
        password: str | None = None,
        log_level: str = "error",
        **kwargs: Any,
    ) -> None:
        if not hosts:
            raise ValueError("At least one host is required.")
        self._hosts = [h.rstrip("/") for h in hosts]
        self._next_host = itertools.cycle(self._hosts)
        self._timeout = timeout
        self._auth = httpx.BasicAuth(username, password) if username and password else None
        self._extra_kwargs = kwargs
        self._client: httpx.AsyncClient | None = None
        self.logger = logger.getChild(str(next(_instances)))
        self.logger.setLevel(transport_log_level(log_level))

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                auth=self._auth,
                **self._extra_kwargs,
            )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def perform_request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        params: dict[str, Any] | None = None,
        ndjson: Iterable[dict[str, Any]] | None = None,
        ignore: tuple[int, ...] = (),
    ) -> dict[str, Any]:
        """Send one request and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: Path relative to the host, starting with ``/``.
            body: JSON-serializable request body.
            params: Query string parameters.
            ndjson: Lines of a newline-delimited JSON body (bulk API).
            ignore: Error statuses returned as a body instead of raised.

        Raises:
            httpx.HTTPError: On network failure or an unexpected error status.
        """
        if self._client is None:
            raise httpx.TransportError("Transport is not open.")

        headers: dict[str, str] = {}
        content: str | None = None
        if ndjson is not None:
            content = "".join(codec.dumps(line) + "\n" for line in ndjson)
            headers["Content-Type"] = "application/x-ndjson"
        elif body is not None:
            content = codec.dumps(body)
            headers["Content-Type"] = "application/json"

        url = next(self._next_host) + path
        start = time.monotonic()
        response = await self._client.request(method, url, content=content, params=params, headers=headers)
        self.logger.debug(
            "%s %s -> %d (%d ms)",
            method,
            url,
            response.status_code,
            int((time.monotonic() - start) * 1000),
        )

        if response.status_code not in ignore:
            response.raise_for_status()
        if not response.content:
            return {}
        return response.json()
