"""Elasticsearch adapter — generic record operations over the Elasticsearch REST API.

Supports both wire dialects: typed (API versions below 7.0, one mapping type
per record type) and typeless (7.0 and later, record type stored in a
discriminator field).  The dialect is chosen once from the configured
``api_version``.

Usage::

    adapter = ElasticsearchAdapter(
        record_types={"user": {"name": {"type": "string"}, "avatar": {"type": "buffer"}}},
        settings=ElasticsearchSettings(index="app", api_version="7.10"),
    )
    await adapter.connect()
    page = await adapter.find("user", options=QuerySpec(match={"name": "Bob"}))
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import Any

import httpx

from searchbridge.adapters.base.adapter import AdapterHealth, DefaultAdapter, RecordAdapter
from searchbridge.adapters.base.exceptions import ConfigurationError, ConnectionError, TransportFailure
from searchbridge.adapters.elasticsearch import bulk, schema
from searchbridge.adapters.elasticsearch.dialect import ApiShim, Dialect
from searchbridge.adapters.elasticsearch.query import QueryCompiler, uses_multi_get
from searchbridge.adapters.elasticsearch.results import ResultNormalizer
from searchbridge.adapters.elasticsearch.transport import ElasticTransport
from searchbridge.adapters.elasticsearch.updates import (
    current_documents,
    owned_updates,
    preread_request,
    resolve_patches,
)
from searchbridge.config.settings import ElasticsearchSettings
from searchbridge.models.records import (
    BulkAction,
    BulkOperation,
    QuerySpec,
    Record,
    RecordPage,
    RecordTypes,
    UpdateSpec,
)

logger = logging.getLogger(__name__)


class ElasticsearchAdapter(RecordAdapter):
    """Record adapter for Elasticsearch (2.x through 8.x).

    One index holds every record type.  Every operation is a single request
    over a transport created at ``connect()`` and shared until
    ``disconnect()``, except that update (and, on typeless versions, delete
    by id) adds one pre-read.  On 6.x only one record type per adapter is
    accepted, since indices created there hold a single mapping type.

    Args:
        record_types: Record type name -> field name -> descriptor.
        settings: Connection and addressing options. Defaults apply if None.
        **kwargs: Additional keyword arguments forwarded to ``httpx.AsyncClient``.

    Raises:
        ConfigurationError: If the API version is unparseable, or a 6.x index
            is given more than one record type.
    """

    def __init__(
        self,
        record_types: RecordTypes,
        settings: ElasticsearchSettings | None = None,
        **kwargs: Any,
    ) -> None:
        self.settings = settings or ElasticsearchSettings()
        self._default = DefaultAdapter(record_types, primary_key=self.settings.primary_key)
        self._shim = ApiShim(self.settings.index, self.settings.api_version, self.settings.discriminator)
        self._shim.check_record_types(record_types)
        self._compiler = QueryCompiler(self._shim, self.settings.primary_key)
        self._normalizer = ResultNormalizer(self._shim, self.settings.primary_key)
        self._extra_kwargs = kwargs
        self._transport: ElasticTransport | None = None

    @property
    def name(self) -> str:
        return "elasticsearch"

    @property
    def dialect(self) -> Dialect:
        return self._shim.dialect

    @property
    def record_types(self) -> RecordTypes:
        return self._default.record_types

    async def __aenter__(self) -> ElasticsearchAdapter:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Open the transport, then prepare the index.

        Order: discriminator template (typeless only), index creation,
        binary field mappings.

        Raises:
            ConnectionError: If the cluster cannot be reached.
            MappingError: If a template or mapping update is rejected.
        """
        if self._default.connected:
            return

        transport = ElasticTransport(
            self.settings.hosts,
            timeout=self.settings.timeout,
            username=self.settings.username,
            password=self.settings.password,
            log_level=self.settings.log,
            **self._extra_kwargs,
        )
        transport.open()

        try:
            info = await transport.perform_request("GET", "/")
            self._log_cluster(info)
            await schema.ensure_type_template(self._shim, transport)
            await self._create_index(transport)
            await schema.ensure_mapping_consistency(self._shim, transport, self.record_types)
        except httpx.HTTPError as e:
            await transport.close()
            raise ConnectionError(f"Failed to connect to Elasticsearch: {e}") from e
        except Exception:
            await transport.close()
            raise

        self._transport = transport
        self._default.mark_connected()

    async def disconnect(self) -> None:
        """Close the transport."""
        if self._transport:
            await self._transport.close()
            self._transport = None
        self._default.mark_disconnected()

    async def _create_index(self, transport: ElasticTransport) -> None:
        response = await transport.perform_request("PUT", f"/{self.settings.index}", ignore=(400,))
        if response.get("acknowledged"):
            logger.info("Created index %s", self.settings.index)

    def _log_cluster(self, info: dict[str, Any]) -> None:
        number = str(info.get("version", {}).get("number", "unknown"))
        logger.info(
            "Connected to Elasticsearch cluster: %s (v%s), %s dialect",
            info.get("cluster_name", "unknown"),
            number,
            self.dialect.value,
        )
        major_minor = ".".join(number.split(".")[:2])
        try:
            server_dialect = Dialect.from_version(major_minor)
        except ConfigurationError:
            return
        if server_dialect is not self.dialect:
            logger.warning(
                "Configured api_version %s selects the %s dialect but the cluster reports v%s",
                self.settings.api_version,
                self.dialect.value,
                number,
            )

    # ── Records ──────────────────────────────────────────────────────────

    async def create(self, record_type: str, records: list[Record]) -> list[Record]:
        """Store records with create-if-absent bulk items.

        Items that fail individually (e.g. an existing id) are logged, not raised.
        """
        self._default.ensure_connected(self.name)
        if not records:
            return records

        for record in records:
            self._default.assign_primary_key(record)

        operations = bulk.create_operations(self._shim, record_type, records, self.settings.primary_key)
        response = await self._bulk("create", operations)
        bulk.count_successes(response, BulkAction.CREATE)
        return records

    async def find(
        self,
        record_type: str,
        ids: list[Any] | None = None,
        options: QuerySpec | None = None,
    ) -> RecordPage:
        """Find records by id and/or query options.

        Plain id lookups use a multi-get; its ``count`` is the number of
        requested ids.  Everything else is one search whose ``count`` is the
        total number of matches.
        """
        self._default.ensure_connected(self.name)
        options = options or QuerySpec()
        ids = list(ids) if ids else None
        fields = self._default.fields(record_type)

        if uses_multi_get(ids, options):
            body = self._compiler.compile_multi_get(record_type, ids, options)
            response = await self._send("mget", "POST", "/_mget", body=body)
            return self._normalizer.from_multi_get(record_type, response, len(ids), fields)

        body = self._compiler.compile_search(record_type, ids, options)
        response = await self._send("search", "POST", self._shim.search_path(record_type), body=body)
        return self._normalizer.from_search(response, fields)

    async def update(self, record_type: str, updates: list[UpdateSpec]) -> int:
        """Apply partial updates with one merge-update bulk item per record.

        Returns:
            Number of records updated; missing records, and on typeless versions
            records of another type, are not counted.
        """
        self._default.ensure_connected(self.name)
        specs = [UpdateSpec.model_validate(u) for u in updates]
        if not specs:
            return 0

        current: dict[str, Record] = {}
        preread = preread_request(self._shim, record_type, specs)
        if preread is not None:
            response = await self._send("mget", "POST", "/_mget", body=preread)
            current = current_documents(response)
            specs = owned_updates(self._shim, record_type, specs, current)
            if not specs:
                return 0

        patches = resolve_patches(specs, current)
        response = await self._bulk("update", bulk.update_operations(self._shim, record_type, patches))
        return bulk.count_successes(response, BulkAction.UPDATE)

    async def delete(self, record_type: str, ids: list[Any] | None = None) -> int:
        """Delete records by id, or the whole record type when ``ids`` is empty.

        Returns:
            Number of records deleted; ids that do not exist, or on typeless
            versions belong to another type, are left alone and not counted.
        """
        self._default.ensure_connected(self.name)
        if not ids:
            body = {"query": self._compiler.compile_collection_query(record_type)}
            response = await self._send(
                "delete_by_query",
                "POST",
                self._shim.delete_by_query_path(record_type),
                body=body,
                params=self._refresh_params(),
            )
            return int(response.get("deleted", 0))

        if self._shim.ownership_fields:
            body = self._shim.ownership_request(record_type, ids)
            owned = self._shim.owned_ids(record_type, await self._send("mget", "POST", "/_mget", body=body))
            ids = [doc_id for doc_id in ids if str(doc_id) in owned]
            if not ids:
                return 0

        response = await self._bulk("delete", bulk.delete_operations(self._shim, record_type, ids))
        return bulk.count_successes(response, BulkAction.DELETE)

    # ── Health ───────────────────────────────────────────────────────────

    async def health_check(self) -> AdapterHealth:
        """Check Elasticsearch cluster health."""
        if not self._transport:
            return AdapterHealth(status="unhealthy", message="Adapter not connected")

        try:
            start = time.monotonic()
            health = await self._transport.perform_request("GET", "/_cluster/health")
            latency_ms = int((time.monotonic() - start) * 1000)

            status_map = {"green": "healthy", "yellow": "degraded", "red": "unhealthy"}

            return AdapterHealth(
                status=status_map.get(health.get("status", "red"), "unhealthy"),
                latency_ms=latency_ms,
                last_check=datetime.now(UTC).isoformat(),
                message=f"Cluster: {health.get('cluster_name')}, Nodes: {health.get('number_of_nodes')}",
            )
        except Exception as e:
            return AdapterHealth(status="unhealthy", message=str(e))

    # ── Helpers ──────────────────────────────────────────────────────────

    def _refresh_params(self) -> dict[str, str] | None:
        return {"refresh": "true"} if self.settings.refresh else None

    async def _bulk(self, operation: str, operations: list[BulkOperation]) -> dict[str, Any]:
        return await self._send(
            operation,
            "POST",
            "/_bulk",
            ndjson=bulk.bulk_lines(operations),
            params=self._refresh_params(),
        )

    async def _send(self, operation: str, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Send one request; every network or HTTP failure becomes ``TransportFailure``."""
        if not self._transport:
            raise ConnectionError("Elasticsearch transport not open.")
        try:
            return await self._transport.perform_request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Elasticsearch %s failed: %s", operation, e)
            raise TransportFailure(f"Elasticsearch {operation} failed: {e}") from e
