"""Shared test fixtures and configuration."""

from __future__ import annotations

import copy
import json
import logging
from typing import Any

import httpx
import pytest

from searchbridge.adapters.elasticsearch.adapter import ElasticsearchAdapter
from searchbridge.config.settings import ElasticsearchSettings, Settings

RECORD_TYPES: dict[str, dict[str, dict[str, Any]]] = {
    "user": {
        "name": {"type": "string"},
        "age": {"type": "integer"},
        "status": {"type": "string"},
        "tags": {"type": "string", "is_array": True},
        "avatar": {"type": "buffer"},
        "created_at": {"type": "date"},
    },
    "post": {
        "title": {"type": "string"},
        "attachment": {"type": "buffer"},
        "thumbnail": {"type": "buffer"},
    },
    "tag": {
        "label": {"type": "string"},
    },
}


def make_user(id: Any, **fields: Any) -> dict[str, Any]:
    """A fully-populated user record (null scalars, empty arrays)."""
    record: dict[str, Any] = {
        "id": id,
        "name": None,
        "age": None,
        "status": None,
        "tags": [],
        "avatar": None,
        "created_at": None,
    }
    record.update(fields)
    return record


class FakeElasticsearch:
    """In-memory stand-in for the Elasticsearch REST API.

    Served through ``httpx.MockTransport`` so requests go through the real
    transport and JSON encoding.  Understands both typed (``_type``) and
    typeless addressing, and enough of the query DSL for adapter tests.
    """

    def __init__(self, version: str = "7.10.2") -> None:
        self.version = version
        self.docs: dict[tuple[str | None, str], dict[str, Any]] = {}
        self.templates: dict[str, Any] = {}
        self.indices: set[str] = set()
        self.requests: list[tuple[str, str, Any]] = []
        self._failures: dict[tuple[str, str], int] = {}

    @property
    def typed(self) -> bool:
        return float(".".join(self.version.split(".")[:2])) < 7

    def fail(self, method: str, path: str, status: int = 500) -> None:
        self._failures[(method, path)] = status

    def calls(self, method: str, path: str | None = None) -> list[tuple[str, str, Any]]:
        return [r for r in self.requests if r[0] == method and (path is None or r[1] == path)]

    # ── Routing ──────────────────────────────────────────────────────────

    def handle(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        raw = request.content.decode() if request.content else ""
        if request.headers.get("content-type") == "application/x-ndjson":
            body: Any = [json.loads(line) for line in raw.splitlines() if line]
        else:
            body = json.loads(raw) if raw else None
        self.requests.append((method, path, body))

        if (method, path) in self._failures:
            return httpx.Response(self._failures[(method, path)], json={"error": "injected failure"})

        parts = [p for p in path.split("/") if p]
        if not parts:
            return httpx.Response(200, json={"cluster_name": "test-cluster", "version": {"number": self.version}})
        if parts == ["_cluster", "health"]:
            return httpx.Response(200, json={"status": "green", "cluster_name": "test-cluster", "number_of_nodes": 1})
        if parts[0] == "_template":
            return self._template(method, parts[1], body)
        if parts == ["_bulk"]:
            return self._bulk(body)
        if parts == ["_mget"]:
            return self._mget(body)
        if len(parts) == 1 and method == "PUT":
            if parts[0] in self.indices:
                return httpx.Response(400, json={"error": {"type": "resource_already_exists_exception"}})
            self.indices.add(parts[0])
            return httpx.Response(200, json={"acknowledged": True})
        if parts[1] == "_mapping":
            return httpx.Response(200, json={"acknowledged": True})
        if parts[-1] == "_search":
            return self._search(parts[1] if len(parts) == 3 else None, body or {})
        if parts[-1] == "_delete_by_query":
            return self._delete_by_query(parts[1] if len(parts) == 3 else None, body or {})
        return httpx.Response(404, json={"error": f"no route for {method} {path}"})

    # ── Handlers ─────────────────────────────────────────────────────────

    def _template(self, method: str, name: str, body: Any) -> httpx.Response:
        if method == "DELETE":
            if name not in self.templates:
                return httpx.Response(404, json={"error": "template missing"})
            del self.templates[name]
            return httpx.Response(200, json={"acknowledged": True})
        self.templates[name] = body
        return httpx.Response(200, json={"acknowledged": True})

    def _key(self, header: dict[str, Any]) -> tuple[str | None, str]:
        return (header.get("_type"), str(header["_id"]))

    def _bulk(self, lines: list[dict[str, Any]]) -> httpx.Response:
        items: list[dict[str, Any]] = []
        i = 0
        while i < len(lines):
            action, header = next(iter(lines[i].items()))
            key = self._key(header)
            if action == "delete":
                status = 200 if self.docs.pop(key, None) is not None else 404
                i += 1
            else:
                payload = lines[i + 1]
                i += 2
                if action == "create":
                    status = 409 if key in self.docs else 201
                    if status == 201:
                        self.docs[key] = payload
                elif key not in self.docs:
                    status = 404
                else:
                    self.docs[key].update(payload["doc"])
                    status = 200
            items.append({action: {"_id": key[1], "status": status}})
        errors = any(not 200 <= item[next(iter(item))]["status"] < 300 for item in items)
        return httpx.Response(200, json={"took": 1, "errors": errors, "items": items})

    def _mget(self, body: dict[str, Any]) -> httpx.Response:
        docs = []
        for entry in body["docs"]:
            key = self._key(entry)
            source = self.docs.get(key)
            doc: dict[str, Any] = {"_index": entry["_index"], "_id": key[1], "found": source is not None}
            if source is not None:
                doc["_source"] = _project(source, entry.get("_source"))
            docs.append(doc)
        return httpx.Response(200, json={"docs": docs})

    def _select(self, record_type: str | None, query: dict[str, Any]) -> list[tuple[str, dict[str, Any]]]:
        return [
            (doc_id, source)
            for (doc_type, doc_id), source in self.docs.items()
            if doc_type == record_type and _matches(query, source, doc_id)
        ]

    def _search(self, record_type: str | None, body: dict[str, Any]) -> httpx.Response:
        selected = self._select(record_type, body.get("query", {"match_all": {}}))
        for spec in reversed([s for s in body.get("sort", []) if isinstance(s, dict)]):
            field, order = next(iter(spec.items()))
            selected.sort(key=lambda d, f=field: d[1].get(f) or 0, reverse=order["order"] == "desc")
        total = len(selected)
        start = body.get("from", 0)
        page = selected[start : start + body.get("size", 10)]
        hits = [{"_id": doc_id, "_source": _project(source, body.get("_source"))} for doc_id, source in page]
        total_field: Any = total if self.typed else {"value": total, "relation": "eq"}
        return httpx.Response(200, json={"hits": {"total": total_field, "hits": hits}})

    def _delete_by_query(self, record_type: str | None, body: dict[str, Any]) -> httpx.Response:
        selected = self._select(record_type, body.get("query", {"match_all": {}}))
        for doc_id, _ in selected:
            del self.docs[(record_type, doc_id)]
        return httpx.Response(200, json={"deleted": len(selected)})


def _project(source: dict[str, Any], spec: Any) -> dict[str, Any]:
    if spec is None or spec is True:
        return dict(source)
    if isinstance(spec, list):
        spec = {"includes": spec}
    includes = spec.get("includes")
    excludes = spec.get("excludes", [])
    return {k: v for k, v in source.items() if (not includes or k in includes) and k not in excludes}


def _matches(clause: dict[str, Any], source: dict[str, Any], doc_id: str) -> bool:
    kind, arg = next(iter(clause.items()))
    if kind == "match_all":
        return True
    if kind == "bool":
        if not all(_matches(c, source, doc_id) for c in arg.get("filter", []) + arg.get("must", [])):
            return False
        if any(_matches(c, source, doc_id) for c in arg.get("must_not", [])):
            return False
        should = arg.get("should", [])
        return not should or any(_matches(c, source, doc_id) for c in should)
    if kind == "ids":
        return doc_id in [str(v) for v in arg["values"]]
    if kind == "exists":
        return source.get(arg["field"]) not in (None, [])
    if kind == "query_string":
        text = arg["query"].lower()
        return any(isinstance(v, str) and text in v.lower() for v in source.values())
    field, value = next(iter(arg.items()))
    current = source.get(field)
    if kind == "term":
        return current == value
    if kind == "match_phrase":
        return value in current if isinstance(current, list) else current == value
    if kind == "range":
        if current is None:
            return False
        return ("gte" not in value or current >= value["gte"]) and ("lte" not in value or current <= value["lte"])
    raise AssertionError(f"unsupported clause {kind}")


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _restore_package_logger() -> Any:
    """Undo handlers and levels that ``setup_logging`` installs on the package logger."""
    package = logging.getLogger("searchbridge")
    handlers, level = list(package.handlers), package.level
    yield
    package.handlers[:] = handlers
    package.setLevel(level)


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance with defaults."""
    return Settings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture
def record_types() -> dict[str, dict[str, dict[str, Any]]]:
    return copy.deepcopy(RECORD_TYPES)


@pytest.fixture(params=["2.4", "7.10"], ids=["typed", "typeless"])
def api_version(request: pytest.FixtureRequest) -> str:
    return request.param


@pytest.fixture
def fake_es(api_version: str) -> FakeElasticsearch:
    return FakeElasticsearch(version=f"{api_version}.0")


@pytest.fixture
async def adapter(record_types: dict, fake_es: FakeElasticsearch, api_version: str) -> ElasticsearchAdapter:
    """A connected adapter talking to ``fake_es``, once per dialect."""
    a = ElasticsearchAdapter(
        record_types,
        ElasticsearchSettings(api_version=api_version),
        transport=httpx.MockTransport(fake_es.handle),
    )
    await a.connect()
    yield a
    await a.disconnect()


@pytest.fixture
def fake_factory() -> type[FakeElasticsearch]:
    """The fake engine class, for tests that pick their own version."""
    return FakeElasticsearch


@pytest.fixture
def new_user() -> Any:
    """Factory for fully-populated user records."""
    return make_user
