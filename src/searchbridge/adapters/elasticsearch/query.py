"""Query compiler — ``QuerySpec`` to an Elasticsearch search or multi-get body.

The general path compiles every constraint into one ``bool`` query.  When
only ids are requested (no exists/match/range/free-text constraint) the
compiler emits a multi-get instead, which bypasses scoring entirely.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from searchbridge.adapters.elasticsearch.dialect import ApiShim
from searchbridge.models.records import QuerySpec

NEGATION = "NOT-"
DEFAULT_PAGE_SIZE = 100
TIE_BREAK = "_doc"


def split_negated(values: list[Any]) -> tuple[list[Any], list[Any]]:
    """Partition values into required and excluded (sentinel stripped)."""
    required: list[Any] = []
    excluded: list[Any] = []
    for value in values:
        if isinstance(value, str) and value.startswith(NEGATION):
            excluded.append(value[len(NEGATION):])
        else:
            required.append(value)
    return required, excluded


def uses_multi_get(ids: list[Any] | None, options: QuerySpec) -> bool:
    """Whether a find can be answered by point lookups alone."""
    if not ids:
        return False
    if split_negated(ids)[1]:
        return False
    return not (options.exists or options.match or options.range or options.query)


def _range_bound(value: Any) -> tuple[bool, Any]:
    """``(valid, wire value)`` for one range bound."""
    if value is None:
        return True, None
    if isinstance(value, bool):
        return False, None
    if isinstance(value, (int, float)):
        return True, value
    if isinstance(value, (datetime, date)):
        return True, value.isoformat()
    return False, None


def compile_range(field: str, bounds: list[Any]) -> dict[str, Any] | None:
    """A range clause, or None when either bound is not a number or timestamp."""
    low, high = (list(bounds) + [None, None])[:2]
    low_ok, low_value = _range_bound(low)
    high_ok, high_value = _range_bound(high)
    if not (low_ok and high_ok):
        return None
    clause: dict[str, Any] = {}
    if low_value is not None:
        clause["gte"] = low_value
    if high_value is not None:
        clause["lte"] = high_value
    return {"range": {field: clause}}


def compile_source(fields: dict[str, bool], primary_key: str) -> dict[str, list[str]] | None:
    includes = [name for name, keep in fields.items() if keep]
    excludes = [name for name, keep in fields.items() if not keep]
    if includes and primary_key not in includes:
        includes.append(primary_key)
    source: dict[str, list[str]] = {}
    if includes:
        source["includes"] = includes
    if excludes:
        source["excludes"] = excludes
    return source or None


@dataclass
class _Clauses:
    filter: list[dict[str, Any]]
    must: list[dict[str, Any]]
    must_not: list[dict[str, Any]]
    should: list[dict[str, Any]]

    def empty(self) -> bool:
        return not (self.filter or self.must or self.must_not or self.should)

    def as_bool(self) -> dict[str, Any]:
        return {
            kind: clauses
            for kind, clauses in (
                ("filter", self.filter),
                ("must", self.must),
                ("must_not", self.must_not),
                ("should", self.should),
            )
            if clauses
        }


class QueryCompiler:
    """Compiles find requests for one index and dialect.

    Args:
        shim: Dialect-aware request shaping.
        primary_key: Primary key field, always kept in projections.
    """

    def __init__(self, shim: ApiShim, primary_key: str = "id") -> None:
        self.shim = shim
        self.primary_key = primary_key

    def compile_search(self, record_type: str, ids: list[Any] | None, options: QuerySpec) -> dict[str, Any]:
        """Build the body of one ``_search`` request."""
        body: dict[str, Any] = {}
        clauses = _Clauses(filter=[], must=[], must_not=[], should=[])

        if options.limit is not None:
            body["size"] = options.limit if options.limit > 0 else DEFAULT_PAGE_SIZE
        if options.offset:
            body["from"] = options.offset

        if options.sort:
            body["sort"] = [
                {name: {"order": "asc" if ascending else "desc"}} for name, ascending in options.sort.items()
            ]
            body["sort"].append(TIE_BREAK)

        if options.fields:
            source = compile_source(options.fields, self.primary_key)
            if source:
                body["_source"] = source

        for name, present in (options.exists or {}).items():
            target = clauses.must if present else clauses.must_not
            target.append({"exists": {"field": name}})

        for name, value in (options.match or {}).items():
            self._compile_match(clauses, name, value)

        for name, bounds in (options.range or {}).items():
            clause = compile_range(name, bounds)
            if clause is not None:
                clauses.filter.append(clause)

        if options.query:
            clauses.must.append({"query_string": {"query": options.query}})

        if ids:
            required, excluded = split_negated(list(ids))
            if required:
                clauses.must.append({"ids": {"values": required}})
            if excluded:
                clauses.must_not.append({"ids": {"values": excluded}})

        if clauses.empty():
            clauses.must.append({"match_all": {}})

        type_filter = self.shim.type_filter(record_type)
        if type_filter is not None:
            clauses.filter.append(type_filter)

        body["query"] = {"bool": clauses.as_bool()}
        body.update(self.shim.search_extras())
        return body

    @staticmethod
    def _compile_match(clauses: _Clauses, name: str, value: Any) -> None:
        values = value if isinstance(value, list) else [value]
        required, excluded = split_negated(values)

        for v in excluded:
            clauses.must_not.append({"match_phrase": {name: v}})

        if not required:
            return
        if isinstance(value, list) and len(required) > 1:
            clauses.must.append(
                {
                    "bool": {
                        "should": [{"match_phrase": {name: v}} for v in required],
                        "minimum_should_match": 1,
                    }
                }
            )
        else:
            clauses.must.append({"match_phrase": {name: required[0]}})

    def compile_collection_query(self, record_type: str) -> dict[str, Any]:
        """Query matching every record of a type."""
        return self.compile_search(record_type, None, QuerySpec())["query"]

    def compile_multi_get(self, record_type: str, ids: list[Any], options: QuerySpec) -> dict[str, Any]:
        """Build the body of one ``_mget`` request."""
        source = compile_source(options.fields, self.primary_key) if options.fields else None
        if source is not None:
            source = self.shim.keep_discriminator(source) or None
        return {"docs": [self.shim.mget_doc(record_type, doc_id, source) for doc_id in ids]}
