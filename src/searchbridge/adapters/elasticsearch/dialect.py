"""Version compatibility shim — every typed/typeless difference lives here.

Elasticsearch dropped mapping types in 7.0.  Below that version documents
are addressed as ``/{index}/{type}/{id}`` and searches are scoped by path.
Indices created on 6.x accept only one mapping type, so the typed dialect
there is limited to a single record type.  From 7.0 on, one index holds
every record type, so the type name is written into each document under a
discriminator field mapped as ``keyword`` by an index template.  Searches
filter on it and writes by id check it first.

The rest of the adapter never branches on the version: it asks ``ApiShim``
for addressing, paths and request fragments.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum
from typing import Any

from searchbridge.adapters.base.exceptions import ConfigurationError
from searchbridge.models.records import Record

TYPELESS_SINCE = 7.0
SINGLE_TYPE_SINCE = 6.0
BOOLEAN_INDEX_OPTION_SINCE = 5.0


class Dialect(StrEnum):
    TYPED = "typed"
    TYPELESS = "typeless"

    @classmethod
    def from_version(cls, version: str) -> Dialect:
        return cls.TYPELESS if _parse_version(version) >= TYPELESS_SINCE else cls.TYPED


def _parse_version(version: str) -> float:
    try:
        return float(version)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Unparseable Elasticsearch API version: {version!r}") from e


class ApiShim:
    """Dialect-aware request shaping for one index.

    Args:
        index: Index name holding every record type.
        api_version: Configured API version string, e.g. ``"2.4"`` or ``"7.10"``.
        discriminator: Document field carrying the record type on typeless versions.
    """

    def __init__(self, index: str, api_version: str, discriminator: str = "record_type") -> None:
        self.index = index
        self.version = _parse_version(api_version)
        self.dialect = Dialect.from_version(api_version)
        self.discriminator = discriminator

    @property
    def typed(self) -> bool:
        return self.dialect is Dialect.TYPED

    @property
    def single_type_index(self) -> bool:
        """Typed versions whose indices reject a second mapping type."""
        return self.typed and self.version >= SINGLE_TYPE_SINCE

    def check_record_types(self, record_types: Iterable[str]) -> None:
        """Raise ConfigurationError if the index cannot hold these record types."""
        names = sorted(record_types)
        if self.single_type_index and len(names) > 1:
            raise ConfigurationError(
                f"Elasticsearch {self.version:g} indices hold one mapping type; "
                f"got {len(names)} record types ({', '.join(names)}). "
                f"Use api_version {TYPELESS_SINCE:g} or later, or one record type per adapter."
            )

    # ── Document addressing ──────────────────────────────────────────────

    def bulk_header(self, record_type: str, doc_id: Any) -> dict[str, Any]:
        header: dict[str, Any] = {"_index": self.index}
        if self.typed:
            header["_type"] = record_type
        header["_id"] = doc_id
        return header

    def document_body(self, record_type: str, record: Record) -> Record:
        """The stored form of a record; typeless documents carry their type."""
        if self.typed:
            return dict(record)
        return {**record, self.discriminator: record_type}

    def mget_doc(self, record_type: str, doc_id: Any, source: Any = None) -> dict[str, Any]:
        doc = self.bulk_header(record_type, doc_id)
        if source is not None:
            doc["_source"] = source
        return doc

    def owns(self, record_type: str, source: Record) -> bool:
        """Whether a fetched document belongs to ``record_type``."""
        if self.typed:
            return True
        return source.get(self.discriminator) == record_type

    def keep_discriminator(self, source: dict[str, Any]) -> dict[str, Any]:
        """Make sure a projection still returns the discriminator so ``owns`` can be checked.

        The discriminator is reserved: it is added to includes and removed
        from excludes.  The result may be empty, meaning the whole source.
        """
        if self.typed:
            return source
        kept = dict(source)
        includes = kept.get("includes")
        if includes and self.discriminator not in includes:
            kept["includes"] = [*includes, self.discriminator]
        excludes = [name for name in kept.pop("excludes", None) or [] if name != self.discriminator]
        if excludes:
            kept["excludes"] = excludes
        return kept

    @property
    def ownership_fields(self) -> list[str]:
        """Fields a pre-read must fetch so writes can be checked with ``owns``."""
        return [] if self.typed else [self.discriminator]

    def ownership_request(self, record_type: str, ids: Iterable[Any]) -> dict[str, Any]:
        """Multi-get body fetching only the discriminator of each id."""
        return {"docs": [self.mget_doc(record_type, doc_id, self.ownership_fields) for doc_id in ids]}

    def owned_ids(self, record_type: str, response: dict[str, Any]) -> set[str]:
        """``str(_id)`` of every found document in a multi-get response that belongs to ``record_type``."""
        return {
            str(doc.get("_id"))
            for doc in response.get("docs", [])
            if doc.get("found") and self.owns(record_type, doc.get("_source") or {})
        }

    def strip(self, source: Record) -> Record:
        if not self.typed:
            source.pop(self.discriminator, None)
        return source

    # ── Search ───────────────────────────────────────────────────────────

    def search_path(self, record_type: str) -> str:
        if self.typed:
            return f"/{self.index}/{record_type}/_search"
        return f"/{self.index}/_search"

    def delete_by_query_path(self, record_type: str) -> str:
        if self.typed:
            return f"/{self.index}/{record_type}/_delete_by_query"
        return f"/{self.index}/_delete_by_query"

    def type_filter(self, record_type: str) -> dict[str, Any] | None:
        if self.typed:
            return None
        return {"term": {self.discriminator: record_type}}

    def search_extras(self) -> dict[str, Any]:
        # 7.x stops counting at 10,000 hits unless asked otherwise.
        if self.typed:
            return {}
        return {"track_total_hits": True}

    @staticmethod
    def total_hits(hits: dict[str, Any]) -> int:
        total = hits.get("total", 0)
        if isinstance(total, dict):
            return int(total.get("value", 0))
        return int(total or 0)

    # ── Mappings and templates ───────────────────────────────────────────

    @property
    def not_indexed(self) -> str | bool:
        """Value of a field's ``index`` option that disables indexing."""
        return False if self.version >= BOOLEAN_INDEX_OPTION_SINCE else "no"

    @property
    def keyword(self) -> dict[str, Any]:
        if self.version >= BOOLEAN_INDEX_OPTION_SINCE:
            return {"type": "keyword"}
        return {"type": "string", "index": "not_analyzed"}

    def mapping_request(self, record_type: str, properties: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """Path and body of a put-mapping call for one record type."""
        if self.typed:
            return f"/{self.index}/_mapping/{record_type}", {record_type: {"properties": properties}}
        return f"/{self.index}/_mapping", {"properties": properties}

    @property
    def needs_type_template(self) -> bool:
        return not self.typed

    @property
    def template_name(self) -> str:
        return f"{self.index}-record-type"

    @property
    def template_path(self) -> str:
        return f"/_template/{self.template_name}"

    def type_template(self) -> dict[str, Any]:
        """Index template mapping the discriminator as an exact-match value."""
        return {
            "index_patterns": [self.index],
            "mappings": {"properties": {self.discriminator: dict(self.keyword)}},
        }
