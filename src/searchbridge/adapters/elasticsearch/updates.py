"""Partial update resolver — merge push/pull/replace/operate into one patch.

The engine's partial update merges objects but cannot append to or remove
from arrays, so push and pull are resolved client-side against a pre-read of
the affected fields.  The pre-read and the write are two separate requests:
a concurrent writer between them can be overwritten.  On typeless versions
the pre-read always runs so updates aimed at another record type are dropped.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import Any

from searchbridge.adapters.elasticsearch import codec
from searchbridge.adapters.elasticsearch.dialect import ApiShim
from searchbridge.models.records import Record, UpdateSpec


def preread_fields(updates: Iterable[UpdateSpec]) -> list[str]:
    """Union of every field referenced by a push or pull in the batch."""
    fields: list[str] = []
    for update in updates:
        for name in update.array_fields:
            if name not in fields:
                fields.append(name)
    return fields


def preread_request(shim: ApiShim, record_type: str, updates: list[UpdateSpec]) -> dict[str, Any] | None:
    """Multi-get body fetching the push/pull fields of every record, or None if not needed.

    On typeless versions the discriminator is always fetched so updates to
    records of another type can be dropped.
    """
    fields = preread_fields(updates)
    fields += [name for name in shim.ownership_fields if name not in fields]
    if not fields:
        return None
    return {"docs": [shim.mget_doc(record_type, update.id, fields) for update in updates]}


def owned_updates(
    shim: ApiShim, record_type: str, updates: list[UpdateSpec], current: dict[str, Record]
) -> list[UpdateSpec]:
    """Drop updates whose pre-read document is missing or belongs to another record type."""
    if shim.typed:
        return updates
    return [u for u in updates if str(u.id) in current and shim.owns(record_type, current[str(u.id)])]


def current_documents(response: dict[str, Any]) -> dict[str, Record]:
    """Found documents of a multi-get response keyed by ``str(_id)``, bytes decoded."""
    docs: dict[str, Record] = {}
    for doc in response.get("docs", []):
        if not doc.get("found"):
            continue
        source = doc.get("_source") or {}
        docs[str(doc.get("_id"))] = {name: codec.decode_value(value) for name, value in source.items()}
    return docs


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list) else [value]


def resolve_patch(update: UpdateSpec, current: Record | None = None) -> Record:
    """Compute the merged partial document for one update.

    Applied in order:
      1. pull: removes the first occurrence of each value; absent fields are left alone
      2. push: appends to the sequence, creating it if absent
      3. replace: merged verbatim, ``None`` clears
      4. operate: merged verbatim, last
    """
    state = copy.deepcopy(current or {})
    patch: Record = {}

    for name, value in (update.pull or {}).items():
        if state.get(name) is None:
            continue
        sequence = _as_list(state[name])
        for v in _as_list(value):
            if v in sequence:
                sequence.remove(v)
        state[name] = patch[name] = sequence

    for name, value in (update.push or {}).items():
        added = _as_list(value)
        existing = state.get(name)
        sequence = added if existing is None else _as_list(existing) + added
        state[name] = patch[name] = sequence

    patch.update(update.replace or {})
    patch.update(update.operate or {})
    return patch


def resolve_patches(updates: list[UpdateSpec], current: dict[str, Record]) -> list[tuple[Any, Record]]:
    return [(update.id, resolve_patch(update, current.get(str(update.id)))) for update in updates]
