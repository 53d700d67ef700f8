"""Pending index operations and their bulk wire encoding."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NamedTuple, assert_never

if TYPE_CHECKING:
    from collections.abc import Iterable


class OperationKey(NamedTuple):
    """Identity of one document in one index. At most one operation per key per batch."""

    index_name: str
    doc_id: str


@dataclass(frozen=True)
class Upsert:
    """Index the full document, replacing whatever is stored under the id."""

    index_name: str
    doc_id: str
    type_label: str
    document: dict[str, Any]

    @property
    def key(self) -> OperationKey:
        return OperationKey(self.index_name, self.doc_id)


@dataclass(frozen=True)
class UpdatePartial:
    """Merge the document's fields into the stored one; absent fields are left untouched."""

    index_name: str
    doc_id: str
    type_label: str
    document: dict[str, Any]

    @property
    def key(self) -> OperationKey:
        return OperationKey(self.index_name, self.doc_id)


@dataclass(frozen=True)
class Delete:
    """Remove the document from the index."""

    index_name: str
    doc_id: str
    type_label: str | None = None

    @property
    def key(self) -> OperationKey:
        return OperationKey(self.index_name, self.doc_id)


PendingOperation = Upsert | UpdatePartial | Delete


# ---------------------------------------------------------------------------
# Bulk encoding (Elasticsearch NDJSON)
# ---------------------------------------------------------------------------


def _action_meta(op: PendingOperation, *, mapping_types: bool) -> dict[str, str]:
    meta = {"_index": op.index_name, "_id": op.doc_id}
    if mapping_types and op.type_label:
        meta["_type"] = op.type_label
    return meta


def bulk_lines(op: PendingOperation, *, mapping_types: bool = False) -> list[dict[str, Any]]:
    """Return the action line (and source line, if any) for one operation."""
    meta = _action_meta(op, mapping_types=mapping_types)
    match op:
        case Upsert(document=document):
            return [{"index": meta}, document]
        case UpdatePartial(document=document):
            return [{"update": meta}, {"doc": document}]
        case Delete():
            return [{"delete": meta}]
        case _:
            assert_never(op)


def encode_bulk(operations: Iterable[PendingOperation], *, mapping_types: bool = False) -> bytes:
    """Serialize operations into a newline-terminated ``_bulk`` request body."""
    lines = [
        json.dumps(line, ensure_ascii=False, default=str)
        for op in operations
        for line in bulk_lines(op, mapping_types=mapping_types)
    ]
    return ("\n".join(lines) + "\n").encode()
