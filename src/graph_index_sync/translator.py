"""Translate a transaction's change set into index operations.

The result holds at most one operation per ``(index, document id)``.  Events
are applied in a fixed precedence order and later operations overwrite earlier
ones for the same key:

    created nodes → labels added → labels removed → properties added → properties removed

So an explicit label removal beats the upsert computed for the node's creation.
Nodes deleted in the same transaction never produce upserts or updates; a node
created, labelled and deleted in one transaction ends up as a delete.

The translator keeps no per-call state and may be shared across committing
threads.  It performs no I/O.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from graph_index_sync.documents import build_document, node_doc_id
from graph_index_sync.events import LabelAdded, LabelRemoved, NodeCreated, PropertyAdded, PropertyRemoved
from graph_index_sync.operations import Delete, OperationKey, PendingOperation, UpdatePartial, Upsert
from graph_index_sync.telemetry import get_metrics, get_tracer

if TYPE_CHECKING:
    from collections.abc import Iterator

    from graph_index_sync.events import ChangeEvent, ChangeSet
    from graph_index_sync.index_spec import IndexSettings, IndexSpecEntry
    from graph_index_sync.model import Node

_tracer = get_tracer(__name__)


class TranslationFault(RuntimeError):
    """The change set handed over by the store is missing expected data."""


class ChangeTranslator:
    """Stateless mapping from graph changes to pending index operations."""

    def __init__(self, settings: IndexSettings) -> None:
        self.settings = settings

    # -- label lookups -------------------------------------------------------

    def has_indexed_label(self, node: Node) -> bool:
        """True if any of the node's current labels is indexed."""
        return any(self.settings.has_label(label) for label in node.labels)

    def _indexed_specs(self, node: Node, label: str | None = None) -> Iterator[tuple[str, IndexSpecEntry]]:
        """Yield ``(label, spec)`` for the node's indexed labels, or for *label* only."""
        labels = node.labels if label is None else (label,)
        for name in labels:
            for spec in self.settings.specs_for(name):
                yield name, spec

    # -- request builders ----------------------------------------------------

    def index_operations(self, node: Node, label: str | None = None) -> dict[OperationKey, Upsert]:
        """Full-document upserts for every indexed label of *node* (or just *label*)."""
        doc_id = node_doc_id(node)
        ops: dict[OperationKey, Upsert] = {}
        for name, spec in self._indexed_specs(node, label):
            op = Upsert(spec.index_name, doc_id, name, build_document(node, spec.properties, self.settings))
            ops[op.key] = op
        return ops

    def update_operations(self, node: Node) -> dict[OperationKey, UpdatePartial]:
        """Merge-updates carrying the node's current document for every indexed label."""
        doc_id = node_doc_id(node)
        ops: dict[OperationKey, UpdatePartial] = {}
        for name, spec in self._indexed_specs(node):
            op = UpdatePartial(spec.index_name, doc_id, name, build_document(node, spec.properties, self.settings))
            ops[op.key] = op
        return ops

    def delete_operations(self, node: Node, label: str | None = None) -> dict[OperationKey, Delete]:
        """Deletes for every indexed label of *node*, or only the indices tied to *label*."""
        doc_id = node_doc_id(node)
        ops: dict[OperationKey, Delete] = {}
        for name, spec in self._indexed_specs(node, label):
            op = Delete(spec.index_name, doc_id, name)
            ops[op.key] = op
        return ops

    # -- translation ---------------------------------------------------------

    def translate(self, change_set: ChangeSet) -> dict[OperationKey, PendingOperation]:
        """Collapse *change_set* into one pending operation per ``(index, doc id)``.

        Errors raised while iterating the change set propagate; the whole
        transaction's translation is abandoned.
        """
        started = time.perf_counter()
        actions: dict[OperationKey, PendingOperation] = {}

        with _tracer.start_as_current_span("translator.translate") as span:
            for event in change_set.events():
                actions.update(self._translate_event(event, change_set))
            span.set_attribute("operations", len(actions))

        get_metrics().translate_duration.record(time.perf_counter() - started)
        return actions

    def _translate_event(self, event: ChangeEvent, change_set: ChangeSet) -> dict[OperationKey, PendingOperation]:
        if getattr(event, "node", None) is None:
            raise TranslationFault(f"Change event without a node: {event!r}")

        match event:
            case NodeCreated(node=node):
                if not change_set.is_deleted(node) and self.has_indexed_label(node):
                    return self.index_operations(node)
            case LabelAdded(node=node, label=label):
                if self.settings.has_label(label):
                    if change_set.is_deleted(node):
                        return self.delete_operations(node, label)
                    return self.index_operations(node, label)
            case LabelRemoved(node=node, label=label):
                if self.settings.has_label(label):
                    return self.delete_operations(node, label)
            case PropertyAdded(node=node):
                if not change_set.is_deleted(node) and self.has_indexed_label(node):
                    return self.index_operations(node)
            case PropertyRemoved(node=node):
                if not change_set.is_deleted(node) and self.has_indexed_label(node):
                    return self.update_operations(node)
            case _:
                raise TranslationFault(f"Unrecognised change event: {event!r}")
        return {}
