"""Build index documents from graph nodes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from graph_index_sync.index_spec import IndexSettings
    from graph_index_sync.model import Node


def node_doc_id(node: Node) -> str:
    """Document id for *node*: its store id as a decimal string."""
    return str(node.id)


def build_document(node: Node, properties: Iterable[str], settings: IndexSettings) -> dict[str, Any]:
    """Map *node* to an ordered document.

    Field order is ``id`` (if enabled), ``labels`` (if enabled), then every
    property of *properties* the node actually has.  Missing properties are
    omitted rather than written as ``null``.  ``labels`` lists all of the
    node's labels, indexed or not.
    """
    doc: dict[str, Any] = {}
    if settings.include_id_field:
        doc["id"] = node_doc_id(node)
    if settings.include_labels_field:
        doc["labels"] = list(node.labels)

    values = node.properties
    for prop in properties:
        if prop in values:
            doc[prop] = values[prop]
    return doc
