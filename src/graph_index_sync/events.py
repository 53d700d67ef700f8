"""Change events for one committing transaction.

The host store hands the translator a :class:`ChangeSet`: five event streams
plus an ``is_deleted`` predicate that is only meaningful while that
transaction is committing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from graph_index_sync.model import Node

# ---------------------------------------------------------------------------
# Event types (frozen dataclasses, matched structurally by the translator)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NodeCreated:
    """A node was created in this transaction."""

    node: Node


@dataclass(frozen=True)
class LabelAdded:
    """A label was assigned to a node."""

    node: Node
    label: str


@dataclass(frozen=True)
class LabelRemoved:
    """A label was removed from a node (also emitted for deleted nodes)."""

    node: Node
    label: str


@dataclass(frozen=True)
class PropertyAdded:
    """A property was set on a node (new key or changed value)."""

    node: Node
    key: str
    value: Any = None
    previous: Any = None


@dataclass(frozen=True)
class PropertyRemoved:
    """A property was removed from a node (also emitted for deleted nodes)."""

    node: Node
    key: str
    previous: Any = None


# Type alias for any change event
ChangeEvent = NodeCreated | LabelAdded | LabelRemoved | PropertyAdded | PropertyRemoved


# ---------------------------------------------------------------------------
# Change set
# ---------------------------------------------------------------------------


@dataclass
class ChangeSet:
    """All node-level changes of one transaction.

    The streams may be lazy iterables owned by the host; each is iterated once.
    """

    created_nodes: Iterable[Node] = ()
    assigned_labels: Iterable[LabelAdded] = ()
    removed_labels: Iterable[LabelRemoved] = ()
    assigned_properties: Iterable[PropertyAdded] = ()
    removed_properties: Iterable[PropertyRemoved] = ()
    deleted_node_ids: frozenset[int] = field(default_factory=frozenset)

    def is_deleted(self, node: Node) -> bool:
        return node.id in self.deleted_node_ids

    def events(self) -> Iterator[ChangeEvent]:
        """Yield every event, grouped by kind in translation precedence order."""
        for node in self.created_nodes:
            yield NodeCreated(node)
        yield from self.assigned_labels
        yield from self.removed_labels
        yield from self.assigned_properties
        yield from self.removed_properties
