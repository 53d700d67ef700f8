"""Graph node shapes consumed by the translator and document mapper."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


@runtime_checkable
class Node(Protocol):
    """A graph node as seen by the store at translation time.

    ``labels`` and ``properties`` reflect the node's *current* state inside the
    committing transaction, in the store's enumeration order.
    """

    @property
    def id(self) -> int: ...

    @property
    def labels(self) -> Sequence[str]: ...

    @property
    def properties(self) -> Mapping[str, Any]: ...


@dataclass
class NodeRecord:
    """Plain node snapshot (Bolt reads, in-memory stores, tests)."""

    id: int
    labels: list[str] = field(default_factory=list)
    properties: dict[str, Any] = field(default_factory=dict)
