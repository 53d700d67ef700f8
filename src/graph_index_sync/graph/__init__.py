"""Bolt client for reading node snapshots."""

from __future__ import annotations

from graph_index_sync.graph.client import GraphClient, QueryTimeoutError

__all__ = [
    "GraphClient",
    "QueryTimeoutError",
]
