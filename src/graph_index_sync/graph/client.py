"""Async Bolt client for reading node snapshots.

Uses the neo4j async driver, which speaks to both Neo4j and Memgraph.  The
sync pipeline itself never reads the store; this client serves the explicit
``index-node`` and ``reindex`` commands.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from neo4j import AsyncGraphDatabase

from graph_index_sync.model import NodeRecord
from graph_index_sync.telemetry import get_tracer

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from neo4j import AsyncDriver

    from graph_index_sync.settings import SyncSettings

_tracer = get_tracer(__name__)

_NODE_RETURN = "RETURN id(n) AS id, labels(n) AS labels, properties(n) AS props"


def _quote_label(label: str) -> str:
    """Backtick-quote a label for interpolation into Cypher."""
    return "`" + label.replace("`", "``") + "`"


def _to_record(row: dict[str, Any]) -> NodeRecord:
    return NodeRecord(id=row["id"], labels=list(row["labels"]), properties=dict(row["props"]))


class QueryTimeoutError(Exception):
    """Raised when a read query exceeds the configured timeout."""

    def __init__(self, timeout_s: float, query_prefix: str = "") -> None:
        self.timeout_s = timeout_s
        self.query_prefix = query_prefix
        super().__init__(f"Query timed out after {timeout_s}s: {query_prefix}")


class GraphClient:
    """Read-only graph client: construct → ping → use → close."""

    def __init__(self, settings: SyncSettings) -> None:
        gs = settings.graph
        self._uri = f"bolt://{gs.host}:{gs.port}"
        auth = (gs.username, gs.password) if gs.username else None
        self._driver: AsyncDriver = AsyncGraphDatabase.driver(self._uri, auth=auth)
        self._query_timeout_s = gs.query_timeout_s

    async def ping(self) -> bool:
        """Health check. True if the store is reachable."""
        records = await self.execute("RETURN 1 AS n")
        return len(records) == 1 and records[0]["n"] == 1

    async def execute(self, query: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Execute a read query and return results as a list of dicts."""
        with _tracer.start_as_current_span("graph.execute", attributes={"db.statement": query[:200]}):
            try:
                return await asyncio.wait_for(self._execute_inner(query, params), timeout=self._query_timeout_s)
            except TimeoutError:
                raise QueryTimeoutError(self._query_timeout_s, query[:120]) from None

    async def _execute_inner(self, query: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        async with self._driver.session() as session:
            result = await session.run(query, params or {})  # type: ignore[arg-type]  # dynamic Cypher
            return [dict(record) async for record in result]

    async def execute_write(self, query: str, params: dict[str, Any] | None = None) -> None:
        """Execute a write query (test fixtures and tooling only)."""
        async with self._driver.session() as session:
            result = await session.run(query, params or {})  # type: ignore[arg-type]  # dynamic Cypher
            await result.consume()

    async def fetch_node(self, node_id: int) -> NodeRecord | None:
        """Snapshot one node by its internal id, or ``None`` if it does not exist."""
        rows = await self.execute(f"MATCH (n) WHERE id(n) = $id {_NODE_RETURN}", {"id": node_id})
        return _to_record(rows[0]) if rows else None

    async def iter_nodes(self, label: str, *, page_size: int = 500) -> AsyncIterator[list[NodeRecord]]:
        """Yield pages of nodes carrying *label*, ordered by id (keyset pagination)."""
        query = (
            f"MATCH (n:{_quote_label(label)}) WHERE id(n) > $after "
            f"{_NODE_RETURN} ORDER BY id LIMIT $limit"
        )
        after = -1
        while True:
            rows = await self.execute(query, {"after": after, "limit": page_size})
            if not rows:
                return
            page = [_to_record(row) for row in rows]
            yield page
            if len(page) < page_size:
                return
            after = page[-1].id

    async def close(self) -> None:
        """Close the driver and release connections."""
        await self._driver.close()
