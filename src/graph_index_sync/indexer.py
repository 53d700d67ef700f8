"""Explicit, out-of-transaction indexing: one node now, or a whole label backfill."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from graph_index_sync.backend import BulkResult
    from graph_index_sync.dispatcher import Dispatcher
    from graph_index_sync.graph.client import GraphClient
    from graph_index_sync.model import Node
    from graph_index_sync.translator import ChangeTranslator


class SingleNodeIndexer:
    """Handler behind the "index this node now" command.

    Unlike the transactional path, backend failures reach the caller.
    """

    def __init__(self, translator: ChangeTranslator, dispatcher: Dispatcher) -> None:
        self.translator = translator
        self.dispatcher = dispatcher

    def index_now(self, node: Node) -> BulkResult | None:
        """Upsert *node* into every index its labels map to, synchronously.

        Returns ``None`` when the node has no indexed label.  Raises
        :class:`~graph_index_sync.backend.DispatchError` if the backend is
        unreachable.
        """
        if not self.translator.has_indexed_label(node):
            logger.debug("Node {} has no indexed label, nothing to do", node.id)
            return None
        actions = self.translator.index_operations(node)
        return self.dispatcher.dispatch(list(actions.values()), use_async=False)


@dataclass
class ReindexStats:
    """Counters for one backfill run."""

    nodes: int = 0
    operations: int = 0
    batches: int = 0
    failed_batches: int = 0


async def reindex(
    graph: GraphClient,
    indexer: SingleNodeIndexer,
    *,
    labels: Iterable[str] | None = None,
    page_size: int = 500,
) -> ReindexStats:
    """Upsert every node carrying an indexed label, one bulk request per page.

    Each label pass writes only that label's indices, so a node with several
    indexed labels is sent once per index.  Bulk requests run in a worker
    thread to keep the event loop free for the graph driver.

    *labels* restricts the run; unknown or unindexed labels are skipped with a
    warning.  Raises :class:`~graph_index_sync.backend.DispatchError` if the
    backend becomes unreachable.
    """
    settings = indexer.translator.settings
    targets = sorted(settings.indexed_labels) if labels is None else list(labels)
    stats = ReindexStats()

    for label in targets:
        if not settings.has_label(label):
            logger.warning("Label '{}' is not in the index spec, skipping", label)
            continue
        async for page in graph.iter_nodes(label, page_size=page_size):
            batch = {}
            for node in page:
                batch.update(indexer.translator.index_operations(node, label))
            stats.nodes += len(page)
            if not batch:
                continue
            result = await asyncio.to_thread(indexer.dispatcher.dispatch, list(batch.values()), use_async=False)
            stats.batches += 1
            stats.operations += len(batch)
            if result is not None and not result.succeeded:
                stats.failed_batches += 1
        logger.info("Re-indexed label {} ({} node(s) so far)", label, stats.nodes)

    return stats
