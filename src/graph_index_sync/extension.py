"""Lifecycle of the sync pipeline inside a host process.

Owns the backend, dispatcher, translator and the explicit-command handler,
and registers the transaction listener with the store.  Configuration
problems disable the pipeline; they never raise into the host.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from graph_index_sync.backend import ElasticsearchBackend
from graph_index_sync.dispatcher import Dispatcher
from graph_index_sync.index_spec import DuplicateIndexError, IndexSettings
from graph_index_sync.indexer import SingleNodeIndexer
from graph_index_sync.listener import IndexingTransactionListener
from graph_index_sync.translator import ChangeTranslator

if TYPE_CHECKING:
    from graph_index_sync.backend import IndexBackend
    from graph_index_sync.listener import TransactionEventSource
    from graph_index_sync.settings import SyncSettings


class SyncExtension:
    """Start/stop wrapper: construct → start(source) → use → stop().

    A caller-supplied *backend* is used as is but still closed by :meth:`stop`.
    """

    def __init__(self, settings: SyncSettings, *, backend: IndexBackend | None = None) -> None:
        es = settings.elasticsearch
        self._settings = es
        self._backend = backend
        self._source: TransactionEventSource | None = None
        self._listener: IndexingTransactionListener | None = None
        self._indexer: SingleNodeIndexer | None = None
        self.enabled = True

        try:
            self.index_settings = IndexSettings.from_spec(
                es.index_spec,
                include_id_field=es.include_id_field,
                include_labels_field=es.include_labels_field,
            )
        except DuplicateIndexError as exc:
            logger.error("Elasticsearch integration: can't define index twice ({})", exc.index_name)
            self.index_settings = IndexSettings()
            self.enabled = False
        else:
            if not self.index_settings.spec_by_label:
                logger.error("Elasticsearch integration: syntax error in index_spec {!r}", es.index_spec)
                self.enabled = False

        logger.info("Elasticsearch integration: {} - {}", es.host_name, es.index_spec)

    @property
    def indexer(self) -> SingleNodeIndexer:
        """The "index this node now" handler. Only available after :meth:`start`."""
        if self._indexer is None:
            msg = "Elasticsearch integration is not running"
            raise RuntimeError(msg)
        return self._indexer

    @property
    def backend(self) -> IndexBackend | None:
        return self._backend

    def start(self, source: TransactionEventSource | None = None) -> bool:
        """Connect and, if auto-indexing is on, hook into *source*.

        Returns ``False`` (and does nothing) when the configuration disabled
        the pipeline.
        """
        if not self.enabled:
            return False

        if self._backend is None:
            backend = ElasticsearchBackend(self._settings)
            if self._settings.discovery:
                backend.discover()
            self._backend = backend

        translator = ChangeTranslator(self.index_settings)
        dispatcher = Dispatcher(self._backend, use_async=self._settings.use_async)
        self._indexer = SingleNodeIndexer(translator, dispatcher)

        if self._settings.enable_auto_index and source is not None:
            self._listener = IndexingTransactionListener(translator, dispatcher)
            source.register_transaction_listener(self._listener)
            self._source = source
        elif source is not None:
            logger.info("Auto-indexing disabled, only explicit index commands are active")

        logger.info("Connected to Elasticsearch")
        return True

    def stop(self) -> None:
        """Unhook from the store and close the backend (waits for queued bulks)."""
        if not self.enabled:
            return
        if self._source is not None and self._listener is not None:
            self._source.unregister_transaction_listener(self._listener)
        self._source = None
        self._listener = None
        self._indexer = None
        if self._backend is not None:
            self._backend.close()
            self._backend = None
        logger.info("Disconnected from Elasticsearch")
