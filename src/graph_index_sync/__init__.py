"""Mirror committed property-graph changes into Elasticsearch."""

from __future__ import annotations

from graph_index_sync.backend import BulkResult, DispatchError, ElasticsearchBackend
from graph_index_sync.dispatcher import Dispatcher
from graph_index_sync.events import ChangeSet, LabelAdded, LabelRemoved, NodeCreated, PropertyAdded, PropertyRemoved
from graph_index_sync.extension import SyncExtension
from graph_index_sync.index_spec import (
    ConfigurationError,
    DuplicateIndexError,
    IndexSettings,
    IndexSpecEntry,
    format_index_spec,
    parse_index_spec,
)
from graph_index_sync.indexer import SingleNodeIndexer
from graph_index_sync.listener import IndexingTransactionListener
from graph_index_sync.model import NodeRecord
from graph_index_sync.operations import Delete, OperationKey, UpdatePartial, Upsert
from graph_index_sync.translator import ChangeTranslator, TranslationFault

__all__ = [
    "BulkResult",
    "ChangeSet",
    "ChangeTranslator",
    "ConfigurationError",
    "Delete",
    "DispatchError",
    "Dispatcher",
    "DuplicateIndexError",
    "ElasticsearchBackend",
    "IndexSettings",
    "IndexSpecEntry",
    "IndexingTransactionListener",
    "LabelAdded",
    "LabelRemoved",
    "NodeCreated",
    "NodeRecord",
    "OperationKey",
    "PropertyAdded",
    "PropertyRemoved",
    "SingleNodeIndexer",
    "SyncExtension",
    "TranslationFault",
    "UpdatePartial",
    "Upsert",
    "format_index_spec",
    "parse_index_spec",
]
