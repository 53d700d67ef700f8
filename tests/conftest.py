"""Shared test fixtures for graph-index-sync."""

from __future__ import annotations

import contextlib
import itertools
import json
import threading
from typing import TYPE_CHECKING, Any

import httpx
import pytest
from loguru import logger

from graph_index_sync.backend import ElasticsearchBackend
from graph_index_sync.events import ChangeSet, LabelAdded, LabelRemoved, PropertyAdded, PropertyRemoved
from graph_index_sync.graph.client import GraphClient
from graph_index_sync.index_spec import IndexSettings
from graph_index_sync.model import NodeRecord
from graph_index_sync.settings import ElasticsearchSettings, SyncSettings

if TYPE_CHECKING:
    from collections.abc import Iterator

    from graph_index_sync.listener import TransactionListener

ES_HOST = "http://es.test:9200"


# ---------------------------------------------------------------------------
# In-memory property graph with transaction hooks
# ---------------------------------------------------------------------------


class FakeTransaction:
    """Mutates live nodes and records the change streams a real store would report."""

    def __init__(self, graph: FakeGraph) -> None:
        self._graph = graph
        self.created: list[NodeRecord] = []
        self.assigned_labels: list[LabelAdded] = []
        self.removed_labels: list[LabelRemoved] = []
        self.assigned_properties: list[PropertyAdded] = []
        self.removed_properties: list[PropertyRemoved] = []
        self.deleted: set[int] = set()

    def create_node(self, *labels: str, **props: Any) -> NodeRecord:
        node = NodeRecord(id=next(self._graph._ids))
        self._graph.nodes[node.id] = node
        self.created.append(node)
        for label in labels:
            self.add_label(node, label)
        for key, value in props.items():
            self.set_property(node, key, value)
        return node

    def add_label(self, node: NodeRecord, label: str) -> None:
        if label not in node.labels:
            node.labels.append(label)
            self.assigned_labels.append(LabelAdded(node, label))

    def remove_label(self, node: NodeRecord, label: str) -> None:
        if label in node.labels:
            node.labels.remove(label)
            self.removed_labels.append(LabelRemoved(node, label))

    def set_property(self, node: NodeRecord, key: str, value: Any) -> None:
        previous = node.properties.get(key)
        node.properties[key] = value
        self.assigned_properties.append(PropertyAdded(node, key, value, previous))

    def remove_property(self, node: NodeRecord, key: str) -> None:
        if key in node.properties:
            previous = node.properties.pop(key)
            self.removed_properties.append(PropertyRemoved(node, key, previous))

    def delete_node(self, node: NodeRecord) -> None:
        for label in list(node.labels):
            self.remove_label(node, label)
        for key in list(node.properties):
            self.remove_property(node, key)
        self.deleted.add(node.id)
        self._graph.nodes.pop(node.id, None)

    def change_set(self) -> ChangeSet:
        return ChangeSet(
            created_nodes=self.created,
            assigned_labels=self.assigned_labels,
            removed_labels=self.removed_labels,
            assigned_properties=self.assigned_properties,
            removed_properties=self.removed_properties,
            deleted_node_ids=frozenset(self.deleted),
        )


class FakeGraph:
    """Transactional in-memory graph that reports to registered listeners."""

    def __init__(self) -> None:
        self.nodes: dict[int, NodeRecord] = {}
        self.listeners: list[TransactionListener] = []
        self._ids = itertools.count(1)

    def register_transaction_listener(self, listener: TransactionListener) -> None:
        self.listeners.append(listener)

    def unregister_transaction_listener(self, listener: TransactionListener) -> None:
        self.listeners.remove(listener)

    @contextlib.contextmanager
    def transaction(self, *, rollback: bool = False) -> Iterator[FakeTransaction]:
        tx = FakeTransaction(self)
        yield tx
        change_set = tx.change_set()
        states = [(listener, listener.before_commit(change_set)) for listener in self.listeners]
        for listener, state in states:
            if rollback:
                listener.after_rollback(change_set, state)
            else:
                listener.after_commit(change_set, state)


# ---------------------------------------------------------------------------
# In-memory Elasticsearch behind httpx.MockTransport
# ---------------------------------------------------------------------------


class FakeElasticsearch:
    """Just enough of the Elasticsearch HTTP API for bulk indexing."""

    def __init__(self) -> None:
        self.docs: dict[tuple[str, str], dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.bulk_bodies: list[list[dict[str, Any]]] = []
        self.unreachable = False
        self.status_code = 200
        self.nodes_payload: dict[str, Any] = {"nodes": {}}
        self._lock = threading.Lock()

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
            if self.unreachable:
                raise httpx.ConnectError("Connection refused", request=request)
            if self.status_code != 200:
                return httpx.Response(
                    self.status_code, json={"error": {"type": "cluster_block_exception", "reason": "index read-only"}}
                )
            if request.url.path == "/":
                return httpx.Response(200, json={"tagline": "You Know, for Search"})
            if request.url.path == "/_nodes/http":
                return httpx.Response(200, json=self.nodes_payload)
            if request.url.path == "/_bulk":
                return self._bulk(request)
            return httpx.Response(404, json={"error": "no handler"})

    def _bulk(self, request: httpx.Request) -> httpx.Response:
        lines = [json.loads(line) for line in request.content.decode().splitlines() if line]
        self.bulk_bodies.append(lines)
        items = []
        pos = 0
        while pos < len(lines):
            ((action, meta),) = lines[pos].items()
            pos += 1
            key = (meta["_index"], meta["_id"])
            result: dict[str, Any] = {"_index": key[0], "_id": key[1], "status": 200}
            if action == "index":
                self.docs[key] = lines[pos]
                pos += 1
            elif action == "update":
                patch = lines[pos]["doc"]
                pos += 1
                if key in self.docs:
                    self.docs[key].update(patch)
                else:
                    result.update(status=404, error={"type": "document_missing_exception", "reason": "missing"})
            elif action == "delete":
                if self.docs.pop(key, None) is None:
                    result["status"] = 404
            items.append({action: result})
        errors = any("error" in next(iter(item.values())) for item in items)
        return httpx.Response(200, json={"took": 1, "errors": errors, "items": items})

    def bulk_actions(self) -> list[str]:
        """Action names of every bulk request line, in submission order."""
        return [next(iter(line)) for body in self.bulk_bodies for line in body if next(iter(line)) in _ACTIONS]


_ACTIONS = frozenset({"index", "update", "delete"})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def fake_es() -> FakeElasticsearch:
    return FakeElasticsearch()


@pytest.fixture
def es_settings() -> ElasticsearchSettings:
    return ElasticsearchSettings(host_name=ES_HOST, index_spec="my_index:MyLabel(foo,bar)")


@pytest.fixture
def es_backend(es_settings: ElasticsearchSettings, fake_es: FakeElasticsearch) -> Iterator[ElasticsearchBackend]:
    backend = ElasticsearchBackend(es_settings, transport=fake_es.transport)
    yield backend
    backend.close()


@pytest.fixture
def index_settings() -> IndexSettings:
    return IndexSettings.from_spec("my_index:MyLabel(foo,bar)")


@pytest.fixture
def log_messages() -> Iterator[list[str]]:
    """Capture loguru output as ``"LEVEL message"`` strings."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(f"{m.record['level'].name} {m.record['message']}"), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def settings() -> SyncSettings:
    return SyncSettings(elasticsearch={"host_name": ES_HOST, "index_spec": "my_index:MyLabel(foo,bar)"})


@pytest.fixture
async def graph_client(settings: SyncSettings):
    """Async GraphClient fixture; skips if no Bolt server is reachable.

    Wipes all nodes before and after each test.
    """
    client = GraphClient(settings)
    try:
        await client.ping()
    except Exception:
        await client.close()
        pytest.skip("Graph store not available")

    await client.execute_write("MATCH (n) DETACH DELETE n")
    yield client
    await client.execute_write("MATCH (n) DETACH DELETE n")
    await client.close()
