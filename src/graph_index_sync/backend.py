"""Elasticsearch bulk backend.

Wraps a thread-safe ``httpx.Client`` plus a bounded worker pool.  ``bulk``
blocks until the cluster answers; ``bulk_async`` hands the same call to the
pool and returns a future whose callbacks run on the worker thread.
"""

from __future__ import annotations

import itertools
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import urlsplit

import httpx
from loguru import logger

from graph_index_sync.operations import encode_bulk

if TYPE_CHECKING:
    from collections.abc import Sequence

    from graph_index_sync.operations import PendingOperation
    from graph_index_sync.settings import ElasticsearchSettings

_NDJSON = {"Content-Type": "application/x-ndjson"}


class DispatchError(OSError):
    """Raised when the index backend cannot be reached."""


@dataclass(frozen=True)
class BulkResult:
    """Whole-batch verdict for one bulk request the backend answered."""

    succeeded: bool
    status_code: int
    item_count: int = 0
    failed_items: int = 0
    error_message: str | None = None


class IndexBackend(Protocol):
    """What the dispatcher needs from an index backend."""

    def bulk(self, operations: Sequence[PendingOperation]) -> BulkResult: ...

    def bulk_async(self, operations: Sequence[PendingOperation]) -> Future[BulkResult]: ...

    def ping(self) -> bool: ...

    def close(self) -> None: ...


def _error_reason(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("reason") or error.get("type") or error)
    return str(error)


def parse_bulk_response(response: httpx.Response, item_count: int) -> BulkResult:
    """Summarise a ``_bulk`` response. Per-item failures are counted, not itemised."""
    status = response.status_code
    try:
        body = response.json()
    except ValueError:
        body = None

    if not response.is_success:
        reason = _error_reason(body["error"]) if isinstance(body, dict) and "error" in body else response.text[:200]
        return BulkResult(False, status, item_count, item_count, f"HTTP {status}: {reason}")

    if not isinstance(body, dict):
        return BulkResult(False, status, item_count, item_count, "Unreadable bulk response")

    if not body.get("errors"):
        return BulkResult(True, status, item_count)

    failures = [
        result["error"]
        for item in body.get("items", [])
        for result in item.values()
        if isinstance(result, dict) and result.get("error")
    ]
    first = _error_reason(failures[0]) if failures else "unknown error"
    return BulkResult(
        False,
        status,
        item_count,
        len(failures),
        f"{len(failures)} of {item_count} bulk items failed: {first}",
    )


class ElasticsearchBackend:
    """Bulk client for one Elasticsearch cluster.

    With discovery enabled, :meth:`discover` replaces the seed address with
    the cluster's published HTTP addresses and requests round-robin over them.
    """

    def __init__(self, settings: ElasticsearchSettings, *, transport: httpx.BaseTransport | None = None) -> None:
        self._seed = settings.host_name.rstrip("/")
        self._hosts = [self._seed]
        self._cursor = itertools.count()
        self._lock = threading.Lock()
        self._mapping_types = settings.mapping_types
        self._client = httpx.Client(timeout=settings.timeout_s, transport=transport)
        self._executor = ThreadPoolExecutor(max_workers=settings.max_workers, thread_name_prefix="graphsync-bulk")

    @property
    def hosts(self) -> list[str]:
        return list(self._hosts)

    def _next_host(self) -> str:
        with self._lock:
            hosts = self._hosts
            return hosts[next(self._cursor) % len(hosts)]

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        host = self._next_host()
        try:
            return self._client.request(method, f"{host}{path}", **kwargs)
        except httpx.TransportError as exc:
            raise DispatchError(f"Elasticsearch unreachable at {host}: {exc}") from exc

    def bulk(self, operations: Sequence[PendingOperation]) -> BulkResult:
        """Send *operations* as one ``_bulk`` request and wait for the answer."""
        body = encode_bulk(operations, mapping_types=self._mapping_types)
        response = self._request("POST", "/_bulk", content=body, headers=_NDJSON)
        return parse_bulk_response(response, len(operations))

    def bulk_async(self, operations: Sequence[PendingOperation]) -> Future[BulkResult]:
        """Queue a bulk request on the worker pool."""
        return self._executor.submit(self.bulk, list(operations))

    def ping(self) -> bool:
        """Health check. True if the cluster answers its root endpoint."""
        try:
            return self._request("GET", "/").is_success
        except DispatchError:
            return False

    def discover(self) -> list[str]:
        """Read ``/_nodes/http`` and round-robin over the published addresses.

        Keeps the current host list when discovery fails or finds nothing.
        """
        try:
            response = self._request("GET", "/_nodes/http")
            response.raise_for_status()
            nodes = response.json().get("nodes", {})
        except (DispatchError, httpx.HTTPStatusError, ValueError) as exc:
            logger.warning("Elasticsearch node discovery failed, keeping {}: {}", self._hosts, exc)
            return self.hosts

        scheme = urlsplit(self._seed).scheme or "http"
        found = []
        for node in nodes.values():
            address = node.get("http", {}).get("publish_address")
            if address:
                # "hostname/10.0.0.1:9200" or "10.0.0.1:9200"
                found.append(f"{scheme}://{address.rsplit('/', 1)[-1]}")

        if found:
            with self._lock:
                self._hosts = sorted(set(found))
            logger.info("Discovered {} Elasticsearch node(s): {}", len(self._hosts), ", ".join(self._hosts))
        return self.hosts

    def close(self) -> None:
        """Wait for queued bulk requests, then close the HTTP client."""
        self._executor.shutdown(wait=True)
        self._client.close()
