"""Health checks for the sync pipeline's configuration and its two endpoints."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from graph_index_sync.backend import ElasticsearchBackend
from graph_index_sync.graph.client import GraphClient
from graph_index_sync.index_spec import ConfigurationError, parse_index_spec

if TYPE_CHECKING:
    from graph_index_sync.backend import IndexBackend
    from graph_index_sync.settings import ElasticsearchSettings, GraphSettings, SyncSettings

_CHECK_TIMEOUT = 3.0  # seconds per individual check


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


class CheckStatus(StrEnum):
    OK = "ok"
    WARN = "warn"
    FAIL = "fail"


@dataclass(frozen=True)
class CheckResult:
    """Result of a single health check."""

    name: str
    status: CheckStatus
    message: str
    detail: str = ""
    suggestion: str = ""


@dataclass(frozen=True)
class HealthReport:
    """Aggregated results from all health checks."""

    checks: list[CheckResult]
    elapsed_ms: float

    @property
    def ok(self) -> bool:
        """True when no check has FAIL status (WARN is treated as passing)."""
        return all(c.status != CheckStatus.FAIL for c in self.checks)


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


async def check_config(es_settings: ElasticsearchSettings) -> CheckResult:
    """Verify the index spec parses to a usable mapping."""
    name = "index_spec"
    try:
        spec = parse_index_spec(es_settings.index_spec)
    except ConfigurationError as exc:
        return CheckResult(name, CheckStatus.FAIL, "Invalid index spec", detail=str(exc))

    if not spec:
        return CheckResult(
            name,
            CheckStatus.FAIL,
            "Empty or malformed index spec",
            detail=repr(es_settings.index_spec),
            suggestion="Use the form 'index:Label(prop,prop),other:Label(prop)'.",
        )
    indices = sum(len(entries) for entries in spec.values())
    return CheckResult(name, CheckStatus.OK, f"{len(spec)} label(s) → {indices} index(es)")


async def check_elasticsearch(backend: IndexBackend, es_settings: ElasticsearchSettings) -> CheckResult:
    """Verify the Elasticsearch cluster answers."""
    name = "elasticsearch"
    addr = es_settings.host_name
    try:
        ok = await asyncio.wait_for(asyncio.to_thread(backend.ping), timeout=_CHECK_TIMEOUT)
    except Exception as exc:
        return CheckResult(name, CheckStatus.FAIL, f"Unreachable ({addr})", detail=str(exc))
    if ok:
        return CheckResult(name, CheckStatus.OK, f"Connected ({addr})")
    return CheckResult(
        name,
        CheckStatus.FAIL,
        f"Ping failed ({addr})",
        suggestion="Check elasticsearch.host_name and that the cluster is up.",
    )


async def check_graph(graph: GraphClient, graph_settings: GraphSettings) -> CheckResult:
    """Verify the graph store answers over Bolt.

    Only the explicit commands need it, so an unreachable store is a warning.
    """
    name = "graph"
    addr = f"{graph_settings.host}:{graph_settings.port}"
    try:
        ok = await asyncio.wait_for(graph.ping(), timeout=_CHECK_TIMEOUT)
    except Exception as exc:
        return CheckResult(
            name,
            CheckStatus.WARN,
            f"Unreachable ({addr})",
            detail=str(exc),
            suggestion="index-node and reindex need a reachable graph store.",
        )
    if ok:
        return CheckResult(name, CheckStatus.OK, f"Connected ({addr})")
    return CheckResult(name, CheckStatus.WARN, f"Ping failed ({addr})")


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


async def run_health_checks(
    settings: SyncSettings,
    *,
    graph: GraphClient | None = None,
    backend: IndexBackend | None = None,
) -> HealthReport:
    """Run all checks concurrently and aggregate them.

    Clients not passed in are created for the run and closed afterwards.
    """
    t0 = time.monotonic()

    own_graph = graph is None
    own_backend = backend is None
    if graph is None:
        graph = GraphClient(settings)
    if backend is None:
        backend = ElasticsearchBackend(settings.elasticsearch)

    try:
        results = await asyncio.gather(
            check_config(settings.elasticsearch),
            check_elasticsearch(backend, settings.elasticsearch),
            check_graph(graph, settings.graph),
        )
    finally:
        if own_graph:
            await graph.close()
        if own_backend:
            backend.close()

    elapsed = (time.monotonic() - t0) * 1000
    return HealthReport(checks=list(results), elapsed_ms=elapsed)
