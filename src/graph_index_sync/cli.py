"""CLI entrypoint for graph-index-sync."""

from __future__ import annotations

import asyncio
import contextlib
import sys

import typer
from loguru import logger

app = typer.Typer(
    name="graphsync",
    help="Mirror property-graph nodes into Elasticsearch indices.",
    no_args_is_help=True,
)

_log_handler: int | None = 0  # loguru's default stderr handler


def _stderr_sink(message: str) -> None:
    sys.stderr.write(message)


def _configure_logging(verbose: bool) -> None:
    global _log_handler  # noqa: PLW0603
    if _log_handler is not None:
        with contextlib.suppress(ValueError):
            logger.remove(_log_handler)
    _log_handler = logger.add(_stderr_sink, level="DEBUG" if verbose else "INFO")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level.")) -> None:
    """Mirror property-graph nodes into Elasticsearch indices."""
    _configure_logging(verbose)


@app.command()
def check(
    spec: str | None = typer.Option(None, "--spec", help="Index spec to check instead of the configured one."),
) -> None:
    """Validate the index spec and show the label → index mapping."""
    from graph_index_sync.index_spec import DuplicateIndexError, parse_index_spec
    from graph_index_sync.settings import SyncSettings

    text = spec if spec is not None else SyncSettings().elasticsearch.index_spec
    try:
        mapping = parse_index_spec(text)
    except DuplicateIndexError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if not mapping:
        typer.echo(f"error: empty or malformed index spec: {text!r}", err=True)
        raise typer.Exit(code=1)

    for label, entries in mapping.items():
        for entry in entries:
            typer.echo(f"{label} -> {entry.index_name} ({', '.join(entry.properties)})")


@app.command("index-node")
def index_node(node_id: int = typer.Argument(..., help="Internal id of the node to index.")) -> None:
    """Index one node now, outside any transaction."""
    asyncio.run(_run_index_node(node_id))


@app.command()
def reindex(
    label: list[str] | None = typer.Option(None, "--label", "-l", help="Only re-index this label (repeatable)."),
    page_size: int | None = typer.Option(None, "--page-size", help="Nodes per bulk request (default: 500)."),
) -> None:
    """Re-index every node carrying an indexed label."""
    asyncio.run(_run_reindex(label or None, page_size))


@app.command()
def health() -> None:
    """Check configuration, Elasticsearch and the graph store."""
    from graph_index_sync.health import CheckStatus, run_health_checks
    from graph_index_sync.settings import SyncSettings

    report = asyncio.run(run_health_checks(SyncSettings()))
    marks = {CheckStatus.OK: "ok", CheckStatus.WARN: "warn", CheckStatus.FAIL: "FAIL"}
    for c in report.checks:
        typer.echo(f"[{marks[c.status]:>4}] {c.name}: {c.message}")
        if c.detail:
            typer.echo(f"       {c.detail}")
        if c.suggestion and c.status != CheckStatus.OK:
            typer.echo(f"       hint: {c.suggestion}")
    typer.echo(f"({report.elapsed_ms:.0f} ms)")
    if not report.ok:
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# Async helpers
# ---------------------------------------------------------------------------


async def _connect_graph(settings):
    """Return a connected :class:`GraphClient`; exits with code 1 if unreachable."""
    from graph_index_sync.graph import GraphClient

    graph = GraphClient(settings)
    try:
        await graph.ping()
    except Exception as exc:
        logger.error("Cannot reach graph store at {}:{}: {}", settings.graph.host, settings.graph.port, exc)
        await graph.close()
        raise typer.Exit(code=1) from exc
    logger.info("Connected to graph store at {}:{}", settings.graph.host, settings.graph.port)
    return graph


def _start_extension(settings):
    from graph_index_sync.extension import SyncExtension

    extension = SyncExtension(settings)
    if not extension.start():
        logger.error("Elasticsearch integration is disabled, run 'graphsync check'")
        raise typer.Exit(code=1)
    return extension


async def _run_index_node(node_id: int) -> None:
    """Async implementation of ``graphsync index-node``."""
    from graph_index_sync.backend import DispatchError
    from graph_index_sync.settings import SyncSettings
    from graph_index_sync.telemetry import init_telemetry, shutdown_telemetry

    settings = SyncSettings()
    init_telemetry(settings.observability)

    graph = await _connect_graph(settings)
    try:
        node = await graph.fetch_node(node_id)
    finally:
        await graph.close()
    if node is None:
        logger.error("Node {} does not exist", node_id)
        raise typer.Exit(code=1)

    extension = _start_extension(settings)
    try:
        result = extension.indexer.index_now(node)
    except DispatchError as exc:
        logger.error("{}", exc)
        raise typer.Exit(code=1) from exc
    finally:
        extension.stop()
        shutdown_telemetry()

    if result is None:
        logger.info("Node {} has no indexed label ({})", node_id, ", ".join(node.labels) or "no labels")
    elif not result.succeeded:
        raise typer.Exit(code=1)
    else:
        logger.info("Indexed node {} ({} operation(s))", node_id, result.item_count)


async def _run_reindex(labels: list[str] | None, page_size: int | None) -> None:
    """Async implementation of ``graphsync reindex``."""
    from graph_index_sync.backend import DispatchError
    from graph_index_sync.indexer import reindex as run_reindex
    from graph_index_sync.settings import SyncSettings
    from graph_index_sync.telemetry import init_telemetry, shutdown_telemetry

    settings = SyncSettings()
    init_telemetry(settings.observability)

    graph = await _connect_graph(settings)
    try:
        extension = _start_extension(settings)
    except typer.Exit:
        await graph.close()
        raise

    try:
        stats = await run_reindex(
            graph,
            extension.indexer,
            labels=labels,
            page_size=page_size or settings.graph.page_size,
        )
    except DispatchError as exc:
        logger.error("{}", exc)
        raise typer.Exit(code=1) from exc
    finally:
        extension.stop()
        await graph.close()
        shutdown_telemetry()

    logger.info(
        "Done: {} node(s), {} operation(s) in {} batch(es), {} failed",
        stats.nodes,
        stats.operations,
        stats.batches,
        stats.failed_batches,
    )
    if stats.failed_batches:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
