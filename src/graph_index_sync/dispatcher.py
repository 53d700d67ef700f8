"""Post-commit submission of translated batches."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from graph_index_sync.telemetry import get_metrics, get_tracer

if TYPE_CHECKING:
    from collections.abc import Collection
    from concurrent.futures import Future

    from graph_index_sync.backend import BulkResult, IndexBackend
    from graph_index_sync.operations import PendingOperation

_tracer = get_tracer(__name__)


class Dispatcher:
    """Sends one batch as one bulk request.

    In async mode :meth:`dispatch` returns immediately and the outcome is only
    logged.  The log call runs on the backend worker thread that finishes the
    request, or inline on the submitting thread when the request has already
    finished by the time the callback is attached.  Either way it never raises
    into the caller.  In sync mode it blocks, logs the outcome and returns it; a
    :class:`~graph_index_sync.backend.DispatchError` from an unreachable backend
    propagates to the caller.
    """

    def __init__(self, backend: IndexBackend, *, use_async: bool = True) -> None:
        self.backend = backend
        self.use_async = use_async

    def dispatch(self, batch: Collection[PendingOperation], *, use_async: bool | None = None) -> BulkResult | None:
        """Submit *batch*. Empty batches send nothing and return ``None``."""
        if not batch:
            return None

        mode_async = self.use_async if use_async is None else use_async
        metrics = get_metrics()
        metrics.batches_dispatched.add(1)
        metrics.operations_dispatched.add(len(batch))

        with _tracer.start_as_current_span(
            "dispatcher.dispatch", attributes={"operations": len(batch), "async": mode_async}
        ):
            if mode_async:
                future = self.backend.bulk_async(list(batch))
                future.add_done_callback(self._on_done)
                return None

            try:
                result = self.backend.bulk(list(batch))
            except Exception:
                metrics.dispatch_failures.add(1)
                raise
            self.completed(result)
            return result

    def _on_done(self, future: Future[BulkResult]) -> None:
        exc = future.exception()
        if exc is not None:
            self.failed(exc)
        else:
            self.completed(future.result())

    def completed(self, result: BulkResult) -> None:
        """Log the backend's verdict on a submitted batch."""
        if result.succeeded and result.error_message is None:
            logger.debug("Elasticsearch update succeeded ({} operation(s))", result.item_count)
            return
        get_metrics().dispatch_failures.add(1)
        logger.error("Elasticsearch update failed: {}", result.error_message)

    def failed(self, exc: BaseException) -> None:
        """Log a bulk request that never got an answer."""
        get_metrics().dispatch_failures.add(1)
        logger.opt(exception=exc).warning("Problem updating Elasticsearch: {}", exc)
