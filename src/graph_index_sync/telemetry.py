"""OpenTelemetry hooks for the sync pipeline.

OTel is an optional extra (``[otel]``).  Without it, or while telemetry is
disabled, tracers and instruments are no-op stand-ins so callers can
instrument unconditionally.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from graph_index_sync.settings import ObservabilitySettings

try:
    from opentelemetry import metrics as otel_metrics
    from opentelemetry import trace as otel_trace

    _HAS_OTEL = True
except ModuleNotFoundError:
    _HAS_OTEL = False

# ---------------------------------------------------------------------------
# No-op stand-ins
# ---------------------------------------------------------------------------


class _NoOpSpan:
    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def __enter__(self) -> _NoOpSpan:
        return self

    def __exit__(self, *args: object) -> None:
        pass


class _NoOpTracer:
    def start_as_current_span(self, name: str, **kwargs: Any) -> _NoOpSpan:  # noqa: ARG002
        return _NoOpSpan()


class _NoOpCounter:
    def add(self, amount: int | float, attributes: dict[str, Any] | None = None) -> None:
        pass


class _NoOpHistogram:
    def record(self, amount: int | float, attributes: dict[str, Any] | None = None) -> None:
        pass


class _NoOpMeter:
    def create_counter(self, name: str, **kwargs: Any) -> _NoOpCounter:  # noqa: ARG002
        return _NoOpCounter()

    def create_histogram(self, name: str, **kwargs: Any) -> _NoOpHistogram:  # noqa: ARG002
        return _NoOpHistogram()


_initialized = False
_enabled = False


def get_tracer(name: str) -> Any:
    """Return an OTel ``Tracer`` or a ``_NoOpTracer``."""
    if _HAS_OTEL and _enabled:
        return otel_trace.get_tracer(name)
    return _NoOpTracer()


def get_meter(name: str) -> Any:
    """Return an OTel ``Meter`` or a ``_NoOpMeter``."""
    if _HAS_OTEL and _enabled:
        return otel_metrics.get_meter(name)
    return _NoOpMeter()


# ---------------------------------------------------------------------------
# Metric instruments
# ---------------------------------------------------------------------------


@dataclass
class _Metrics:
    translate_duration: Any = field(default_factory=_NoOpHistogram)
    batches_dispatched: Any = field(default_factory=_NoOpCounter)
    operations_dispatched: Any = field(default_factory=_NoOpCounter)
    dispatch_failures: Any = field(default_factory=_NoOpCounter)


_metrics = _Metrics()


def get_metrics() -> _Metrics:
    """Return the shared metric instruments (no-ops until initialized)."""
    return _metrics


def init_telemetry(settings: ObservabilitySettings) -> None:
    """Install tracer and meter providers. Only the first call has effect."""
    global _initialized, _enabled, _metrics  # noqa: PLW0603

    if _initialized:
        return
    _initialized = True

    if not settings.enabled or not _HAS_OTEL:
        logger.debug("Telemetry disabled (enabled={}, otel_installed={})", settings.enabled, _HAS_OTEL)
        return

    _enabled = True

    from opentelemetry.sdk.metrics import MeterProvider  # noqa: PLC0415
    from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader  # noqa: PLC0415
    from opentelemetry.sdk.resources import Resource  # noqa: PLC0415
    from opentelemetry.sdk.trace import TracerProvider  # noqa: PLC0415
    from opentelemetry.sdk.trace.export import BatchSpanProcessor  # noqa: PLC0415
    from opentelemetry.sdk.trace.sampling import TraceIdRatioBased  # noqa: PLC0415

    resource = Resource.create({"service.name": settings.service_name})
    tracer_provider = TracerProvider(resource=resource, sampler=TraceIdRatioBased(settings.sample_rate))
    readers = []

    if settings.exporter == "console":
        from opentelemetry.sdk.metrics.export import ConsoleMetricExporter  # noqa: PLC0415
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter  # noqa: PLC0415

        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        readers.append(PeriodicExportingMetricReader(ConsoleMetricExporter()))
    elif settings.exporter != "none":
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter  # noqa: PLC0415
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter  # noqa: PLC0415

        tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.endpoint)))
        readers.append(PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=settings.endpoint)))

    otel_trace.set_tracer_provider(tracer_provider)
    otel_metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=readers))

    meter = get_meter("graph_index_sync")
    _metrics = _Metrics(
        translate_duration=meter.create_histogram(
            "graphsync_translate_duration_seconds", description="Pre-commit translation time", unit="s"
        ),
        batches_dispatched=meter.create_counter("graphsync_batches_dispatched", description="Bulk requests sent"),
        operations_dispatched=meter.create_counter(
            "graphsync_operations_dispatched", description="Index operations sent"
        ),
        dispatch_failures=meter.create_counter(
            "graphsync_dispatch_failures", description="Bulk requests that failed or were rejected"
        ),
    )
    logger.info("Telemetry initialized (exporter={}, sample_rate={})", settings.exporter, settings.sample_rate)


def shutdown_telemetry() -> None:
    """Flush and shut down providers. Safe to call when never initialized."""
    global _initialized, _enabled, _metrics  # noqa: PLW0603

    if _enabled:
        for provider in (otel_trace.get_tracer_provider(), otel_metrics.get_meter_provider()):
            if hasattr(provider, "shutdown"):
                provider.shutdown()
        logger.debug("Telemetry shut down")

    _initialized = False
    _enabled = False
    _metrics = _Metrics()
