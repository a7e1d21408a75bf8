from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import psutil
from opentelemetry import metrics
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.metrics import (
    CallbackOptions,
    Counter,
    Histogram,
    Meter,
    Observation,
    UpDownCounter,
)
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from prometheus_client import REGISTRY, generate_latest
from starlette.middleware import Middleware

from ..config import Settings
from ..core.exceptions import MetricsAlreadyInitializedError, MetricsNotInitializedError
from ..logger import get_logger
from .middleware import HttpMetricsMiddleware

logger = get_logger(__name__)

# instrument names
HTTP_REQUESTS_TOTAL = "http_requests_total"
HTTP_REQUEST_DURATION_MS = "http_request_duration_ms"
HTTP_ACTIVE_REQUESTS = "http_active_requests"
HTTP_METRICS_RECORDING_ERRORS_TOTAL = "http_metrics_recording_errors_total"
PROCESS_MEMORY_USAGE_BYTES = "process_memory_usage_bytes"


@dataclass(frozen=True)
class MetricsConfig:
    """prometheus exporter and meter configuration"""

    port: int = 9464
    endpoint: str = "/metrics"
    service_name: str = "api-monitoring-service"
    host: str = "0.0.0.0"
    # paths left out of the http metrics
    exclude_paths: tuple[str, ...] = ()
    # extra readers next to the prometheus one (otlp push, in-memory for tests)
    readers: Sequence[MetricReader] = field(default=(), compare=False)
    # make the meter provider the process default for third-party instrumentation
    register_global: bool = True

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> MetricsConfig:
        values = {
            "port": settings.metrics_port,
            "endpoint": settings.metrics_endpoint,
            "service_name": settings.service_name,
            "host": settings.host,
        }
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class HttpInstruments:
    """instruments written by the http metrics middleware"""

    request_counter: Counter
    request_duration: Histogram
    active_requests: UpDownCounter
    recording_errors: Counter


def create_http_instruments(meter: Meter) -> HttpInstruments:
    """create the http instruments on a meter"""
    return HttpInstruments(
        request_counter=meter.create_counter(
            HTTP_REQUESTS_TOTAL,
            description="Total number of HTTP requests",
        ),
        request_duration=meter.create_histogram(
            HTTP_REQUEST_DURATION_MS,
            unit="ms",
            description="HTTP request duration in milliseconds",
        ),
        active_requests=meter.create_up_down_counter(
            HTTP_ACTIVE_REQUESTS,
            description="Number of active HTTP requests",
        ),
        recording_errors=meter.create_counter(
            HTTP_METRICS_RECORDING_ERRORS_TOTAL,
            description="Measurements the HTTP metrics middleware failed to record",
        ),
    )


class MetricsContext:
    """Meter provider, meter and http instruments created by init_metrics().

    Owned by the application bootstrap and handed to whatever needs the
    instruments; ``middleware`` is the Starlette middleware entry bound to
    this context.
    """

    def __init__(
        self,
        config: MetricsConfig,
        provider: MeterProvider,
        reader: PrometheusMetricReader,
        meter: Meter,
        instruments: HttpInstruments,
    ) -> None:
        self.config = config
        self.provider = provider
        self.reader = reader
        self.meter = meter
        self.instruments = instruments
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def middleware(self) -> Middleware:
        return Middleware(
            HttpMetricsMiddleware,
            instruments=self.instruments,
            exclude_paths=self.config.exclude_paths,
        )

    def register_process_metrics(self) -> None:
        """observable gauge with the memory footprint of this process"""
        process = psutil.Process()

        def observe_memory(_options: CallbackOptions) -> Iterable[Observation]:
            memory = process.memory_info()
            yield Observation(memory.rss, {"type": "rss"})
            yield Observation(memory.vms, {"type": "vms"})

        self.meter.create_observable_gauge(
            PROCESS_MEMORY_USAGE_BYTES,
            callbacks=[observe_memory],
            unit="By",
            description="Process memory usage",
        )

    def exposition(self) -> bytes:
        """current instrument values in prometheus text format"""
        return generate_latest(REGISTRY)

    def force_flush(self, timeout_millis: float = 5_000) -> bool:
        return self.provider.force_flush(timeout_millis=timeout_millis)

    def shutdown(self) -> None:
        """shut the meter provider down and free the process-wide slot"""
        global _active_context
        if self._closed:
            return
        self._closed = True
        self.provider.shutdown()
        if _active_context is self:
            _active_context = None
        logger.info("metrics shut down", service_name=self.config.service_name)


_active_context: MetricsContext | None = None


def init_metrics(config: MetricsConfig | None = None) -> MetricsContext:
    """create the prometheus reader, meter provider and http instruments

    Only one context may be active per process: a second call raises
    MetricsAlreadyInitializedError until the active context is shut down.
    """
    global _active_context
    config = config or MetricsConfig()

    if _active_context is not None:
        raise MetricsAlreadyInitializedError({"service_name": _active_context.config.service_name})

    reader = PrometheusMetricReader()
    provider = MeterProvider(
        resource=Resource.create({SERVICE_NAME: config.service_name}),
        metric_readers=[reader, *config.readers],
    )
    if config.register_global:
        metrics.set_meter_provider(provider)

    meter = provider.get_meter(config.service_name)
    instruments = create_http_instruments(meter)

    _active_context = MetricsContext(config, provider, reader, meter, instruments)

    logger.info(
        "metrics initialized",
        service_name=config.service_name,
        exporter_port=config.port,
        exporter_endpoint=config.endpoint,
    )
    return _active_context


def active_context() -> MetricsContext:
    if _active_context is None:
        raise MetricsNotInitializedError()
    return _active_context


def get_meter() -> Meter:
    """meter of the active context, for custom business metrics"""
    return active_context().meter


def get_http_instruments() -> HttpInstruments:
    """http instruments of the active context"""
    return active_context().instruments
