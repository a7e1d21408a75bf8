"""
startup ordering and signal-driven shutdown of the service
"""
import signal
import time
from collections.abc import Callable
from enum import Enum
from types import FrameType

import uvicorn
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk.trace import TracerProvider

from .config import Settings
from .core.exceptions import BootstrapError
from .logger import configure_logging, get_logger
from .observability.metrics import MetricsConfig, MetricsContext, init_metrics
from .observability.telemetry import configure_tracing

logger = get_logger(__name__)

FLUSH_TIMEOUT_MILLIS = 2_000


class BootState(str, Enum):
    UNINITIALIZED = "uninitialized"
    TRACING_READY = "tracing_ready"
    METRICS_READY = "metrics_ready"
    LOGGING_READY = "logging_ready"
    LISTENING = "listening"
    EXITING = "exiting"


_NEXT_STATE = {
    BootState.UNINITIALIZED: BootState.TRACING_READY,
    BootState.TRACING_READY: BootState.METRICS_READY,
    BootState.METRICS_READY: BootState.LOGGING_READY,
    BootState.LOGGING_READY: BootState.LISTENING,
    BootState.LISTENING: BootState.EXITING,
}


class Bootstrap:
    """
    Brings observability up in a fixed order and owns what it creates.

    Tracing comes first so instrumentation is in place before any HTTP
    framework object exists, metrics second, logging last. Each step may run
    once, in order; anything else raises BootstrapError.
    """

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.monotonic):
        self.settings = settings
        self.state = BootState.UNINITIALIZED
        self.tracer_provider: TracerProvider | None = None
        self.metrics: MetricsContext | None = None
        self.log_provider: LoggerProvider | None = None
        self._clock = clock
        self._started_at = clock()

    def _check(self, target: BootState) -> None:
        if _NEXT_STATE.get(self.state) is not target:
            raise BootstrapError(
                f"cannot move from {self.state.value} to {target.value}",
                {"state": self.state.value, "target": target.value},
            )

    def _advance(self, target: BootState) -> None:
        self._check(target)
        self.state = target

    def init_tracing(self) -> TracerProvider | None:
        self._check(BootState.TRACING_READY)
        self.tracer_provider = configure_tracing(self.settings)
        self._advance(BootState.TRACING_READY)
        return self.tracer_provider

    def init_metrics(self, **overrides) -> MetricsContext:
        self._check(BootState.METRICS_READY)
        self.metrics = init_metrics(MetricsConfig.from_settings(self.settings, **overrides))
        self.metrics.register_process_metrics()
        self._advance(BootState.METRICS_READY)
        return self.metrics

    def init_logging(self) -> None:
        self._check(BootState.LOGGING_READY)
        self.log_provider = configure_logging(self.settings)
        self._advance(BootState.LOGGING_READY)
        logger.info("logging initialized", log_level=self.settings.log_level)

    def mark_listening(self) -> None:
        self._advance(BootState.LISTENING)

    def begin_exit(self) -> None:
        """exiting is reachable from every state, a signal can arrive at any time"""
        self.state = BootState.EXITING

    def uptime(self) -> float:
        return max(0.0, self._clock() - self._started_at)

    def flush(self) -> None:
        """best-effort push of buffered spans, metrics and logs"""
        providers = (self.tracer_provider, self.metrics, self.log_provider)
        for provider in providers:
            if provider is None:
                continue
            try:
                provider.force_flush(timeout_millis=FLUSH_TIMEOUT_MILLIS)
            except Exception as e:
                logger.warning(
                    "telemetry flush failed", provider=type(provider).__name__, error=str(e)
                )

    def shutdown(self) -> None:
        """release providers; the metrics slot becomes free again"""
        if self.metrics is not None:
            self.metrics.shutdown()
        if self.tracer_provider is not None:
            self.tracer_provider.shutdown()
        if self.log_provider is not None:
            self.log_provider.shutdown()


class ShutdownHandler:
    """logs the signal, flushes telemetry and exits with status 0"""

    def __init__(self, bootstrap: Bootstrap):
        self.bootstrap = bootstrap

    def __call__(self, signum: int, _frame: FrameType | None) -> None:
        name = signal.Signals(signum).name
        logger.info(f"{name} signal received: closing HTTP server", signal=name)
        self.bootstrap.begin_exit()
        self.bootstrap.flush()
        raise SystemExit(0)


class SignalAwareServer(uvicorn.Server):
    """uvicorn server that exits immediately on termination signals"""

    def __init__(self, config: uvicorn.Config, shutdown_handler: ShutdownHandler):
        super().__init__(config)
        self.shutdown_handler = shutdown_handler

    def handle_exit(self, sig: int, frame: FrameType | None) -> None:
        self.shutdown_handler(sig, frame)
