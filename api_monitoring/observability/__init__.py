"""observability layer: metrics, tracing, request logging"""

from .exposition import ExpositionServer, build_exposition_app
from .metrics import (
    HttpInstruments,
    MetricsConfig,
    MetricsContext,
    get_http_instruments,
    get_meter,
    init_metrics,
)
from .middleware import HttpMetricsMiddleware, RequestLoggerMiddleware
from .telemetry import configure_tracing, get_tracer, instrument_app

__all__ = [
    "ExpositionServer",
    "build_exposition_app",
    "HttpInstruments",
    "MetricsConfig",
    "MetricsContext",
    "get_http_instruments",
    "get_meter",
    "init_metrics",
    "HttpMetricsMiddleware",
    "RequestLoggerMiddleware",
    "configure_tracing",
    "get_tracer",
    "instrument_app",
]
