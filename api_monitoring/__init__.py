"""Demonstration HTTP service wired with OpenTelemetry tracing, Prometheus metrics and structlog."""

__version__ = "0.1.0"
