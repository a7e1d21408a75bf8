import logging
import sys
from typing import Any

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.trace import SpanContext, format_span_id, format_trace_id
from structlog.types import EventDict, Processor

from .config import Settings

_LEVEL_LABELS = {
    "warn": "WARN",
    "warning": "WARN",
    "exception": "ERROR",
    "critical": "FATAL",
    "fatal": "FATAL",
}


def trace_fields(span_context: SpanContext | None) -> dict[str, str]:
    """correlation fields for a span context, empty when there is no valid span"""
    if span_context is None or not span_context.is_valid:
        return {}
    return {
        "trace_id": format_trace_id(span_context.trace_id),
        "span_id": format_span_id(span_context.span_id),
        "trace_flags": format(int(span_context.trace_flags), "02x"),
    }


def current_span_context() -> SpanContext:
    """span context of the span active right now (invalid when none)"""
    return trace.get_current_span().get_span_context()


def add_trace_context(_logger: Any, _method_name: str, event_dict: EventDict) -> EventDict:
    """attach active span ids at emission time unless already threaded in by the caller"""
    if "trace_id" not in event_dict:
        event_dict.update(trace_fields(current_span_context()))
    return event_dict


def add_level(_logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """upper-case level field"""
    event_dict["level"] = _LEVEL_LABELS.get(method_name, method_name.upper())
    return event_dict


def _shared_processors(settings: Settings) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        add_trace_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if settings.log_format == "json":
        processors.append(structlog.processors.EventRenamer("message"))
    return processors


def _configure_log_export(settings: Settings, formatter: logging.Formatter) -> LoggerProvider:
    """push log records to an otlp collector next to stdout"""
    provider = LoggerProvider(resource=Resource.create({SERVICE_NAME: settings.service_name}))
    provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=settings.otlp_logs_endpoint))
    )
    handler = LoggingHandler(level=logging.NOTSET, logger_provider=provider)
    handler.setFormatter(formatter)
    logging.getLogger().addHandler(handler)
    return provider


def configure_logging(settings: Settings) -> LoggerProvider | None:
    """configure structlog with JSON or console output

    returns the otlp logger provider when log push is enabled so it can be
    flushed on shutdown.
    """
    level = logging.getLevelName(settings.log_level.upper())
    shared_processors = _shared_processors(settings)

    if settings.log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # module loggers created before this call must pick up the final config
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.propagate = False
        uvicorn_logger.setLevel(level)

    # request logging middleware replaces uvicorn's access log
    logging.getLogger("uvicorn.access").disabled = True

    if settings.otlp_logs_endpoint:
        return _configure_log_export(settings, formatter)
    return None


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """get configured logger instance"""
    return structlog.get_logger(name)
