from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .. import __version__
from ..config import Settings
from ..logger import get_logger

logger = get_logger(__name__)


def configure_tracing(settings: Settings) -> TracerProvider | None:
    """configure opentelemetry tracing with an otlp http exporter"""
    if not settings.enable_tracing:
        logger.info("tracing disabled")
        return None

    resource = Resource.create(
        {
            SERVICE_NAME: settings.service_name,
            SERVICE_VERSION: __version__,
        }
    )

    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))
    trace.set_tracer_provider(provider)

    logger.info("tracing initialized", otlp_endpoint=settings.otlp_endpoint)
    return provider


def instrument_app(
    app: FastAPI, settings: Settings, tracer_provider: TracerProvider | None = None
) -> None:
    """instrument fastapi app with opentelemetry, global provider when none is given"""
    if not settings.enable_tracing:
        return

    FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider)
    logger.info("fastapi instrumented with opentelemetry")


def get_tracer(name: str) -> trace.Tracer:
    """get tracer instance"""
    return trace.get_tracer(name)
