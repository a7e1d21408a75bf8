from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from starlette.middleware import Middleware

from . import __version__
from .api.routes import demo, health, root
from .bootstrap import Bootstrap, ShutdownHandler, SignalAwareServer
from .config import Settings, get_settings
from .logger import get_logger
from .observability.exposition import ExpositionServer
from .observability.middleware import RequestLoggerMiddleware
from .observability.telemetry import instrument_app

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """application lifecycle manager"""
    logger.info("service ready", service_name=app.state.settings.service_name)

    yield

    # shutdown
    logger.info("shutting down service")
    app.state.bootstrap.shutdown()
    logger.info("service stopped")


def create_app(settings: Settings | None = None, **metrics_overrides) -> FastAPI:
    """
    build the instrumented application

    tracing, metrics and logging are brought up before the FastAPI object is
    constructed; ``metrics_overrides`` are passed on to MetricsConfig.
    """
    settings = settings or get_settings()

    bootstrap = Bootstrap(settings)
    bootstrap.init_tracing()
    metrics_context = bootstrap.init_metrics(**metrics_overrides)
    bootstrap.init_logging()

    app = FastAPI(
        title="API Monitoring Service",
        description="demonstration api instrumented with opentelemetry, prometheus and structlog",
        version=__version__,
        lifespan=lifespan,
        middleware=[
            Middleware(RequestLoggerMiddleware),
            metrics_context.middleware,
        ],
    )
    app.state.settings = settings
    app.state.bootstrap = bootstrap
    app.state.metrics = metrics_context

    instrument_app(app, settings, bootstrap.tracer_provider)

    app.include_router(root.router)
    app.include_router(health.router)
    app.include_router(demo.router)

    return app


def run() -> None:
    """start the metrics listener and serve the api until a termination signal"""
    settings = get_settings()
    app = create_app(settings)
    bootstrap: Bootstrap = app.state.bootstrap

    exposition = ExpositionServer(
        host=settings.host, port=settings.metrics_port, endpoint=settings.metrics_endpoint
    )
    exposition.start()

    server = SignalAwareServer(
        uvicorn.Config(app, host=settings.host, port=settings.port, log_config=None),
        ShutdownHandler(bootstrap),
    )
    bootstrap.mark_listening()
    logger.info(
        "server started",
        url=f"http://localhost:{settings.port}",
        metrics_url=f"http://localhost:{exposition.bound_port}{settings.metrics_endpoint}",
        otlp_endpoint=settings.otlp_endpoint if settings.enable_tracing else None,
    )
    server.run()


if __name__ == "__main__":
    run()
