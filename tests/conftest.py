from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from api_monitoring.config import Settings
from api_monitoring.main import create_app
from api_monitoring.observability.metrics import MetricsConfig, MetricsContext, init_metrics


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "enable_tracing": False,
        "slow_delay_ms": 200,
        "metrics_port": 9464,
        "metrics_endpoint": "/metrics",
        "log_level": "info",
        "log_format": "json",
        "otlp_logs_endpoint": None,
    }
    values.update(overrides)
    return Settings(**values)


def collect_points(reader: InMemoryMetricReader, name: str) -> list[Any]:
    data = reader.get_metrics_data()
    if data is None:
        return []
    points = []
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                if metric.name == name:
                    points.extend(metric.data.data_points)
    return points


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    return InMemoryMetricReader()


@pytest.fixture
def metric_point(metric_reader: InMemoryMetricReader) -> Callable[..., Any]:
    """find the data point of an instrument with exactly these attributes"""

    def _find(name: str, **attributes: Any) -> Any:
        for point in collect_points(metric_reader, name):
            if dict(point.attributes) == attributes:
                return point
        return None

    return _find


@pytest.fixture
def metrics_context(metric_reader: InMemoryMetricReader) -> Iterator[MetricsContext]:
    context = init_metrics(MetricsConfig(readers=[metric_reader], register_global=False))
    yield context
    context.shutdown()


@pytest.fixture
def app(settings: Settings, metric_reader: InMemoryMetricReader) -> Iterator[FastAPI]:
    application = create_app(settings, readers=[metric_reader], register_global=False)
    yield application
    application.state.bootstrap.shutdown()


@pytest.fixture
async def api_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def lenient_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """client that turns unhandled handler exceptions into 500 responses"""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
