"""ASGI middleware measuring and logging every HTTP request/response cycle."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine, Iterable
from contextlib import suppress
from time import perf_counter
from typing import TYPE_CHECKING, Any

from starlette.routing import Match

from ..logger import current_span_context, get_logger, trace_fields

if TYPE_CHECKING:
    from .metrics import HttpInstruments

Scope = dict[str, Any]
Message = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, Message]]
Send = Callable[[Message], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

# status recorded when the client goes away before a response was started
CLIENT_CLOSED_REQUEST = 499

logger = get_logger(__name__)


def resolve_route(scope: Scope) -> str:
    """route template matching the request, raw path when nothing matches

    Path parameters stay templated (``/items/{item_id}``) so the label set
    stays bounded.
    """
    router = getattr(scope.get("app"), "router", None)
    for route in getattr(router, "routes", ()):
        match, _ = route.matches(scope)
        if match == Match.FULL:
            return getattr(route, "path", scope["path"])
    return scope["path"]


def request_url(scope: Scope) -> str:
    """path plus query string, as received"""
    query = scope.get("query_string", b"").decode("latin-1")
    return f"{scope['path']}?{query}" if query else scope["path"]


def level_for_status(status_code: int, failed: bool = False) -> str:
    """log method for a finished request"""
    if 400 <= status_code < 500:
        return "warning"
    if status_code >= 500 or failed:
        return "error"
    return "info"


class _RequestMeasurement:
    """active-request acquisition paired with a release that runs exactly once"""

    def __init__(self, instruments: HttpInstruments, method: str, route: str) -> None:
        self._instruments = instruments
        self._partition = {"method": method, "route": route}
        self._released = False
        self._start = perf_counter()
        self._acquired = self._guard("acquire", instruments.active_requests.add, 1, self._partition)

    @property
    def released(self) -> bool:
        return self._released

    def release(self, status_code: int) -> bool:
        """record completion; returns False when already released"""
        if self._released:
            return False
        self._released = True

        elapsed_ms = (perf_counter() - self._start) * 1000.0
        labels = {**self._partition, "status": status_code}
        instruments = self._instruments

        if self._acquired:
            self._guard("release", instruments.active_requests.add, -1, self._partition)
        self._guard("count", instruments.request_counter.add, 1, labels)
        self._guard("duration", instruments.request_duration.record, elapsed_ms, labels)
        return True

    def _guard(
        self,
        stage: str,
        record: Callable[[float, dict[str, Any]], None],
        value: float,
        attributes: dict[str, Any],
    ) -> bool:
        # observability must never break the serving path
        try:
            record(value, attributes)
        except Exception as e:
            logger.warning("metric recording failed", stage=stage, error=str(e))
            with suppress(Exception):
                self._instruments.recording_errors.add(1, {"stage": stage})
            return False
        return True


class HttpMetricsMiddleware:
    """Counts, times and tracks in-flight HTTP requests.

    Per request: ``http_active_requests{method, route}`` goes up on arrival
    and back down on completion; ``http_requests_total`` and
    ``http_request_duration_ms`` are recorded once with
    ``{method, route, status}``. Completion covers normal responses, handler
    exceptions and cancelled (client-aborted) requests.
    """

    def __init__(
        self,
        app: ASGIApp,
        instruments: HttpInstruments,
        exclude_paths: Iterable[str] = (),
    ) -> None:
        self.app = app
        self.instruments = instruments
        self.exclude_paths = frozenset(exclude_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        measurement = _RequestMeasurement(
            self.instruments, scope.get("method", "GET"), resolve_route(scope)
        )
        status_code: int | None = None

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = int(message["status"])
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except asyncio.CancelledError:
            if status_code is None:
                status_code = CLIENT_CLOSED_REQUEST
            raise
        finally:
            measurement.release(status_code if status_code is not None else 500)


class RequestLoggerMiddleware:
    """One structured log line per request, correlated with the active trace.

    The span context is captured when the request enters and bound onto the
    logger explicitly, so the access line carries the ids of the span the
    request was served under.
    """

    def __init__(self, app: ASGIApp, logger_name: str = "http.access") -> None:
        self.app = app
        self.logger_name = logger_name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        log = get_logger(self.logger_name).bind(**trace_fields(current_span_context()))
        method = scope.get("method", "GET")
        url = request_url(scope)
        start = perf_counter()
        status_code: int | None = None

        def fields(status: int) -> dict[str, Any]:
            return {
                "method": method,
                "url": url,
                "status_code": status,
                "response_time_ms": round((perf_counter() - start) * 1000.0, 2),
            }

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = int(message["status"])
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except asyncio.CancelledError:
            status = status_code if status_code is not None else CLIENT_CLOSED_REQUEST
            log.error(f"{method} {url} {status} - request aborted", **fields(status))
            raise
        except Exception as e:
            status = status_code if status_code is not None else 500
            log.error(f"{method} {url} {status} - {e}", **fields(status))
            raise

        status = status_code if status_code is not None else 500
        emit = getattr(log, level_for_status(status))
        emit(f"{method} {url} {status}", **fields(status))
