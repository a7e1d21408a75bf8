import asyncio

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ...dependencies import SettingsDep
from ...logger import get_logger
from ...models import ErrorResponse, SlowResponse
from ...observability.telemetry import get_tracer
from ...utils.time_utils import utc_timestamp

logger = get_logger(__name__)
tracer = get_tracer(__name__)

router = APIRouter(prefix="/api", tags=["demo"])


@router.get("/slow", response_model=SlowResponse)
async def slow(settings: SettingsDep):
    """
    respond after a fixed delay

    the wait suspends only this request; others keep being served.
    """
    with tracer.start_as_current_span("demo.slow_wait") as span:
        span.set_attribute("delay_ms", settings.slow_delay_ms)
        await asyncio.sleep(settings.slow_delay_ms / 1000)
    return SlowResponse(
        message="This was a slow request",
        delay=f"{settings.slow_delay_ms / 1000:g} seconds",
        timestamp=utc_timestamp(),
    )


@router.get("/error", responses={500: {"model": ErrorResponse}})
async def simulated_error():
    """scripted failure for exercising error metrics and logs"""
    logger.debug("returning simulated error")
    body = ErrorResponse(
        error="Internal Server Error",
        message="Simulated error for testing",
        timestamp=utc_timestamp(),
    )
    return JSONResponse(status_code=500, content=body.model_dump())
