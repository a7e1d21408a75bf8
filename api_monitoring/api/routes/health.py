from fastapi import APIRouter

from ...dependencies import SettingsDep, UptimeDep
from ...models import HealthResponse
from ...utils.time_utils import utc_timestamp

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: SettingsDep, uptime: UptimeDep):
    """health check endpoint"""
    return HealthResponse(
        status="healthy",
        timestamp=utc_timestamp(),
        uptime=uptime,
        service=settings.service_name,
    )
