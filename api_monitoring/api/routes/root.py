from fastapi import APIRouter

from ...dependencies import SettingsDep
from ...models import EndpointMap, RootResponse
from ...utils.time_utils import utc_timestamp

router = APIRouter(tags=["root"])


@router.get("/", response_model=RootResponse)
async def index(settings: SettingsDep):
    """service banner with the known endpoints"""
    return RootResponse(
        message="API Monitoring Project with OpenTelemetry",
        timestamp=utc_timestamp(),
        endpoints=EndpointMap(
            health="/api/health",
            slow="/api/slow",
            error="/api/error",
            metrics=f"http://localhost:{settings.metrics_port}{settings.metrics_endpoint}",
        ),
    )
