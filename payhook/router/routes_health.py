from fastapi import APIRouter

from payhook.dto.health import HealthResponse
from payhook.utils.time import utcnow

router = APIRouter(tags=["health"])


@router.get("/", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(status="HEALTHY", current_time=utcnow())
