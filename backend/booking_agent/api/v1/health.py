from datetime import datetime, timezone

import httpx
from fastapi import APIRouter, Depends

from booking_agent import __version__
from booking_agent.config import settings
from booking_agent.dependencies import get_drafts_client
from booking_agent.errors import DraftsServiceError
from booking_agent.schemas.health import HealthResponse
from booking_agent.services.drafts_service import DraftsServiceClient

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(drafts: DraftsServiceClient = Depends(get_drafts_client)) -> HealthResponse:
    # Check Drafts Service
    drafts_status = "healthy"
    try:
        await drafts.active_batches()
    except (httpx.HTTPError, DraftsServiceError):
        drafts_status = "unhealthy"

    return HealthResponse(
        status="healthy" if drafts_status == "healthy" else "degraded",
        drafts_service=drafts_status,
        timestamp=datetime.now(timezone.utc),
        environment=settings.environment,
        version=__version__,
    )
