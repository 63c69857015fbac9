from fastapi import APIRouter

from booking_agent.api.v1 import drafts, health, xindus

api_router = APIRouter()

api_router.include_router(health.router, prefix="/v1", tags=["health"])
api_router.include_router(drafts.router, prefix="/v1/drafts", tags=["drafts"])
api_router.include_router(xindus.router, prefix="/v1/xindus", tags=["xindus"])
