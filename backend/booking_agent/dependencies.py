from collections.abc import AsyncIterator

from fastapi import Depends

from booking_agent.config import settings
from booking_agent.review_workflow.service import ReviewService
from booking_agent.services.drafts_service import DraftsServiceClient
from booking_agent.services.xindus_client import XindusClient


async def get_drafts_client() -> AsyncIterator[DraftsServiceClient]:
    client = DraftsServiceClient(settings)
    try:
        yield client
    finally:
        await client.aclose()


async def get_xindus_client() -> AsyncIterator[XindusClient]:
    client = XindusClient(settings)
    try:
        yield client
    finally:
        await client.aclose()


def get_review_service(
    drafts: DraftsServiceClient = Depends(get_drafts_client),
    xindus: XindusClient = Depends(get_xindus_client),
) -> ReviewService:
    return ReviewService(settings, drafts, xindus)
