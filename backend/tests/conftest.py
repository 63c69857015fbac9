import pytest
from httpx import ASGITransport, AsyncClient
from unittest.mock import AsyncMock, MagicMock

from booking_agent.schemas.draft import Draft
from booking_agent.services.drafts_service import DraftsServiceClient
from booking_agent.services.xindus_client import XindusClient

from factories import build_shipment, make_draft


@pytest.fixture
def shipment_data() -> dict:
    """A shipment that passes every pre-submission check."""
    return build_shipment()


@pytest.fixture
def draft(shipment_data) -> Draft:
    return make_draft(shipment_data)


@pytest.fixture
def settings_stub():
    settings = MagicMock()
    settings.bulk_action_concurrency = 4
    return settings


@pytest.fixture
def drafts_client():
    return AsyncMock(spec=DraftsServiceClient)


@pytest.fixture
def xindus_client():
    return AsyncMock(spec=XindusClient)


@pytest.fixture
async def client(drafts_client, xindus_client, settings_stub):
    from booking_agent.dependencies import get_drafts_client, get_review_service, get_xindus_client
    from booking_agent.main import app
    from booking_agent.review_workflow.service import ReviewService

    app.dependency_overrides[get_drafts_client] = lambda: drafts_client
    app.dependency_overrides[get_xindus_client] = lambda: xindus_client
    app.dependency_overrides[get_review_service] = lambda: ReviewService(settings_stub, drafts_client, xindus_client)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
