"""Xindus hand-off endpoints: check and preview a shipment without sending it."""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from booking_agent.config import settings
from booking_agent.schemas.shipment import ShipmentData
from booking_agent.schemas.xindus import PayloadPreviewResponse, ValidationResponse
from booking_agent.xindus.payload import build_xindus_curl, build_xindus_payload
from booking_agent.xindus.validation import validate_for_xindus

router = APIRouter()


@router.post("/validate", response_model=ValidationResponse)
async def validate_shipment(data: ShipmentData) -> ValidationResponse:
    issues = validate_for_xindus(data)
    return ValidationResponse(valid=not issues, issues=issues)


@router.post("/payload", response_model=PayloadPreviewResponse)
async def preview_payload(data: ShipmentData) -> PayloadPreviewResponse:
    """Translated request body plus any issues that would block submission."""
    return PayloadPreviewResponse(payload=build_xindus_payload(data), issues=validate_for_xindus(data))


@router.post("/curl", response_class=PlainTextResponse)
async def export_curl(data: ShipmentData) -> str:
    return build_xindus_curl(data, base_url=settings.xindus_api_url)
