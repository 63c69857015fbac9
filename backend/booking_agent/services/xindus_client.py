"""Client for the Xindus Partner API shipment endpoint."""

import logging
from typing import Any

import httpx

from booking_agent.config import Settings
from booking_agent.schemas.xindus import XindusShipmentPayload
from booking_agent.xindus.payload import SHIPMENT_ENDPOINT

logger = logging.getLogger("booking_agent.xindus")


class XindusError(Exception):
    def __init__(self, message: str, status_code: int | None = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class XindusClient:
    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None):
        self.token = settings.xindus_api_token
        self._http = http or httpx.AsyncClient(
            base_url=settings.xindus_api_url,
            timeout=settings.xindus_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def create_shipment(self, payload: XindusShipmentPayload) -> dict[str, Any]:
        """POST the shipment; returns the decoded response body."""
        if not self.token:
            raise XindusError("Xindus API token is not configured")

        headers = {"Authorization": f"Bearer {self.token}"}
        try:
            response = await self._http.post(SHIPMENT_ENDPOINT, json=payload.model_dump(mode="json"), headers=headers)
        except httpx.HTTPError as e:
            raise XindusError(f"Xindus request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text[:1000]}

        if response.is_error:
            logger.warning("Xindus rejected shipment %s: %d", payload.invoice_number, response.status_code)
            raise XindusError(f"Xindus returned {response.status_code}", status_code=response.status_code, body=body)
        return body if isinstance(body, dict) else {"data": body}


def extract_scancode(body: dict[str, Any]) -> str | None:
    """Scancode from a shipment create response, wherever the API nests it."""
    for container in (body, body.get("data") if isinstance(body.get("data"), dict) else None):
        if not container:
            continue
        for key in ("scancode", "scan_code", "awb", "tracking_number"):
            value = container.get(key)
            if value:
                return str(value)
    return None
