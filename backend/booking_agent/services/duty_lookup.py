"""Tariff lookup for a single import classification code."""

import logging

import httpx
from pydantic import BaseModel, Field, ValidationError

from booking_agent.config import Settings
from booking_agent.correction_engine.propagation import DutyLookupRequest, DutyLookupResult
from booking_agent.schemas.shipment import TariffScenario
from booking_agent.xindus.normalizers import normalize_country

logger = logging.getLogger("booking_agent.duty_lookup")

TARIFF_LOOKUP_PATH = "/api/agent/tariff-lookup"


class DutyLookupError(Exception):
    """The lookup failed or returned nothing usable."""


class TariffLookupResponse(BaseModel):
    duty_rate: float | None = None
    base_duty_rate: float | None = None
    tariff_scenarios: list[TariffScenario] = Field(default_factory=list)
    remedy_flags: dict[str, bool] = Field(default_factory=dict)


class DutyLookupClient:
    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None):
        self.default_origin = settings.default_origin_country
        self.default_destination = settings.default_destination_country
        self._http = http or httpx.AsyncClient(
            base_url=settings.duty_lookup_url,
            timeout=settings.duty_lookup_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def lookup(self, request: DutyLookupRequest) -> DutyLookupResult:
        body = {
            "tariff_code": request.tariff_code,
            "destination_country": normalize_country(request.destination_country) or self.default_destination,
            "origin_country": normalize_country(request.origin_country) or self.default_origin,
        }
        try:
            response = await self._http.post(TARIFF_LOOKUP_PATH, json=body)
            response.raise_for_status()
            parsed = TariffLookupResponse.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            raise DutyLookupError(
                f"Tariff lookup for {request.tariff_code} returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise DutyLookupError(f"Tariff lookup for {request.tariff_code} failed: {e}") from e
        except (ValueError, ValidationError) as e:
            raise DutyLookupError(f"Tariff lookup for {request.tariff_code} returned an invalid body") from e

        logger.info(
            "Tariff %s (%s→%s): duty %s%%, %d scenarios",
            request.tariff_code, body["origin_country"], body["destination_country"],
            parsed.duty_rate, len(parsed.tariff_scenarios),
        )
        return DutyLookupResult(
            duty_rate=parsed.duty_rate,
            base_duty_rate=parsed.base_duty_rate,
            tariff_scenarios=parsed.tariff_scenarios,
        )
