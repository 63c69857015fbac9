"""DraftsServiceClient — async HTTP client for the external Drafts Service.

The Drafts Service owns extraction batches and drafts (``/api/agent/*``). This
client is the only place that knows its routes; everything else works with the
pydantic models from ``booking_agent.schemas``.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any
from uuid import UUID

import httpx

from booking_agent.batch_tracker.channel import ChannelError, iter_progress
from booking_agent.config import Settings
from booking_agent.errors import DraftsServiceError
from booking_agent.schemas.batch import ActiveBatch, ActiveBatchesResponse, ProgressSnapshot, UploadResponse
from booking_agent.schemas.draft import (
    ActionResponse,
    ApprovalResponse,
    CorrectionItem,
    CorrectionRequest,
    Draft,
    DraftsListResponse,
)

logger = logging.getLogger("booking_agent.drafts_service")

API_PREFIX = "/api/agent"

# (filename, content, content type)
UploadFile = tuple[str, bytes, str | None]


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or response.reason_phrase
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message") or body.get("error")
        if detail:
            return str(detail)
    return str(body)[:500]


class DraftsServiceClient:
    """Batches, drafts and corrections over the Drafts Service REST API."""

    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None):
        self.page_size = settings.drafts_list_page_size
        self._http = http or httpx.AsyncClient(
            base_url=settings.drafts_service_url,
            timeout=settings.drafts_service_timeout_seconds,
        )

    async def __aenter__(self) -> "DraftsServiceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{API_PREFIX}{path}"
        response = await self._http.request(method, url, **kwargs)
        if response.is_error:
            detail = _error_detail(response)
            logger.warning("Drafts Service %s %s → %d: %s", method, url, response.status_code, detail)
            raise DraftsServiceError(response.status_code, detail, method=method, path=url)
        return response

    # ── Batches ──

    async def upload(self, files: list[UploadFile]) -> UploadResponse:
        if not files:
            raise ValueError("At least one file is required")
        multipart = [("files", (name, content, content_type or "application/octet-stream")) for name, content, content_type in files]
        response = await self._request("POST", "/upload", files=multipart)
        return UploadResponse.model_validate(response.json())

    async def stream_progress(self, batch_id: UUID | str) -> AsyncIterator[ProgressSnapshot]:
        """Yield progress snapshots pushed for ``batch_id`` until the server closes the stream.

        Raises ChannelError when the stream cannot be opened.
        """
        url = f"{API_PREFIX}/jobs/{batch_id}/stream"
        timeout = httpx.Timeout(self._http.timeout.connect, read=None)
        async with self._http.stream("GET", url, headers={"Accept": "text/event-stream"}, timeout=timeout) as response:
            if response.is_error:
                raise ChannelError(f"Progress stream for {batch_id} returned {response.status_code}")
            async for snapshot in iter_progress(response.aiter_lines()):
                yield snapshot

    async def active_batches(self) -> list[ActiveBatch]:
        response = await self._request("GET", "/batches/active")
        return ActiveBatchesResponse.model_validate(response.json()).batches

    # ── Drafts ──

    async def list_drafts(
        self, status: str | None = None, limit: int | None = None, offset: int = 0
    ) -> DraftsListResponse:
        params: dict[str, Any] = {"limit": limit or self.page_size, "offset": offset}
        if status:
            params["status"] = status
        response = await self._request("GET", "/drafts", params=params)
        return DraftsListResponse.model_validate(response.json())

    async def get_draft(self, draft_id: UUID | str) -> Draft:
        response = await self._request("GET", f"/drafts/{draft_id}")
        return Draft.model_validate(response.json())

    async def apply_corrections(self, draft_id: UUID | str, corrections: list[CorrectionItem]) -> Draft:
        """PATCH a batch of corrections; the service applies all of them or none."""
        body = CorrectionRequest(corrections=corrections)
        response = await self._request("PATCH", f"/drafts/{draft_id}", json=body.model_dump(mode="json"))
        return Draft.model_validate(response.json())

    # ── Status transitions ──

    async def approve(self, draft_id: UUID | str) -> ApprovalResponse:
        response = await self._request("POST", f"/drafts/{draft_id}/approve")
        return ApprovalResponse.model_validate(response.json())

    async def reject(self, draft_id: UUID | str) -> ActionResponse:
        response = await self._request("DELETE", f"/drafts/{draft_id}")
        return ActionResponse.model_validate(response.json())

    async def archive(self, draft_id: UUID | str) -> ActionResponse:
        response = await self._request("POST", f"/drafts/{draft_id}/archive")
        return ActionResponse.model_validate(response.json())

    async def delete(self, draft_id: UUID | str) -> ActionResponse:
        """Permanent delete; only pending_review and rejected drafts qualify."""
        response = await self._request("POST", f"/drafts/{draft_id}/delete")
        return ActionResponse.model_validate(response.json())

    # ── Files ──

    async def attach_files(self, draft_id: UUID | str, files: list[UploadFile]) -> Draft:
        if not files:
            raise ValueError("At least one file is required")
        multipart = [("files", (name, content, content_type or "application/octet-stream")) for name, content, content_type in files]
        response = await self._request("POST", f"/drafts/{draft_id}/files", files=multipart)
        return Draft.model_validate(response.json())

    async def detach_file(self, draft_id: UUID | str, file_id: UUID | str) -> Draft:
        response = await self._request("DELETE", f"/drafts/{draft_id}/files/{file_id}")
        return Draft.model_validate(response.json())
