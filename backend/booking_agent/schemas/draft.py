"""Pydantic schemas for draft shipments and corrections (Drafts Service wire shapes)."""

import copy
import enum
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from booking_agent.schemas.shipment import ShipmentData


class DraftStatus(str, enum.Enum):
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    ARCHIVED = "archived"


# ── Corrections ──


class CorrectionItem(BaseModel):
    """A single field correction submitted by a reviewer."""

    field_path: str = Field(..., description="Dot-separated path, e.g. 'shipper_address.city'")
    old_value: Any = None
    new_value: Any = None


class CorrectionRequest(BaseModel):
    """PATCH body for applying corrections to a draft."""

    corrections: list[CorrectionItem] = Field(default_factory=list)


# ── Draft detail ──


class FileInfo(BaseModel):
    id: UUID
    filename: str
    file_type: str | None = None
    page_count: int | None = None
    confidence: float | None = None
    processed_at: datetime | None = None


class SellerProfile(BaseModel):
    """Per-seller profile with accumulated defaults."""

    id: UUID
    name: str
    normalized_name: str = ""
    defaults: dict[str, Any] = Field(default_factory=dict)
    shipper_address: dict[str, Any] = Field(default_factory=dict)
    shipment_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Draft(BaseModel):
    """Full draft as returned by GET/PATCH /api/agent/drafts/{id}."""

    id: UUID
    batch_id: UUID | None = None
    status: str = DraftStatus.PENDING_REVIEW.value
    shipment_data: dict[str, Any] = Field(default_factory=dict)
    corrected_data: dict[str, Any] | None = None
    confidence_scores: dict[str, Any] | None = None
    grouping_reason: str | None = None
    xindus_scancode: str | None = None
    files: list[FileInfo] = Field(default_factory=list)
    created_at: datetime | None = None
    seller_id: UUID | None = None
    seller: SellerProfile | None = None

    @property
    def effective_data(self) -> dict[str, Any]:
        """Saved corrections overlay the canonical data; a fresh copy every call."""
        source = self.corrected_data if self.corrected_data is not None else self.shipment_data
        return copy.deepcopy(source)

    def shipment(self) -> ShipmentData:
        return ShipmentData.model_validate(self.effective_data)

    @property
    def is_actionable(self) -> bool:
        return self.status == DraftStatus.PENDING_REVIEW.value


# ── Lists & actions ──


class DraftSummary(BaseModel):
    id: UUID
    status: str
    file_count: int = 0
    grouping_reason: str | None = None
    confidence_scores: dict[str, Any] | None = None
    shipper_name: str | None = None
    receiver_name: str | None = None
    box_count: int | None = None
    total_value: float | None = None
    invoice_number: str | None = None
    created_at: datetime | None = None
    seller_id: UUID | None = None
    seller_shipment_count: int | None = None


class DraftsListResponse(BaseModel):
    drafts: list[DraftSummary] = Field(default_factory=list)
    total: int = 0


class ApprovalResponse(BaseModel):
    success: bool
    draft_id: UUID
    xindus_scancode: str | None = None
    message: str = ""


class ActionResponse(BaseModel):
    """Body of reject/archive/delete responses."""

    success: bool = True
    message: str = ""
