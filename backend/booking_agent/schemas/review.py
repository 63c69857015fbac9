"""Pydantic schemas for bulk review actions on drafts."""

import enum
from uuid import UUID

from pydantic import BaseModel, Field


class BulkAction(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"
    ARCHIVE = "archive"
    DELETE = "delete"


class BulkActionRequest(BaseModel):
    action: BulkAction
    draft_ids: list[UUID] = Field(..., min_length=1)
    statuses: list[str] | None = Field(
        None, description="Current statuses of the selected drafts, used for the eligibility check"
    )


class BulkItemOutcome(BaseModel):
    draft_id: UUID
    success: bool
    error: str | None = None


class BulkActionResponse(BaseModel):
    action: BulkAction
    total: int
    succeeded: int
    failed: int
    summary: str
    outcomes: list[BulkItemOutcome] = Field(default_factory=list)


class AllowedActionsResponse(BaseModel):
    actions: list[BulkAction] = Field(default_factory=list)
