"""Pydantic schemas for extraction batches and their progress events."""

import enum
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class BatchStep(str, enum.Enum):
    """Pipeline steps in the order the extraction pipeline emits them."""

    CLASSIFYING = "classifying"
    EXTRACTING = "extracting"
    GROUPING = "grouping"
    BUILDING_DRAFTS = "building_drafts"
    ENRICHING = "enriching"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _STEP_ORDER.index(self)

    @property
    def is_terminal(self) -> bool:
        return self in (BatchStep.COMPLETE, BatchStep.ERROR)


_STEP_ORDER: list[BatchStep] = list(BatchStep)

STEP_LABELS: dict[BatchStep, str] = {
    BatchStep.CLASSIFYING: "Classifying documents",
    BatchStep.EXTRACTING: "Extracting data with AI",
    BatchStep.GROUPING: "Grouping into shipments",
    BatchStep.BUILDING_DRAFTS: "Building draft shipments",
    BatchStep.ENRICHING: "Classifying products and duties",
    BatchStep.COMPLETE: "Processing complete",
    BatchStep.ERROR: "Error",
}


class ProgressSnapshot(BaseModel):
    """One progress report for a batch (the SSE ``progress`` event payload)."""

    step: BatchStep
    completed: int = 0
    total: int = 0
    file: str | None = None
    batch_id: str | None = None
    shipments_found: int | None = None
    message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.step.is_terminal

    @property
    def label(self) -> str:
        return STEP_LABELS.get(self.step, self.step.value)


class StepProgress(BaseModel):
    completed: int | None = None
    total: int | None = None
    file: str | None = None
    shipments_found: int | None = None


class ActiveBatch(BaseModel):
    """A batch currently being processed, with its persisted step."""

    id: UUID
    status: str = "processing"
    current_step: str | None = None
    step_progress: StepProgress = Field(default_factory=StepProgress)
    file_count: int = 0
    created_at: datetime | None = None


class ActiveBatchesResponse(BaseModel):
    batches: list[ActiveBatch] = Field(default_factory=list)


class UploadResponse(BaseModel):
    batch_id: UUID
    file_count: int
