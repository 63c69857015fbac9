"""ReviewService — status transitions and the downstream submission gate.

Bulk actions run as independent requests: one failing draft never stops or
rolls back the others. Submission to Xindus is refused while validation
issues remain.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from uuid import UUID

from booking_agent.config import Settings
from booking_agent.review_workflow.triggers import bulk_summary, can_apply_bulk_action
from booking_agent.schemas.draft import Draft, DraftStatus
from booking_agent.schemas.review import BulkAction, BulkItemOutcome
from booking_agent.schemas.xindus import SubmissionResult, ValidationIssue, XindusShipmentPayload
from booking_agent.services.drafts_service import DraftsServiceClient
from booking_agent.services.xindus_client import XindusClient, XindusError, extract_scancode
from booking_agent.xindus.payload import build_xindus_payload
from booking_agent.xindus.validation import validate_for_xindus

logger = logging.getLogger("booking_agent.review")


class SubmissionBlocked(Exception):
    """The draft fails pre-submission validation."""

    def __init__(self, draft_id: UUID | str, issues: list[ValidationIssue]):
        self.draft_id = draft_id
        self.issues = issues
        super().__init__(f"Draft {draft_id} has {len(issues)} validation issues")


@dataclass
class BulkActionResult:
    action: BulkAction
    outcomes: list[BulkItemOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @property
    def summary(self) -> str:
        return bulk_summary(self.action, self.total, self.failed)


class ReviewService:
    """Operator actions on drafts held by the Drafts Service."""

    def __init__(self, settings: Settings, drafts: DraftsServiceClient, xindus: XindusClient | None = None):
        self.drafts = drafts
        self.xindus = xindus
        self.concurrency = max(1, settings.bulk_action_concurrency)

    async def _transition(self, action: BulkAction, draft_id: UUID) -> None:
        if action is BulkAction.APPROVE:
            await self.drafts.approve(draft_id)
        elif action is BulkAction.REJECT:
            await self.drafts.reject(draft_id)
        elif action is BulkAction.ARCHIVE:
            await self.drafts.archive(draft_id)
        elif action is BulkAction.DELETE:
            await self.drafts.delete(draft_id)
        else:
            raise ValueError(f"Invalid action: {action}")

    async def bulk_transition(
        self,
        action: BulkAction | str,
        draft_ids: list[UUID],
        statuses: list[str] | None = None,
    ) -> BulkActionResult:
        """Apply one status transition to many drafts in parallel.

        When ``statuses`` are given the whole selection is checked first and
        a ValueError is raised if the action does not apply to all of them.
        """
        action = BulkAction(action)
        if statuses is not None:
            allowed, reason = can_apply_bulk_action(action, statuses)
            if not allowed:
                raise ValueError(reason)

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(draft_id: UUID) -> None:
            async with semaphore:
                await self._transition(action, draft_id)

        results = await asyncio.gather(*(run(d) for d in draft_ids), return_exceptions=True)

        outcomes: list[BulkItemOutcome] = []
        for draft_id, result in zip(draft_ids, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("Bulk %s failed for draft %s: %s", action.value, draft_id, result)
                outcomes.append(BulkItemOutcome(draft_id=draft_id, success=False, error=str(result)))
            else:
                outcomes.append(BulkItemOutcome(draft_id=draft_id, success=True))

        outcome = BulkActionResult(action=action, outcomes=outcomes)
        logger.info("Bulk %s: %s", action.value, outcome.summary)
        return outcome

    # ── Downstream submission ──

    def prepare_submission(self, draft: Draft) -> XindusShipmentPayload:
        """Validate a draft's effective data and translate it, or raise SubmissionBlocked."""
        data = draft.effective_data
        issues = validate_for_xindus(data)
        if issues:
            raise SubmissionBlocked(draft.id, issues)
        return build_xindus_payload(data)

    async def submit_to_xindus(self, draft_id: UUID) -> SubmissionResult:
        if self.xindus is None:
            raise ValueError("Xindus client is not configured")

        draft = await self.drafts.get_draft(draft_id)
        if draft.status not in (DraftStatus.PENDING_REVIEW.value, DraftStatus.APPROVED.value):
            raise ValueError(f"Draft {draft_id} is {draft.status} and cannot be submitted")

        payload = self.prepare_submission(draft)
        try:
            body = await self.xindus.create_shipment(payload)
        except XindusError as e:
            logger.warning("Xindus submission failed for draft %s: %s", draft_id, e)
            return SubmissionResult(
                success=False,
                draft_id=draft.id,
                message=str(e),
                response=e.body if isinstance(e.body, dict) else None,
            )

        scancode = extract_scancode(body)
        logger.info("Draft %s submitted to Xindus (scancode=%s)", draft_id, scancode)
        return SubmissionResult(success=True, draft_id=draft.id, scancode=scancode, message="Shipment created", response=body)
