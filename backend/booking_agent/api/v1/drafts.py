"""Draft review endpoints — corrections, bulk status changes, Xindus submission."""

import logging
import uuid

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query

from booking_agent.config import settings
from booking_agent.correction_engine.session import DraftSession
from booking_agent.dependencies import get_drafts_client, get_review_service
from booking_agent.errors import DraftsServiceError
from booking_agent.review_workflow.service import ReviewService, SubmissionBlocked
from booking_agent.review_workflow.triggers import allowed_bulk_actions
from booking_agent.schemas.draft import CorrectionRequest, Draft
from booking_agent.schemas.review import AllowedActionsResponse, BulkActionRequest, BulkActionResponse
from booking_agent.schemas.xindus import SubmissionResult
from booking_agent.services.drafts_service import DraftsServiceClient

logger = logging.getLogger("booking_agent.api.drafts")

router = APIRouter()


def _upstream_error(e: DraftsServiceError) -> HTTPException:
    if e.is_not_found:
        return HTTPException(status_code=404, detail=e.detail)
    if e.status_code < 500:
        return HTTPException(status_code=e.status_code, detail=e.detail)
    return HTTPException(status_code=502, detail=f"Drafts Service error: {e.detail}")


@router.get("/bulk/actions", response_model=AllowedActionsResponse)
async def get_allowed_actions(statuses: list[str] = Query(default=[])) -> AllowedActionsResponse:
    """Which bulk actions apply to a selection with these statuses."""
    return AllowedActionsResponse(actions=allowed_bulk_actions(statuses))


@router.post("/bulk", response_model=BulkActionResponse)
async def bulk_action(
    request: BulkActionRequest,
    review: ReviewService = Depends(get_review_service),
) -> BulkActionResponse:
    try:
        result = await review.bulk_transition(request.action, request.draft_ids, request.statuses)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return BulkActionResponse(
        action=result.action,
        total=result.total,
        succeeded=result.succeeded,
        failed=result.failed,
        summary=result.summary,
        outcomes=result.outcomes,
    )


@router.post("/{draft_id}/corrections", response_model=Draft)
async def apply_corrections(
    draft_id: uuid.UUID,
    request: CorrectionRequest,
    drafts: DraftsServiceClient = Depends(get_drafts_client),
) -> Draft:
    """Collapse a batch of corrections against the current draft and save them in one patch."""
    session = DraftSession(
        drafts,
        origin_country=settings.default_origin_country,
        destination_country=settings.default_destination_country,
    )
    try:
        session.open(await drafts.get_draft(draft_id))
        staged = session.stage_all(request.corrections)
        logger.info("Draft %s: %d of %d corrections staged", draft_id, staged, len(request.corrections))
        return await session.flush()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DraftsServiceError as e:
        raise _upstream_error(e)
    except httpx.HTTPError as e:
        raise HTTPException(status_code=502, detail=f"Drafts Service unreachable: {e}")


@router.post("/{draft_id}/submit-xindus", response_model=SubmissionResult)
async def submit_to_xindus(
    draft_id: uuid.UUID,
    review: ReviewService = Depends(get_review_service),
) -> SubmissionResult:
    """Validate, translate and send a draft to the Xindus Partner API."""
    try:
        return await review.submit_to_xindus(draft_id)
    except SubmissionBlocked as e:
        raise HTTPException(
            status_code=400,
            detail={"message": str(e), "issues": [i.model_dump(mode="json") for i in e.issues]},
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DraftsServiceError as e:
        raise _upstream_error(e)
    except httpx.HTTPError as e:
        raise HTTPException(status_code=502, detail=f"Drafts Service unreachable: {e}")
