from booking_agent.review_workflow.service import BulkActionResult, ReviewService, SubmissionBlocked
from booking_agent.review_workflow.triggers import allowed_bulk_actions, can_apply_bulk_action

__all__ = [
    "BulkActionResult",
    "ReviewService",
    "SubmissionBlocked",
    "allowed_bulk_actions",
    "can_apply_bulk_action",
]
