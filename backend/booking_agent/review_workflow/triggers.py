"""Bulk-action eligibility — pure functions over draft statuses.

No service dependencies, easy to unit test.
"""

from collections.abc import Iterable

from booking_agent.schemas.draft import DraftStatus
from booking_agent.schemas.review import BulkAction

_DELETABLE = {DraftStatus.PENDING_REVIEW.value, DraftStatus.REJECTED.value}


def _normalize(statuses: Iterable[str | DraftStatus]) -> list[str]:
    return [s.value if isinstance(s, DraftStatus) else str(s) for s in statuses]


def can_apply_bulk_action(action: BulkAction | str, statuses: Iterable[str | DraftStatus]) -> tuple[bool, str]:
    """Determine if ``action`` may run on every selected draft.

    Returns (allowed, reason).
    """
    action = BulkAction(action)
    selected = _normalize(statuses)
    if not selected:
        return False, "No drafts selected"

    if action in (BulkAction.APPROVE, BulkAction.REJECT):
        blocked = [s for s in selected if s != DraftStatus.PENDING_REVIEW.value]
        if blocked:
            return False, f"{len(blocked)} selected drafts are not pending review"
    elif action is BulkAction.ARCHIVE:
        archived = selected.count(DraftStatus.ARCHIVED.value)
        if archived:
            return False, f"{archived} selected drafts are already archived"
    elif action is BulkAction.DELETE:
        blocked = [s for s in selected if s not in _DELETABLE]
        if blocked:
            return False, f"Only pending or rejected drafts can be deleted ({len(blocked)} selected are not)"

    return True, "OK"


def allowed_bulk_actions(statuses: Iterable[str | DraftStatus]) -> list[BulkAction]:
    selected = _normalize(statuses)
    return [action for action in BulkAction if can_apply_bulk_action(action, selected)[0]]


def bulk_summary(action: BulkAction | str, total: int, failed: int) -> str:
    """Operator-facing one-liner: "2 of 5 failed" on partial failure."""
    action = BulkAction(action)
    if failed:
        return f"{failed} of {total} failed"
    noun = "draft" if total == 1 else "drafts"
    past = {"approve": "Approved", "reject": "Rejected", "archive": "Archived", "delete": "Deleted"}[action.value]
    return f"{past} {total} {noun}"
