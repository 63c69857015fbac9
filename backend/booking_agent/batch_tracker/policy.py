"""Tracker policies kept apart from the state machine so they can be swapped.

- how a polled batch record maps to a progress snapshot;
- what it means when a batch disappears from the active list;
- how long to wait between failing polls, and when to give up.
"""

import logging
from dataclasses import dataclass

from booking_agent.config import Settings
from booking_agent.schemas.batch import ActiveBatch, BatchStep, ProgressSnapshot

logger = logging.getLogger("booking_agent.tracker")


def parse_step(raw: str | None, fallback: BatchStep | None = None) -> BatchStep:
    """Persisted step name → BatchStep; missing or unknown keeps ``fallback``."""
    if raw:
        try:
            return BatchStep(raw)
        except ValueError:
            logger.debug("Unknown batch step %r; keeping %s", raw, fallback)
    return fallback or BatchStep.CLASSIFYING


def snapshot_from_active_batch(batch: ActiveBatch, last: ProgressSnapshot | None = None) -> ProgressSnapshot:
    """The snapshot a push event would have carried for this persisted state."""
    progress = batch.step_progress
    return ProgressSnapshot(
        step=parse_step(batch.current_step, last.step if last else None),
        completed=progress.completed or 0,
        total=progress.total if progress.total is not None else batch.file_count,
        file=progress.file,
        batch_id=str(batch.id),
        shipments_found=progress.shipments_found,
    )


def infer_disappeared_batch_outcome(
    batch_id: str,
    last: ProgressSnapshot | None,
    *,
    file_count: int | None = None,
    shipments_found: int | None = None,
) -> ProgressSnapshot:
    """Outcome for a batch that is no longer in the active-batches list.

    The Drafts Service drops batches from that list once they finish and keeps
    no terminal record there, so absence is read as ``complete``. A batch that
    failed without emitting an ``error`` event looks the same; that case cannot
    be told apart here.
    """
    total = file_count if file_count else (last.total if last else 0)
    if shipments_found is None and last is not None:
        shipments_found = last.shipments_found
    return ProgressSnapshot(
        step=BatchStep.COMPLETE,
        completed=total,
        total=total,
        batch_id=batch_id,
        shipments_found=shipments_found,
    )


@dataclass(slots=True, frozen=True)
class BackoffPolicy:
    """Poll cadence: a fixed interval, stretched exponentially while polls fail."""

    interval: float = 3.0
    factor: float = 2.0
    max_delay: float = 60.0
    max_consecutive_failures: int = 20

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackoffPolicy":
        return cls(
            interval=settings.poll_interval_seconds,
            factor=settings.poll_backoff_factor,
            max_delay=settings.poll_max_backoff_seconds,
            max_consecutive_failures=settings.poll_max_consecutive_failures,
        )

    def delay(self, failures: int) -> float:
        """Seconds to wait before the next poll after ``failures`` failed polls in a row."""
        if failures <= 0:
            return self.interval
        return min(self.interval * self.factor**failures, max(self.max_delay, self.interval))

    def exhausted(self, failures: int) -> bool:
        return failures >= self.max_consecutive_failures
