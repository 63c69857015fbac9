"""BatchProgressTracker — follows one extraction batch to its terminal state.

One tracker per batch id, owned by whoever started the batch. Progress comes
from the push channel (SSE); if the channel fails the tracker polls the
active-batches list instead. Either way the caller sees one ordered stream of
snapshots and exactly one terminal callback.

    idle → observing → [polling ⇄ stalled] → complete | error
"""

import asyncio
import contextlib
import enum
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Protocol
from uuid import UUID

import httpx

from booking_agent.batch_tracker.channel import ChannelError
from booking_agent.batch_tracker.policy import (
    BackoffPolicy,
    infer_disappeared_batch_outcome,
    snapshot_from_active_batch,
)
from booking_agent.errors import DraftsServiceError
from booking_agent.schemas.batch import ActiveBatch, BatchStep, ProgressSnapshot

logger = logging.getLogger("booking_agent.tracker")

DEFAULT_ERROR_MESSAGE = "Processing failed"

# Transport-level failures: recovered locally, never surfaced as a pipeline error.
TRANSPORT_ERRORS = (httpx.HTTPError, ChannelError, DraftsServiceError)

SnapshotCallback = Callable[[ProgressSnapshot], Awaitable[None] | None]
MessageCallback = Callable[[str], Awaitable[None] | None]


class TrackerState(str, enum.Enum):
    IDLE = "idle"
    OBSERVING = "observing"
    POLLING = "polling"
    STALLED = "stalled"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TrackerState.COMPLETE, TrackerState.ERROR)


class ProgressSource(Protocol):
    def stream_progress(self, batch_id: str) -> AsyncIterator[ProgressSnapshot]: ...

    async def active_batches(self) -> list[ActiveBatch]: ...


class BatchUploader(Protocol):
    async def upload(self, files: list[tuple[str, bytes, str | None]]) -> Any: ...


async def submit_batch(client: BatchUploader, files: list[tuple[str, bytes, str | None]]) -> UUID:
    """Upload files as a new extraction batch and return its id."""
    response = await client.upload(files)
    logger.info("Submitted batch %s (%d files)", response.batch_id, response.file_count)
    return response.batch_id


class BatchProgressTracker:
    """State machine for observing one batch."""

    def __init__(
        self,
        batch_id: UUID | str,
        source: ProgressSource,
        *,
        on_progress: SnapshotCallback | None = None,
        on_complete: SnapshotCallback | None = None,
        on_error: MessageCallback | None = None,
        on_stalled: MessageCallback | None = None,
        backoff: BackoffPolicy | None = None,
        file_count: int | None = None,
        initial: ProgressSnapshot | None = None,
    ):
        self.batch_id = str(batch_id)
        self.source = source
        self.on_progress = on_progress
        self.on_complete = on_complete
        self.on_error = on_error
        self.on_stalled = on_stalled
        self.backoff = backoff or BackoffPolicy()
        self.file_count = file_count

        self.state = TrackerState.IDLE
        self.last_snapshot: ProgressSnapshot | None = initial
        self.terminal_snapshot: ProgressSnapshot | None = None
        self.consecutive_failures = 0
        self._shipments_found = initial.shipments_found if initial else None
        self._task: asyncio.Task | None = None
        self._done: asyncio.Future | None = None
        self._resume_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<BatchProgressTracker {self.batch_id} {self.state.value}>"

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Public API ──

    def start(self) -> None:
        """Begin observing in the background without waiting; a no-op when already running or finished."""
        if not self.is_terminal and not self.is_running:
            self._start()

    async def observe(self) -> ProgressSnapshot | None:
        """Observe until terminal. Returns the terminal snapshot, or None if stalled or cancelled."""
        if self.is_terminal:
            return self.terminal_snapshot
        if not self.is_running:
            self._start()
        return await self._wait()

    async def resume(self) -> ProgressSnapshot | None:
        """Re-attach to a running batch.

        Joins a live channel, replaces an active poll with a fresh channel, and
        after a terminal outcome returns it without notifying anyone again.
        Concurrent calls share one worker.
        """
        async with self._resume_lock:
            if self.is_terminal:
                return self.terminal_snapshot
            if not (self.is_running and self.state is TrackerState.OBSERVING):
                await self._stop_worker()
                self._start()
        return await self._wait()

    async def cancel(self) -> None:
        """Stop observing without a terminal outcome."""
        await self._stop_worker()
        if not self.is_terminal:
            self.state = TrackerState.IDLE
        self._resolve(None)

    # ── Worker lifecycle ──

    def _start(self) -> None:
        if self._done is None or self._done.done():
            self._done = asyncio.get_running_loop().create_future()
        self.state = TrackerState.OBSERVING
        self._task = asyncio.create_task(self._run(), name=f"batch-tracker-{self.batch_id}")

    async def _stop_worker(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _wait(self) -> ProgressSnapshot | None:
        # Shielded: a cancelled caller must not cancel the shared outcome.
        return await asyncio.shield(self._done)

    def _resolve(self, outcome: ProgressSnapshot | None) -> None:
        if self._done is not None and not self._done.done():
            self._done.set_result(outcome)

    async def _run(self) -> None:
        try:
            if await self._observe_channel():
                return
            await self._poll()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Tracker for batch %s crashed", self.batch_id)
            if self._done is not None and not self._done.done():
                self._done.set_exception(e)

    # ── Transports ──

    async def _observe_channel(self) -> bool:
        """Follow the push channel. True once terminal, False if the channel gave out first."""
        self.state = TrackerState.OBSERVING
        try:
            async with contextlib.aclosing(self.source.stream_progress(self.batch_id)) as stream:
                async for snapshot in stream:
                    if await self._accept(snapshot):
                        return True
        except TRANSPORT_ERRORS as e:
            logger.info("Progress channel for batch %s failed (%s); falling back to polling", self.batch_id, e)
            return False
        logger.info("Progress channel for batch %s closed before a terminal event; polling", self.batch_id)
        return False

    async def _poll(self) -> None:
        self.state = TrackerState.POLLING
        failures = 0
        while True:
            await asyncio.sleep(self.backoff.delay(failures))
            try:
                batches = await self.source.active_batches()
            except TRANSPORT_ERRORS as e:
                failures += 1
                self.consecutive_failures = failures
                if self.backoff.exhausted(failures):
                    await self._stall(e)
                    return
                logger.debug("Poll %d for batch %s failed: %s", failures, self.batch_id, e)
                continue

            if failures:
                logger.info("Polling for batch %s recovered after %d failures", self.batch_id, failures)
            failures = self.consecutive_failures = 0
            self.state = TrackerState.POLLING

            record = next((b for b in batches if str(b.id) == self.batch_id), None)
            if record is None:
                outcome = infer_disappeared_batch_outcome(
                    self.batch_id,
                    self.last_snapshot,
                    file_count=self.file_count,
                    shipments_found=self._shipments_found,
                )
                logger.info("Batch %s left the active list; treating it as complete", self.batch_id)
                await self._finish(outcome)
                return

            if record.file_count:
                self.file_count = record.file_count
            if await self._accept(snapshot_from_active_batch(record, self.last_snapshot)):
                return

    async def _stall(self, error: Exception) -> None:
        self.state = TrackerState.STALLED
        message = (
            f"Lost contact with the processing service after {self.consecutive_failures} attempts"
            f" ({type(error).__name__})"
        )
        logger.warning("Batch %s stalled: %s", self.batch_id, error)
        await self._notify("on_stalled", self.on_stalled, message)
        self._resolve(None)

    # ── Snapshot handling ──

    async def _accept(self, snapshot: ProgressSnapshot) -> bool:
        """Record and report one snapshot. True once the batch is terminal."""
        if self.is_terminal:
            return True
        last = self.last_snapshot
        if last is not None and snapshot.step.rank < last.step.rank:
            logger.debug("Dropping out-of-order %s after %s for batch %s", snapshot.step.value, last.step.value, self.batch_id)
            return False
        if snapshot == last:
            return False

        if snapshot.shipments_found is not None:
            self._shipments_found = snapshot.shipments_found
        if snapshot.is_terminal:
            await self._finish(snapshot)
            return True

        self.last_snapshot = snapshot
        await self._notify("on_progress", self.on_progress, snapshot)
        return False

    async def _finish(self, snapshot: ProgressSnapshot) -> None:
        if self.is_terminal:
            return
        updates: dict[str, Any] = {}
        if snapshot.step is BatchStep.ERROR and not snapshot.message:
            updates["message"] = DEFAULT_ERROR_MESSAGE
        if snapshot.shipments_found is None and self._shipments_found is not None:
            updates["shipments_found"] = self._shipments_found
        if updates:
            snapshot = snapshot.model_copy(update=updates)

        self.state = TrackerState.COMPLETE if snapshot.step is BatchStep.COMPLETE else TrackerState.ERROR
        self.last_snapshot = snapshot
        self.terminal_snapshot = snapshot
        logger.info("Batch %s finished: %s", self.batch_id, self.state.value)

        await self._notify("on_progress", self.on_progress, snapshot)
        if self.state is TrackerState.COMPLETE:
            await self._notify("on_complete", self.on_complete, snapshot)
        else:
            await self._notify("on_error", self.on_error, snapshot.message)
        self._resolve(snapshot)

    async def _notify(self, name: str, callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            # Listener errors never stop tracking.
            logger.exception("%s callback failed for batch %s", name, self.batch_id)


async def recover_active_batch(
    source: ProgressSource,
    **tracker_kwargs: Any,
) -> BatchProgressTracker | None:
    """Pick up the most recent in-flight batch after a restart.

    Seeds the tracker from the persisted step so the first report is not a
    step backwards, then starts observation. Returns None if nothing is running.
    """
    try:
        batches = await source.active_batches()
    except TRANSPORT_ERRORS as e:
        logger.warning("Could not query active batches: %s", e)
        return None
    if not batches:
        return None

    batch = batches[0]
    initial = snapshot_from_active_batch(batch)
    tracker = BatchProgressTracker(batch.id, source, file_count=batch.file_count, initial=initial, **tracker_kwargs)
    logger.info("Recovering batch %s at step %s", batch.id, initial.step.value)
    await tracker._notify("on_progress", tracker.on_progress, initial)
    tracker.start()
    return tracker
