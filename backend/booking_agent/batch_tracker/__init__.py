from booking_agent.batch_tracker.channel import ChannelError
from booking_agent.batch_tracker.policy import BackoffPolicy, infer_disappeared_batch_outcome
from booking_agent.batch_tracker.tracker import (
    BatchProgressTracker,
    TrackerState,
    recover_active_batch,
    submit_batch,
)

__all__ = [
    "BackoffPolicy",
    "BatchProgressTracker",
    "ChannelError",
    "TrackerState",
    "infer_disappeared_batch_outcome",
    "recover_active_batch",
    "submit_batch",
]
