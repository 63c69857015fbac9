"""Server-sent events parsing for the batch progress channel.

The Drafts Service streams ``event: progress`` frames whose ``data`` is a JSON
progress snapshot. Frames are separated by a blank line; ``:`` lines are
keep-alive comments.
"""

import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

from pydantic import ValidationError

from booking_agent.schemas.batch import ProgressSnapshot

logger = logging.getLogger("booking_agent.tracker")

PROGRESS_EVENT = "progress"


class ChannelError(Exception):
    """The progress channel could not be opened or broke mid-stream."""


@dataclass
class ServerSentEvent:
    event: str = "message"
    data: str = ""
    id: str | None = None


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[ServerSentEvent]:
    """Group raw stream lines into events."""
    event = ServerSentEvent()
    data: list[str] = []
    dirty = False

    async for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if dirty:
                event.data = "\n".join(data)
                yield event
            event, data, dirty = ServerSentEvent(), [], False
            continue
        if line.startswith(":"):
            continue

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            event.event = value
        elif name == "data":
            data.append(value)
        elif name == "id":
            event.id = value
        else:
            continue
        dirty = True

    if dirty:
        event.data = "\n".join(data)
        yield event


def parse_progress(data: str) -> ProgressSnapshot | None:
    """Decode one progress payload; None for anything malformed."""
    try:
        return ProgressSnapshot.model_validate(json.loads(data))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.debug("Ignoring malformed progress event: %s", e)
        return None


async def iter_progress(lines: AsyncIterator[str]) -> AsyncIterator[ProgressSnapshot]:
    """Progress snapshots from a raw SSE line stream; other events and bad frames are skipped."""
    async for event in iter_sse_events(lines):
        if event.event != PROGRESS_EVENT:
            continue
        snapshot = parse_progress(event.data)
        if snapshot is not None:
            yield snapshot
