"""Domain events for the FLV tag-stream pipelines.

Pipelines publish events to an optional EventBus so that recovery decisions
(skipped bytes, dropped tags) and junction discovery can be counted and
reported without the pipelines knowing about the console.

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from pathlib import Path
from pydantic import BaseModel


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class StreamEvent(Event):
    """Base class for events tied to one input stream."""

    source: str


class GapSkipped(StreamEvent):
    """Emitted when resynchronization skipped a run of unparseable bytes."""

    offset: int
    length: int
    cause: str


class TagDropped(StreamEvent):
    """Emitted when a structurally valid tag regresses in time and is dropped."""

    offset: int
    timestamp: int
    last_timestamp: int


class NeedleSelected(StreamEvent):
    """Emitted when the fingerprint video tag has been chosen in the tail."""

    offset: int
    timestamp: int
    body_length: int


class JunctionFound(StreamEvent):
    """Emitted when the splice point has been located."""

    offset: int
    percent: float


class OutputWritten(Event):
    """Emitted after the output file has been fully written."""

    path: Path
    bytes_written: int
    ranges: int
