"""Domain events for the watch-and-transcode pipeline.

Events are published on the EventBus by the watch tree, the publisher and the
event loop. They carry no state the pipeline depends on; subscribers exist for
observability (console summaries, tests).

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from pathlib import Path
from pydantic import BaseModel

from .models import EncodeJob


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class DirectoryRegistered(Event):
    """Emitted after a watch was created for a directory."""

    path: Path


class DirectoryUnregistered(Event):
    """Emitted after a watch was cancelled or found invalid."""

    path: Path
    invalidated: bool = False


class ScanFinished(Event):
    """Emitted after a tree walk; counts what it found."""

    root: Path
    directories_registered: int
    candidates_found: int


class JobEvent(Event):
    """Base class for events about a single encode job."""

    job: EncodeJob


class PublishSkipped(Event):
    """Emitted when the target already exists and nothing is done."""

    source_path: Path
    target_path: Path


class EncodeStarted(JobEvent):
    """Emitted right before the encoder process is spawned."""

    pass


class EncodeFinished(JobEvent):
    """Emitted when the encoder exits; job carries command and exit code."""

    pass


class PublishCompleted(JobEvent):
    """Emitted once the target is in place and the original is archived."""

    archived_path: Path


class PublishFailed(JobEvent):
    """Emitted when the commit step is refused (non-zero exit with abort_on_failure)."""

    error_message: str


class OverflowDetected(Event):
    """Emitted when the notification buffer for a directory overflowed."""

    directory: Path
