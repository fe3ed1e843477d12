"""Domain events for the media compression pipeline.

Events flow through the EventBus from the orchestrator (and its worker
threads) to the console reporter, so the pipeline never prints directly.

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from pathlib import Path
from pydantic import BaseModel
from .models import CompressionJob


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class JobEvent(Event):
    """Base class for events related to a specific compression job."""

    job: CompressionJob


class DiscoveryStarted(Event):
    """Emitted before the directory walk begins."""

    directory: Path


class DiscoveryFinished(Event):
    """Emitted once the index is built, with per-type counters."""

    files_found: int
    images: int = 0
    audio: int = 0
    videos: int = 0


class JobStarted(JobEvent):
    """Emitted right before the codec adapter is invoked."""

    pass


class JobCompleted(JobEvent):
    """Emitted when the output was written and the retention policy applied."""

    pass


class JobSkipped(JobEvent):
    """Emitted when a job ends without touching the codec (see job.skip_reason)."""

    pass


class JobFailed(JobEvent):
    """Emitted when the codec or a file operation failed; any .tmp input is left on disk."""

    error_message: str


class ProcessingFinished(Event):
    """Emitted after the worker pool has drained."""

    completed: int = 0
    skipped: int = 0
    failed: int = 0
