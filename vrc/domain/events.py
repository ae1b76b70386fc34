"""Domain events for the remux pipeline.

Events flow through the EventBus so the batch runner stays unaware of the
console layer (progress bar, summary table) that listens to them.

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from typing import Optional
from pathlib import Path
from pydantic import BaseModel
from .models import ConversionOutcome, FileTask, RunSummary


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class JobEvent(Event):
    """Base class for events related to a single source file."""

    task: FileTask


class JobStarted(JobEvent):
    """Emitted right before a file enters the conversion worker."""

    index: int
    total: int


class JobCompleted(JobEvent):
    """Emitted when a file was converted and validated."""

    output_path: Path


class JobSkipped(JobEvent):
    """Emitted when the destination already exists or the source vanished."""

    outcome: ConversionOutcome


class JobFailed(JobEvent):
    """Emitted for transcode, spawn, validation and unexpected failures."""

    outcome: ConversionOutcome
    error_message: str


class DiscoveryFinished(Event):
    """Emitted after the size-bounded batch was collected."""

    files_to_process: int
    total_bytes: int
    limit_reached: bool = False


class RunAborted(Event):
    """Emitted when a fatal precondition stops the run before any conversion."""

    reason: str


class ProcessingFinished(Event):
    """Emitted once the work queue is drained."""

    summary: RunSummary
    review_path: Optional[Path] = None
