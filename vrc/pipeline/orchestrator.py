"""Batch runner for the remux pipeline.

Coordinates the run preconditions, batch collection and the per-file worker.
Publishes domain events on the EventBus so the console layer can render
progress without the pipeline importing it.

Run sequence:
- Verify the target directory exists (fatal otherwise)
- Create the output directory and sweep stale partial outputs
- Optionally reset the manual-review ledger
- Optionally check free space on the output volume (fatal when too low)
- Collect a size-bounded batch ordered by modification time
- Drain the batch through one ConversionWorker, one file at a time

Conversions are strictly sequential: the next file starts only after the
previous worker call has returned. Log file initialization is done by
`setup_logging` before the runner is built.
"""

import logging
import time
from collections import deque
from typing import Deque, Optional
from vrc.config.models import AppConfig
from vrc.domain.errors import FatalPreconditionError, ProbeError
from vrc.domain.events import (
    DiscoveryFinished, JobStarted, JobCompleted, JobSkipped, JobFailed, ProcessingFinished, RunAborted
)
from vrc.domain.models import Batch, ConversionOutcome, FileTask, RunSummary
from vrc.infrastructure.disk_space import DiskSpaceGuard
from vrc.infrastructure.event_bus import EventBus
from vrc.infrastructure.ffmpeg import FFmpegAdapter
from vrc.infrastructure.file_scanner import FileScanner
from vrc.infrastructure.housekeeping import HousekeepingService
from vrc.pipeline.review_ledger import ReviewLedger
from vrc.pipeline.validation import ProbeValidator
from vrc.pipeline.worker import ConversionWorker

SKIP_OUTCOMES = (ConversionOutcome.SKIPPED_EXISTS, ConversionOutcome.SOURCE_MISSING)


class BatchRunner:
    """Sequential batch remux runner.

    Args:
        config: AppConfig with directories, thresholds and tool settings.
        event_bus: EventBus for publishing run and job events.
        file_scanner: FileScanner building the size-bounded batch.
        ffmpeg_adapter: FFmpegAdapter used by the worker.
        validator: ProbeValidator applied to each output.
        disk_guard: DiskSpaceGuard for the free-space precondition.
        ledger: ReviewLedger receiving validation failures.
        housekeeper: Optional HousekeepingService (a default one is created).
    """

    def __init__(
        self,
        config: AppConfig,
        event_bus: EventBus,
        file_scanner: FileScanner,
        ffmpeg_adapter: FFmpegAdapter,
        validator: ProbeValidator,
        disk_guard: DiskSpaceGuard,
        ledger: ReviewLedger,
        housekeeper: Optional[HousekeepingService] = None,
    ):
        self.config = config
        self.event_bus = event_bus
        self.file_scanner = file_scanner
        self.disk_guard = disk_guard
        self.ledger = ledger
        self.housekeeper = housekeeper or HousekeepingService()
        self.logger = logging.getLogger(__name__)

        self.target_dir = config.general.target_path()
        self.output_dir = config.general.output_path()
        self.worker = ConversionWorker(
            output_dir=self.output_dir,
            ffmpeg_adapter=ffmpeg_adapter,
            validator=validator,
            ledger=ledger,
            delete_source=config.general.delete_source,
        )

    def _abort(self, summary: RunSummary, reason: str) -> RunSummary:
        self.logger.critical(reason)
        summary.aborted = True
        summary.abort_reason = reason
        self.event_bus.publish(RunAborted(reason=reason))
        return summary

    def _check_disk_space(self):
        """Raises FatalPreconditionError when the output volume is too full."""
        threshold = self.config.general.min_free_space_bytes
        try:
            free = self.disk_guard.available_bytes(self.output_dir)
        except ProbeError as e:
            self.logger.error(f"Free space query failed, assuming 0 bytes: {e}")
            free = 0

        if free < threshold:
            raise FatalPreconditionError(
                f"FATAL: not enough free space in {self.output_dir}: "
                f"{free} bytes available, {threshold} bytes required"
            )
        self.logger.info(f"Free space OK: {free} bytes available (threshold {threshold})")

    def _prepare(self):
        """Checks every precondition before any file is touched."""
        if not self.target_dir.is_dir():
            raise FatalPreconditionError(f"FATAL: target directory does not exist: {self.target_dir}")

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FatalPreconditionError(f"FATAL: cannot create output directory {self.output_dir}: {e}") from e
        self.housekeeper.cleanup_temp_files(self.output_dir)

        if self.config.general.reset_review_ledger:
            self.ledger.reset()

        if self.config.general.check_disk_space:
            self._check_disk_space()

    def _publish_outcome(self, task: FileTask, outcome: ConversionOutcome):
        if outcome == ConversionOutcome.CONVERTED:
            self.event_bus.publish(JobCompleted(task=task, output_path=self.worker.output_path_for(task)))
        elif outcome in SKIP_OUTCOMES:
            self.event_bus.publish(JobSkipped(task=task, outcome=outcome))
        else:
            self.event_bus.publish(
                JobFailed(task=task, outcome=outcome, error_message=self.worker.last_error or outcome.value)
            )

    def run(self) -> RunSummary:
        summary = RunSummary()
        self.logger.info(
            f"VRC started: target={self.target_dir}, output={self.output_dir}, "
            f"review={self.ledger.path}, extensions={self.config.general.extensions}"
        )

        try:
            self._prepare()
        except FatalPreconditionError as e:
            return self._abort(summary, str(e))

        batch: Batch = self.file_scanner.collect(self.target_dir)
        self.logger.info(
            f"Found {len(batch.tasks)} files to process ({batch.total_bytes} bytes"
            f"{', batch limit reached' if batch.limit_reached else ''})"
        )
        self.event_bus.publish(DiscoveryFinished(
            files_to_process=len(batch.tasks),
            total_bytes=batch.total_bytes,
            limit_reached=batch.limit_reached,
        ))

        queue: Deque[FileTask] = deque(batch.tasks)
        total = len(queue)
        start_time = time.monotonic()

        # One worker drains the queue; ffmpeg runs are never overlapped
        while queue:
            task = queue.popleft()
            summary.attempted += 1
            self.event_bus.publish(JobStarted(task=task, index=summary.attempted, total=total))
            outcome = self.worker.convert(task)
            summary.record(outcome)
            self._publish_outcome(task, outcome)

        elapsed = time.monotonic() - start_time
        self.logger.info(
            f"Conversion finished. Attempted {summary.attempted} files: "
            f"converted={summary.converted}, skipped={summary.skipped}, failed={summary.failed}, "
            f"needs_review={summary.needs_review}, elapsed={elapsed:.1f}s"
        )
        self.event_bus.publish(ProcessingFinished(summary=summary, review_path=self.ledger.path))
        return summary
