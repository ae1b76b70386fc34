import os
import logging
import time
from pathlib import Path
from typing import Optional
from vrc.domain.errors import SpawnError, TranscodeTimeout
from vrc.domain.models import ConversionOutcome, FileTask, ValidationResult
from vrc.infrastructure.ffmpeg import FFmpegAdapter
from vrc.infrastructure.housekeeping import temp_output_path
from vrc.pipeline.review_ledger import ReviewLedger
from vrc.pipeline.validation import ProbeValidator


class ConversionWorker:
    """Drives a single source file through remux, validation and cleanup.

    Each call ends in exactly one ConversionOutcome:

    - SKIPPED_EXISTS: `<stem>.mp4` already in the output directory; ffmpeg is
      not run and the source is deleted when `delete_source` is set.
    - SOURCE_MISSING: the source disappeared after collection.
    - SPAWN_FAILED: ffmpeg could not be launched (CRITICAL).
    - TRANSCODE_FAILED: non-zero exit or deadline; partial output removed.
    - VALIDATION_FAILED: output discarded, source kept, ledger entry written.
    - CONVERTED: output renamed into place with the source timestamps,
      source deleted when `delete_source` is set.
    - ERROR: anything unexpected, caught here so the batch continues.

    ffmpeg writes to `<stem>.mp4.tmp` and the file is renamed only after it
    passes validation, so a crash never leaves an unvalidated `.mp4`. A crash
    between the rename and the source deletion leaves both files; the next
    run takes the SKIPPED_EXISTS path (at-least-once).
    """

    def __init__(
        self,
        output_dir: Path,
        ffmpeg_adapter: FFmpegAdapter,
        validator: ProbeValidator,
        ledger: ReviewLedger,
        delete_source: bool = True,
    ):
        self.output_dir = Path(output_dir)
        self.ffmpeg_adapter = ffmpeg_adapter
        self.validator = validator
        self.ledger = ledger
        self.delete_source = delete_source
        self.logger = logging.getLogger(__name__)
        self.last_error: Optional[str] = None

    def output_path_for(self, task: FileTask) -> Path:
        return self.output_dir / f"{task.path.stem}.mp4"

    def convert(self, task: FileTask) -> ConversionOutcome:
        """Converts one file. Never raises (except KeyboardInterrupt)."""
        output_path = self.output_path_for(task)
        tmp_path = temp_output_path(output_path)
        self.last_error = None
        start_time = time.monotonic()
        self.logger.debug(f"CONVERT_START: {task.path} size={task.size_bytes}")

        try:
            outcome = self._convert(task, output_path, tmp_path)
        except Exception as e:
            self.last_error = str(e)
            self.logger.error(f"Exception processing {task.path}: {e}")
            self._remove_quietly(tmp_path)
            outcome = ConversionOutcome.ERROR

        elapsed = time.monotonic() - start_time
        self.logger.debug(f"CONVERT_END: {task.path.name} status={outcome.value} elapsed={elapsed:.2f}s")
        return outcome

    def _convert(self, task: FileTask, output_path: Path, tmp_path: Path) -> ConversionOutcome:
        if output_path.exists():
            self.logger.warning(f"Skipped: destination already exists: {output_path}")
            if self.delete_source:
                self._delete_source(task)
            return ConversionOutcome.SKIPPED_EXISTS

        if not task.path.exists():
            self.last_error = "Source file disappeared before conversion"
            self.logger.warning(f"Skipped: source no longer exists: {task.path}")
            return ConversionOutcome.SOURCE_MISSING

        self.logger.info(f"Converting: {task.path} -> {output_path}")

        try:
            returncode = self.ffmpeg_adapter.remux(task.path, tmp_path)
        except SpawnError as e:
            self.last_error = str(e)
            self.logger.critical(f"ffmpeg process error: {e}")
            self._remove_quietly(tmp_path)
            return ConversionOutcome.SPAWN_FAILED
        except TranscodeTimeout as e:
            self.last_error = str(e)
            self.logger.error(f"Conversion failed: {task.path}. {e}{self._stderr_detail()}")
            self._remove_partial(tmp_path)
            return ConversionOutcome.TRANSCODE_FAILED

        if returncode != 0:
            self.last_error = f"ffmpeg exited with code {returncode}"
            self.logger.error(f"Conversion failed: {task.path}. ffmpeg exited with code {returncode}{self._stderr_detail()}")
            self._remove_partial(tmp_path)
            return ConversionOutcome.TRANSCODE_FAILED

        self.logger.info(f"ffmpeg finished: {output_path}")

        validation = self.validator.check(tmp_path, original_size=task.size_bytes)
        if not validation.ok:
            return self._reject(task, tmp_path, validation)

        tmp_path.replace(output_path)
        self.logger.info(f"Validation passed: {output_path}")
        self._copy_timestamps(task, output_path)
        if self.delete_source:
            self._delete_source(task)
        return ConversionOutcome.CONVERTED

    def _reject(self, task: FileTask, tmp_path: Path, validation: ValidationResult) -> ConversionOutcome:
        self.last_error = f"Validation failed: {validation.reason_text}"
        try:
            if tmp_path.exists():
                tmp_path.unlink()
                self.logger.warning(f"Removed output that failed validation: {tmp_path}")
        except OSError as e:
            self.logger.warning(f"Failed to remove output {tmp_path}: {e}")

        self.ledger.append(task.path, validation.failed_reasons)
        self.logger.warning(
            f"VALIDATION_FAILED: {task.path} ({validation.reason_text}); recorded in {self.ledger.path}"
        )
        return ConversionOutcome.VALIDATION_FAILED

    def _copy_timestamps(self, task: FileTask, output_path: Path):
        try:
            os.utime(output_path, ns=(task.atime_ns, task.mtime_ns))
            self.logger.info(f"Timestamps copied to: {output_path}")
        except OSError as e:
            self.logger.warning(f"Failed to copy timestamps to {output_path}: {e}")

    def _delete_source(self, task: FileTask):
        try:
            task.path.unlink()
            self.logger.info(f"Deleted source: {task.path}")
        except FileNotFoundError:
            self.logger.debug(f"Source already gone: {task.path}")
        except OSError as e:
            self.logger.warning(f"Failed to delete source {task.path}: {e}")

    def _stderr_detail(self) -> str:
        stderr_tail = (self.ffmpeg_adapter.last_stderr or "")[-500:]
        return f" ({stderr_tail})" if stderr_tail else ""

    def _remove_partial(self, tmp_path: Path):
        if not tmp_path.exists():
            return
        try:
            tmp_path.unlink()
            self.logger.info(f"Removed partial output: {tmp_path}")
        except OSError as e:
            self.logger.warning(f"Failed to remove partial output {tmp_path}: {e}")

    def _remove_quietly(self, tmp_path: Path):
        try:
            if tmp_path.exists():
                tmp_path.unlink()
        except OSError as e:
            self.logger.debug(f"Cannot remove {tmp_path}: {e}")
