import subprocess
import logging
import time
from pathlib import Path
from typing import List, Optional
from vrc.domain.errors import SpawnError, TranscodeTimeout

class FFmpegAdapter:
    """Wrapper around ffmpeg for stream-copy remuxing into MP4."""

    def __init__(self, executable: str = "ffmpeg", faststart: bool = True,
                 timeout_s: Optional[float] = None, kill_grace_s: float = 5.0):
        self.executable = executable
        self.faststart = faststart
        self.timeout_s = timeout_s
        self.kill_grace_s = kill_grace_s
        self.logger = logging.getLogger(__name__)
        self.last_stderr = ""

    def _build_command(self, input_path: Path, output_path: Path) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        cmd = [
            self.executable,
            "-loglevel", "error",
            "-y",  # Overwrite output files
        ]
        # Input option, must precede -i
        if self.faststart:
            cmd.extend(["-fflags", "+genpts"])
        cmd.extend(["-i", str(input_path), "-c", "copy"])  # No re-encode
        if self.faststart:
            cmd.extend(["-movflags", "+faststart"])

        # Output may carry a .tmp suffix, so the muxer is named explicitly
        cmd.extend(["-f", "mp4", str(output_path)])
        return cmd

    def _stop(self, process: subprocess.Popen) -> str:
        """Terminates ffmpeg (kills it after the grace period) and returns its stderr."""
        process.terminate()
        try:
            _, stderr = process.communicate(timeout=self.kill_grace_s)
        except subprocess.TimeoutExpired:
            process.kill()
            _, stderr = process.communicate()
        return (stderr or "").strip()

    def remux(self, input_path: Path, output_path: Path) -> int:
        """Runs ffmpeg to completion and returns its exit code.

        Raises SpawnError when the executable cannot be launched and
        TranscodeTimeout when the configured deadline passes (the process is
        terminated, then killed).
        """
        cmd = self._build_command(input_path, output_path)
        self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")
        self.last_stderr = ""
        start_time = time.monotonic()

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                universal_newlines=True,
            )
        except OSError as e:
            raise SpawnError(f"Cannot launch {self.executable}: {e}") from e

        try:
            _, stderr = process.communicate(timeout=self.timeout_s)
        except subprocess.TimeoutExpired:
            self.logger.error(f"FFMPEG_TIMEOUT: {input_path.name} exceeded {self.timeout_s}s, terminating")
            self.last_stderr = self._stop(process)
            raise TranscodeTimeout(f"ffmpeg exceeded {self.timeout_s}s for {input_path}")
        except KeyboardInterrupt:
            self.logger.info(f"FFMPEG_INTERRUPTED: {input_path.name} (KeyboardInterrupt)")
            self.last_stderr = self._stop(process)
            raise

        self.last_stderr = (stderr or "").strip()
        elapsed = time.monotonic() - start_time
        self.logger.debug(f"FFMPEG_END: {input_path.name} code={process.returncode} elapsed={elapsed:.2f}s")
        return process.returncode
