import subprocess
import json
import logging
from pathlib import Path
from typing import Optional
from pydantic import ValidationError
from vrc.domain.errors import ProbeError
from vrc.domain.models import MediaInfo

class FFprobeAdapter:
    """Wrapper around ffprobe to read container and stream metadata."""

    def __init__(self, executable: str = "ffprobe", timeout_s: Optional[float] = None):
        self.executable = executable
        self.timeout_s = timeout_s
        self.logger = logging.getLogger(__name__)

    def _build_command(self, file_path: Path):
        return [
            self.executable,
            "-v", "quiet",
            "-print_format", "json=c=1",
            "-show_format",
            "-show_streams",
            str(file_path)
        ]

    def probe(self, file_path: Path) -> MediaInfo:
        """Executes ffprobe and parses its JSON output. Raises ProbeError."""
        cmd = self._build_command(file_path)
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout_s)
        except subprocess.TimeoutExpired as e:
            raise ProbeError(f"ffprobe timed out after {self.timeout_s}s for {file_path}") from e
        except OSError as e:
            raise ProbeError(f"ffprobe could not be started ({self.executable}): {e}") from e

        if result.returncode != 0:
            raise ProbeError(f"ffprobe failed for {file_path} (code {result.returncode}): {result.stderr.strip()}")

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ProbeError(f"ffprobe returned invalid JSON for {file_path}: {e}") from e

        if not isinstance(data, dict):
            raise ProbeError(f"ffprobe returned {type(data).__name__} instead of an object for {file_path}")

        try:
            return MediaInfo.model_validate(data)
        except ValidationError as e:
            raise ProbeError(f"Unexpected ffprobe document for {file_path}: {e}") from e

    def inspect(self, file_path: Path) -> Optional[MediaInfo]:
        """Like probe(), but logs the failure and returns None."""
        try:
            return self.probe(file_path)
        except ProbeError as e:
            self.logger.error(f"FFPROBE_FAILED: {e}")
            return None
