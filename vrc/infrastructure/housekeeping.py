import logging
from pathlib import Path

TEMP_SUFFIX = ".tmp"

def temp_output_path(output_path: Path) -> Path:
    """Where ffmpeg writes before validation: clip.mp4 -> clip.mp4.tmp"""
    return output_path.with_name(output_path.name + TEMP_SUFFIX)

class HousekeepingService:
    """Service for cleaning up partial outputs left by interrupted runs."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def cleanup_temp_files(self, directory: Path) -> int:
        """Removes stale *.mp4.tmp files directly inside the output directory."""
        removed = 0
        for path in directory.glob(f"*.mp4{TEMP_SUFFIX}"):
            if not path.is_file():
                continue
            try:
                path.unlink()
                removed += 1
                self.logger.info(f"Removed stale partial output: {path}")
            except OSError as e:
                self.logger.warning(f"Cannot remove stale partial output {path}: {e}")
        return removed
