import logging
import shutil
from pathlib import Path
from vrc.domain.errors import ProbeError

class DiskSpaceGuard:
    """Free-space query for the volume that holds the output directory."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def available_bytes(self, path: Path) -> int:
        try:
            usage = shutil.disk_usage(str(path))
        except OSError as e:
            raise ProbeError(f"Cannot query free space for {path}: {e}") from e
        self.logger.debug(f"DISK_FREE: {path} free={usage.free} total={usage.total}")
        return usage.free
