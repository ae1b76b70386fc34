import logging
import os
from pathlib import Path
from typing import Generator, List, Optional
from vrc.domain.models import Batch, FileTask

class FileScanner:
    """Recursively scans for legacy video files and builds a size-bounded batch."""

    def __init__(self, extensions: List[str], max_batch_bytes: Optional[int] = None):
        self.extensions = [(ext if ext.startswith(".") else f".{ext}").lower() for ext in extensions]
        self.max_batch_bytes = max_batch_bytes
        self.logger = logging.getLogger(__name__)

    def scan(self, root_dir: Path) -> Generator[FileTask, None, None]:
        """Yields matching files in deterministic (name-sorted, depth-first) order."""
        for root, dirs, files in os.walk(str(root_dir)):
            root_path = Path(root)

            # Ensure deterministic traversal: sort directories and files
            dirs.sort()
            files.sort()

            for file_name in files:
                file_path = root_path / file_name

                if file_path.suffix.lower() not in self.extensions:
                    continue

                try:
                    st = file_path.stat()
                except OSError as e:
                    self.logger.debug(f"SCAN_SKIP: cannot stat {file_path}: {e}")
                    continue

                yield FileTask(
                    path=file_path,
                    size_bytes=st.st_size,
                    mtime_ns=st.st_mtime_ns,
                    atime_ns=st.st_atime_ns,
                )

    def collect(self, root_dir: Path) -> Batch:
        """Collects candidates until the batch size limit would be exceeded.

        The first candidate that does not fit stops the whole traversal; files
        after it (even smaller ones) are left for a later run. The returned
        tasks are ordered by modification time, oldest first.
        """
        accepted: List[FileTask] = []
        running_total = 0
        limit_reached = False

        for task in self.scan(root_dir):
            if self.max_batch_bytes is not None and running_total + task.size_bytes > self.max_batch_bytes:
                limit_reached = True
                self.logger.info(
                    f"BATCH_LIMIT: {task.path} ({task.size_bytes} bytes) would exceed "
                    f"{self.max_batch_bytes} bytes (collected {running_total}); deferring the rest"
                )
                break
            accepted.append(task)
            running_total += task.size_bytes

        accepted.sort(key=lambda t: (t.mtime_ns, str(t.path)))
        return Batch(tasks=accepted, max_bytes=self.max_batch_bytes, limit_reached=limit_reached)
