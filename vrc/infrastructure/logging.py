import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_HEADER = "--- Video batch remux log ---"


class IsoFormatter(logging.Formatter):
    """Renders `[<ISO-8601 timestamp>] [LEVEL] message`."""

    def __init__(self):
        super().__init__("[%(asctime)s] [%(levelname)s] %(message)s")

    def formatTime(self, record, datefmt=None):
        return datetime.fromtimestamp(record.created).astimezone().isoformat(timespec="milliseconds")


def setup_logging(log_file: Optional[Path], debug: bool = False, console: Optional[Console] = None) -> logging.Logger:
    """
    Setup logging configuration for VRC.

    Truncates the log file and writes a header line, then routes every record
    to it. Records at INFO and above are mirrored to the console through rich.
    Returns configured logger instance.

    Args:
        log_file: Path of the append-only run log (parent dirs are created);
            None logs to the console only
        debug: If True, DEBUG records are written to the log file as well
        console: Optional rich Console shared with progress rendering; when
            None, no console mirror is installed
    """
    level = logging.DEBUG if debug else logging.INFO
    handlers = []

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        log_file.write_text(f"{LOG_HEADER}\n", encoding="utf-8")

        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(IsoFormatter())
        handlers.append(file_handler)

    if console is not None:
        console_handler = RichHandler(console=console, show_path=False, markup=False)
        # DEBUG never reaches the console
        console_handler.setLevel(logging.INFO)
        handlers.append(console_handler)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized: {log_file or 'console only'} (debug={'ON' if debug else 'OFF'})")

    return logger
