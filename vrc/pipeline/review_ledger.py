import logging
from pathlib import Path
from typing import Iterable
from vrc.domain.models import ReasonCode


class ReviewLedger:
    """Append-only list of sources that failed automatic validation.

    One line per failure: `<source path> | <reason>, <reason>`.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)

    def reset(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("", encoding="utf-8")
        self.logger.info(f"Manual review ledger reset: {self.path}")

    def append(self, source_path: Path, reasons: Iterable[ReasonCode]):
        reason_text = ", ".join(r.value for r in reasons)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(f"{source_path} | {reason_text}\n")

    def entries(self):
        if not self.path.exists():
            return []
        return [line for line in self.path.read_text(encoding="utf-8").splitlines() if line.strip()]
