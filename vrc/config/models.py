from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

GIB = 1024 ** 3

class GeneralConfig(BaseModel):
    target_dir: Optional[str] = None
    output_dir: Optional[str] = None  # None: write next to the sources, in target_dir
    log_path: Optional[str] = None  # None: <output_dir>/conversion.log
    review_path: Optional[str] = None  # None: <output_dir>/manual_review.txt
    extensions: List[str] = Field(default_factory=lambda: [".ts", ".flv"])
    delete_source: bool = True
    reset_review_ledger: bool = False
    check_disk_space: bool = True
    min_free_space_bytes: int = Field(default=GIB, ge=0)
    max_batch_size_bytes: Optional[int] = Field(default=None, gt=0)
    max_size_diff_bytes: Optional[int] = Field(default=None, ge=0)
    debug: bool = False

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        normalized = []
        for ext in v:
            ext = ext.strip().lower()
            if not ext:
                continue
            if not ext.startswith("."):
                ext = f".{ext}"
            if ext == ".mp4":
                raise ValueError("'.mp4' cannot be a source extension (it is the output container)")
            if ext not in normalized:
                normalized.append(ext)
        if not normalized:
            raise ValueError("extensions must contain at least one entry")
        return normalized

    def target_path(self) -> Path:
        if not self.target_dir:
            raise ValueError("target_dir is not set")
        return Path(self.target_dir)

    def output_path(self) -> Path:
        return Path(self.output_dir) if self.output_dir else self.target_path()

    def log_file(self) -> Path:
        return Path(self.log_path) if self.log_path else self.output_path() / "conversion.log"

    def review_file(self) -> Path:
        return Path(self.review_path) if self.review_path else self.output_path() / "manual_review.txt"

class ToolsConfig(BaseModel):
    """External executables and their deadlines."""
    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    faststart: bool = True  # +genpts and +faststart container flags
    transcode_timeout_s: Optional[float] = Field(default=None, gt=0)
    probe_timeout_s: Optional[float] = Field(default=120.0, gt=0)

class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
