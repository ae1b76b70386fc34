import math
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

class ConversionOutcome(str, Enum):
    CONVERTED = "CONVERTED"
    SKIPPED_EXISTS = "SKIPPED_EXISTS"
    SOURCE_MISSING = "SOURCE_MISSING"
    TRANSCODE_FAILED = "TRANSCODE_FAILED"
    SPAWN_FAILED = "SPAWN_FAILED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    ERROR = "ERROR"  # unexpected exception caught at the worker boundary

class ReasonCode(str, Enum):
    MISSING_FORMAT_OR_STREAMS = "missing_format_or_streams"
    CONTAINER_NOT_MP4 = "container_not_mp4"
    VIDEO_NOT_H264_AVC1 = "video_stream_not_h264_avc1"
    AUDIO_NOT_AAC_MP4A = "audio_stream_not_aac_mp4a"
    NB_STREAMS_LT_2 = "nb_streams_lt_2"
    DURATION_INVALID = "duration_invalid"
    SIZE_DELTA_EXCEEDED = "size_delta_exceeded"

class FileTask(BaseModel):
    """A source file selected for conversion, with the timestamps to restore."""

    model_config = ConfigDict(frozen=True)

    path: Path
    size_bytes: int
    mtime_ns: int
    atime_ns: int

    @property
    def modified_at(self) -> datetime:
        return datetime.fromtimestamp(self.mtime_ns / 1e9)

    @property
    def accessed_at(self) -> datetime:
        return datetime.fromtimestamp(self.atime_ns / 1e9)

class Batch(BaseModel):
    tasks: List[FileTask] = Field(default_factory=list)
    max_bytes: Optional[int] = None
    limit_reached: bool = False

    @property
    def total_bytes(self) -> int:
        return sum(t.size_bytes for t in self.tasks)

def _lenient_number(value: Any, cast):
    if value is None:
        return None
    try:
        return cast(value)
    except (TypeError, ValueError, OverflowError):
        return None

class ProbeFormat(BaseModel):
    """`format` section of an ffprobe JSON document."""

    model_config = ConfigDict(extra="ignore")

    format_name: Optional[str] = None
    nb_streams: Optional[int] = None
    duration: Optional[float] = None
    size: Optional[int] = None

    @field_validator("format_name", mode="before")
    @classmethod
    def _text_only(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None

    @field_validator("nb_streams", "size", mode="before")
    @classmethod
    def _parse_int(cls, v: Any) -> Optional[int]:
        if isinstance(v, float):
            return int(v) if math.isfinite(v) else None
        return _lenient_number(v, int)

    @field_validator("duration", mode="before")
    @classmethod
    def _parse_float(cls, v: Any) -> Optional[float]:
        return _lenient_number(v, float)

class ProbeStream(BaseModel):
    model_config = ConfigDict(extra="ignore")

    codec_type: Optional[str] = None
    codec_name: Optional[str] = None
    codec_tag_string: Optional[str] = None

    @field_validator("codec_type", "codec_name", "codec_tag_string", mode="before")
    @classmethod
    def _text_only(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None

class MediaInfo(BaseModel):
    """Typed view of `ffprobe -show_format -show_streams` output."""

    model_config = ConfigDict(extra="ignore")

    format: Optional[ProbeFormat] = None
    streams: Optional[List[ProbeStream]] = None

class ValidationResult(BaseModel):
    ok: bool
    failed_reasons: List[ReasonCode] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def reason_text(self) -> str:
        return ", ".join(r.value for r in self.failed_reasons)

class RunSummary(BaseModel):
    attempted: int = 0
    converted: int = 0
    skipped: int = 0
    failed: int = 0
    needs_review: int = 0
    aborted: bool = False
    abort_reason: Optional[str] = None

    def record(self, outcome: ConversionOutcome) -> None:
        if outcome == ConversionOutcome.CONVERTED:
            self.converted += 1
        elif outcome in (ConversionOutcome.SKIPPED_EXISTS, ConversionOutcome.SOURCE_MISSING):
            self.skipped += 1
        elif outcome == ConversionOutcome.VALIDATION_FAILED:
            self.needs_review += 1
        else:
            self.failed += 1
