"""Acceptance policy for remuxed MP4 files.

A converted file is kept only when ffprobe confirms it is an MP4 container
carrying H.264 (avc1) video and AAC (mp4a) audio, with at least two streams
and a positive duration. Optionally the output size must stay within
`max_size_diff_bytes` of the source size; a stream copy should change the
size by little more than the container overhead.
"""

import math
from pathlib import Path
from typing import List, Optional
from vrc.domain.models import MediaInfo, ProbeStream, ReasonCode, ValidationResult
from vrc.infrastructure.ffprobe import FFprobeAdapter


def _has_stream(streams: List[ProbeStream], codec_type: str, codec_name: str, tag: str) -> bool:
    return any(
        s.codec_type == codec_type
        and s.codec_name == codec_name
        and s.codec_tag_string is not None
        and tag in s.codec_tag_string
        for s in streams
    )


class ProbeValidator:
    """Runs ffprobe on an output file and applies the acceptance predicates."""

    def __init__(self, ffprobe_adapter: FFprobeAdapter, max_size_diff_bytes: Optional[int] = None):
        self.ffprobe_adapter = ffprobe_adapter
        self.max_size_diff_bytes = max_size_diff_bytes

    def validate(self, info: Optional[MediaInfo], original_size: Optional[int] = None) -> ValidationResult:
        if info is None or info.format is None or info.streams is None:
            return ValidationResult(ok=False, failed_reasons=[ReasonCode.MISSING_FORMAT_OR_STREAMS])

        fmt = info.format
        streams = info.streams

        container_ok = fmt.format_name is not None and "mp4" in fmt.format_name
        video_ok = _has_stream(streams, "video", "h264", "avc1")
        audio_ok = _has_stream(streams, "audio", "aac", "mp4a")
        stream_count_ok = fmt.nb_streams is not None and fmt.nb_streams >= 2
        duration_ok = fmt.duration is not None and math.isfinite(fmt.duration) and fmt.duration > 0

        checks = [
            (container_ok, ReasonCode.CONTAINER_NOT_MP4),
            (video_ok, ReasonCode.VIDEO_NOT_H264_AVC1),
            (audio_ok, ReasonCode.AUDIO_NOT_AAC_MP4A),
            (stream_count_ok, ReasonCode.NB_STREAMS_LT_2),
            (duration_ok, ReasonCode.DURATION_INVALID),
        ]
        details = {
            "container_ok": container_ok,
            "video_ok": video_ok,
            "audio_ok": audio_ok,
            "nb_streams": fmt.nb_streams,
            "duration": fmt.duration,
        }

        if self.max_size_diff_bytes is not None and original_size is not None:
            size_delta = abs(fmt.size - original_size) if fmt.size is not None else None
            size_ok = size_delta is not None and size_delta <= self.max_size_diff_bytes
            checks.append((size_ok, ReasonCode.SIZE_DELTA_EXCEEDED))
            details["size_delta"] = size_delta

        failed = [reason for passed, reason in checks if not passed]
        return ValidationResult(ok=not failed, failed_reasons=failed, details=details)

    def check(self, file_path: Path, original_size: Optional[int] = None) -> ValidationResult:
        """Probes `file_path` and validates the result."""
        info = self.ffprobe_adapter.inspect(file_path)
        if info is not None and info.format is not None and info.format.size is None:
            try:
                info.format.size = file_path.stat().st_size
            except OSError:
                pass  # unknown size fails the size-delta check
        return self.validate(info, original_size)
