"""Exception hierarchy for the remux pipeline.

Adapters raise these; `ConversionWorker` stops every per-file error at its
boundary and `BatchRunner` turns the fatal preconditions into an aborted run.
Validation failures are not exceptions, see `ValidationResult`.
"""


class VrcError(Exception):
    """Base class for all vrc errors."""


class FatalPreconditionError(VrcError):
    """Run cannot start: missing target directory or not enough free space."""


class ProbeError(VrcError):
    """ffprobe or the free-space query could not produce an answer."""


class TranscodeError(VrcError):
    """ffmpeg did not produce a usable output."""


class TranscodeTimeout(TranscodeError):
    """ffmpeg exceeded its deadline and was terminated."""


class SpawnError(VrcError):
    """External tool executable is missing or cannot be launched."""
