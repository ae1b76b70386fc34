import os
import pytest
import yaml
from pathlib import Path
from unittest.mock import MagicMock
from vrc.config.models import AppConfig
from vrc.domain.models import MediaInfo
from vrc.infrastructure.event_bus import EventBus

# Fixed, whole-second timestamps (ns) so every filesystem stores them exactly
BASE_MTIME_NS = 1_600_000_000 * 1_000_000_000
BASE_ATIME_NS = 1_650_000_000 * 1_000_000_000

# ============================================================================
# Helpers
# ============================================================================

def write_source(path: Path, size: int, mtime_offset_s: int = 0) -> Path:
    """Creates a dummy source file with a deterministic size and mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    mtime_ns = BASE_MTIME_NS + mtime_offset_s * 1_000_000_000
    os.utime(path, ns=(BASE_ATIME_NS, mtime_ns))
    return path

def probe_document(nb_streams=2, format_name="mov,mp4,m4a,3gp,3g2,mj2", duration="300.000000",
                   video=("h264", "avc1"), audio=("aac", "mp4a"), size=None):
    """Builds an ffprobe-style JSON document."""
    streams = []
    if video:
        streams.append({"index": 0, "codec_type": "video", "codec_name": video[0], "codec_tag_string": video[1]})
    if audio:
        streams.append({"index": 1, "codec_type": "audio", "codec_name": audio[0], "codec_tag_string": audio[1]})
    fmt = {"format_name": format_name, "nb_streams": nb_streams, "duration": duration}
    if size is not None:
        fmt["size"] = str(size)
    return {"streams": streams, "format": fmt}

def media_info(**kwargs) -> MediaInfo:
    return MediaInfo.model_validate(probe_document(**kwargs))

def make_fake_ffmpeg(returncode: int = 0, output_bytes: bytes = b"mp4 data", calls=None):
    """MagicMock standing in for FFmpegAdapter; writes the output on success."""
    ffmpeg = MagicMock()
    ffmpeg.last_stderr = ""

    def _remux(input_path, output_path):
        if calls is not None:
            calls.append(Path(input_path))
        if output_bytes is not None:
            Path(output_path).write_bytes(output_bytes)
        return returncode

    ffmpeg.remux.side_effect = _remux
    return ffmpeg

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def target_dir(tmp_path):
    """Creates the directory scanned for sources."""
    target = tmp_path / "live"
    target.mkdir()
    return target

@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "out"

@pytest.fixture
def sample_config(target_dir, output_dir):
    """Returns a sample AppConfig object for testing."""
    return AppConfig(
        general={
            "target_dir": str(target_dir),
            "output_dir": str(output_dir),
            "extensions": [".ts", ".flv"],
            "delete_source": True,
            "check_disk_space": True,
            "min_free_space_bytes": 1024,
            "max_batch_size_bytes": None,
            "debug": False,
        },
        tools={
            "ffmpeg": "ffmpeg",
            "ffprobe": "ffprobe",
        },
    )

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "vrc.yaml"

    content = {
        'general': {
            'target_dir': str(tmp_path / "live"),
            'output_dir': str(tmp_path / "out"),
            'extensions': ['ts', 'FLV'],
            'delete_source': False,
            'min_free_space_bytes': 2048,
            'max_batch_size_bytes': 1000000,
            'max_size_diff_bytes': 4096,
        },
        'tools': {
            'ffmpeg': '/opt/ffmpeg/bin/ffmpeg',
            'transcode_timeout_s': 600,
        }
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

# ============================================================================
# EventBus Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
