import pytest
import json
import logging
import subprocess
from pathlib import Path
from unittest.mock import patch
from conftest import probe_document
from vrc.domain.errors import ProbeError
from vrc.infrastructure.ffprobe import FFprobeAdapter

def test_ffprobe_command():
    adapter = FFprobeAdapter(executable="/usr/local/bin/ffprobe")
    cmd = adapter._build_command(Path("out.mp4"))

    assert cmd[0] == "/usr/local/bin/ffprobe"
    assert cmd[-1] == "out.mp4"
    assert "-show_format" in cmd
    assert "-show_streams" in cmd
    assert cmd[cmd.index("-print_format") + 1] == "json=c=1"

def test_ffprobe_parse_streams():
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.stdout = json.dumps(probe_document(size=123456))
        mock_run.return_value.returncode = 0

        info = FFprobeAdapter().inspect(Path("clip.mp4"))

    assert info.format.format_name == "mov,mp4,m4a,3gp,3g2,mj2"
    assert info.format.nb_streams == 2
    assert info.format.duration == 300.0
    assert info.format.size == 123456
    assert [s.codec_type for s in info.streams] == ["video", "audio"]
    assert info.streams[0].codec_tag_string == "avc1"

def test_ffprobe_passes_timeout():
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.stdout = json.dumps(probe_document())
        mock_run.return_value.returncode = 0

        FFprobeAdapter(timeout_s=30).probe(Path("clip.mp4"))

    assert mock_run.call_args.kwargs["timeout"] == 30

def test_ffprobe_error_raises():
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.returncode = 1
        mock_run.return_value.stderr = "error"

        with pytest.raises(ProbeError):
            FFprobeAdapter().probe(Path("clip.mp4"))

def test_ffprobe_inspect_returns_none_and_logs(caplog):
    caplog.set_level(logging.ERROR)
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.returncode = 1
        mock_run.return_value.stderr = "moov atom not found"

        assert FFprobeAdapter().inspect(Path("clip.mp4")) is None

    assert any(r.levelno == logging.ERROR and "moov atom not found" in r.getMessage() for r in caplog.records)

def test_ffprobe_invalid_json():
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.returncode = 0
        mock_run.return_value.stdout = "{not json"

        assert FFprobeAdapter().inspect(Path("clip.mp4")) is None

def test_ffprobe_non_object_json():
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.returncode = 0
        mock_run.return_value.stdout = "[1, 2]"

        assert FFprobeAdapter().inspect(Path("clip.mp4")) is None

def test_ffprobe_missing_executable():
    with patch("subprocess.run", side_effect=FileNotFoundError("ffprobe")):
        with pytest.raises(ProbeError):
            FFprobeAdapter().probe(Path("clip.mp4"))

def test_ffprobe_timeout():
    with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="ffprobe", timeout=5)):
        assert FFprobeAdapter(timeout_s=5).inspect(Path("clip.mp4")) is None

def test_ffprobe_empty_document_has_no_sections():
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.returncode = 0
        mock_run.return_value.stdout = "{}"

        info = FFprobeAdapter().inspect(Path("clip.mp4"))

    assert info is not None
    assert info.format is None
    assert info.streams is None
