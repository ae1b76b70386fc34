import pytest
from collections import namedtuple
from unittest.mock import patch
from vrc.domain.errors import ProbeError
from vrc.infrastructure.disk_space import DiskSpaceGuard

Usage = namedtuple("Usage", "total used free")

def test_available_bytes_real_volume(tmp_path):
    assert DiskSpaceGuard().available_bytes(tmp_path) >= 0

def test_available_bytes_reports_free():
    with patch("shutil.disk_usage", return_value=Usage(100, 60, 40)):
        assert DiskSpaceGuard().available_bytes("/data") == 40

def test_missing_path_raises_probe_error(tmp_path):
    with pytest.raises(ProbeError):
        DiskSpaceGuard().available_bytes(tmp_path / "missing")

def test_query_failure_raises_probe_error():
    with patch("shutil.disk_usage", side_effect=OSError("unsupported")):
        with pytest.raises(ProbeError):
            DiskSpaceGuard().available_bytes("/data")
