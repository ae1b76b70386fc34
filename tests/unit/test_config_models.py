import pytest
from pathlib import Path
from pydantic import ValidationError
from vrc.config.models import AppConfig, GeneralConfig, ToolsConfig, GIB
from vrc.config.loader import load_config

def test_general_config_defaults():
    config = GeneralConfig()

    assert config.extensions == [".ts", ".flv"]
    assert config.delete_source is True
    assert config.reset_review_ledger is False
    assert config.check_disk_space is True
    assert config.min_free_space_bytes == GIB
    assert config.max_batch_size_bytes is None
    assert config.max_size_diff_bytes is None

def test_tools_config_defaults():
    tools = ToolsConfig()

    assert tools.ffmpeg == "ffmpeg"
    assert tools.ffprobe == "ffprobe"
    assert tools.faststart is True
    assert tools.transcode_timeout_s is None

def test_extensions_are_normalized():
    config = GeneralConfig(extensions=["TS", ".Flv", "ts", " "])
    assert config.extensions == [".ts", ".flv"]

def test_mp4_extension_rejected():
    with pytest.raises(ValidationError):
        GeneralConfig(extensions=[".mp4"])

def test_empty_extensions_rejected():
    with pytest.raises(ValidationError):
        GeneralConfig(extensions=[])

@pytest.mark.parametrize("field, value", [
    ("min_free_space_bytes", -1),
    ("max_batch_size_bytes", 0),
    ("max_size_diff_bytes", -5),
])
def test_negative_limits_rejected(field, value):
    with pytest.raises(ValidationError):
        GeneralConfig(**{field: value})

def test_derived_paths_default_to_output_dir(tmp_path):
    config = GeneralConfig(target_dir=str(tmp_path / "live"), output_dir=str(tmp_path / "out"))

    assert config.output_path() == tmp_path / "out"
    assert config.log_file() == tmp_path / "out" / "conversion.log"
    assert config.review_file() == tmp_path / "out" / "manual_review.txt"

def test_output_defaults_to_target(tmp_path):
    config = GeneralConfig(target_dir=str(tmp_path / "live"))
    assert config.output_path() == tmp_path / "live"

def test_explicit_log_and_review_paths(tmp_path):
    config = GeneralConfig(
        target_dir=str(tmp_path),
        log_path=str(tmp_path / "logs" / "run.log"),
        review_path=str(tmp_path / "review.txt"),
    )
    assert config.log_file() == tmp_path / "logs" / "run.log"
    assert config.review_file() == tmp_path / "review.txt"

def test_target_path_requires_value():
    with pytest.raises(ValueError):
        GeneralConfig().target_path()

def test_load_config(config_yaml_path, tmp_path):
    config = load_config(config_yaml_path)

    assert isinstance(config, AppConfig)
    assert config.general.target_dir == str(tmp_path / "live")
    assert config.general.extensions == [".ts", ".flv"]
    assert config.general.delete_source is False
    assert config.general.max_batch_size_bytes == 1000000
    assert config.general.max_size_diff_bytes == 4096
    assert config.tools.ffmpeg == "/opt/ffmpeg/bin/ffmpeg"
    assert config.tools.ffprobe == "ffprobe"
    assert config.tools.transcode_timeout_s == 600

def test_load_flat_config(tmp_path):
    conf = tmp_path / "flat.yaml"
    conf.write_text("target_dir: /srv/live\ndelete_source: false\n")

    config = load_config(conf)

    assert config.general.target_dir == "/srv/live"
    assert config.general.delete_source is False

def test_load_empty_config(tmp_path):
    conf = tmp_path / "empty.yaml"
    conf.write_text("")

    assert load_config(conf) == AppConfig()

def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")

def test_load_config_rejects_non_mapping(tmp_path):
    conf = tmp_path / "list.yaml"
    conf.write_text("- a\n- b\n")

    with pytest.raises(ValueError):
        load_config(conf)

def test_sample_config_file_loads():
    sample = Path(__file__).resolve().parents[2] / "conf" / "vrc.yaml"
    config = load_config(sample)

    assert config.general.extensions == [".ts", ".flv"]
    assert config.general.max_batch_size_bytes == 214748364800
