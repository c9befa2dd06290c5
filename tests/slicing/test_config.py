from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from slicewise.config import ConfigManager
from slicewise.slicing.config import SlicerConfig
from slicewise.slicing.dates import Resolution


def test_defaults():
    config = SlicerConfig()
    assert config.mode == "date"
    assert config.size == 5000
    assert config.time_resolution is Resolution.SECONDS
    assert config.interval_delta is None


def test_bounds_parsed_as_utc():
    config = SlicerConfig(start="2024-01-01T00:00:00", end="2024-01-02T00:00:00Z", interval="2hrs")
    assert config.start == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert config.end - config.start == timedelta(days=1)
    assert config.interval_delta == timedelta(hours=2)


def test_subslice_by_key_requires_type():
    with pytest.raises(ValidationError, match="type parameter of the documents must also be set"):
        SlicerConfig(subslice_by_key=True)


def test_start_must_precede_end():
    with pytest.raises(ValidationError, match="must be before end"):
        SlicerConfig(start="2024-01-02T00:00:00Z", end="2024-01-01T00:00:00Z")


def test_malformed_interval_rejected():
    with pytest.raises(ValidationError, match="malformed"):
        SlicerConfig(interval="12 parsecs")


def test_key_range_symbols_must_belong_to_alphabet():
    with pytest.raises(ValidationError, match="not part of the hexadecimal alphabet"):
        SlicerConfig(mode="id", key_range=["a", "g"])
    SlicerConfig(mode="id", key_type="base64url", key_range=["g", "Z"])


def test_id_mode_cursor_limits():
    with pytest.raises(ValidationError, match="cannot be more the length of key_range"):
        SlicerConfig(mode="id", slicers=2, key_range=["a"])
    with pytest.raises(ValidationError, match="cannot be more than 16"):
        SlicerConfig(mode="id", slicers=20)
    with pytest.raises(ValidationError, match="cannot be more than 64"):
        SlicerConfig(mode="id", slicers=70, key_type="base64url")
    assert SlicerConfig(mode="id", slicers=20, key_type="base64url").slicers == 20


def test_date_mode_ignores_key_cursor_limits():
    assert SlicerConfig(slicers=20).slicers == 20


def test_unknown_options_rejected():
    with pytest.raises(ValidationError):
        SlicerConfig(sise=10)


def test_config_manager_layers(tmp_path, monkeypatch):
    job_file = tmp_path / "job.yaml"
    job_file.write_text(
        "job_id: nightly\n"
        "slicer:\n"
        "  mode: id\n"
        "  size: 100\n"
        "  key_range: [a, b, c]\n"
    )
    monkeypatch.setenv("SLICEWISE_SIZE", "250")
    monkeypatch.delenv("SLICEWISE_JOB_ID", raising=False)

    config = ConfigManager.load(job_file, {"slicer": {"slicers": 3}})

    assert config.job_id == "nightly"
    assert config.slicer.mode == "id"
    assert config.slicer.size == 250
    assert config.slicer.slicers == 3
    assert config.slicer.key_range == ["a", "b", "c"]
    assert config.checkpoint_store == "memory://"


def test_config_manager_missing_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("SLICEWISE_SIZE", raising=False)
    config = ConfigManager.load(tmp_path / "absent.yaml")
    assert config.job_id == "default"
    assert config.slicer.size == 5000


def test_config_manager_surfaces_invalid_combinations(monkeypatch):
    monkeypatch.delenv("SLICEWISE_TYPE", raising=False)
    with pytest.raises(ValueError):
        ConfigManager.load(override={"slicer": {"subslice_by_key": True}})
