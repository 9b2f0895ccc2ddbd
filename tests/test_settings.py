from pathlib import Path

import pytest

from venueguard.core.config import settings as cfg
from venueguard.core.config.presets import PRESETS, list_presets, preset_patch


def test_load_settings_reads_updated_file(tmp_path: Path, monkeypatch):
    conf_path = tmp_path / "config.yml"
    conf_path.write_text("sample_interval: 1.0\nmax_frames: 4\n", encoding="utf-8")
    monkeypatch.setenv("VG_CONFIG", str(conf_path))

    first = cfg.load_settings()
    assert first.sample_interval == 1.0
    assert first.max_frames == 4

    conf_path.write_text("sample_interval: 0.25\nmax_frames: 0\n", encoding="utf-8")

    second = cfg.load_settings()
    assert second.sample_interval == 0.25
    assert second.max_frames == 0


def test_env_overrides_yaml(tmp_path: Path, monkeypatch):
    conf_path = tmp_path / "config.yml"
    conf_path.write_text("max_frames: 4\ndensity_mode: union\n", encoding="utf-8")
    monkeypatch.setenv("VG_CONFIG", str(conf_path))
    monkeypatch.setenv("VG_MAX_FRAMES", "12")

    settings = cfg.load_settings()
    assert settings.max_frames == 12
    assert settings.density_mode == "union"


def test_missing_config_file_uses_defaults(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("VG_CONFIG", str(tmp_path / "nope.yml"))
    settings = cfg.load_settings()

    assert settings.input_size == 640
    assert settings.crowd_confidence == 0.1
    assert settings.pose_confidence == 0.6
    assert settings.sample_interval == 0.5
    assert settings.max_frames == 10
    assert settings.density_mode == "raw_sum"


def test_confidence_and_iou_validation():
    with pytest.raises(ValueError):
        cfg.BackendSettings(crowd_confidence=0.0)
    with pytest.raises(ValueError):
        cfg.BackendSettings(fire_confidence=1.5)
    with pytest.raises(ValueError):
        cfg.BackendSettings(pose_iou=-0.1)
    assert cfg.BackendSettings(fire_iou=0.0).fire_iou == 0.0


def test_sampling_validation():
    with pytest.raises(ValueError):
        cfg.BackendSettings(sample_interval=0)
    with pytest.raises(ValueError):
        cfg.BackendSettings(max_frames=-1)
    with pytest.raises(ValueError):
        cfg.BackendSettings(capture_seconds=0)
    with pytest.raises(ValueError):
        cfg.BackendSettings(input_size=100)


def test_density_mode_and_log_level_are_normalized():
    settings = cfg.BackendSettings(density_mode=" UNION ", log_level="debug")
    assert settings.density_mode == "union"
    assert settings.log_level == "DEBUG"
    with pytest.raises(ValueError):
        cfg.BackendSettings(density_mode="median")
    with pytest.raises(ValueError):
        cfg.BackendSettings(log_level="chatty")


def test_settings_to_dict_round_trips():
    settings = cfg.BackendSettings(max_frames=3)
    data = cfg.settings_to_dict(settings)
    assert data["max_frames"] == 3
    assert cfg.BackendSettings(**data).model_dump() == settings.model_dump()


def test_presets_are_valid_settings_patches():
    ids = [p["id"] for p in list_presets()]
    assert ids == ["fast_scan", "balanced", "thorough"]
    for preset_id in PRESETS:
        settings = cfg.BackendSettings(**preset_patch(preset_id))
        assert settings.sample_interval > 0


def test_unknown_preset_raises_key_error():
    with pytest.raises(KeyError):
        preset_patch("turbo")


def test_preset_patch_is_a_copy():
    patch = preset_patch("balanced")
    patch["max_frames"] = 99
    assert PRESETS["balanced"]["max_frames"] == 10
