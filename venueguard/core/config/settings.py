"""Backend configuration.

Settings are loaded from YAML defaults and overridden by environment variables
prefixed with `VG_`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _check_unit_interval(name: str, v: float, *, open_low: bool = True) -> float:
    v = float(v)
    ok = (0.0 < v <= 1.0) if open_low else (0.0 <= v <= 1.0)
    if not ok:
        raise ValueError(f"{name} must be in {'(0' if open_low else '[0'}, 1]")
    return v


class BackendSettings(BaseSettings):
    """Runtime configuration loaded from YAML defaults and `VG_` env overrides."""

    # Directory holding the three exported ONNX networks.
    model_dir: str = "models"
    fire_model: str = "fire.onnx"
    person_model: str = "yolov8n.onnx"
    pose_model: str = "yolo11n-pose.onnx"
    input_size: int = 640

    fire_confidence: float = 0.25
    fire_iou: float = 0.45
    # Low on purpose: missing a person is worse than a false box.
    crowd_confidence: float = 0.1
    crowd_iou: float = 0.5
    pose_confidence: float = 0.6
    pose_iou: float = 0.3

    sample_interval: float = Field(0.5, description="seconds between sampled frames")
    # Per-session frame cap; 0 processes every sampled frame.
    max_frames: int = 10
    capture_seconds: float = Field(30.0, description="live stream capture window")
    density_mode: str = Field("raw_sum", description="raw_sum|union")
    parallel_detectors: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="VG_", validate_assignment=True, protected_namespaces=()
    )

    @field_validator("fire_confidence", "crowd_confidence", "pose_confidence")
    @classmethod
    def _validate_confidence(cls, v: float, info) -> float:
        return _check_unit_interval(info.field_name, v)

    @field_validator("fire_iou", "crowd_iou", "pose_iou")
    @classmethod
    def _validate_iou(cls, v: float, info) -> float:
        return _check_unit_interval(info.field_name, v, open_low=False)

    @field_validator("input_size")
    @classmethod
    def _validate_input_size(cls, v: int) -> int:
        if v <= 0 or v % 32 != 0:
            raise ValueError("input_size must be a positive multiple of 32")
        return v

    @field_validator("sample_interval")
    @classmethod
    def _validate_sample_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("sample_interval must be > 0")
        return float(v)

    @field_validator("max_frames")
    @classmethod
    def _validate_max_frames(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_frames must be >= 0")
        return v

    @field_validator("capture_seconds")
    @classmethod
    def _validate_capture_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("capture_seconds must be > 0")
        return float(v)

    @field_validator("density_mode")
    @classmethod
    def _validate_density_mode(cls, v: str) -> str:
        v2 = str(v).strip().lower()
        if v2 not in {"raw_sum", "union"}:
            raise ValueError("density_mode must be raw_sum|union")
        return v2

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        v2 = str(v).strip().upper()
        if v2 not in LOG_LEVELS:
            raise ValueError("log_level must be DEBUG|INFO|WARNING|ERROR|CRITICAL")
        return v2


def settings_to_dict(settings: BackendSettings) -> dict[str, Any]:
    """Convert settings to a plain dict."""

    return cast(dict[str, Any], settings.model_dump())


def _config_path() -> Path:
    """Return the YAML configuration path (defaults to config/backend.config.yml)."""

    return Path(os.getenv("VG_CONFIG", "config/backend.config.yml"))


def load_settings() -> BackendSettings:
    """Load settings from YAML and environment variables.

    YAML provides defaults; environment variables override.
    """

    data: dict[str, Any] = {}
    path = _config_path()
    if path.exists():
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    env_settings = BackendSettings()
    env_overrides: dict[str, Any] = {
        name: getattr(env_settings, name) for name in env_settings.model_fields_set
    }

    merged = {**data, **env_overrides}
    return BackendSettings(**merged)
