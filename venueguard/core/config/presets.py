from __future__ import annotations

from typing import Any


# Sampling presets. Each one is a settings patch trading coverage of the
# session against CPU time.
#
# Notes:
# - sample_interval: seconds between analyzed frames
# - max_frames: per-session cap; 0 means "every sampled frame"
# - parallel_detectors: run fire/crowd/pose concurrently on each frame


PRESETS: dict[str, dict[str, Any]] = {
    # Quick look at a camera: few, widely spaced frames.
    "fast_scan": {
        "sample_interval": 1.0,
        "max_frames": 5,
        "capture_seconds": 10.0,
        "parallel_detectors": False,
    },
    # Default sampling policy.
    "balanced": {
        "sample_interval": 0.5,
        "max_frames": 10,
        "capture_seconds": 30.0,
        "parallel_detectors": False,
    },
    # Dense sampling of the whole window; the stampede history fills faster.
    "thorough": {
        "sample_interval": 0.25,
        "max_frames": 0,
        "capture_seconds": 60.0,
        "parallel_detectors": True,
    },
}


PRESET_LABELS: dict[str, str] = {
    "fast_scan": "Fast scan",
    "balanced": "Balanced",
    "thorough": "Thorough",
}


def list_presets() -> list[dict[str, Any]]:
    return [
        {
            "id": preset_id,
            "label": PRESET_LABELS.get(preset_id, preset_id),
            "settings": PRESETS[preset_id],
        }
        for preset_id in PRESETS
    ]


def preset_patch(preset_id: str) -> dict[str, Any]:
    if preset_id not in PRESETS:
        raise KeyError(preset_id)
    return dict(PRESETS[preset_id])
