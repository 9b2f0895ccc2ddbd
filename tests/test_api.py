import base64
from collections.abc import Iterator
from pathlib import Path

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient

from venueguard.api.main import app
from venueguard.api.routes import analysis
from venueguard.api.services import state
from venueguard.core.config.settings import BackendSettings
from venueguard.core.detectors.models import MODEL_KINDS, ModelRegistry
from venueguard.core.errors import FrameSourceError
from venueguard.core.geometry import compute_coverage
from venueguard.core.types import SampledFrame
from venueguard.core.video_sources.base import FrameSource

PROFILE = {"height": 8.0, "vertical_fov": 60.0, "horizontal_fov": 90.0, "tilt": 50.0}


def _png() -> bytes:
    ok, buf = cv2.imencode(".png", np.zeros((48, 64, 3), dtype=np.uint8))
    assert ok
    return buf.tobytes()


@pytest.fixture
def client(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("VG_CONFIG", str(tmp_path / "backend.config.yml"))
    monkeypatch.setattr(state, "_settings", BackendSettings())
    monkeypatch.setattr(state, "_registry", ModelRegistry.null())
    return TestClient(app)


class ListSource(FrameSource):
    def __init__(self, frames):
        self._frames = frames
        self.closed = False

    def frames(self) -> Iterator[SampledFrame]:
        yield from self._frames

    def close(self) -> None:
        self.closed = True


def test_health_endpoint(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_coverage_endpoint(client):
    res = client.post("/coverage", json=PROFILE)
    assert res.status_code == 200
    expected = compute_coverage(8.0, 60.0, 90.0, 50.0)
    assert res.json()["area"] == pytest.approx(expected.area, abs=1e-3)
    assert res.json()["near_distance"] == pytest.approx(expected.near_distance, abs=1e-3)


def test_coverage_rejects_invalid_profile(client):
    res = client.post("/coverage", json={**PROFILE, "height": 0})
    assert res.status_code == 422


def test_analyze_frame_is_stateless(client):
    payload = {"image_base64": base64.b64encode(_png()).decode("ascii"), "coverage_area_m2": 120.0}
    for _ in range(2):
        res = client.post("/analyze/frame", json=payload)
        assert res.status_code == 200
        data = res.json()
        assert data["stampede"]["temporal_pattern"]["trend"] == "NO_DATA"
        assert data["overall_risk"]["level"] == "SAFE"
        assert data["emergency_priority"]["level"] == 5
        assert data["crowd"]["coverage_area_m2"] == 120.0


def test_analyze_frame_rejects_bad_base64(client):
    res = client.post("/analyze/frame", json={"image_base64": "%%%", "coverage_area_m2": 10.0})
    assert res.status_code == 422


def test_analyze_frame_rejects_undecodable_image(client):
    payload = {"image_base64": base64.b64encode(b"hello").decode("ascii"), "coverage_area_m2": 10.0}
    res = client.post("/analyze/frame", json=payload)
    assert res.status_code == 422


def test_missing_models_return_503(client, tmp_path: Path, monkeypatch):
    registry = ModelRegistry({kind: tmp_path / f"{kind}.onnx" for kind in MODEL_KINDS})
    monkeypatch.setattr(state, "_registry", registry)
    payload = {"image_base64": base64.b64encode(_png()).decode("ascii"), "coverage_area_m2": 10.0}
    res = client.post("/analyze/frame", json=payload)
    assert res.status_code == 503


def test_analyze_session_reports_results_errors_and_summary(client, monkeypatch):
    frames = [
        SampledFrame(frame_id=0, timestamp=0.0, data=_png()),
        SampledFrame(frame_id=1, timestamp=0.5, data=b"broken"),
        SampledFrame(frame_id=2, timestamp=1.0, data=_png()),
    ]
    sources = []

    def _open(locator, interval=0.5, capture_seconds=30.0):
        src = ListSource(frames)
        sources.append((locator, interval, src))
        return src

    monkeypatch.setattr(analysis, "open_frame_source", _open)
    res = client.post(
        "/analyze/session",
        json={"source": "videos/hall.mp4", "camera_id": "hall-1", "profile": PROFILE, "max_frames": 0},
    )

    assert res.status_code == 200
    data = res.json()
    assert data["camera"]["camera_id"] == "hall-1"
    assert [r["frame_id"] for r in data["results"]] == [0, 2]
    assert data["errors"][0]["kind"] == "decode"
    assert data["summary"]["total_frames"] == 3
    assert data["summary"]["overall_risk_level"] == "LOW"
    assert data["sample_interval"] == 0.5
    locator, interval, src = sources[0]
    assert locator == "videos/hall.mp4"
    assert src.closed is True


def test_analyze_session_unopenable_source_is_422(client, monkeypatch):
    def _open(locator, interval=0.5, capture_seconds=30.0):
        raise FrameSourceError(f"Failed to open video source: {locator}")

    monkeypatch.setattr(analysis, "open_frame_source", _open)
    res = client.post("/analyze/session", json={"source": "nope.mp4", "profile": PROFILE})
    assert res.status_code == 422
    assert "nope.mp4" in res.json()["detail"]


def test_config_endpoints(client):
    res = client.get("/config")
    assert res.status_code == 200
    assert res.json()["density_mode"] == "raw_sum"

    res = client.get("/config/presets")
    assert [p["id"] for p in res.json()["presets"]] == ["fast_scan", "balanced", "thorough"]

    res = client.post("/config/presets/fast_scan")
    assert res.status_code == 200
    assert res.json()["max_frames"] == 5
    assert res.json()["sample_interval"] == 1.0

    res = client.post("/config/presets/turbo")
    assert res.status_code == 404
