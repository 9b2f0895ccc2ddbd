"""Shared type definitions used across the pipeline.

This module intentionally centralizes small, stable records (camera geometry,
detections, per-detector results and the fused per-frame analysis) so the
detectors, the stampede tracker and the fusion engine stay strongly typed.
Every field is always present; optional data uses `None` rather than missing
keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

Frame = np.ndarray

BBox = tuple[float, float, float, float]
Point = tuple[float, float]
Keypoint = tuple[float, float, float]


@dataclass(frozen=True)
class CameraProfile:
    """Static mounting geometry of one camera (metres / degrees)."""

    height: float
    vertical_fov: float
    horizontal_fov: float
    tilt: float

    def __post_init__(self) -> None:
        if not self.height > 0:
            raise ValueError("height must be > 0")
        for name in ("vertical_fov", "horizontal_fov"):
            value = getattr(self, name)
            if not 0.0 <= value <= 180.0:
                raise ValueError(f"{name} must be in [0, 180]")


@dataclass(frozen=True)
class CoverageArea:
    """Ground trapezoid seen by a camera."""

    near_distance: float
    far_distance: float
    near_width: float
    far_width: float
    area: float


@dataclass(frozen=True)
class CameraContext:
    """Camera identity plus geometry for a processing session."""

    camera_id: str
    profile: CameraProfile
    location: str | None = None


@dataclass(frozen=True)
class Detection:
    """One detected object in original-image pixel coordinates."""

    bbox: BBox
    confidence: float
    label: str

    @property
    def center(self) -> Point:
        x1, y1, x2, y2 = self.bbox
        return ((x1 + x2) / 2.0, (y1 + y2) / 2.0)

    @property
    def area(self) -> float:
        x1, y1, x2, y2 = self.bbox
        return (x2 - x1) * (y2 - y1)


@dataclass(frozen=True, eq=False)
class PoseDetection(Detection):
    """Person detection with 17 COCO keypoints (rows of x, y, confidence)."""

    keypoints: np.ndarray = field(default_factory=lambda: np.zeros((17, 3), dtype=np.float32))


@dataclass(frozen=True)
class PreparedFrame:
    """Model-ready tensor plus the source image size."""

    tensor: np.ndarray  # shape: (1, 3, S, S) float32 in [0, 1]
    width: int
    height: int


@dataclass(frozen=True)
class SampledFrame:
    """Encoded frame produced by a frame source."""

    frame_id: int
    timestamp: float  # offset in the source, seconds
    data: bytes


@dataclass(frozen=True)
class FireResult:
    intensity: float
    fire_detected: bool
    risk_level: str
    detections: list[Detection] = field(default_factory=list)


@dataclass(frozen=True)
class CrowdResult:
    """Occupancy estimate for one frame.

    `detections` is the person list consumed by the stampede detector.
    """

    person_count: int
    total_person_area: float
    area_coverage_ratio: float
    occupied_real_area: float
    density_percentage: float
    density_level: str
    is_overcrowded: bool
    coverage_area_m2: float
    detections: list[Detection] = field(default_factory=list)


@dataclass(frozen=True)
class UnconsciousPerson:
    person_id: int
    bbox: BBox
    confidence: float
    unconscious_score: float
    pose_type: str
    risk_level: str
    reasons: tuple[str, ...]


@dataclass(frozen=True)
class EmergencyAlert:
    type: str
    severity: str
    confidence: float
    pose_type: str
    reasons: tuple[str, ...]
    bbox: BBox


@dataclass(frozen=True)
class UnconsciousResult:
    total_persons: int
    unconscious_count: int
    unconscious_persons: list[UnconsciousPerson]
    overall_risk: str
    alert_level: str
    emergency_alerts: list[EmergencyAlert] = field(default_factory=list)


@dataclass(frozen=True)
class MovementStats:
    total_movements: int = 0
    average_movement: float = 0.0
    high_movement_count: int = 0
    person_count: int = 0


@dataclass(frozen=True)
class TemporalPattern:
    trend: str
    sustained_movement: bool = False
    avg_recent_score: float | None = None
    is_escalating: bool = False
    is_calming: bool = False


@dataclass(frozen=True)
class StampedeResult:
    is_stampede: bool
    stampede_score: float
    risk_level: str
    reasons: tuple[str, ...]
    alert_level: str
    movement_stats: MovementStats
    temporal_pattern: TemporalPattern


@dataclass(frozen=True)
class Threat:
    type: str
    severity: str
    description: str
    score: float


@dataclass(frozen=True)
class OverallRisk:
    level: str
    description: str
    immediate_action: str
    threats: list[Threat]
    risk_score: float


@dataclass(frozen=True)
class EmergencyPriority:
    level: int
    classification: str
    description: str
    response_time: str


@dataclass(frozen=True)
class FrameAnalysisResult:
    """Fused assessment of one processed frame."""

    frame_id: int
    timestamp: float
    fire: FireResult
    crowd: CrowdResult
    unconscious: UnconsciousResult
    stampede: StampedeResult
    overall_risk: OverallRisk
    emergency_priority: EmergencyPriority


@dataclass(frozen=True)
class FrameError:
    """Marker for a frame that could not be analyzed."""

    frame_id: int
    timestamp: float
    kind: str
    message: str
