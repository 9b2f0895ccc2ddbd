"""Pydantic models for the HTTP API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CameraProfileSchema(BaseModel):
    """Camera mounting geometry (metres / degrees)."""

    height: float = Field(gt=0.0)
    vertical_fov: float = Field(ge=0.0, le=180.0)
    horizontal_fov: float = Field(ge=0.0, le=180.0)
    tilt: float


class CoverageSchema(BaseModel):
    near_distance: float
    far_distance: float
    near_width: float
    far_width: float
    area: float


class DetectionSchema(BaseModel):
    bbox: tuple[float, float, float, float]
    confidence: float
    label: str


class FireSchema(BaseModel):
    intensity: float
    fire_detected: bool
    risk_level: str
    detections: list[DetectionSchema]


class CrowdSchema(BaseModel):
    person_count: int
    total_person_area: float
    area_coverage_ratio: float
    occupied_real_area: float
    density_percentage: float
    density_level: str
    is_overcrowded: bool
    coverage_area_m2: float
    detections: list[DetectionSchema]


class UnconsciousPersonSchema(BaseModel):
    person_id: int
    bbox: tuple[float, float, float, float]
    confidence: float
    unconscious_score: float
    pose_type: str
    risk_level: str
    reasons: list[str]


class EmergencyAlertSchema(BaseModel):
    type: str
    severity: str
    confidence: float
    pose_type: str
    reasons: list[str]
    bbox: tuple[float, float, float, float]


class UnconsciousSchema(BaseModel):
    total_persons: int
    unconscious_count: int
    unconscious_persons: list[UnconsciousPersonSchema]
    overall_risk: str
    alert_level: str
    emergency_alerts: list[EmergencyAlertSchema]


class MovementStatsSchema(BaseModel):
    total_movements: int
    average_movement: float
    high_movement_count: int
    person_count: int


class TemporalPatternSchema(BaseModel):
    trend: str
    sustained_movement: bool
    avg_recent_score: float | None = None
    is_escalating: bool
    is_calming: bool


class StampedeSchema(BaseModel):
    is_stampede: bool
    stampede_score: float
    risk_level: str
    reasons: list[str]
    alert_level: str
    movement_stats: MovementStatsSchema
    temporal_pattern: TemporalPatternSchema


class ThreatSchema(BaseModel):
    type: str
    severity: str
    description: str
    score: float


class OverallRiskSchema(BaseModel):
    level: str
    description: str
    immediate_action: str
    threats: list[ThreatSchema]
    risk_score: float


class EmergencyPrioritySchema(BaseModel):
    level: int
    classification: str
    description: str
    response_time: str


class FrameAnalysisSchema(BaseModel):
    """Fused per-frame assessment payload."""

    frame_id: int
    timestamp: float
    fire: FireSchema
    crowd: CrowdSchema
    unconscious: UnconsciousSchema
    stampede: StampedeSchema
    overall_risk: OverallRiskSchema
    emergency_priority: EmergencyPrioritySchema


class FrameErrorSchema(BaseModel):
    frame_id: int
    timestamp: float
    kind: str
    message: str


class CameraSchema(BaseModel):
    camera_id: str
    profile: CameraProfileSchema
    location: str | None = None


class SessionSummarySchema(BaseModel):
    """Session aggregate counters payload."""

    total_frames: int
    processed_frames: int
    errored_frames: int
    fire_detected_frames: int
    high_fire_risk_frames: int
    overall_fire_risk: str
    average_people_per_frame: float
    overcrowded_frames: int
    high_density_frames: int
    max_density_percentage: float
    avg_density_percentage: float
    frames_with_unconscious_persons: int
    total_unconscious_detected: int
    max_unconscious_in_frame: int
    stampede_frames: int
    high_motion_frames: int
    avg_stampede_score: float
    critical_frames: int
    high_risk_frames: int
    immediate_response_frames: int
    overall_risk_level: str


class SessionReportSchema(BaseModel):
    camera: CameraSchema
    coverage: CoverageSchema
    sample_interval: float
    results: list[FrameAnalysisSchema]
    errors: list[FrameErrorSchema]
    summary: SessionSummarySchema


class FrameRequest(BaseModel):
    """Single-frame analysis request."""

    image_base64: str = Field(min_length=1)
    coverage_area_m2: float = Field(ge=0.0)
    frame_id: int = 0
    timestamp: float = 0.0


class SessionRequest(BaseModel):
    """Camera-processing session request.

    `sample_interval` / `max_frames` / `capture_seconds` fall back to the
    backend settings when omitted.
    """

    source: str = Field(min_length=1, description="video path/URL or stream URL")
    camera_id: str = "camera-1"
    location: str | None = None
    profile: CameraProfileSchema
    sample_interval: float | None = Field(default=None, gt=0.0)
    max_frames: int | None = Field(default=None, ge=0)
    capture_seconds: float | None = Field(default=None, gt=0.0)

    @field_validator("source")
    @classmethod
    def _validate_source(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("source must not be blank")
        return v2


class ConfigSchema(BaseModel):
    """Runtime configuration payload."""

    model_config = ConfigDict(protected_namespaces=())

    model_dir: str
    fire_model: str
    person_model: str
    pose_model: str
    input_size: int
    fire_confidence: float
    fire_iou: float
    crowd_confidence: float
    crowd_iou: float
    pose_confidence: float
    pose_iou: float
    sample_interval: float
    max_frames: int
    capture_seconds: float
    density_mode: str
    parallel_detectors: bool
    log_level: str
