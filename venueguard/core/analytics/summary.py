"""Session-level aggregation of per-frame analyses."""

from __future__ import annotations

from dataclasses import dataclass

from venueguard.core.types import CameraContext, CoverageArea, FrameAnalysisResult, FrameError


@dataclass(frozen=True)
class SessionSummary:
    """Aggregate counters over one camera-processing session.

    Averages are taken over every frame in the session, including frames that
    could not be analyzed.
    """

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


@dataclass(frozen=True)
class SessionReport:
    camera: CameraContext
    coverage: CoverageArea
    sample_interval: float
    results: list[FrameAnalysisResult]
    errors: list[FrameError]
    summary: SessionSummary


def summarize_session(
    results: list[FrameAnalysisResult],
    errors: list[FrameError] | None = None,
) -> SessionSummary:
    """Aggregate per-frame results (and error markers) into session counters."""

    errors = errors or []
    total = len(results) + len(errors)
    denom = float(total) if total else 1.0

    fire_frames = [r for r in results if r.fire.fire_detected]
    overcrowded = [r for r in results if r.crowd.is_overcrowded]
    unconscious = [r for r in results if r.unconscious.unconscious_count > 0]
    stampedes = [r for r in results if r.stampede.is_stampede]
    critical = [r for r in results if r.overall_risk.level == "CRITICAL"]
    high = [r for r in results if r.overall_risk.level == "HIGH"]
    densities = [r.crowd.density_percentage for r in results]

    if critical:
        overall = "CRITICAL"
    elif high:
        overall = "HIGH"
    elif fire_frames or overcrowded or unconscious or stampedes:
        overall = "MODERATE"
    else:
        overall = "LOW"

    return SessionSummary(
        total_frames=total,
        processed_frames=len(results),
        errored_frames=len(errors),
        fire_detected_frames=len(fire_frames),
        high_fire_risk_frames=sum(1 for r in results if r.fire.risk_level == "HIGH"),
        overall_fire_risk="DETECTED" if fire_frames else "SAFE",
        average_people_per_frame=round(sum(r.crowd.person_count for r in results) / denom, 1),
        overcrowded_frames=len(overcrowded),
        high_density_frames=sum(1 for r in results if r.crowd.density_level == "HIGH"),
        max_density_percentage=round(max(densities, default=0.0), 1),
        avg_density_percentage=round(sum(densities) / denom, 1),
        frames_with_unconscious_persons=len(unconscious),
        total_unconscious_detected=sum(r.unconscious.unconscious_count for r in results),
        max_unconscious_in_frame=max((r.unconscious.unconscious_count for r in results), default=0),
        stampede_frames=len(stampedes),
        high_motion_frames=sum(1 for r in results if r.stampede.risk_level == "HIGH"),
        avg_stampede_score=round(sum(r.stampede.stampede_score for r in results) / denom, 3),
        critical_frames=len(critical),
        high_risk_frames=len(high),
        immediate_response_frames=sum(
            1 for r in results if r.emergency_priority.response_time == "IMMEDIATE"
        ),
        overall_risk_level=overall,
    )
