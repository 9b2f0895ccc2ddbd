import pytest

from venueguard.core.analytics.fusion import fuse
from venueguard.core.analytics.stampede import safe_result
from venueguard.core.analytics.summary import summarize_session
from venueguard.core.detectors.crowd import crowd_from_detections
from venueguard.core.detectors.fire import fire_from_detections
from venueguard.core.detectors.pose import unconscious_from_poses
from venueguard.core.types import (
    Detection,
    FrameAnalysisResult,
    FrameError,
    MovementStats,
    StampedeResult,
    TemporalPattern,
    UnconsciousPerson,
    UnconsciousResult,
)


def _result(frame_id, *, fire_side=0.0, person_side=0.0, unconscious=0, stampede_score=0.0):
    fire = fire_from_detections(
        [Detection((0.0, 0.0, fire_side, fire_side), 0.9, "fire")] if fire_side else [], 640, 640
    )
    crowd = crowd_from_detections(
        [Detection((0.0, 0.0, person_side, person_side), 0.9, "person")] if person_side else [],
        640,
        640,
        coverage_area_m2=100.0,
    )
    if unconscious:
        people = [
            UnconsciousPerson(
                person_id=0,
                bbox=(0.0, 0.0, 10.0, 10.0),
                confidence=0.9,
                unconscious_score=1.0,
                pose_type="FLAT_ON_GROUND",
                risk_level="CRITICAL",
                reasons=("COMPLETELY_FLAT_POSITION",),
            )
        ] * unconscious
        uncon = UnconsciousResult(
            total_persons=unconscious,
            unconscious_count=unconscious,
            unconscious_persons=people,
            overall_risk="EMERGENCY",
            alert_level="MEDIUM",
        )
    else:
        uncon = unconscious_from_poses([])
    if stampede_score:
        stampede = StampedeResult(
            is_stampede=stampede_score > 0.6,
            stampede_score=stampede_score,
            risk_level="HIGH" if stampede_score > 0.6 else "LOW",
            reasons=(),
            alert_level="CRITICAL" if stampede_score > 0.6 else "SAFE",
            movement_stats=MovementStats(),
            temporal_pattern=TemporalPattern(trend="STABLE"),
        )
    else:
        stampede = safe_result()
    fused = fuse(crowd, uncon, stampede)
    return FrameAnalysisResult(
        frame_id=frame_id,
        timestamp=frame_id * 0.5,
        fire=fire,
        crowd=crowd,
        unconscious=uncon,
        stampede=stampede,
        overall_risk=fused.overall_risk,
        emergency_priority=fused.emergency_priority,
    )


def test_quiet_session_is_low():
    summary = summarize_session([_result(0), _result(1)])
    assert summary.total_frames == 2
    assert summary.overall_fire_risk == "SAFE"
    assert summary.overall_risk_level == "LOW"
    assert summary.max_density_percentage == 0.0


def test_counters_and_averages_include_errored_frames():
    results = [
        _result(0, fire_side=400.0, person_side=256.0),  # HIGH fire, 16% density
        _result(1, person_side=160.0),  # 6.25%
        _result(2, unconscious=1, stampede_score=0.7),
    ]
    errors = [FrameError(frame_id=3, timestamp=1.5, kind="decode", message="bad jpeg")]
    summary = summarize_session(results, errors)

    assert summary.total_frames == 4
    assert summary.processed_frames == 3
    assert summary.errored_frames == 1
    assert summary.fire_detected_frames == 1
    assert summary.high_fire_risk_frames == 1
    assert summary.overall_fire_risk == "DETECTED"
    assert summary.average_people_per_frame == pytest.approx(0.5)
    assert summary.overcrowded_frames == 1
    assert summary.max_density_percentage == pytest.approx(16.0)
    assert summary.avg_density_percentage == pytest.approx(round(22.25 / 4, 1))
    assert summary.frames_with_unconscious_persons == 1
    assert summary.total_unconscious_detected == 1
    assert summary.max_unconscious_in_frame == 1
    assert summary.stampede_frames == 1
    assert summary.high_motion_frames == 1
    assert summary.avg_stampede_score == pytest.approx(round(0.7 / 4, 3))
    assert summary.high_density_frames == 1
    assert summary.high_risk_frames == 1
    # frame 2 has two threats -> CRITICAL, priority 1 -> IMMEDIATE
    assert summary.critical_frames == 1
    assert summary.immediate_response_frames == 1
    assert summary.overall_risk_level == "CRITICAL"


def test_session_level_follows_worst_frame():
    critical = summarize_session([_result(0, person_side=320.0)])
    assert critical.overall_risk_level == "CRITICAL"  # 25% density is a CRITICAL threat

    high = summarize_session([_result(0, person_side=256.0), _result(1)])
    assert high.overall_risk_level == "HIGH"

    moderate = summarize_session([_result(0, fire_side=400.0)])
    # fire is reported but does not enter fusion
    assert moderate.overall_risk_level == "MODERATE"


def test_empty_session():
    summary = summarize_session([])
    assert summary.total_frames == 0
    assert summary.average_people_per_frame == 0.0
    assert summary.overall_risk_level == "LOW"
