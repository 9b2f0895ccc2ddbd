import numpy as np
import pytest

from venueguard.core.detectors import pose as pose_mod
from venueguard.core.detectors.pose import (
    UnconsciousDetector,
    alert_level,
    analyze_pose,
    average_point,
    decode_pose_output,
    unconscious_from_poses,
)
from venueguard.core.errors import InferenceError
from venueguard.core.types import PoseDetection, PreparedFrame


def _keypoints(points):
    """17x3 keypoints from {index: (x, y)}; listed points get confidence 0.9."""

    kp = np.zeros((17, 3), dtype=np.float32)
    for idx, (x, y) in points.items():
        kp[idx] = (x, y, 0.9)
    return kp


STANDING = _keypoints(
    {
        pose_mod.NOSE: (100, 50),
        pose_mod.LEFT_SHOULDER: (90, 100),
        pose_mod.RIGHT_SHOULDER: (110, 100),
        pose_mod.LEFT_ELBOW: (85, 150),
        pose_mod.RIGHT_ELBOW: (115, 150),
        pose_mod.LEFT_HIP: (95, 200),
        pose_mod.RIGHT_HIP: (105, 200),
        pose_mod.LEFT_ANKLE: (95, 300),
        pose_mod.RIGHT_ANKLE: (105, 300),
    }
)

LYING_FLAT = _keypoints(
    {
        pose_mod.NOSE: (50, 300),
        pose_mod.LEFT_SHOULDER: (100, 295),
        pose_mod.RIGHT_SHOULDER: (100, 305),
        pose_mod.LEFT_ELBOW: (150, 310),
        pose_mod.RIGHT_ELBOW: (150, 300),
        pose_mod.LEFT_HIP: (200, 300),
        pose_mod.RIGHT_HIP: (200, 310),
        pose_mod.LEFT_ANKLE: (350, 305),
        pose_mod.RIGHT_ANKLE: (350, 315),
    }
)


def _person(keypoints, bbox=(0.0, 0.0, 400.0, 400.0), confidence=0.9):
    return PoseDetection(bbox=bbox, confidence=confidence, label="person", keypoints=keypoints)


def test_standing_person_scores_zero():
    analysis = analyze_pose(STANDING)
    assert analysis.score == 0.0
    assert analysis.reasons == []
    assert analysis.pose_type == "STANDING"
    assert analysis.risk_level == "LOW"
    assert analysis.is_unconscious_likely is False


def test_lying_flat_person_is_likely_unconscious():
    analysis = analyze_pose(LYING_FLAT)
    assert analysis.score == pytest.approx(1.0)
    assert analysis.reasons == ["HORIZONTAL_BODY_POSITION", "COMPLETELY_FLAT_POSITION"]
    assert analysis.pose_type == "FLAT_ON_GROUND"
    assert analysis.risk_level == "CRITICAL"
    assert analysis.is_unconscious_likely is True


def test_head_below_hips_and_raised_elbow():
    kp = STANDING.copy()
    kp[pose_mod.NOSE] = (100, 250, 0.9)  # below the hips (y grows downward)
    kp[pose_mod.LEFT_ELBOW] = (85, 40, 0.9)  # 60px above the shoulder
    analysis = analyze_pose(kp)

    assert analysis.reasons == ["HEAD_BELOW_HIPS", "UNNATURAL_LIMB_POSITION"]
    assert analysis.pose_type == "COLLAPSED"
    assert analysis.score == pytest.approx(0.8)
    # exactly 0.8 is not above the threshold
    assert analysis.is_unconscious_likely is False
    assert analysis.risk_level == "MEDIUM"


def test_low_confidence_keypoints_are_ignored():
    kp = LYING_FLAT.copy()
    kp[pose_mod.LEFT_ANKLE, 2] = 0.1
    kp[pose_mod.RIGHT_ANKLE, 2] = 0.1
    analysis = analyze_pose(kp)
    # without ankles neither the horizontal nor the flat heuristic applies
    assert analysis.score == 0.0


def test_average_point_uses_confident_points_only():
    assert average_point([np.array([10.0, 20.0, 0.9]), np.array([30.0, 40.0, 0.1])]) == (
        10.0,
        20.0,
        pytest.approx(0.9),
    )
    assert average_point([np.array([10.0, 20.0, 0.2])]) is None


@pytest.mark.parametrize("count, level", [(0, "LOW"), (1, "MEDIUM"), (2, "HIGH"), (3, "CRITICAL")])
def test_alert_levels(count, level):
    assert alert_level(count) == level


def test_only_the_top_scoring_person_is_reported():
    collapsed = LYING_FLAT.copy()
    collapsed[pose_mod.NOSE] = (50, 320, 0.9)  # adds HEAD_BELOW_HIPS
    result = unconscious_from_poses(
        [_person(STANDING), _person(LYING_FLAT), _person(collapsed, confidence=0.7)]
    )

    assert result.total_persons == 3
    assert result.unconscious_count == 1
    top = result.unconscious_persons[0]
    assert top.person_id == 2
    assert top.unconscious_score == pytest.approx(1.5)
    assert result.overall_risk == "EMERGENCY"
    assert result.alert_level == "MEDIUM"
    assert len(result.emergency_alerts) == 1
    assert result.emergency_alerts[0].type == "UNCONSCIOUS_PERSON_DETECTED"
    assert result.emergency_alerts[0].severity == "CRITICAL"


def test_nobody_unconscious_is_safe():
    result = unconscious_from_poses([_person(STANDING)])
    assert result.unconscious_count == 0
    assert result.overall_risk == "SAFE"
    assert result.alert_level == "LOW"
    assert result.emergency_alerts == []


def _pose_tensor(people):
    """[1, 56, N] channel-first tensor from (cx, cy, w, h, conf, keypoints) tuples."""

    out = np.zeros((1, 56, len(people)), dtype=np.float32)
    for i, (cx, cy, w, h, conf, kp) in enumerate(people):
        out[0, :5, i] = (cx, cy, w, h, conf)
        out[0, 5:, i] = kp.reshape(-1)
    return out


def test_decode_pose_output_rescales_boxes_and_keypoints():
    raw = _pose_tensor([(320, 320, 200, 400, 0.9, STANDING)])
    people = decode_pose_output(raw, 1280, 640)

    assert len(people) == 1
    assert people[0].bbox == pytest.approx((440.0, 120.0, 840.0, 520.0))
    assert people[0].keypoints[pose_mod.NOSE, 0] == pytest.approx(200.0)
    assert people[0].keypoints[pose_mod.NOSE, 1] == pytest.approx(50.0)


def test_decode_pose_output_filters_confidence_and_visibility():
    sparse = np.zeros((17, 3), dtype=np.float32)
    sparse[:4] = (10, 10, 0.9)  # only four visible keypoints
    raw = _pose_tensor(
        [
            (100, 100, 50, 100, 0.5, STANDING),  # below 0.6
            (400, 300, 50, 100, 0.9, sparse),
            (300, 300, 100, 200, 0.95, STANDING),
        ]
    )
    people = decode_pose_output(raw, 640, 640)
    assert [p.confidence for p in people] == [pytest.approx(0.95)]


def test_decode_pose_output_accepts_row_major_xyxy():
    raw = np.zeros((1, 2, 56), dtype=np.float32)
    raw[0, 0, :5] = (10, 20, 110, 220, 0.9)
    raw[0, 0, 5:] = STANDING.reshape(-1)
    people = decode_pose_output(raw, 640, 640)
    assert len(people) == 1
    assert people[0].bbox == pytest.approx((10.0, 20.0, 110.0, 220.0))


def test_decode_pose_output_rejects_bad_shape():
    with pytest.raises(InferenceError):
        decode_pose_output(np.zeros((1, 10, 3), dtype=np.float32), 640, 640)


class FakeModel:
    def __init__(self, output):
        self.output = output

    def run(self, tensor):
        return self.output


def test_unconscious_detector_end_to_end():
    raw = _pose_tensor(
        [(320, 320, 400, 100, 0.9, LYING_FLAT), (100, 300, 60, 300, 0.85, STANDING)]
    )
    frame = PreparedFrame(tensor=np.zeros((1, 3, 640, 640), dtype=np.float32), width=640, height=640)
    result = UnconsciousDetector(FakeModel(raw)).analyze(frame)

    assert result.total_persons == 2
    assert result.unconscious_count == 1
    assert result.unconscious_persons[0].pose_type == "FLAT_ON_GROUND"
