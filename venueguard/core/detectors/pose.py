"""Pose-based unconscious-person detection.

A YOLO pose network yields person boxes with 17 COCO keypoints. Each person is
scored against four additive posture heuristics; a score above 0.8 marks the
person as likely unconscious.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from venueguard.core.detectors.models import InferenceModel
from venueguard.core.detectors.postprocess import nms
from venueguard.core.detectors.preprocess import INPUT_SIZE, preprocess
from venueguard.core.errors import InferenceError
from venueguard.core.types import (
    EmergencyAlert,
    Keypoint,
    PoseDetection,
    PreparedFrame,
    UnconsciousPerson,
    UnconsciousResult,
)

logger = logging.getLogger(__name__)

# COCO keypoint indices.
NOSE = 0
LEFT_EYE, RIGHT_EYE = 1, 2
LEFT_EAR, RIGHT_EAR = 3, 4
LEFT_SHOULDER, RIGHT_SHOULDER = 5, 6
LEFT_ELBOW, RIGHT_ELBOW = 7, 8
LEFT_WRIST, RIGHT_WRIST = 9, 10
LEFT_HIP, RIGHT_HIP = 11, 12
LEFT_KNEE, RIGHT_KNEE = 13, 14
LEFT_ANKLE, RIGHT_ANKLE = 15, 16

NUM_KEYPOINTS = 17
POSE_CHANNELS = 5 + NUM_KEYPOINTS * 3
POSE_CONF_THRESHOLD = 0.6
POSE_IOU_THRESHOLD = 0.3
KEYPOINT_CONF_THRESHOLD = 0.3
MIN_VISIBLE_KEYPOINTS = 5
UNCONSCIOUS_THRESHOLD = 0.8
# Only the top-scoring person is reported per frame to keep alerts quiet.
MAX_REPORTED_PERSONS = 1

ELBOW_RAISE_PX = 30.0
FLAT_SPREAD_PX = 50.0


@dataclass
class PoseAnalysis:
    """Unconsciousness assessment of one person."""

    score: float = 0.0
    reasons: list[str] = field(default_factory=list)
    pose_type: str = "STANDING"
    risk_level: str = "LOW"
    is_unconscious_likely: bool = False


def _pose_rows(raw_output: np.ndarray) -> tuple[np.ndarray, bool]:
    """Return `[num_people, 56]` rows and whether boxes are center/size encoded.

    Raw pose heads are channel-first (`[1, 56, N]`, cx/cy/w/h); end-to-end
    exports with built-in NMS are row-major (`[1, N, 56]`, x1/y1/x2/y2).
    """

    out = np.asarray(raw_output, dtype=np.float32)
    if out.ndim == 3:
        out = out[0]
    if out.ndim != 2:
        raise InferenceError(f"unexpected pose output shape: {np.shape(raw_output)}")
    if out.shape[0] == POSE_CHANNELS and out.shape[1] != POSE_CHANNELS:
        return out.T, True
    if out.shape[1] >= POSE_CHANNELS:
        return out, False
    raise InferenceError(f"unexpected pose output shape: {np.shape(raw_output)}")


def decode_pose_output(
    raw_output: np.ndarray,
    orig_w: int,
    orig_h: int,
    conf_threshold: float = POSE_CONF_THRESHOLD,
    iou_threshold: float = POSE_IOU_THRESHOLD,
    input_size: int = INPUT_SIZE,
) -> list[PoseDetection]:
    """Decode a pose tensor into NMS-filtered people with visible keypoints."""

    rows, center_format = _pose_rows(raw_output)
    sx = float(orig_w) / float(input_size)
    sy = float(orig_h) / float(input_size)

    people: list[PoseDetection] = []
    for row in rows:
        confidence = float(row[4])
        if confidence <= conf_threshold:
            continue
        a, b, c, d = (float(v) for v in row[:4])
        if center_format:
            x1, y1, x2, y2 = a - c / 2.0, b - d / 2.0, a + c / 2.0, b + d / 2.0
        else:
            x1, y1, x2, y2 = a, b, c, d
        if x2 <= x1 or y2 <= y1:
            continue

        kpts = row[5:POSE_CHANNELS].reshape(NUM_KEYPOINTS, 3).astype(np.float32)
        if int(np.count_nonzero(kpts[:, 2] > KEYPOINT_CONF_THRESHOLD)) < MIN_VISIBLE_KEYPOINTS:
            continue
        kpts[:, 0] *= sx
        kpts[:, 1] *= sy
        people.append(
            PoseDetection(
                bbox=(x1 * sx, y1 * sy, x2 * sx, y2 * sy),
                confidence=confidence,
                label="person",
                keypoints=kpts,
            )
        )

    return [p for p in nms(people, iou_threshold) if isinstance(p, PoseDetection)]


def average_point(points: list[np.ndarray]) -> Keypoint | None:
    """Average the keypoints whose confidence exceeds the visibility threshold."""

    valid = [p for p in points if p is not None and float(p[2]) > KEYPOINT_CONF_THRESHOLD]
    if not valid:
        return None
    arr = np.asarray(valid, dtype=np.float64)
    return float(arr[:, 0].mean()), float(arr[:, 1].mean()), float(arr[:, 2].mean())


def has_unnatural_limbs(keypoints: np.ndarray) -> bool:
    """True when either elbow sits well above its shoulder (arm twisted up)."""

    for elbow_i, shoulder_i in ((LEFT_ELBOW, LEFT_SHOULDER), (RIGHT_ELBOW, RIGHT_SHOULDER)):
        elbow = keypoints[elbow_i]
        shoulder = keypoints[shoulder_i]
        if elbow[2] > KEYPOINT_CONF_THRESHOLD and shoulder[2] > KEYPOINT_CONF_THRESHOLD:
            if elbow[1] < shoulder[1] - ELBOW_RAISE_PX:
                return True
    return False


def pose_risk_level(score: float) -> str:
    if score > 0.9:
        return "CRITICAL"
    if score > 0.8:
        return "HIGH"
    if score > 0.6:
        return "MEDIUM"
    return "LOW"


def analyze_pose(keypoints: np.ndarray) -> PoseAnalysis:
    """Score a 17x3 keypoint array for signs of unconsciousness."""

    kp = np.asarray(keypoints, dtype=np.float64)
    analysis = PoseAnalysis()

    nose = kp[NOSE]
    shoulder = average_point([kp[LEFT_SHOULDER], kp[RIGHT_SHOULDER]])
    hip = average_point([kp[LEFT_HIP], kp[RIGHT_HIP]])
    ankle = average_point([kp[LEFT_ANKLE], kp[RIGHT_ANKLE]])

    if shoulder and hip and ankle:
        body_length = abs(shoulder[0] - ankle[0])
        body_height = abs(shoulder[1] - ankle[1])
        if body_length > body_height * 1.5:
            analysis.score += 0.6
            analysis.reasons.append("HORIZONTAL_BODY_POSITION")
            analysis.pose_type = "LYING_DOWN"

    if nose[2] > KEYPOINT_CONF_THRESHOLD and hip:
        # Image y grows downward: a larger y is lower in the frame.
        if nose[1] > hip[1]:
            analysis.score += 0.5
            analysis.reasons.append("HEAD_BELOW_HIPS")
            analysis.pose_type = "COLLAPSED"

    if has_unnatural_limbs(kp):
        analysis.score += 0.3
        analysis.reasons.append("UNNATURAL_LIMB_POSITION")

    if shoulder and hip and ankle:
        ys = [float(nose[1]), shoulder[1], hip[1], ankle[1]]
        if max(ys) - min(ys) < FLAT_SPREAD_PX:
            analysis.score += 0.4
            analysis.reasons.append("COMPLETELY_FLAT_POSITION")
            analysis.pose_type = "FLAT_ON_GROUND"

    analysis.is_unconscious_likely = analysis.score > UNCONSCIOUS_THRESHOLD
    analysis.risk_level = pose_risk_level(analysis.score)
    return analysis


def alert_level(unconscious_count: int) -> str:
    if unconscious_count >= 3:
        return "CRITICAL"
    if unconscious_count >= 2:
        return "HIGH"
    if unconscious_count >= 1:
        return "MEDIUM"
    return "LOW"


def unconscious_from_poses(poses: list[PoseDetection]) -> UnconsciousResult:
    """Score every person and report the single most likely unconscious one."""

    candidates: list[UnconsciousPerson] = []
    for index, person in enumerate(poses):
        analysis = analyze_pose(person.keypoints)
        if not analysis.is_unconscious_likely:
            continue
        candidates.append(
            UnconsciousPerson(
                person_id=index,
                bbox=person.bbox,
                confidence=person.confidence,
                unconscious_score=analysis.score,
                pose_type=analysis.pose_type,
                risk_level=analysis.risk_level,
                reasons=tuple(analysis.reasons),
            )
        )

    candidates.sort(key=lambda p: p.unconscious_score, reverse=True)
    reported = candidates[:MAX_REPORTED_PERSONS]
    return UnconsciousResult(
        total_persons=len(poses),
        unconscious_count=len(reported),
        unconscious_persons=reported,
        overall_risk="EMERGENCY" if reported else "SAFE",
        alert_level=alert_level(len(reported)),
        emergency_alerts=[
            EmergencyAlert(
                type="UNCONSCIOUS_PERSON_DETECTED",
                severity=p.risk_level,
                confidence=p.unconscious_score,
                pose_type=p.pose_type,
                reasons=p.reasons,
                bbox=p.bbox,
            )
            for p in reported
        ],
    )


class UnconsciousDetector:
    """Runs the pose network and scores detected people."""

    def __init__(
        self,
        model: InferenceModel,
        conf: float = POSE_CONF_THRESHOLD,
        iou_threshold: float = POSE_IOU_THRESHOLD,
        input_size: int = INPUT_SIZE,
    ) -> None:
        self.model = model
        self.conf = conf
        self.iou_threshold = iou_threshold
        self.input_size = input_size

    def detect_poses(self, frame: PreparedFrame) -> list[PoseDetection]:
        raw = self.model.run(frame.tensor)
        poses = decode_pose_output(
            raw,
            frame.width,
            frame.height,
            conf_threshold=self.conf,
            iou_threshold=self.iou_threshold,
            input_size=self.input_size,
        )
        logger.debug("Detected %d valid poses with keypoints", len(poses))
        return poses

    def analyze(self, frame: PreparedFrame) -> UnconsciousResult:
        return unconscious_from_poses(self.detect_poses(frame))

    def detect_unconscious_persons(self, image_bytes: bytes) -> UnconsciousResult:
        """Decode an encoded image and look for unconscious people in it."""

        return self.analyze(preprocess(image_bytes, self.input_size))
