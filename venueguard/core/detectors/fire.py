"""Fire/smoke detection and scene fire intensity."""

from __future__ import annotations

import numpy as np

from venueguard.core.detectors.models import InferenceModel
from venueguard.core.detectors.postprocess import decode
from venueguard.core.detectors.preprocess import INPUT_SIZE
from venueguard.core.types import Detection, FireResult

FIRE_CLASSES = ("fire", "smoke")
FIRE_CONF_THRESHOLD = 0.25
FIRE_IOU_THRESHOLD = 0.45
# Fraction of the frame covered by fire boxes above which fire is reported.
FIRE_DETECTED_THRESHOLD = 0.1
FIRE_HIGH_RISK_THRESHOLD = 0.3


def fire_risk_level(intensity: float, fire_detected: bool) -> str:
    if fire_detected and intensity > FIRE_HIGH_RISK_THRESHOLD:
        return "HIGH"
    if fire_detected:
        return "MEDIUM"
    return "LOW"


def fire_from_detections(detections: list[Detection], width: int, height: int) -> FireResult:
    """Turn fire/smoke boxes into an intensity ratio.

    Only "fire" boxes count toward the covered area; smoke is detected but
    ignored for intensity.
    """

    fire_boxes = [d for d in detections if d.label == "fire"]
    fire_area = sum(d.area for d in fire_boxes)
    frame_area = float(width * height)
    intensity = fire_area / frame_area if frame_area > 0 else 0.0
    fire_detected = intensity > FIRE_DETECTED_THRESHOLD
    return FireResult(
        intensity=intensity,
        fire_detected=fire_detected,
        risk_level=fire_risk_level(intensity, fire_detected),
        detections=list(detections),
    )


class FireDetector:
    """Runs the fire/smoke network on a prepared tensor."""

    def __init__(
        self,
        model: InferenceModel,
        conf: float = FIRE_CONF_THRESHOLD,
        iou_threshold: float = FIRE_IOU_THRESHOLD,
        input_size: int = INPUT_SIZE,
    ) -> None:
        self.model = model
        self.conf = conf
        self.iou_threshold = iou_threshold
        self.input_size = input_size

    def detect(self, tensor: np.ndarray, width: int, height: int) -> list[Detection]:
        raw = self.model.run(tensor)
        return decode(
            raw,
            width,
            height,
            FIRE_CLASSES,
            self.conf,
            iou_threshold=self.iou_threshold,
            input_size=self.input_size,
        )

    def detect_fire_intensity(self, tensor: np.ndarray, width: int, height: int) -> FireResult:
        """Return the fire intensity (fire-box area / frame area) for one frame."""

        return fire_from_detections(self.detect(tensor, width, height), width, height)
