"""Person detection and crowd density estimation.

Density is the share of the frame covered by person boxes, projected onto the
camera's real-world coverage area:

    area_coverage_ratio = total_person_area / frame_area
    occupied_real_area  = area_coverage_ratio * coverage_area_m2
    density_percentage  = occupied_real_area / coverage_area_m2 * 100

The last line reduces to `area_coverage_ratio * 100`, so the percentage does
not depend on the coverage value; only `occupied_real_area` does. Boxes are
decoded into source-image pixels, and because the fill-resize scales each axis
independently, `total_person_area / (width * height)` equals the ratio over
the 640x640 model input.

In the default "raw_sum" mode overlapping person boxes are double counted.
The "union" mode rasterizes the boxes and counts covered pixels once.
"""

from __future__ import annotations

import numpy as np

from venueguard.core.detectors.models import InferenceModel
from venueguard.core.detectors.postprocess import decode
from venueguard.core.detectors.preprocess import INPUT_SIZE, preprocess
from venueguard.core.types import CrowdResult, Detection, PreparedFrame

PERSON_CLASSES = ("person", "undefined")
CROWD_CONF_THRESHOLD = 0.1  # recall over precision
CROWD_IOU_THRESHOLD = 0.5
OVERCROWDED_THRESHOLD = 15.0
DENSITY_MODES = ("raw_sum", "union")


def density_level(density_percentage: float) -> str:
    # 20% exactly is already critical; the lower bands are exclusive.
    if density_percentage >= 20:
        return "CRITICAL"
    if density_percentage > 15:
        return "HIGH"
    if density_percentage > 10:
        return "MODERATE"
    if density_percentage > 5:
        return "LOW"
    return "MINIMAL"


def union_area(detections: list[Detection], width: int, height: int) -> float:
    """Count frame pixels covered by at least one box."""

    if not detections or width <= 0 or height <= 0:
        return 0.0
    mask = np.zeros((height, width), dtype=np.uint8)
    for det in detections:
        x1, y1, x2, y2 = det.bbox
        c1 = int(np.clip(np.floor(x1), 0, width))
        r1 = int(np.clip(np.floor(y1), 0, height))
        c2 = int(np.clip(np.ceil(x2), 0, width))
        r2 = int(np.clip(np.ceil(y2), 0, height))
        if c2 > c1 and r2 > r1:
            mask[r1:r2, c1:c2] = 1
    return float(np.count_nonzero(mask))


def crowd_from_detections(
    detections: list[Detection],
    width: int,
    height: int,
    coverage_area_m2: float,
    density_mode: str = "raw_sum",
) -> CrowdResult:
    """Compute occupancy figures from decoded detections (non-person labels are dropped)."""

    if density_mode not in DENSITY_MODES:
        raise ValueError("density_mode must be raw_sum|union")

    persons = [d for d in detections if d.label == "person"]
    if density_mode == "union":
        total_area = union_area(persons, width, height)
    else:
        total_area = float(sum(d.area for d in persons))

    frame_area = float(width * height)
    ratio = total_area / frame_area if frame_area > 0 else 0.0
    occupied = ratio * coverage_area_m2
    density_percentage = ratio * 100.0

    return CrowdResult(
        person_count=len(persons),
        total_person_area=total_area,
        area_coverage_ratio=ratio,
        occupied_real_area=occupied,
        density_percentage=density_percentage,
        density_level=density_level(density_percentage),
        is_overcrowded=density_percentage > OVERCROWDED_THRESHOLD,
        coverage_area_m2=coverage_area_m2,
        detections=persons,
    )


class CrowdDetector:
    """Person detector plus density projection onto the coverage area."""

    def __init__(
        self,
        model: InferenceModel,
        conf: float = CROWD_CONF_THRESHOLD,
        iou_threshold: float = CROWD_IOU_THRESHOLD,
        density_mode: str = "raw_sum",
        input_size: int = INPUT_SIZE,
    ) -> None:
        if density_mode not in DENSITY_MODES:
            raise ValueError("density_mode must be raw_sum|union")
        self.model = model
        self.conf = conf
        self.iou_threshold = iou_threshold
        self.density_mode = density_mode
        self.input_size = input_size

    def detect_people(self, frame: PreparedFrame) -> list[Detection]:
        raw = self.model.run(frame.tensor)
        return decode(
            raw,
            frame.width,
            frame.height,
            PERSON_CLASSES,
            self.conf,
            iou_threshold=self.iou_threshold,
            input_size=self.input_size,
        )

    def analyze(self, frame: PreparedFrame, coverage_area_m2: float) -> CrowdResult:
        return crowd_from_detections(
            self.detect_people(frame),
            frame.width,
            frame.height,
            coverage_area_m2,
            density_mode=self.density_mode,
        )

    def detect_overcrowding(self, image_bytes: bytes, coverage_area_m2: float) -> CrowdResult:
        """Decode an encoded image and estimate crowd density for it."""

        return self.analyze(preprocess(image_bytes, self.input_size), coverage_area_m2)
