"""Shared YOLO output decoding and non-max suppression.

Exported YOLO detection heads emit a `[batch, 4 + num_classes, num_boxes]`
tensor: box center/size in model-input pixels followed by one score per class.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from venueguard.core.errors import InferenceError
from venueguard.core.types import BBox, Detection

DEFAULT_IOU_THRESHOLD = 0.5
UNKNOWN_LABEL = "undefined"


def bbox_area(bbox: BBox) -> float:
    x1, y1, x2, y2 = bbox
    return max(0.0, x2 - x1) * max(0.0, y2 - y1)


def iou(a: BBox, b: BBox) -> float:
    """Compute the intersection-over-union (IoU) of two axis-aligned boxes."""

    x1 = max(a[0], b[0])
    y1 = max(a[1], b[1])
    x2 = min(a[2], b[2])
    y2 = min(a[3], b[3])
    inter = max(0.0, x2 - x1) * max(0.0, y2 - y1)
    if inter <= 0.0:
        return 0.0
    union = bbox_area(a) + bbox_area(b) - inter
    if union <= 0.0:
        return 0.0
    return inter / union


def nms(detections: Sequence[Detection], iou_threshold: float) -> list[Detection]:
    """Greedy NMS: keep the best box, drop any box overlapping it above the threshold."""

    if not detections:
        return []

    order = sorted(detections, key=lambda d: d.confidence, reverse=True)
    kept: list[Detection] = []
    suppressed = [False] * len(order)
    for i, det in enumerate(order):
        if suppressed[i]:
            continue
        kept.append(det)
        for j in range(i + 1, len(order)):
            if suppressed[j]:
                continue
            if iou(det.bbox, order[j].bbox) > iou_threshold:
                suppressed[j] = True
    return kept


def output_rows(raw_output: np.ndarray, min_channels: int = 5) -> np.ndarray:
    """Return a `[num_boxes, channels]` view of a `[1, channels, num_boxes]` tensor."""

    out = np.asarray(raw_output, dtype=np.float32)
    if out.ndim == 3:
        out = out[0]
    if out.ndim != 2 or out.shape[0] < min_channels:
        raise InferenceError(f"unexpected detector output shape: {np.shape(raw_output)}")
    return out.T


def label_for(class_id: int, class_names: Sequence[str]) -> str:
    if 0 <= class_id < len(class_names):
        return class_names[class_id]
    return UNKNOWN_LABEL


def decode(
    raw_output: np.ndarray,
    orig_w: int,
    orig_h: int,
    class_names: Sequence[str],
    conf_threshold: float,
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
    input_size: int = 640,
) -> list[Detection]:
    """Decode a raw YOLO detection tensor into NMS-filtered detections.

    Args:
        raw_output: Network output shaped `[1, 4 + C, N]`.
        orig_w: Width of the source image in pixels.
        orig_h: Height of the source image in pixels.
        class_names: Labels indexed by class id; ids past the end map to
            `"undefined"`.
        conf_threshold: Minimum (exclusive) best-class score to keep a box.
        iou_threshold: Overlap above which lower-confidence boxes are dropped.
        input_size: Square model input size the boxes are expressed in.

    Returns:
        Detections in source-image pixel coordinates, highest confidence first.
    """

    rows = output_rows(raw_output)
    if rows.shape[0] == 0:
        return []

    scores = rows[:, 4:]
    confs = scores.max(axis=1)
    keep = confs > conf_threshold
    if not np.any(keep):
        return []

    rows = rows[keep]
    confs = confs[keep]
    class_ids = scores[keep].argmax(axis=1)

    sx = float(orig_w) / float(input_size)
    sy = float(orig_h) / float(input_size)
    cx, cy, w, h = rows[:, 0], rows[:, 1], rows[:, 2], rows[:, 3]
    x1 = (cx - w / 2.0) * sx
    y1 = (cy - h / 2.0) * sy
    x2 = (cx + w / 2.0) * sx
    y2 = (cy + h / 2.0) * sy

    candidates = [
        Detection(
            bbox=(float(x1[i]), float(y1[i]), float(x2[i]), float(y2[i])),
            confidence=float(confs[i]),
            label=label_for(int(class_ids[i]), class_names),
        )
        for i in range(rows.shape[0])
    ]
    return nms(candidates, iou_threshold)
