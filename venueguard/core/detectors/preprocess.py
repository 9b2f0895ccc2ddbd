"""Frame preprocessing for the ONNX detectors.

Decodes encoded image bytes with OpenCV, stretches the image to the square
model input ("fill" resize, aspect ratio is not preserved), scales pixel
values to [0, 1] and reorders HWC/BGR into the NCHW/RGB layout the exported
YOLO networks expect.
"""

from __future__ import annotations

import cv2
import numpy as np

from venueguard.core.errors import PreprocessError
from venueguard.core.types import Frame, PreparedFrame

INPUT_SIZE = 640


def decode_image(image_bytes: bytes) -> Frame:
    """Decode encoded image bytes (JPEG/PNG/...) into a BGR frame.

    Raises:
        PreprocessError: When the data is empty, corrupt or unsupported.
    """

    if not image_bytes:
        raise PreprocessError("empty image data")
    buf = np.frombuffer(image_bytes, dtype=np.uint8)
    try:
        frame = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    except cv2.error as exc:
        raise PreprocessError(f"cannot decode image: {exc}") from exc
    if frame is None or frame.size == 0:
        raise PreprocessError("cannot decode image: unsupported or corrupt data")
    return frame


def to_tensor(frame: Frame, size: int = INPUT_SIZE) -> np.ndarray:
    """Convert a BGR frame into a (1, 3, size, size) float32 tensor."""

    resized = cv2.resize(frame, (size, size), interpolation=cv2.INTER_LINEAR)
    rgb = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)
    chw = rgb.astype(np.float32).transpose(2, 0, 1) / 255.0
    return np.ascontiguousarray(chw[np.newaxis, ...], dtype=np.float32)


def preprocess_frame(frame: Frame, size: int = INPUT_SIZE) -> PreparedFrame:
    """Prepare an already-decoded frame for inference."""

    h, w = frame.shape[:2]
    return PreparedFrame(tensor=to_tensor(frame, size), width=int(w), height=int(h))


def preprocess(image_bytes: bytes, size: int = INPUT_SIZE) -> PreparedFrame:
    """Decode and prepare encoded image bytes for inference.

    The returned record keeps the original width/height so detection boxes can
    be mapped back to source-image coordinates.
    """

    return preprocess_frame(decode_image(image_bytes), size)
