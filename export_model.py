"""Export the fire, person and pose YOLO weights to ONNX (CPU-only).

The detectors expect 640x640 inputs. Weights are looked up in `VG_WEIGHTS_DIR`
(default `weights/`) and the exported files are moved to the configured
`model_dir` under the configured file names.

This script is intentionally simple and print-oriented.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from venueguard.core.config.settings import load_settings

WEIGHTS = {
    "fire": os.getenv("VG_FIRE_WEIGHTS", "fire.pt"),
    "person": os.getenv("VG_PERSON_WEIGHTS", "yolov8n.pt"),
    "pose": os.getenv("VG_POSE_WEIGHTS", "yolo11n-pose.pt"),
}


def main() -> int:
    """Run an ONNX export for each of the three networks."""

    # Keep the project CPU-only: do not let Ultralytics auto-install GPU runtimes
    # (e.g. onnxruntime-gpu) as part of export.
    os.environ.setdefault("ULTRALYTICS_AUTOUPDATE", "0")

    from ultralytics import YOLO

    settings = load_settings()
    weights_dir = Path(os.getenv("VG_WEIGHTS_DIR", "weights"))
    model_dir = Path(settings.model_dir)
    model_dir.mkdir(parents=True, exist_ok=True)
    targets = {
        "fire": settings.fire_model,
        "person": settings.person_model,
        "pose": settings.pose_model,
    }

    failures = 0
    for kind, weights in WEIGHTS.items():
        src = weights_dir / weights
        if not src.exists() and kind != "fire":
            # Ultralytics downloads the stock COCO weights by name.
            src = Path(weights)
        try:
            print(f"Loading {kind} model from {src}...")
            model = YOLO(str(src))
            print("Exporting to ONNX...")
            exported = model.export(format="onnx", imgsz=640, device="cpu")
            dest = model_dir / targets[kind]
            shutil.move(str(exported), dest)
            print(f"Saved {dest}")
        except Exception as e:
            print(f"Failed ({kind}): {e}")
            failures += 1

    if failures:
        return 1
    print("Success!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
