"""Run a camera-processing session on a video file or stream and save the report."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from venueguard.core.analytics.pipeline import SafetyPipeline
from venueguard.core.config.settings import load_settings
from venueguard.core.detectors.models import ModelRegistry
from venueguard.core.errors import FrameSourceError, ModelLoadError
from venueguard.core.serialize import to_jsonable
from venueguard.core.types import CameraContext, CameraProfile
from venueguard.core.video_sources.base import open_frame_source

logger = logging.getLogger(__name__)


def run(args) -> int:
    settings = load_settings()
    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    interval = args.interval if args.interval is not None else settings.sample_interval
    max_frames = args.max_frames if args.max_frames is not None else settings.max_frames
    capture_seconds = (
        args.capture_seconds if args.capture_seconds is not None else settings.capture_seconds
    )

    camera = CameraContext(
        camera_id=args.camera_id,
        location=args.location,
        profile=CameraProfile(
            height=args.height,
            vertical_fov=args.vfov,
            horizontal_fov=args.hfov,
            tilt=args.tilt,
        ),
    )
    registry = ModelRegistry.null() if args.mock else ModelRegistry.from_settings(settings)

    try:
        pipeline = SafetyPipeline.from_registry(registry, settings)
    except ModelLoadError as exc:
        logger.error("%s", exc)
        return 2

    try:
        with open_frame_source(
            args.input, interval=interval, capture_seconds=capture_seconds
        ) as source:
            report = pipeline.run_session(
                source, camera, sample_interval=interval, max_frames=max_frames
            )
    except FrameSourceError as exc:
        logger.error("%s", exc)
        return 2
    finally:
        pipeline.close()

    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(to_jsonable(report), f, indent=2)
    print(
        f"Wrote {len(report.results)} frame results "
        f"({len(report.errors)} errors) to {out_path}"
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the safety pipeline on a video or stream")
    parser.add_argument("--input", required=True, help="Video path/URL or rtsp:// stream")
    parser.add_argument("--output", required=True, help="Where to save the JSON report")
    parser.add_argument("--camera-id", default="camera-1")
    parser.add_argument("--location", default=None)
    parser.add_argument("--height", type=float, default=5.0, help="Mounting height (m)")
    parser.add_argument("--vfov", type=float, default=60.0, help="Vertical FOV (deg)")
    parser.add_argument("--hfov", type=float, default=90.0, help="Horizontal FOV (deg)")
    parser.add_argument("--tilt", type=float, default=45.0, help="Tilt (deg)")
    parser.add_argument(
        "--interval", type=float, default=None, help="Seconds between sampled frames"
    )
    parser.add_argument(
        "--max-frames", type=int, default=None, help="Frame cap (0 = no cap)"
    )
    parser.add_argument(
        "--capture-seconds", type=float, default=None, help="Stream capture window"
    )
    parser.add_argument("--log-level", default=None)
    parser.add_argument(
        "--mock", action="store_true", help="Use empty models (no model files needed)"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    return run(build_parser().parse_args(argv))


if __name__ == "__main__":
    sys.exit(main())
