"""Per-frame safety analysis pipeline.

This module ties together preprocessing, the fire / crowd / pose detectors,
the stateful stampede detector and risk fusion into a single per-frame
pipeline, plus a session runner that walks a time-ordered frame sequence.

One `SafetyPipeline` owns one `StampedeDetector` and therefore serves exactly
one camera-processing session at a time. Model sessions come from an injected
`ModelRegistry` and are shared freely between pipelines.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

from venueguard.core.analytics.fusion import fuse
from venueguard.core.analytics.stampede import StampedeDetector
from venueguard.core.analytics.summary import SessionReport, summarize_session
from venueguard.core.detectors.crowd import CrowdDetector
from venueguard.core.detectors.fire import FireDetector
from venueguard.core.detectors.models import FIRE, PERSON, POSE, ModelRegistry
from venueguard.core.detectors.pose import UnconsciousDetector
from venueguard.core.detectors.preprocess import INPUT_SIZE, preprocess
from venueguard.core.errors import DecodeError, InferenceError
from venueguard.core.geometry import coverage_for_profile
from venueguard.core.types import (
    CameraContext,
    FrameAnalysisResult,
    FrameError,
    PreparedFrame,
    SampledFrame,
)

logger = logging.getLogger(__name__)


class SafetyPipeline:
    """Fire, crowd, unconscious-person and stampede analysis for one camera session."""

    def __init__(
        self,
        fire: FireDetector,
        crowd: CrowdDetector,
        unconscious: UnconsciousDetector,
        stampede: StampedeDetector | None = None,
        input_size: int = INPUT_SIZE,
        parallel: bool = False,
    ) -> None:
        self.fire = fire
        self.crowd = crowd
        self.unconscious = unconscious
        self.stampede = stampede or StampedeDetector()
        self.input_size = input_size
        self.parallel = parallel
        self._executor: ThreadPoolExecutor | None = None

    @classmethod
    def from_registry(cls, registry: ModelRegistry, settings=None) -> SafetyPipeline:
        """Build a pipeline whose detectors share the registry's model sessions."""

        if settings is None:
            return cls(
                fire=FireDetector(registry.get(FIRE)),
                crowd=CrowdDetector(registry.get(PERSON)),
                unconscious=UnconsciousDetector(registry.get(POSE)),
            )
        size = int(settings.input_size)
        return cls(
            fire=FireDetector(
                registry.get(FIRE),
                conf=settings.fire_confidence,
                iou_threshold=settings.fire_iou,
                input_size=size,
            ),
            crowd=CrowdDetector(
                registry.get(PERSON),
                conf=settings.crowd_confidence,
                iou_threshold=settings.crowd_iou,
                density_mode=settings.density_mode,
                input_size=size,
            ),
            unconscious=UnconsciousDetector(
                registry.get(POSE),
                conf=settings.pose_confidence,
                iou_threshold=settings.pose_iou,
                input_size=size,
            ),
            input_size=size,
            parallel=bool(settings.parallel_detectors),
        )

    def reset(self) -> None:
        """Start a new session: clears the stampede history."""

        self.stampede.reset()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def analyze_prepared(
        self,
        frame: PreparedFrame,
        coverage_area_m2: float,
        frame_id: int = 0,
        timestamp: float = 0.0,
    ) -> FrameAnalysisResult:
        """Run all detectors on a prepared frame and fuse their outputs.

        Raises:
            InferenceError: When any detector fails. The stampede detector is
                only fed once every detector has succeeded, so a failed frame
                leaves its history untouched.
        """

        if self.parallel:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=3, thread_name_prefix="detector")
            fire_f = self._executor.submit(
                self.fire.detect_fire_intensity, frame.tensor, frame.width, frame.height
            )
            crowd_f = self._executor.submit(self.crowd.analyze, frame, coverage_area_m2)
            pose_f = self._executor.submit(self.unconscious.analyze, frame)
            fire = fire_f.result()
            crowd = crowd_f.result()
            unconscious = pose_f.result()
        else:
            fire = self.fire.detect_fire_intensity(frame.tensor, frame.width, frame.height)
            crowd = self.crowd.analyze(frame, coverage_area_m2)
            unconscious = self.unconscious.analyze(frame)

        stampede = self.stampede.detect_stampede(crowd.detections)
        fused = fuse(crowd, unconscious, stampede)
        return FrameAnalysisResult(
            frame_id=frame_id,
            timestamp=timestamp,
            fire=fire,
            crowd=crowd,
            unconscious=unconscious,
            stampede=stampede,
            overall_risk=fused.overall_risk,
            emergency_priority=fused.emergency_priority,
        )

    def analyze_frame(
        self,
        image_bytes: bytes,
        coverage_area_m2: float,
        frame_id: int = 0,
        timestamp: float = 0.0,
    ) -> FrameAnalysisResult:
        """Decode and analyze one encoded frame.

        Raises:
            DecodeError: When the image cannot be decoded.
            InferenceError: When a detector fails.
        """

        prepared = preprocess(image_bytes, self.input_size)
        return self.analyze_prepared(prepared, coverage_area_m2, frame_id, timestamp)

    def process_frame(
        self, frame: SampledFrame, coverage_area_m2: float
    ) -> FrameAnalysisResult | FrameError:
        """Analyze a sampled frame, turning per-frame failures into an error marker."""

        try:
            return self.analyze_frame(
                frame.data, coverage_area_m2, frame_id=frame.frame_id, timestamp=frame.timestamp
            )
        except (DecodeError, InferenceError) as exc:
            logger.warning(
                "Frame %d (t=%.2fs) could not be analyzed: %s",
                frame.frame_id,
                frame.timestamp,
                exc,
            )
            return FrameError(
                frame_id=frame.frame_id,
                timestamp=frame.timestamp,
                kind=exc.kind,
                message=str(exc),
            )

    def run_session(
        self,
        frames: Iterable[SampledFrame],
        camera: CameraContext,
        sample_interval: float = 0.5,
        max_frames: int = 0,
    ) -> SessionReport:
        """Process a time-ordered frame sequence from one camera.

        Args:
            frames: Sampled frames in source order.
            camera: Camera identity and mounting geometry.
            sample_interval: Interval the frames were sampled at (reported only).
            max_frames: Stop after this many frames (0 = no cap).

        Returns:
            Per-frame results, per-frame error markers and the session summary.
        """

        self.reset()
        coverage = coverage_for_profile(camera.profile)
        results: list[FrameAnalysisResult] = []
        errors: list[FrameError] = []

        for seen, frame in enumerate(frames, start=1):
            outcome = self.process_frame(frame, coverage.area)
            if isinstance(outcome, FrameError):
                errors.append(outcome)
            else:
                results.append(outcome)
                logger.info(
                    "Frame %d: fire=%s (%.4f) people=%d density=%.2f%% (%s) "
                    "unconscious=%d stampede=%s (%s) overall=%s",
                    outcome.frame_id,
                    "YES" if outcome.fire.fire_detected else "NO",
                    outcome.fire.intensity,
                    outcome.crowd.person_count,
                    outcome.crowd.density_percentage,
                    outcome.crowd.density_level,
                    outcome.unconscious.unconscious_count,
                    "YES" if outcome.stampede.is_stampede else "NO",
                    outcome.stampede.risk_level,
                    outcome.overall_risk.level,
                )
            if max_frames and seen >= max_frames:
                break

        summary = summarize_session(results, errors)
        logger.info(
            "Session for camera %s: %d frames, %d errors, overall=%s",
            camera.camera_id,
            summary.total_frames,
            summary.errored_frames,
            summary.overall_risk_level,
        )
        return SessionReport(
            camera=camera,
            coverage=coverage,
            sample_interval=sample_interval,
            results=results,
            errors=errors,
            summary=summary,
        )
