"""Coverage and safety analysis endpoints."""

from __future__ import annotations

import base64
import binascii
import logging

from fastapi import APIRouter, Depends, HTTPException

from venueguard.api.schemas.models import (
    CameraProfileSchema,
    CoverageSchema,
    FrameAnalysisSchema,
    FrameRequest,
    SessionReportSchema,
    SessionRequest,
)
from venueguard.api.services.state import get_registry, get_settings
from venueguard.core.analytics.pipeline import SafetyPipeline
from venueguard.core.config.settings import BackendSettings
from venueguard.core.detectors.models import ModelRegistry
from venueguard.core.errors import DecodeError, FrameSourceError, InferenceError, ModelLoadError
from venueguard.core.geometry import compute_coverage
from venueguard.core.serialize import to_jsonable
from venueguard.core.types import CameraContext, CameraProfile
from venueguard.core.video_sources.base import open_frame_source

logger = logging.getLogger(__name__)

router = APIRouter(tags=["analysis"])


def _build_pipeline(registry: ModelRegistry, settings: BackendSettings) -> SafetyPipeline:
    try:
        return SafetyPipeline.from_registry(registry, settings)
    except ModelLoadError as exc:
        logger.error("Models unavailable: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.post("/coverage", response_model=CoverageSchema)
def coverage(profile: CameraProfileSchema) -> CoverageSchema:
    """Return the ground coverage trapezoid for a camera profile."""

    area = compute_coverage(
        profile.height, profile.vertical_fov, profile.horizontal_fov, profile.tilt
    )
    return CoverageSchema.model_validate(to_jsonable(area))


@router.post("/analyze/frame", response_model=FrameAnalysisSchema)
def analyze_frame(
    req: FrameRequest,
    registry: ModelRegistry = Depends(get_registry),
    settings: BackendSettings = Depends(get_settings),
) -> FrameAnalysisSchema:
    """Analyze one frame without session state.

    The pipeline is fresh for every call, so the stampede part always reports
    the cold-start result.
    """

    try:
        image_bytes = base64.b64decode(req.image_base64, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=422, detail="image_base64 is not valid base64") from None

    pipeline = _build_pipeline(registry, settings)
    try:
        result = pipeline.analyze_frame(
            image_bytes, req.coverage_area_m2, frame_id=req.frame_id, timestamp=req.timestamp
        )
    except DecodeError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except InferenceError as exc:
        logger.exception("Frame analysis failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    finally:
        pipeline.close()
    return FrameAnalysisSchema.model_validate(to_jsonable(result))


@router.post("/analyze/session", response_model=SessionReportSchema)
def analyze_session(
    req: SessionRequest,
    registry: ModelRegistry = Depends(get_registry),
    settings: BackendSettings = Depends(get_settings),
) -> SessionReportSchema:
    """Run a camera-processing session over a stored video or live stream."""

    camera = CameraContext(
        camera_id=req.camera_id,
        location=req.location,
        profile=CameraProfile(**req.profile.model_dump()),
    )
    interval = req.sample_interval or settings.sample_interval
    max_frames = settings.max_frames if req.max_frames is None else req.max_frames
    capture_seconds = req.capture_seconds or settings.capture_seconds

    pipeline = _build_pipeline(registry, settings)
    try:
        with open_frame_source(
            req.source, interval=interval, capture_seconds=capture_seconds
        ) as source:
            report = pipeline.run_session(
                source, camera, sample_interval=interval, max_frames=max_frames
            )
    except FrameSourceError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    finally:
        pipeline.close()
    return SessionReportSchema.model_validate(to_jsonable(report))
