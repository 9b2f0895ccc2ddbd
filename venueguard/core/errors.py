"""Exception taxonomy for the detection pipeline.

Per-frame failures (`DecodeError`, `InferenceError`) are recovered by the
session runner and recorded against the frame. `ModelLoadError` and
`FrameSourceError` propagate to whoever initializes the session.
"""

from __future__ import annotations


class VenueGuardError(Exception):
    """Base class for all pipeline errors."""

    kind: str = "error"


class DecodeError(VenueGuardError):
    """A frame's image bytes could not be decoded."""

    kind = "decode"


# The preprocessor surfaces decode failures under this name.
PreprocessError = DecodeError


class ModelLoadError(VenueGuardError):
    """An inference model file is missing or cannot be loaded."""

    kind = "model_load"


class InferenceError(VenueGuardError):
    """Model execution failed or produced an unexpected output layout."""

    kind = "inference"


class FrameSourceError(VenueGuardError):
    """A video file or stream could not be opened."""

    kind = "frame_source"
