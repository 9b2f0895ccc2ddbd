"""ONNX model sessions shared by the detectors.

Model sessions are expensive to create, so a `ModelRegistry` loads each network
at most once and hands the same session to every pipeline that asks for it.
The registry is constructed by the process entry point and injected into the
pipeline rather than held in module globals.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Protocol

import numpy as np
import onnxruntime as ort

from venueguard.core.errors import InferenceError, ModelLoadError

logger = logging.getLogger(__name__)

FIRE = "fire"
PERSON = "person"
POSE = "pose"
MODEL_KINDS = (FIRE, PERSON, POSE)

# Output channels of each exported head: 4 box values + class scores
# (fire/smoke, 80 COCO classes) or 4 box + 1 score + 17 * 3 keypoints.
OUTPUT_CHANNELS = {FIRE: 6, PERSON: 84, POSE: 56}


class InferenceModel(Protocol):
    """Minimal interface the detectors need from a loaded network."""

    def run(self, tensor: np.ndarray) -> np.ndarray:
        """Run the network on a (1, 3, S, S) tensor and return its first output."""


class OnnxModel:
    """A CPU `onnxruntime.InferenceSession` bound to its first input/output."""

    def __init__(self, path: str | Path, providers: tuple[str, ...] = ("CPUExecutionProvider",)):
        self.path = Path(path)
        if not self.path.is_file():
            raise ModelLoadError(f"Model file not found: {self.path}")
        try:
            self.session = ort.InferenceSession(str(self.path), providers=list(providers))
        except Exception as exc:
            raise ModelLoadError(f"Failed to load model {self.path}: {exc}") from exc
        self.input_name = self.session.get_inputs()[0].name
        self.output_name = self.session.get_outputs()[0].name

    def run(self, tensor: np.ndarray) -> np.ndarray:
        try:
            outputs = self.session.run([self.output_name], {self.input_name: tensor})
        except Exception as exc:
            raise InferenceError(f"{self.path.name}: {exc}") from exc
        return np.asarray(outputs[0])


class NullModel:
    """Stand-in network that never detects anything (dry runs)."""

    def __init__(self, channels: int) -> None:
        self.channels = channels

    def run(self, tensor: np.ndarray) -> np.ndarray:
        return np.zeros((1, self.channels, 0), dtype=np.float32)


ModelLoader = Callable[[Path], InferenceModel]


class ModelRegistry:
    """Lazily loads one model per kind and reuses it for every frame and camera."""

    def __init__(self, paths: Mapping[str, str | Path], loader: ModelLoader = OnnxModel) -> None:
        unknown = set(paths) - set(MODEL_KINDS)
        if unknown:
            raise ValueError(f"unknown model kinds: {sorted(unknown)}")
        self.paths = {kind: Path(p) for kind, p in paths.items()}
        self._loader = loader
        self._models: dict[str, InferenceModel] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, loader: ModelLoader = OnnxModel) -> ModelRegistry:
        model_dir = Path(settings.model_dir)
        return cls(
            {
                FIRE: model_dir / settings.fire_model,
                PERSON: model_dir / settings.person_model,
                POSE: model_dir / settings.pose_model,
            },
            loader=loader,
        )

    @classmethod
    def null(cls) -> ModelRegistry:
        """Registry whose models return empty outputs (no files needed)."""

        registry = cls({kind: Path(f"{kind}.null") for kind in MODEL_KINDS})
        for kind in MODEL_KINDS:
            registry._models[kind] = NullModel(OUTPUT_CHANNELS[kind])
        return registry

    def get(self, kind: str) -> InferenceModel:
        """Return the model for `kind`, loading it on first use.

        Raises:
            ModelLoadError: When the model is not configured or cannot be loaded.
        """

        with self._lock:
            model = self._models.get(kind)
            if model is not None:
                return model
            path = self.paths.get(kind)
            if path is None:
                raise ModelLoadError(f"No model configured for {kind!r}")
            logger.info("Loading %s model from %s", kind, path)
            model = self._loader(path)
            self._models[kind] = model
            logger.info("%s model ready", kind)
            return model

    def load_all(self) -> None:
        """Eagerly load every configured model so failures surface at startup."""

        for kind in MODEL_KINDS:
            if kind in self.paths:
                self.get(kind)

    def loaded(self) -> list[str]:
        with self._lock:
            return sorted(self._models)
