"""In-process state for settings and the model registry.

FastAPI routes use this module to access (and hot-reload) the singleton
settings and the `ModelRegistry` whose ONNX sessions are shared by every
pipeline the API builds.
"""

from __future__ import annotations

import logging
from threading import RLock

from venueguard.core.config.settings import BackendSettings, load_settings, settings_to_dict
from venueguard.core.detectors.models import ModelRegistry

logger = logging.getLogger(__name__)

_settings: BackendSettings | None = None
_registry: ModelRegistry | None = None
_lock = RLock()


def get_settings() -> BackendSettings:
    """Return cached settings, loading them on first use."""

    global _settings
    with _lock:
        if _settings is None:
            _settings = load_settings()
    return _settings


def reload_settings(data: dict | None = None) -> BackendSettings:
    """Reload settings and drop the registry so model paths are re-read.

    Args:
        data: Optional patch dict merged into the loaded settings.
    """

    global _settings, _registry
    with _lock:
        base = load_settings()
        if data:
            _settings = BackendSettings(**{**settings_to_dict(base), **data})
        else:
            _settings = base
        _registry = None
    return _settings


def get_registry() -> ModelRegistry:
    """Return the singleton model registry, creating it if needed.

    Models themselves load lazily on first use by a pipeline.
    """

    global _registry
    with _lock:
        if _registry is None:
            _registry = ModelRegistry.from_settings(get_settings())
            logger.info("Model registry created for %s", _registry.paths)
    return _registry


def set_registry(registry: ModelRegistry | None) -> None:
    """Replace the singleton registry (tests, dry runs)."""

    global _registry
    with _lock:
        _registry = registry
