"""JSON conversion for analysis records.

Floats are rounded to a fixed number of decimals so reports stay stable across
runs and platforms.
"""

from __future__ import annotations

import math
from dataclasses import fields, is_dataclass
from typing import Any

import numpy as np

DEFAULT_DECIMALS = 4


def to_jsonable(obj: Any, ndigits: int = DEFAULT_DECIMALS) -> Any:
    """Recursively convert dataclasses/numpy values into JSON-safe data."""

    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name), ndigits) for f in fields(obj)}
    if isinstance(obj, np.ndarray):
        return to_jsonable(obj.tolist(), ndigits)
    if isinstance(obj, (bool, np.bool_)):
        return bool(obj)
    if isinstance(obj, (int, np.integer)):
        return int(obj)
    if isinstance(obj, (float, np.floating)):
        value = float(obj)
        if not math.isfinite(value):
            return None
        return round(value, ndigits)
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v, ndigits) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v, ndigits) for v in obj]
    if isinstance(obj, bytes):
        return None
    return obj
