"""Scalar helpers shared by parameter handling and the kernels."""
from __future__ import annotations

import math
from typing import Optional

import numpy as np


def clamp(value: float, min_value: float, max_value: float) -> float:
    """Clamp *value* between *min_value* and *max_value*."""

    return max(min_value, min(max_value, value))


def parse_number(value: object) -> Optional[float]:
    """Return *value* as a finite float, or ``None`` when it cannot be used."""

    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def to_channel(array: np.ndarray) -> np.ndarray:
    """Store float values into 8-bit channels.

    NaN maps to 0, values are clamped to [0, 255] and rounded to the nearest
    integer with ties to even.
    """

    values = np.nan_to_num(np.asarray(array, dtype=np.float64), nan=0.0, posinf=255.0, neginf=0.0)
    return np.rint(np.clip(values, 0.0, 255.0)).astype(np.uint8)

