"""Base colour map: an owned copy of the decoded source."""
from __future__ import annotations

import numpy as np

from ...core.utils_image import PixelBuffer


def generate(buffer: PixelBuffer, strength: float = 1.0) -> PixelBuffer:
    """Return the source colours; *strength* is accepted for a uniform signature."""

    return PixelBuffer.from_array(np.array(buffer.pixels))
