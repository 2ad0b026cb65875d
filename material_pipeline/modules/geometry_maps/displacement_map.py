"""Generate displacement maps from contrast-stretched luma."""
from __future__ import annotations

import logging

import numpy as np

from ...core.utils_color import to_channel
from ...core.utils_image import PixelBuffer, grayscale_buffer, perceptual_luminance
from ..pbr.parameters import DEFAULT_STRENGTHS, DISPLACEMENT, normalize_strength

LOGGER = logging.getLogger("material_pipeline.maps.displacement")

CONTRAST = 1.5
MIDPOINT = 128.0


def generate(buffer: PixelBuffer, strength: float = DEFAULT_STRENGTHS[DISPLACEMENT]) -> PixelBuffer:
    """Create a displacement map.

    Uses the 0.299/0.587/0.114 luma rather than the plain RGB mean the other
    generators use. *strength* dims the stretched value; it does not change
    contrast.
    """

    strength = normalize_strength(strength, DEFAULT_STRENGTHS[DISPLACEMENT])
    luma = perceptual_luminance(buffer)
    stretched = np.clip((luma - MIDPOINT) * CONTRAST + MIDPOINT, 0.0, 255.0)
    LOGGER.debug("Displacement map generated at strength %.2f", strength)
    return grayscale_buffer(to_channel(stretched * strength))
