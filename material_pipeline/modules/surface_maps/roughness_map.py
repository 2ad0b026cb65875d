"""Estimate roughness from local luminance variance and darkness."""
from __future__ import annotations

import logging

import numpy as np

from ...core.utils_color import to_channel
from ...core.utils_image import PixelBuffer, grayscale_buffer, mean_luminance
from ..kernels import local_variance
from ..pbr.parameters import DEFAULT_STRENGTHS, ROUGHNESS, normalize_strength

LOGGER = logging.getLogger("material_pipeline.maps.roughness")

WINDOW_RADIUS = 2
VARIANCE_NORMALIZER = 50.0
VARIANCE_WEIGHT = 0.7
DARKNESS_WEIGHT = 0.3


def generate(buffer: PixelBuffer, strength: float = DEFAULT_STRENGTHS[ROUGHNESS]) -> PixelBuffer:
    """Create a roughness map; busy and dark regions read as rougher."""

    strength = normalize_strength(strength, DEFAULT_STRENGTHS[ROUGHNESS])
    _, deviation = local_variance(buffer, WINDOW_RADIUS)
    roughness = np.minimum(1.0, deviation / VARIANCE_NORMALIZER) * strength

    brightness = mean_luminance(buffer)
    roughness = roughness * VARIANCE_WEIGHT + (1.0 - brightness / 255) * DARKNESS_WEIGHT

    LOGGER.debug("Roughness map generated at strength %.2f", strength)
    return grayscale_buffer(to_channel(roughness * 255))
