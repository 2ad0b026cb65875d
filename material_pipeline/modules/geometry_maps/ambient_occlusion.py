"""Approximate ambient occlusion from blurred edges and darkness."""
from __future__ import annotations

import logging

import numpy as np
from PIL import ImageFilter

from ...core.utils_color import to_channel
from ...core.utils_image import PixelBuffer, decode, grayscale_buffer, mean_luminance
from ..kernels import edge_difference
from ..pbr.parameters import AO, DEFAULT_STRENGTHS, normalize_strength

LOGGER = logging.getLogger("material_pipeline.maps.ao")

BLUR_RADIUS = 2
WINDOW_RADIUS = 2
EDGE_WEIGHT = 2.0
OCCLUSION_WEIGHT = 0.6
DARKNESS_WEIGHT = 0.4


def blurred(buffer: PixelBuffer, radius: float = BLUR_RADIUS) -> PixelBuffer:
    """Gaussian-blurred copy of *buffer* (alpha left opaque)."""

    image = buffer.to_image().convert("RGB").filter(ImageFilter.GaussianBlur(radius=radius))
    return decode(image)


def generate(buffer: PixelBuffer, strength: float = DEFAULT_STRENGTHS[AO]) -> PixelBuffer:
    """Create an ambient occlusion map where edges and dark areas occlude."""

    strength = normalize_strength(strength, DEFAULT_STRENGTHS[AO])
    average_edge = edge_difference(blurred(buffer), WINDOW_RADIUS, exclude_center=True)

    occlusion = 255 - average_edge * EDGE_WEIGHT
    brightness = mean_luminance(buffer)
    occlusion = occlusion * OCCLUSION_WEIGHT + (255 - brightness) * DARKNESS_WEIGHT
    occlusion = np.clip(np.clip(occlusion, 0.0, 255.0) * strength, 0.0, 255.0)

    LOGGER.debug("AO map generated at strength %.2f", strength)
    return grayscale_buffer(to_channel(occlusion))
