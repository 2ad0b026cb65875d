"""Generate tangent-space normal maps from Sobel luminance gradients."""
from __future__ import annotations

import logging

import numpy as np

from ...core.utils_color import to_channel
from ...core.utils_image import PixelBuffer, rgb_buffer
from ..kernels import gradient
from ..pbr.parameters import DEFAULT_STRENGTHS, NORMAL, normalize_strength

LOGGER = logging.getLogger("material_pipeline.maps.normal")

GRADIENT_SCALE = 5.0
FLAT_Z = 255.0


def generate(buffer: PixelBuffer, strength: float = DEFAULT_STRENGTHS[NORMAL]) -> PixelBuffer:
    """Create a normal map whose X/Y follow the negated, scaled gradient.

    Z is fixed at 255 before normalisation and is not scaled by *strength*,
    so weak gradients stay close to the flat ``(128, 128, 255)`` normal.
    """

    strength = normalize_strength(strength, DEFAULT_STRENGTHS[NORMAL])
    gx, gy = gradient(buffer)

    scale = GRADIENT_SCALE * strength
    nx = -gx * scale
    ny = -gy * scale
    nz = np.full_like(nx, FLAT_Z)
    length = np.sqrt(nx * nx + ny * ny + nz * nz)

    normal = np.stack(
        [
            ((nx / length) * 0.5 + 0.5) * 255,
            ((ny / length) * 0.5 + 0.5) * 255,
            ((nz / length) * 0.5 + 0.5) * 255,
        ],
        axis=-1,
    )
    LOGGER.debug("Normal map generated at strength %.2f", strength)
    return rgb_buffer(to_channel(normal))
