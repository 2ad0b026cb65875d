"""Keep only the brightest regions as hue-preserving emission."""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from ...core.utils_color import to_channel
from ...core.utils_image import PixelBuffer, mean_luminance, rgb_buffer
from ..pbr.parameters import DEFAULT_STRENGTHS, EMISSIVE, normalize_strength, normalize_threshold

LOGGER = logging.getLogger("material_pipeline.maps.emissive")


def generate(
    buffer: PixelBuffer,
    strength: float = DEFAULT_STRENGTHS[EMISSIVE],
    threshold: Optional[float] = None,
) -> PixelBuffer:
    """Create an emissive map.

    Pixels whose RGB mean exceeds *threshold* emit their own colour scaled by
    ``(brightness - threshold) / (255 - threshold) * strength``; everything
    else is black. With the default strength of 0 the whole map is black,
    which callers treat as no emissive contribution.
    """

    strength = normalize_strength(strength, DEFAULT_STRENGTHS[EMISSIVE])
    threshold = normalize_threshold(threshold)

    brightness = mean_luminance(buffer)
    emitting = brightness > threshold
    span = max(255.0 - threshold, 1e-9)
    emission = np.where(emitting, ((brightness - threshold) / span) * 255 * strength, 0.0)

    rgb = buffer.rgb.astype(np.float64) * (emission / 255)[..., None]
    LOGGER.debug(
        "Emissive map generated at strength %.2f (%d emitting pixels)", strength, int(np.count_nonzero(emitting))
    )
    return rgb_buffer(to_channel(rgb))
