"""Shared fixtures for the material pipeline tests."""
from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image

from material_pipeline.core.utils_image import PixelBuffer, decode


def png_bytes(image: Image.Image) -> bytes:
    stream = io.BytesIO()
    image.save(stream, format="PNG")
    return stream.getvalue()


def uniform(color: tuple[int, int, int], size: tuple[int, int] = (8, 8)) -> PixelBuffer:
    return decode(Image.new("RGB", size, color))


def checkerboard(size: int, low: int = 0, high: int = 255) -> PixelBuffer:
    yy, xx = np.mgrid[0:size, 0:size]
    values = np.where((xx + yy) % 2 == 0, high, low).astype(np.uint8)
    alpha = np.full(values.shape, 255, dtype=np.uint8)
    return PixelBuffer.from_array(np.dstack([values, values, values, alpha]))


@pytest.fixture
def noisy_buffer() -> PixelBuffer:
    rng = np.random.default_rng(7)
    rgb = rng.integers(0, 256, size=(9, 11, 3), dtype=np.uint8)
    alpha = np.full((9, 11), 255, dtype=np.uint8)
    return PixelBuffer.from_array(np.dstack([rgb, alpha]))


@pytest.fixture
def photo_bytes() -> bytes:
    rng = np.random.default_rng(3)
    rgb = rng.integers(0, 256, size=(12, 16, 3), dtype=np.uint8)
    return png_bytes(Image.fromarray(rgb))
