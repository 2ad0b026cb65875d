"""Tests for the shared neighbourhood kernels."""
from __future__ import annotations

import numpy as np
import pytest

from conftest import uniform
from material_pipeline.core.utils_image import PixelBuffer
from material_pipeline.modules.kernels import (
    edge_difference,
    edge_difference_at,
    gradient,
    gradient_at,
    local_variance,
    local_variance_at,
)


def _step_edge() -> PixelBuffer:
    values = np.zeros((3, 4), dtype=np.uint8)
    values[:, 2:] = 255
    alpha = np.full(values.shape, 255, dtype=np.uint8)
    return PixelBuffer.from_array(np.dstack([values, values, values, alpha]))


def test_vectorized_kernels_match_per_pixel(noisy_buffer: PixelBuffer) -> None:
    gx, gy = gradient(noisy_buffer)
    mean, deviation = local_variance(noisy_buffer, 2)
    edges = edge_difference(noisy_buffer, 2, exclude_center=True)
    for y in range(noisy_buffer.height):
        for x in range(noisy_buffer.width):
            assert (gx[y, x], gy[y, x]) == gradient_at(noisy_buffer, x, y)
            assert (mean[y, x], deviation[y, x]) == local_variance_at(noisy_buffer, x, y, 2)
            assert edges[y, x] == edge_difference_at(noisy_buffer, x, y, 2, True)


def test_sobel_responds_to_vertical_edge() -> None:
    buffer = _step_edge()
    assert gradient_at(buffer, 1, 1) == (1020.0, 0.0)
    gx, gy = gradient(buffer)
    assert gx[1, 1] == 1020.0
    assert np.all(gy == 0.0)


def test_uniform_image_has_no_structure() -> None:
    buffer = uniform((90, 90, 90), (6, 5))
    gx, gy = gradient(buffer)
    mean, deviation = local_variance(buffer)
    assert np.all(gx == 0) and np.all(gy == 0)
    assert np.allclose(mean, 90.0)
    assert np.all(deviation == 0)
    assert np.all(edge_difference(buffer) == 0)


def test_edge_difference_counts_center_when_requested() -> None:
    buffer = _step_edge()
    excluded = edge_difference_at(buffer, 0, 0, 1, exclude_center=True)
    included = edge_difference_at(buffer, 0, 0, 1, exclude_center=False)
    assert included == pytest.approx(excluded * 8 / 9)


def test_single_pixel_kernels() -> None:
    buffer = uniform((200, 10, 30), (1, 1))
    assert gradient_at(buffer, 0, 0) == (0.0, 0.0)
    assert local_variance_at(buffer, 0, 0)[1] == 0.0
    assert edge_difference(buffer).shape == (1, 1)
