"""Neighbourhood reducers shared by the map generators.

Every kernel works on the unweighted RGB mean of a buffer and addresses
neighbours with edge clamping, so a pixel outside the image reads the
nearest border pixel. The whole-image variants pad the luminance field with
``mode="edge"`` which is the same policy, and accumulate the window in the
same row-major order as the per-pixel variants so both agree bit for bit.
"""
from __future__ import annotations

import math
from typing import Iterator, Tuple, Union

import numpy as np

from ..core.utils_image import PixelBuffer, mean_luminance, pixel_luminance


SOBEL_X = (-1, 0, 1, -2, 0, 2, -1, 0, 1)
SOBEL_Y = (-1, -2, -1, 0, 0, 0, 1, 2, 1)

Field = Union[PixelBuffer, np.ndarray]


def _luminance_field(source: Field) -> np.ndarray:
    if isinstance(source, PixelBuffer):
        return mean_luminance(source)
    return np.asarray(source, dtype=np.float64)


def iter_window(field: np.ndarray, radius: int) -> Iterator[Tuple[int, int, np.ndarray]]:
    """Yield ``(dy, dx, view)`` for every offset of a clamped square window.

    ``view[y, x]`` equals ``field[clamp(y + dy), clamp(x + dx)]``.
    """

    height, width = field.shape
    padded = np.pad(field, radius, mode="edge")
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            yield dy, dx, padded[radius + dy : radius + dy + height, radius + dx : radius + dx + width]


def gradient(source: Field) -> Tuple[np.ndarray, np.ndarray]:
    """Sobel gradients ``(gx, gy)`` for every pixel."""

    gray = _luminance_field(source)
    gx = np.zeros_like(gray)
    gy = np.zeros_like(gray)
    for dy, dx, view in iter_window(gray, 1):
        index = (dy + 1) * 3 + (dx + 1)
        gx += view * SOBEL_X[index]
        gy += view * SOBEL_Y[index]
    return gx, gy


def local_variance(source: Field, radius: int = 2) -> Tuple[np.ndarray, np.ndarray]:
    """Windowed mean and population standard deviation of luminance."""

    gray = _luminance_field(source)
    total = np.zeros_like(gray)
    total_sq = np.zeros_like(gray)
    count = (2 * radius + 1) ** 2
    for _, _, view in iter_window(gray, radius):
        total += view
        total_sq += view * view
    mean = total / count
    deviation = np.sqrt(np.maximum(0.0, total_sq / count - mean * mean))
    return mean, deviation


def edge_difference(source: Field, radius: int = 2, exclude_center: bool = True) -> np.ndarray:
    """Average absolute luminance difference between each pixel and its window."""

    gray = _luminance_field(source)
    total = np.zeros_like(gray)
    count = 0
    for dy, dx, view in iter_window(gray, radius):
        if exclude_center and dy == 0 and dx == 0:
            continue
        total += np.abs(gray - view)
        count += 1
    return total / count if count else total


def gradient_at(buffer: PixelBuffer, x: int, y: int) -> Tuple[float, float]:
    gx = 0.0
    gy = 0.0
    for ky in range(-1, 2):
        for kx in range(-1, 2):
            value = pixel_luminance(buffer, x + kx, y + ky)
            gx += value * SOBEL_X[(ky + 1) * 3 + (kx + 1)]
            gy += value * SOBEL_Y[(ky + 1) * 3 + (kx + 1)]
    return gx, gy


def local_variance_at(buffer: PixelBuffer, x: int, y: int, radius: int = 2) -> Tuple[float, float]:
    total = 0.0
    total_sq = 0.0
    count = 0
    for ky in range(-radius, radius + 1):
        for kx in range(-radius, radius + 1):
            value = pixel_luminance(buffer, x + kx, y + ky)
            total += value
            total_sq += value * value
            count += 1
    mean = total / count
    return mean, math.sqrt(max(0.0, total_sq / count - mean * mean))


def edge_difference_at(
    buffer: PixelBuffer, x: int, y: int, radius: int = 2, exclude_center: bool = True
) -> float:
    center = pixel_luminance(buffer, x, y)
    total = 0.0
    count = 0
    for ky in range(-radius, radius + 1):
        for kx in range(-radius, radius + 1):
            if exclude_center and kx == 0 and ky == 0:
                continue
            total += abs(center - pixel_luminance(buffer, x + kx, y + ky))
            count += 1
    return total / count if count else total


__all__ = [
    "SOBEL_X",
    "SOBEL_Y",
    "edge_difference",
    "edge_difference_at",
    "gradient",
    "gradient_at",
    "iter_window",
    "local_variance",
    "local_variance_at",
]
