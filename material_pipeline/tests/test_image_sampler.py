"""Tests for decoding and clamped sampling."""
from __future__ import annotations

import numpy as np
import pytest

pytest.importorskip("PIL")
from PIL import Image

from conftest import png_bytes
from material_pipeline.core.errors import DecodeError, UnsupportedInput
from material_pipeline.core.utils_image import PixelBuffer, decode, encode, sample


def _two_by_two() -> PixelBuffer:
    image = Image.new("RGBA", (2, 2))
    image.putpixel((0, 0), (10, 20, 30, 255))
    image.putpixel((1, 0), (40, 50, 60, 255))
    image.putpixel((0, 1), (70, 80, 90, 255))
    image.putpixel((1, 1), (100, 110, 120, 128))
    return decode(png_bytes(image))


def test_decode_png_bytes_produces_rgba_buffer() -> None:
    buffer = _two_by_two()
    assert buffer.size == (2, 2)
    assert len(buffer) == 2 * 2 * 4
    assert len(buffer.tobytes()) == 16
    assert sample(buffer, 1, 1) == (100, 110, 120, 128)


def test_decode_rgb_image_gets_opaque_alpha() -> None:
    buffer = decode(Image.new("RGB", (3, 2), (5, 6, 7)))
    assert buffer.pixels.shape == (2, 3, 4)
    assert np.all(buffer.pixels[..., 3] == 255)


def test_decode_rejects_garbage() -> None:
    with pytest.raises(DecodeError):
        decode(b"definitely not an image")
    assert UnsupportedInput is DecodeError


def test_decode_missing_file(tmp_path) -> None:
    with pytest.raises(DecodeError):
        decode(tmp_path / "missing.png")


def test_sample_clamps_to_nearest_edge() -> None:
    buffer = _two_by_two()
    assert sample(buffer, -5, -5) == sample(buffer, 0, 0)
    assert sample(buffer, 10, 0) == (40, 50, 60, 255)
    assert sample(buffer, 0, 99) == (70, 80, 90, 255)
    assert sample(buffer, 7, 7) == sample(buffer, 1, 1)


def test_sample_on_single_pixel() -> None:
    buffer = decode(Image.new("RGB", (1, 1), (1, 2, 3)))
    for x, y in [(-1, -1), (0, 0), (3, -2)]:
        assert sample(buffer, x, y) == (1, 2, 3, 255)


def test_buffer_is_read_only() -> None:
    buffer = _two_by_two()
    with pytest.raises(ValueError):
        buffer.pixels[0, 0, 0] = 1


def test_from_bytes_validates_length() -> None:
    with pytest.raises(ValueError):
        PixelBuffer.from_bytes(2, 2, b"\x00" * 15)
    buffer = PixelBuffer.from_bytes(1, 2, bytes(range(8)))
    assert sample(buffer, 0, 1) == (4, 5, 6, 7)


def test_encode_roundtrips_through_pillow() -> None:
    buffer = _two_by_two()
    assert decode(encode(buffer, "PNG")) == buffer
    jpeg = encode(buffer, "jpg")
    assert decode(jpeg).size == (2, 2)
