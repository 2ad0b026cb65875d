"""Image decoding and raw RGBA pixel buffer helpers."""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import DecodeError

LOGGER = logging.getLogger("material_pipeline.image")

ImageSource = Union[bytes, bytearray, memoryview, str, Path, Image.Image, "PixelBuffer"]

_PERCEPTUAL_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """Row-major RGBA bytes with a top-left origin.

    ``pixels`` is a read-only ``uint8`` array shaped ``(height, width, 4)``.
    Generators never mutate a buffer; every map is a new instance.
    """

    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        array = np.ascontiguousarray(self.pixels, dtype=np.uint8)
        if array.shape != (self.height, self.width, 4):
            raise ValueError(
                f"Pixel array shape {array.shape} does not match {self.width}x{self.height} RGBA"
            )
        if array is self.pixels:
            array = array.copy()
        array.setflags(write=False)
        object.__setattr__(self, "pixels", array)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """Build a buffer from an ``(H, W, 4)`` array."""

        height, width = array.shape[:2]
        return cls(width=width, height=height, pixels=array)

    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes) -> "PixelBuffer":
        """Build a buffer from a flat RGBA byte sequence."""

        if len(data) != width * height * 4:
            raise ValueError(f"Expected {width * height * 4} bytes, got {len(data)}")
        array = np.frombuffer(bytes(data), dtype=np.uint8).reshape(height, width, 4)
        return cls(width=width, height=height, pixels=array)

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def rgb(self) -> np.ndarray:
        return self.pixels[..., :3]

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()

    def to_image(self) -> Image.Image:
        return Image.fromarray(np.array(self.pixels))

    def is_black(self) -> bool:
        """Return ``True`` when every RGB channel is zero."""

        return not bool(np.any(self.rgb))

    def __len__(self) -> int:
        return self.pixels.size

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.size == other.size and np.array_equal(self.pixels, other.pixels)

    def __hash__(self) -> int:
        return hash((self.width, self.height, self.pixels.tobytes()))


def _open_image(source: ImageSource) -> Image.Image:
    if isinstance(source, Image.Image):
        return source
    if isinstance(source, (bytes, bytearray, memoryview)):
        return Image.open(io.BytesIO(bytes(source)))
    return Image.open(Path(source))


def decode(source: ImageSource) -> PixelBuffer:
    """Decode *source* into an owned :class:`PixelBuffer`.

    ``source`` may be encoded bytes, a file path, an already decoded PIL image
    or an existing buffer. Anything Pillow cannot read raises
    :class:`~material_pipeline.core.errors.DecodeError`.
    """

    if isinstance(source, PixelBuffer):
        return source
    try:
        image = _open_image(source)
        image.load()
        rgba = image.convert("RGBA")
    except FileNotFoundError as exc:
        raise DecodeError(f"Image file not found: {source}") from exc
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise DecodeError(f"Input is not a decodable image: {exc}") from exc

    buffer = PixelBuffer.from_array(np.asarray(rgba, dtype=np.uint8))
    LOGGER.debug("Decoded %sx%s image", buffer.width, buffer.height)
    return buffer


def sample(buffer: PixelBuffer, x: int, y: int) -> Tuple[int, int, int, int]:
    """Return the RGBA tuple at ``(x, y)`` with coordinates clamped to the edges."""

    cx = min(buffer.width - 1, max(0, int(x)))
    cy = min(buffer.height - 1, max(0, int(y)))
    r, g, b, a = buffer.pixels[cy, cx]
    return int(r), int(g), int(b), int(a)


def mean_luminance(buffer: PixelBuffer) -> np.ndarray:
    """Unweighted mean of R, G and B as a float64 ``(H, W)`` field."""

    rgb = buffer.rgb.astype(np.float64)
    return (rgb[..., 0] + rgb[..., 1] + rgb[..., 2]) / 3


def perceptual_luminance(buffer: PixelBuffer) -> np.ndarray:
    """Luma with the 0.299/0.587/0.114 weights as a float64 ``(H, W)`` field."""

    rgb = buffer.rgb.astype(np.float64)
    return (
        _PERCEPTUAL_WEIGHTS[0] * rgb[..., 0]
        + _PERCEPTUAL_WEIGHTS[1] * rgb[..., 1]
        + _PERCEPTUAL_WEIGHTS[2] * rgb[..., 2]
    )


def pixel_luminance(buffer: PixelBuffer, x: int, y: int) -> float:
    """Unweighted mean of R, G and B at a clamped coordinate."""

    r, g, b, _ = sample(buffer, x, y)
    return (float(r) + float(g) + float(b)) / 3


def encode(buffer: PixelBuffer, image_format: str = "PNG") -> bytes:
    """Encode *buffer* into an image file held in memory."""

    image = buffer.to_image()
    if image_format.upper() in {"JPEG", "JPG"}:
        image = image.convert("RGB")
        image_format = "JPEG"
    stream = io.BytesIO()
    image.save(stream, format=image_format.upper())
    return stream.getvalue()


def grayscale_buffer(values: np.ndarray) -> PixelBuffer:
    """Replicate an ``(H, W)`` uint8 field across R, G, B with opaque alpha."""

    alpha = np.full(values.shape, 255, dtype=np.uint8)
    return PixelBuffer.from_array(np.dstack([values, values, values, alpha]))


def rgb_buffer(rgb: np.ndarray) -> PixelBuffer:
    """Attach an opaque alpha channel to an ``(H, W, 3)`` uint8 array."""

    alpha = np.full(rgb.shape[:2], 255, dtype=np.uint8)
    return PixelBuffer.from_array(np.dstack([rgb, alpha]))
