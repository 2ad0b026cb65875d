"""Best-effort material classification from brightness and edge density.

The heuristic is coarse: it only seeds generator strengths, and a
misclassification is never an error. Users override the result through
the material-type selector or the individual strength sliders.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from ...core.utils_image import PixelBuffer, mean_luminance
from ..pbr.parameters import DETECTED_PRESETS, MATERIAL_TYPES, PRESETS, MaterialPreset, ParameterSet

LOGGER = logging.getLogger("material_pipeline.semantic.material_type")

__all__ = [
    "ClassificationResult",
    "analyze_brightness",
    "analyze_edge_density",
    "classify",
    "classify_from_statistics",
    "resolve_material_type",
]

EDGE_THRESHOLD = 30
METAL_MIN_BRIGHTNESS = 200
METAL_MAX_EDGE_DENSITY = 50
ORGANIC_MIN_EDGE_DENSITY = 150
STONE_MIN_EDGE_DENSITY = 200


@dataclass(frozen=True)
class ClassificationResult:
    preset_name: str
    parameters: ParameterSet
    metalness: float
    brightness: float = float("nan")
    edge_density: float = float("nan")
    detected: bool = True


def analyze_brightness(buffer: PixelBuffer) -> float:
    """Mean of the unweighted RGB average over every pixel."""

    return float(mean_luminance(buffer).sum() / (buffer.width * buffer.height))


def analyze_edge_density(buffer: PixelBuffer) -> float:
    """Share of interior pixels that differ from their up or right neighbour, on a 0-255 scale.

    The one-pixel border is never counted, but the count is divided by the
    full pixel count.
    """

    gray = mean_luminance(buffer)
    height, width = gray.shape
    if height < 3 or width < 3:
        return 0.0
    center = gray[1:-1, 1:-1]
    up = gray[:-2, 1:-1]
    right = gray[1:-1, 2:]
    edges = (np.abs(center - up) > EDGE_THRESHOLD) | (np.abs(center - right) > EDGE_THRESHOLD)
    return float(np.count_nonzero(edges)) / (width * height) * 255


def classify_from_statistics(brightness: float, edge_density: float) -> str:
    """Apply the decision table to precomputed statistics."""

    if brightness > METAL_MIN_BRIGHTNESS and edge_density < METAL_MAX_EDGE_DENSITY:
        return "metal"
    if edge_density > ORGANIC_MIN_EDGE_DENSITY:
        return "stone" if edge_density > STONE_MIN_EDGE_DENSITY else "wood"
    return "generic"


def _result(preset: MaterialPreset, threshold: object, **extra: object) -> ClassificationResult:
    return ClassificationResult(
        preset_name=preset.name,
        parameters=preset.parameters(threshold),
        metalness=preset.metalness,
        **extra,  # type: ignore[arg-type]
    )


def classify(buffer: PixelBuffer, threshold: object = None) -> ClassificationResult:
    """Pick a preset for *buffer* from its brightness and edge density."""

    brightness = analyze_brightness(buffer)
    edge_density = analyze_edge_density(buffer)
    name = classify_from_statistics(brightness, edge_density)
    LOGGER.info(
        "Auto-detected material %s (brightness=%.1f, edge_density=%.1f)", name, brightness, edge_density
    )
    return _result(DETECTED_PRESETS[name], threshold, brightness=brightness, edge_density=edge_density)


def resolve_material_type(material_type: str, buffer: PixelBuffer, threshold: object = None) -> ClassificationResult:
    """Return the preset for an explicit selection, or classify for ``auto``."""

    key = (material_type or "auto").strip().lower()
    if key not in MATERIAL_TYPES:
        LOGGER.warning("Unknown material type %r; falling back to auto-detection", material_type)
        key = "auto"
    if key == "auto":
        return classify(buffer, threshold)
    return _result(PRESETS[key], threshold, detected=False)
