"""Dispatch table tying map kinds to their generators."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, Mapping, Optional

from ...core.utils_image import PixelBuffer
from ..geometry_maps import ambient_occlusion, displacement_map
from ..surface_maps import base_color, emissive_map, normal_map, roughness_map
from .parameters import (
    AO,
    BASE_COLOR,
    DISPLACEMENT,
    EMISSIVE,
    MAP_KINDS,
    NORMAL,
    ROUGHNESS,
    GeneratorParameters,
    ParameterSet,
)

LOGGER = logging.getLogger("material_pipeline.pbr.generation")

Generator = Callable[[PixelBuffer, GeneratorParameters], PixelBuffer]


def _emissive(buffer: PixelBuffer, params: GeneratorParameters) -> PixelBuffer:
    return emissive_map.generate(buffer, params.strength, params.threshold)


MAP_GENERATORS: Mapping[str, Generator] = {
    BASE_COLOR: lambda buffer, params: base_color.generate(buffer),
    NORMAL: lambda buffer, params: normal_map.generate(buffer, params.strength),
    ROUGHNESS: lambda buffer, params: roughness_map.generate(buffer, params.strength),
    DISPLACEMENT: lambda buffer, params: displacement_map.generate(buffer, params.strength),
    AO: lambda buffer, params: ambient_occlusion.generate(buffer, params.strength),
    EMISSIVE: _emissive,
}

_BASE_COLOR_PARAMETERS = GeneratorParameters(1.0)


def generate_map(kind: str, buffer: PixelBuffer, parameters: Optional[ParameterSet] = None) -> PixelBuffer:
    """Run the generator registered for *kind*."""

    try:
        generator = MAP_GENERATORS[kind]
    except KeyError as exc:
        raise KeyError(f"Unknown map kind: {kind}") from exc
    parameters = parameters or ParameterSet()
    params = _BASE_COLOR_PARAMETERS if kind == BASE_COLOR else parameters[kind]
    return generator(buffer, params)


def generate_maps(
    buffer: PixelBuffer,
    parameters: Optional[ParameterSet] = None,
    kinds: Iterable[str] = MAP_KINDS,
) -> Dict[str, PixelBuffer]:
    """Generate each map in *kinds* from the same source buffer."""

    parameters = parameters or ParameterSet()
    maps = {kind: generate_map(kind, buffer, parameters) for kind in kinds}
    LOGGER.info("Generated %d maps for %sx%s source", len(maps), buffer.width, buffer.height)
    return maps


__all__ = ["MAP_GENERATORS", "generate_map", "generate_maps"]
