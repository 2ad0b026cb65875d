"""PBR map generation, composition and session lifecycle."""
from __future__ import annotations

from .parameters import (
    MAP_KINDS,
    PRESETS,
    GeneratorParameters,
    MaterialPreset,
    ParameterSet,
    normalize_strength,
)
from .generation import MAP_GENERATORS, generate_map, generate_maps
from .composer import (
    MaterialBase,
    MaterialComposer,
    MaterialDescription,
    TexturePool,
    UploadedTexture,
    UVTransform,
)
from .session import GeneratedMapSet, TextureGenerationSession

__all__ = [
    "GeneratedMapSet",
    "GeneratorParameters",
    "MAP_GENERATORS",
    "MAP_KINDS",
    "MaterialBase",
    "MaterialComposer",
    "MaterialDescription",
    "MaterialPreset",
    "PRESETS",
    "ParameterSet",
    "TextureGenerationSession",
    "TexturePool",
    "UVTransform",
    "UploadedTexture",
    "generate_map",
    "generate_maps",
    "normalize_strength",
]
