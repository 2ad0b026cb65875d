"""Generator parameters and material presets."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional

from ...core.utils_color import parse_number

LOGGER = logging.getLogger("material_pipeline.pbr.parameters")

BASE_COLOR = "baseColor"
NORMAL = "normal"
ROUGHNESS = "roughness"
DISPLACEMENT = "displacement"
AO = "ao"
EMISSIVE = "emissive"

MAP_KINDS = (BASE_COLOR, NORMAL, ROUGHNESS, DISPLACEMENT, AO, EMISSIVE)
TUNABLE_KINDS = (NORMAL, ROUGHNESS, DISPLACEMENT, AO, EMISSIVE)

EMISSIVE_THRESHOLD = 210.0

DEFAULT_STRENGTHS: Mapping[str, float] = {
    NORMAL: 1.0,
    ROUGHNESS: 1.0,
    DISPLACEMENT: 0.2,
    AO: 1.0,
    EMISSIVE: 0.0,
}

MATERIAL_TYPES = ("auto", "metal", "wood", "stone", "fabric", "plastic")


def normalize_strength(value: object, default: float) -> float:
    """Return a usable strength, falling back to *default* for bad slider input.

    ``None``, non-numeric values, NaN, infinities and negatives all resolve to
    *default*. Large values are passed through untouched.
    """

    number = parse_number(value)
    if number is None or number < 0:
        if value is not None:
            LOGGER.warning("Invalid strength %r; using default %.2f", value, default)
        return default
    return number


def normalize_threshold(value: object) -> float:
    number = parse_number(value)
    if number is None:
        return EMISSIVE_THRESHOLD
    return min(255.0, max(0.0, number))


@dataclass(frozen=True)
class GeneratorParameters:
    """Strength (and optional threshold) for a single map generator."""

    strength: float
    threshold: Optional[float] = None


def default_parameters() -> Dict[str, GeneratorParameters]:
    params = {kind: GeneratorParameters(strength) for kind, strength in DEFAULT_STRENGTHS.items()}
    params[EMISSIVE] = GeneratorParameters(DEFAULT_STRENGTHS[EMISSIVE], EMISSIVE_THRESHOLD)
    return params


@dataclass(frozen=True)
class ParameterSet:
    """All tunable generator parameters, passed by value into the generators."""

    values: Mapping[str, GeneratorParameters] = field(default_factory=default_parameters)

    def __getitem__(self, kind: str) -> GeneratorParameters:
        return self.values[kind]

    def strength(self, kind: str) -> float:
        return self.values[kind].strength

    def with_strength(self, kind: str, value: object) -> "ParameterSet":
        """Return a copy with the strength of *kind* replaced."""

        if kind not in DEFAULT_STRENGTHS:
            raise KeyError(f"Unknown tunable map kind: {kind}")
        strength = normalize_strength(value, DEFAULT_STRENGTHS[kind])
        updated = dict(self.values)
        updated[kind] = replace(updated[kind], strength=strength)
        return ParameterSet(updated)

    def with_threshold(self, value: object) -> "ParameterSet":
        updated = dict(self.values)
        updated[EMISSIVE] = replace(updated[EMISSIVE], threshold=normalize_threshold(value))
        return ParameterSet(updated)

    @classmethod
    def from_strengths(
        cls, strengths: Mapping[str, object], threshold: object = EMISSIVE_THRESHOLD
    ) -> "ParameterSet":
        params = cls()
        for kind, value in strengths.items():
            params = params.with_strength(kind, value)
        return params.with_threshold(threshold)

    def as_dict(self) -> Dict[str, float]:
        return {kind: params.strength for kind, params in self.values.items()}


@dataclass(frozen=True)
class MaterialPreset:
    """Named bundle of generator strengths plus a metalness scalar."""

    name: str
    normal: float
    roughness: float
    ao: float
    displacement: float
    emissive: float
    metalness: float

    def parameters(self, threshold: object = EMISSIVE_THRESHOLD) -> ParameterSet:
        return ParameterSet.from_strengths(
            {
                NORMAL: self.normal,
                ROUGHNESS: self.roughness,
                AO: self.ao,
                DISPLACEMENT: self.displacement,
                EMISSIVE: self.emissive,
            },
            threshold,
        )


PRESETS: Mapping[str, MaterialPreset] = {
    "metal": MaterialPreset("metal", 0.8, 0.2, 0.4, 0.1, 0.0, 0.9),
    "wood": MaterialPreset("wood", 1.2, 0.7, 0.6, 0.3, 0.0, 0.0),
    "stone": MaterialPreset("stone", 1.5, 0.8, 0.7, 0.5, 0.0, 0.0),
    "fabric": MaterialPreset("fabric", 0.7, 0.9, 0.4, 0.15, 0.0, 0.0),
    "plastic": MaterialPreset("plastic", 0.6, 0.3, 0.3, 0.05, 0.0, 0.1),
}

# Values used when the material type is detected rather than selected.
DETECTED_PRESETS: Mapping[str, MaterialPreset] = {
    "metal": MaterialPreset("metal", 0.8, 0.2, 0.3, 0.1, 0.0, 0.9),
    "wood": MaterialPreset("wood", 1.2, 0.7, 0.6, 0.3, 0.0, 0.0),
    "stone": MaterialPreset("stone", 1.2, 0.7, 0.6, 0.3, 0.0, 0.0),
    "generic": MaterialPreset("generic", 1.0, 0.5, 0.5, 0.2, 0.0, 0.1),
}

__all__ = [
    "AO",
    "BASE_COLOR",
    "DEFAULT_STRENGTHS",
    "DETECTED_PRESETS",
    "DISPLACEMENT",
    "EMISSIVE",
    "EMISSIVE_THRESHOLD",
    "GeneratorParameters",
    "MAP_KINDS",
    "MATERIAL_TYPES",
    "MaterialPreset",
    "NORMAL",
    "PRESETS",
    "ParameterSet",
    "ROUGHNESS",
    "TUNABLE_KINDS",
    "default_parameters",
    "normalize_strength",
    "normalize_threshold",
]
