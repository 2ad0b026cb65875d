"""Compose generated and uploaded maps into a single material description."""
from __future__ import annotations

import itertools
import logging
import math
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ...core.utils_color import parse_number
from ...core.utils_image import PixelBuffer
from .parameters import AO, BASE_COLOR, DISPLACEMENT, EMISSIVE, NORMAL, ROUGHNESS, ParameterSet

LOGGER = logging.getLogger("material_pipeline.pbr.composer")

WHITE = 0xFFFFFF
REPEAT_WRAPPING = "repeat"

# Material slots in the order they are applied.
SLOTS = (
    "map",
    "normal_map",
    "roughness_map",
    "metalness_map",
    "displacement_map",
    "ao_map",
    "emissive_map",
    "alpha_map",
)

UPLOAD_SLOTS: Mapping[str, str] = {
    "diffuse": "map",
    "normal": "normal_map",
    "roughness": "roughness_map",
    "metalness": "metalness_map",
    "emissive": "emissive_map",
    "alpha": "alpha_map",
}

GENERATED_SLOTS: Mapping[str, str] = {
    BASE_COLOR: "map",
    NORMAL: "normal_map",
    ROUGHNESS: "roughness_map",
    DISPLACEMENT: "displacement_map",
    AO: "ao_map",
    EMISSIVE: "emissive_map",
}


@dataclass(frozen=True)
class UVTransform:
    """Tiling, offset and rotation shared by every texture slot."""

    tiling_x: float = 1.0
    tiling_y: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    rotation_degrees: float = 0.0

    @classmethod
    def from_values(
        cls,
        tiling_x: object = None,
        tiling_y: object = None,
        offset_x: object = None,
        offset_y: object = None,
        rotation_degrees: object = None,
    ) -> "UVTransform":
        """Build a transform from raw UI values; unusable or zero tiling falls back to defaults."""

        def _value(raw: object, default: float) -> float:
            number = parse_number(raw)
            return default if number is None or (default == 1.0 and number == 0.0) else number

        return cls(
            tiling_x=_value(tiling_x, 1.0),
            tiling_y=_value(tiling_y, 1.0),
            offset_x=_value(offset_x, 0.0),
            offset_y=_value(offset_y, 0.0),
            rotation_degrees=_value(rotation_degrees, 0.0),
        )

    @property
    def rotation(self) -> float:
        """Rotation in radians."""

        return self.rotation_degrees * (math.pi / 180)

    def matrix(self) -> np.ndarray:
        """3x3 matrix mapping mesh UVs to texture coordinates (rotation about the origin)."""

        c = math.cos(self.rotation)
        s = math.sin(self.rotation)
        return np.array(
            [
                [self.tiling_x * c, self.tiling_x * s, self.offset_x],
                [-self.tiling_y * s, self.tiling_y * c, self.offset_y],
                [0.0, 0.0, 1.0],
            ],
            dtype=np.float64,
        )

    def apply(self, u: float, v: float) -> Tuple[float, float]:
        tu, tv, _ = self.matrix() @ np.array([u, v, 1.0])
        return float(tu), float(tv)

    def as_dict(self) -> Dict[str, float]:
        return {
            "tilingX": self.tiling_x,
            "tilingY": self.tiling_y,
            "offsetX": self.offset_x,
            "offsetY": self.offset_y,
            "rotationDegrees": self.rotation_degrees,
        }


class TextureHandle:
    """Read-only view of a pixel buffer handed to the scene-graph host."""

    def __init__(self, handle_id: int, kind: str, buffer: PixelBuffer, pool: "TexturePool") -> None:
        self.id = handle_id
        self.kind = kind
        self.buffer = buffer
        self._pool = pool
        self.released = False

    def release(self) -> None:
        self._pool.release(self)

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"TextureHandle(id={self.id}, kind={self.kind!r}, {self.buffer.width}x{self.buffer.height}, {state})"


class TextureBinding:
    """A handle bound to a material slot with wrapping and the UV transform applied."""

    def __init__(self, binding_id: int, slot: str, handle: TextureHandle, uv: UVTransform, pool: "TexturePool") -> None:
        self.id = binding_id
        self.slot = slot
        self.handle = handle
        self.uv = uv
        self.wrap_s = REPEAT_WRAPPING
        self.wrap_t = REPEAT_WRAPPING
        self._pool = pool
        self.released = False

    def release(self) -> None:
        self._pool.release(self)

    def as_dict(self) -> Dict[str, object]:
        return {
            "texture": self.handle.id,
            "kind": self.handle.kind,
            "wrapS": self.wrap_s,
            "wrapT": self.wrap_t,
            "repeat": [self.uv.tiling_x, self.uv.tiling_y],
            "offset": [self.uv.offset_x, self.uv.offset_y],
            "rotation": self.uv.rotation,
        }


ReleaseHook = Callable[[object], None]


class TexturePool:
    """Track every texture resource handed to the host until it is released."""

    def __init__(self, on_release: Optional[ReleaseHook] = None) -> None:
        self._ids = itertools.count(1)
        self._live: Dict[int, object] = {}
        self._lock = threading.Lock()
        self._on_release = on_release

    def acquire(self, buffer: PixelBuffer, kind: str) -> TextureHandle:
        with self._lock:
            handle = TextureHandle(next(self._ids), kind, buffer, self)
            self._live[handle.id] = handle
        return handle

    def bind(self, slot: str, handle: TextureHandle, uv: UVTransform) -> TextureBinding:
        with self._lock:
            binding = TextureBinding(next(self._ids), slot, handle, uv, self)
            self._live[binding.id] = binding
        return binding

    def release(self, resource: TextureHandle | TextureBinding) -> None:
        with self._lock:
            if resource.released:
                return
            resource.released = True
            self._live.pop(resource.id, None)
        LOGGER.debug("Released %s", resource)
        if self._on_release is not None:
            self._on_release(resource)

    @property
    def live_count(self) -> int:
        with self._lock:
            return len(self._live)

    def live_resources(self) -> List[object]:
        with self._lock:
            return list(self._live.values())


@dataclass(frozen=True)
class UploadedTexture:
    """A user-supplied texture of an explicit semantic type."""

    texture_type: str
    handle: TextureHandle
    intensity: float = 1.0
    name: str = ""

    def __post_init__(self) -> None:
        if self.texture_type not in UPLOAD_SLOTS:
            raise ValueError(f"Unsupported texture type: {self.texture_type}")
        intensity = parse_number(self.intensity)
        if intensity is None or intensity < 0:
            LOGGER.warning("Invalid intensity %r for %s texture; using 1.0", self.intensity, self.texture_type)
            intensity = 1.0
        object.__setattr__(self, "intensity", intensity)


@dataclass(frozen=True)
class MaterialBase:
    """Properties preserved from the existing material."""

    color: int = WHITE
    metalness: float = 0.0
    roughness: float = 1.0
    wireframe: bool = False


@dataclass(frozen=True)
class MaterialDescription:
    """Immutable snapshot of a composed material.

    The host swaps it in atomically; bindings of the description it replaces
    are released by the composer.
    """

    color: int
    metalness: float
    roughness: float
    wireframe: bool
    uv: UVTransform
    slots: Mapping[str, TextureBinding] = field(default_factory=dict)
    normal_scale: Tuple[float, float] = (1.0, 1.0)
    displacement_scale: float = 1.0
    ao_intensity: float = 1.0
    emissive_color: int = 0x000000
    emissive_intensity: float = 1.0
    transparent: bool = False
    opacity: float = 1.0
    requires_secondary_uv: bool = False

    def texture(self, slot: str) -> Optional[TextureHandle]:
        binding = self.slots.get(slot)
        return binding.handle if binding is not None else None

    def bindings(self) -> Iterable[TextureBinding]:
        return self.slots.values()

    def as_dict(self) -> Dict[str, object]:
        return {
            "color": f"#{self.color:06x}",
            "metalness": self.metalness,
            "roughness": self.roughness,
            "wireframe": self.wireframe,
            "normalScale": list(self.normal_scale),
            "displacementScale": self.displacement_scale,
            "aoMapIntensity": self.ao_intensity,
            "emissive": f"#{self.emissive_color:06x}",
            "emissiveIntensity": self.emissive_intensity,
            "transparent": self.transparent,
            "opacity": self.opacity,
            "requiresSecondaryUV": self.requires_secondary_uv,
            "uv": self.uv.as_dict(),
            "maps": {slot: binding.as_dict() for slot, binding in self.slots.items()},
        }


class MaterialComposer:
    """Merge uploads and generated maps, applying one UV transform to every slot."""

    def __init__(self, pool: Optional[TexturePool] = None) -> None:
        self.pool = pool or TexturePool()
        self._current: Optional[MaterialDescription] = None
        self._lock = threading.Lock()

    @property
    def current(self) -> Optional[MaterialDescription]:
        return self._current

    def compose(
        self,
        base: Optional[MaterialBase],
        generated: Mapping[str, Optional[TextureHandle]],
        uploads: Sequence[UploadedTexture] = (),
        uv: Optional[UVTransform] = None,
        parameters: Optional[ParameterSet] = None,
    ) -> MaterialDescription:
        """Build a new description and release the bindings of the previous one."""

        base = base or MaterialBase()
        uv = uv or UVTransform()
        parameters = parameters or ParameterSet()
        props: Dict[str, object] = {
            "color": base.color,
            "metalness": base.metalness,
            "roughness": base.roughness,
            "wireframe": base.wireframe,
        }
        sources: Dict[str, TextureHandle] = {}

        for upload in uploads:
            slot = UPLOAD_SLOTS[upload.texture_type]
            sources[slot] = upload.handle
            intensity = upload.intensity
            if upload.texture_type == "normal":
                props["normal_scale"] = (intensity, intensity)
            elif upload.texture_type == "roughness":
                props["roughness"] = intensity
            elif upload.texture_type == "metalness":
                props["metalness"] = intensity
            elif upload.texture_type == "emissive":
                props["emissive_color"] = WHITE
                props["emissive_intensity"] = intensity
            elif upload.texture_type == "alpha":
                props["transparent"] = True
                props["opacity"] = intensity

        for kind, slot in GENERATED_SLOTS.items():
            handle = generated.get(kind)
            if handle is None or slot in sources:
                continue
            if kind == EMISSIVE and handle.buffer.is_black():
                LOGGER.debug("Skipping all-black emissive map")
                continue
            sources[slot] = handle
            if kind == NORMAL:
                strength = parameters.strength(NORMAL)
                props["normal_scale"] = (strength, strength)
            elif kind == DISPLACEMENT:
                props["displacement_scale"] = parameters.strength(DISPLACEMENT)
            elif kind == AO:
                props["ao_intensity"] = parameters.strength(AO)
                props["requires_secondary_uv"] = True
            elif kind == EMISSIVE:
                props["emissive_color"] = WHITE
                props["emissive_intensity"] = parameters.strength(EMISSIVE)

        with self._lock:
            slots = {slot: self.pool.bind(slot, sources[slot], uv) for slot in SLOTS if slot in sources}
            description = MaterialDescription(uv=uv, slots=slots, **props)  # type: ignore[arg-type]
            previous, self._current = self._current, description
        if previous is not None:
            self._release(previous)
        LOGGER.info("Composed material with %d texture slots", len(slots))
        return description

    def teardown(self) -> None:
        """Release every binding of the current description."""

        with self._lock:
            previous, self._current = self._current, None
        if previous is not None:
            self._release(previous)

    def _release(self, description: MaterialDescription) -> None:
        for binding in description.bindings():
            self.pool.release(binding)


def ensure_secondary_uv(geometry: Dict[str, np.ndarray], description: MaterialDescription) -> Dict[str, np.ndarray]:
    """Copy the primary ``uv`` attribute to ``uv2`` when the material has an AO map.

    Without a second UV set the renderer ignores the AO contribution.
    """

    if description.requires_secondary_uv and "uv" in geometry:
        geometry["uv2"] = geometry["uv"]
    return geometry


__all__ = [
    "GENERATED_SLOTS",
    "MaterialBase",
    "MaterialComposer",
    "MaterialDescription",
    "SLOTS",
    "TextureBinding",
    "TextureHandle",
    "TexturePool",
    "UPLOAD_SLOTS",
    "UVTransform",
    "UploadedTexture",
    "ensure_secondary_uv",
]
