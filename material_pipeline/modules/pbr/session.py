"""Lifecycle of one source image and the maps generated from it."""
from __future__ import annotations

import concurrent.futures
import contextlib
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, Mapping, NoReturn, Optional, Sequence, Tuple

from ...core.errors import DecodeError, MaterialPipelineError, MissingSourceError, UnsupportedExportTarget
from ...core.utils_image import ImageSource, PixelBuffer, decode, encode
from ...core.utils_io import EXPORT_FORMATS, atomic_write, build_zip
from ...core.utils_parallel import run_parallel, shared_pool
from ..semantic_maps.material_type import ClassificationResult, resolve_material_type
from .composer import (
    MaterialBase,
    MaterialComposer,
    MaterialDescription,
    TextureHandle,
    TexturePool,
    UploadedTexture,
    UVTransform,
)
from .generation import generate_map
from .parameters import EMISSIVE, MAP_KINDS, TUNABLE_KINDS, ParameterSet

LOGGER = logging.getLogger("material_pipeline.pbr.session")

Notifier = Callable[[str, str], None]


_LEVELS = {"info": logging.INFO, "success": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


def _log_notifier(message: str, level: str) -> None:
    LOGGER.log(_LEVELS.get(level, logging.INFO), message)


class GeneratedMapSet:
    """Optional pixel buffer and texture handle per map kind.

    Replacing an entry releases the handle it held; :meth:`clear` releases
    everything.
    """

    def __init__(self, pool: TexturePool) -> None:
        self._pool = pool
        self._handles: Dict[str, Optional[TextureHandle]] = {kind: None for kind in MAP_KINDS}
        self._lock = threading.Lock()

    def __getitem__(self, kind: str) -> Optional[TextureHandle]:
        return self._handles[kind]

    def __iter__(self) -> Iterator[str]:
        return iter(MAP_KINDS)

    def buffer(self, kind: str) -> Optional[PixelBuffer]:
        handle = self._handles[kind]
        return handle.buffer if handle is not None else None

    def handles(self) -> Dict[str, Optional[TextureHandle]]:
        with self._lock:
            return dict(self._handles)

    def install(self, kind: str, buffer: PixelBuffer) -> TextureHandle:
        """Acquire a handle for *buffer*, release the previous one, and store it."""

        handle = self._pool.acquire(buffer, kind)
        with self._lock:
            previous, self._handles[kind] = self._handles[kind], handle
        if previous is not None:
            previous.release()
        return handle

    def clear(self) -> None:
        with self._lock:
            previous = [handle for handle in self._handles.values() if handle is not None]
            self._handles = {kind: None for kind in MAP_KINDS}
        for handle in previous:
            handle.release()

    def is_empty(self) -> bool:
        return all(handle is None for handle in self._handles.values())


class TextureGenerationSession:
    """Own the source buffer, parameters, generated maps and composed material.

    Every public operation reports failures through ``notify`` before raising
    a :class:`~material_pipeline.core.errors.MaterialPipelineError`; the state
    held before the failing call is left untouched.
    """

    def __init__(
        self,
        parameters: Optional[ParameterSet] = None,
        *,
        pool: Optional[TexturePool] = None,
        notify: Optional[Notifier] = None,
        threads: Optional[int] = None,
    ) -> None:
        self.pool = pool or TexturePool()
        self.parameters = parameters or ParameterSet()
        self.maps = GeneratedMapSet(self.pool)
        self.composer = MaterialComposer(self.pool)
        self.notify = notify or _log_notifier
        self.threads = threads
        self.metalness: Optional[float] = None
        self.classification: Optional[ClassificationResult] = None
        self._source: Optional[PixelBuffer] = None
        self._version = 0
        self._state_lock = threading.Lock()
        self._slot_locks = {kind: threading.Lock() for kind in MAP_KINDS}

    # ------------------------------------------------------------------
    # Source handling
    # ------------------------------------------------------------------

    @property
    def source(self) -> Optional[PixelBuffer]:
        return self._source

    def load_image(
        self, data: ImageSource, material_type: Optional[str] = None
    ) -> Dict[str, Optional[TextureHandle]]:
        """Decode *data*, drop the previous map set and generate every map.

        When *material_type* is given the preset is resolved before the first
        generation pass, so the maps are only computed once.
        """

        try:
            buffer = decode(data)
        except DecodeError as exc:
            self._fail(exc)
        return self.set_source(buffer, material_type)

    def decode_async(self, data: ImageSource) -> concurrent.futures.Future:
        """Decode on a background thread; the future resolves once with a buffer or a DecodeError."""

        return shared_pool().submit(decode, data)

    def set_source(
        self, buffer: PixelBuffer, material_type: Optional[str] = None
    ) -> Dict[str, Optional[TextureHandle]]:
        with self._state_lock:
            self._version += 1
            self._source = buffer
        self.composer.teardown()
        self.maps.clear()
        LOGGER.info("New source image %sx%s", buffer.width, buffer.height)
        if material_type is not None:
            self._resolve_preset(material_type, buffer)
        handles = self.generate_all()
        if material_type is not None:
            self._announce_preset()
        return handles

    def clear(self) -> None:
        """Forget the source image and release every texture resource."""

        with self._state_lock:
            self._version += 1
            self._source = None
        self.maps.clear()
        self.composer.teardown()
        LOGGER.info("Cleared generated maps")

    def _require_source(self) -> Tuple[PixelBuffer, int]:
        with self._state_lock:
            source, version = self._source, self._version
        if source is None:
            self._fail(MissingSourceError())
        return source, version

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def _generate_slot(
        self, kind: str, source: PixelBuffer, version: int, parameters: ParameterSet
    ) -> Optional[TextureHandle]:
        with self._slot_locks[kind]:
            buffer = generate_map(kind, source, parameters)
            with self._state_lock:
                if version != self._version:
                    LOGGER.info("Discarding %s map computed from a replaced source", kind)
                    return None
                return self.maps.install(kind, buffer)

    def regenerate(self, kind: str) -> Optional[TextureHandle]:
        """Regenerate a single map kind from the current source."""

        if kind not in MAP_KINDS:
            raise KeyError(f"Unknown map kind: {kind}")
        source, version = self._require_source()
        return self._generate_slot(kind, source, version, self.parameters)

    def generate_all(self, threads: Optional[int] = None) -> Dict[str, Optional[TextureHandle]]:
        """Regenerate every map kind, optionally across a thread pool."""

        source, version = self._require_source()
        parameters = self.parameters
        workers = threads if threads is not None else self.threads
        if workers and workers > 1:
            run_parallel(
                lambda kind: self._generate_slot(kind, source, version, parameters),
                list(MAP_KINDS),
                max_workers=workers,
            )
        else:
            for kind in MAP_KINDS:
                self._generate_slot(kind, source, version, parameters)
        return self.maps.handles()

    def set_strength(self, kind: str, value: object) -> Optional[TextureHandle]:
        """Update one slider value and regenerate only the affected map."""

        if kind not in TUNABLE_KINDS:
            raise KeyError(f"Unknown tunable map kind: {kind}")
        self.parameters = self.parameters.with_strength(kind, value)
        LOGGER.info("%s strength set to %.2f", kind, self.parameters.strength(kind))
        if self._source is None:
            return None
        return self.regenerate(kind)

    def set_emissive_threshold(self, value: object) -> Optional[TextureHandle]:
        self.parameters = self.parameters.with_threshold(value)
        if self._source is None:
            return None
        return self.regenerate(EMISSIVE)

    def apply_material_type(self, material_type: str) -> ClassificationResult:
        """Seed all strengths from a preset (or auto-detection) and regenerate."""

        source, _ = self._require_source()
        result = self._resolve_preset(material_type, source)
        self.generate_all()
        self._announce_preset()
        return result

    def _resolve_preset(self, material_type: str, source: PixelBuffer) -> ClassificationResult:
        threshold = self.parameters[EMISSIVE].threshold
        result = resolve_material_type(material_type, source, threshold)
        self.parameters = result.parameters
        self.metalness = result.metalness
        self.classification = result
        return result

    def _announce_preset(self) -> None:
        if self.classification is not None:
            self.notify(f"Material optimized for {self.classification.preset_name}", "success")

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def compose(
        self,
        base: Optional[MaterialBase] = None,
        uploads: Sequence[UploadedTexture] = (),
        uv: Optional[UVTransform] = None,
    ) -> MaterialDescription:
        """Compose once every in-flight regeneration has installed its map."""

        if base is None and self.metalness is not None:
            base = MaterialBase(metalness=self.metalness)
        with contextlib.ExitStack() as stack:
            for kind in MAP_KINDS:
                stack.enter_context(self._slot_locks[kind])
            handles = self.maps.handles()
            return self.composer.compose(base, handles, uploads, uv, self.parameters)

    def upload_texture(
        self, data: ImageSource, texture_type: str, intensity: float = 1.0, name: str = ""
    ) -> UploadedTexture:
        """Decode a user texture and wrap it for :meth:`compose`."""

        try:
            buffer = decode(data)
        except DecodeError as exc:
            self._fail(exc)
        return UploadedTexture(texture_type, self.pool.acquire(buffer, texture_type), intensity, name)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_map(self, kind: str, image_format: str = "png") -> bytes:
        """Encode one generated map as a standalone image."""

        self._require_source()
        fmt = self._resolve_format(image_format)
        buffer = self.maps.buffer(kind)
        if buffer is None:
            self._fail(UnsupportedExportTarget(f"Map {kind!r} is not available"))
        return encode(buffer, fmt)

    def export_bundle(self, kinds: Iterable[str], image_format: str = "png") -> bytes:
        """Zip the selected maps as ``texture_<kind>.<ext>``."""

        self._require_source()
        fmt = self._resolve_format(image_format)
        extension = image_format.lower()
        members: Dict[str, bytes] = {}
        for kind in kinds:
            buffer = self.maps.buffer(kind) if kind in MAP_KINDS else None
            if buffer is None:
                LOGGER.warning("Skipping unavailable map %r", kind)
                continue
            members[f"texture_{kind}.{extension}"] = encode(buffer, fmt)
        if not members:
            self._fail(UnsupportedExportTarget("Please select at least one map to export"))
        LOGGER.info("Exporting %d texture maps", len(members))
        return build_zip(members)

    def save_bundle(self, path: Path | str, kinds: Iterable[str], image_format: str = "png") -> Path:
        data = self.export_bundle(kinds, image_format)
        destination = atomic_write(data, path)
        self.notify(f"Texture maps exported to {destination}", "success")
        return destination

    def save_maps(self, directory: Path | str, kinds: Iterable[str], image_format: str = "png") -> Dict[str, Path]:
        """Write each selected map to ``directory/texture_<kind>.<ext>``."""

        directory = Path(directory)
        written: Dict[str, Path] = {}
        for kind in kinds:
            data = self.export_map(kind, image_format)
            written[kind] = atomic_write(data, directory / f"texture_{kind}.{image_format.lower()}")
        if not written:
            self._fail(UnsupportedExportTarget("Please select at least one map to export"))
        return written

    def _resolve_format(self, image_format: str) -> str:
        fmt = EXPORT_FORMATS.get((image_format or "").lower())
        if fmt is None:
            self._fail(UnsupportedExportTarget(f"Unsupported export format: {image_format!r}"))
        return fmt

    def _fail(self, error: MaterialPipelineError) -> NoReturn:
        level = "warning" if isinstance(error, UnsupportedExportTarget) else "error"
        self.notify(str(error), level)
        raise error

    def snapshot(self) -> Mapping[str, Optional[PixelBuffer]]:
        return {kind: self.maps.buffer(kind) for kind in MAP_KINDS}
