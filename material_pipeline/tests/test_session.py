"""Lifecycle tests for :class:`TextureGenerationSession`."""
from __future__ import annotations

import io
import threading
import zipfile

import pytest

pytest.importorskip("PIL")

from conftest import png_bytes, uniform
from PIL import Image

from material_pipeline.core.errors import DecodeError, MissingSourceError, UnsupportedExportTarget
from material_pipeline.core.utils_image import PixelBuffer
from material_pipeline.modules.pbr.parameters import MAP_KINDS
from material_pipeline.modules.pbr import session as session_module
from material_pipeline.modules.pbr.session import TextureGenerationSession


class Recorder:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def __call__(self, message: str, level: str) -> None:
        self.messages.append((message, level))


@pytest.fixture
def notices() -> Recorder:
    return Recorder()


@pytest.fixture
def session(notices: Recorder) -> TextureGenerationSession:
    return TextureGenerationSession(notify=notices)


def test_load_generates_every_map(session: TextureGenerationSession, photo_bytes: bytes) -> None:
    handles = session.load_image(photo_bytes)
    assert set(handles) == set(MAP_KINDS)
    assert all(handle is not None for handle in handles.values())
    assert session.source.size == (16, 12)
    assert session.pool.live_count == len(MAP_KINDS)


def test_failed_decode_keeps_previous_maps(
    session: TextureGenerationSession, notices: Recorder, photo_bytes: bytes
) -> None:
    before = session.load_image(photo_bytes)
    with pytest.raises(DecodeError):
        session.load_image(b"definitely not an image")
    assert session.maps.handles() == before
    assert not any(handle.released for handle in before.values())
    assert notices.messages[-1][1] == "error"


def test_operations_require_a_source(session: TextureGenerationSession, notices: Recorder) -> None:
    with pytest.raises(MissingSourceError):
        session.regenerate("normal")
    with pytest.raises(MissingSourceError):
        session.export_bundle(["normal"])
    assert notices.messages[-1] == ("Please upload a texture first", "error")
    assert session.set_strength("normal", 2.0) is None
    assert session.parameters.strength("normal") == 2.0


def test_set_strength_regenerates_one_slot(session: TextureGenerationSession, photo_bytes: bytes) -> None:
    before = session.load_image(photo_bytes)
    session.set_strength("roughness", 0.5)
    after = session.maps.handles()
    assert after["roughness"] is not before["roughness"]
    assert before["roughness"].released
    for kind in MAP_KINDS:
        if kind != "roughness":
            assert after[kind] is before[kind]
    assert session.pool.live_count == len(MAP_KINDS)


def test_invalid_strength_uses_default(session: TextureGenerationSession, photo_bytes: bytes) -> None:
    session.load_image(photo_bytes)
    session.set_strength("displacement", float("nan"))
    assert session.parameters.strength("displacement") == 0.2
    with pytest.raises(KeyError):
        session.set_strength("baseColor", 1.0)


def test_new_source_replaces_every_map(session: TextureGenerationSession, photo_bytes: bytes) -> None:
    before = session.load_image(photo_bytes)
    session.load_image(png_bytes(Image.new("RGB", (4, 4), (20, 30, 40))))
    assert all(handle.released for handle in before.values())
    assert session.maps.buffer("baseColor").size == (4, 4)
    assert session.pool.live_count == len(MAP_KINDS)


def test_stale_results_are_discarded(session: TextureGenerationSession, photo_bytes: bytes) -> None:
    session.load_image(photo_bytes)
    current = session.maps["normal"]
    stale_source = uniform((1, 2, 3))
    assert session._generate_slot("normal", stale_source, session._version - 1, session.parameters) is None
    assert session.maps["normal"] is current


def test_threaded_generation_matches_sequential(photo_bytes: bytes) -> None:
    sequential = TextureGenerationSession()
    threaded = TextureGenerationSession(threads=4)
    sequential.load_image(photo_bytes)
    threaded.load_image(photo_bytes)
    assert dict(sequential.snapshot()) == dict(threaded.snapshot())


def test_decode_async(session: TextureGenerationSession, photo_bytes: bytes) -> None:
    buffer = session.decode_async(photo_bytes).result(timeout=10)
    assert isinstance(buffer, PixelBuffer)
    failed = session.decode_async(b"garbage")
    assert isinstance(failed.exception(timeout=10), DecodeError)


def test_apply_material_type(session: TextureGenerationSession, notices: Recorder, photo_bytes: bytes) -> None:
    session.load_image(photo_bytes)
    result = session.apply_material_type("metal")
    assert result.preset_name == "metal"
    assert session.metalness == pytest.approx(0.9)
    assert session.parameters.strength("roughness") == pytest.approx(0.2)
    assert notices.messages[-1] == ("Material optimized for metal", "success")
    assert session.compose().metalness == pytest.approx(0.9)


def test_compose_is_deterministic(session: TextureGenerationSession, photo_bytes: bytes) -> None:
    session.load_image(photo_bytes)
    first = session.compose().as_dict()
    assert session.compose().as_dict() == first
    assert first["requiresSecondaryUV"] is True


def test_upload_texture_overrides_generated(session: TextureGenerationSession, photo_bytes: bytes) -> None:
    session.load_image(photo_bytes)
    upload = session.upload_texture(png_bytes(Image.new("RGB", (2, 2), (9, 9, 9))), "diffuse", name="albedo.png")
    assert session.compose(uploads=[upload]).texture("map") is upload.handle


def test_export_bundle_members(session: TextureGenerationSession, photo_bytes: bytes) -> None:
    session.load_image(photo_bytes)
    data = session.export_bundle(["normal", "ao", "bogus"], "png")
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        assert archive.namelist() == ["texture_normal.png", "texture_ao.png"]
        image = Image.open(io.BytesIO(archive.read("texture_normal.png")))
        assert image.size == (16, 12)


def test_export_requires_selection(session: TextureGenerationSession, notices: Recorder, photo_bytes: bytes) -> None:
    session.load_image(photo_bytes)
    with pytest.raises(UnsupportedExportTarget):
        session.export_bundle([])
    assert notices.messages[-1] == ("Please select at least one map to export", "warning")
    with pytest.raises(UnsupportedExportTarget):
        session.export_map("normal", "bmp")


def test_export_map_jpeg(session: TextureGenerationSession, photo_bytes: bytes) -> None:
    session.load_image(photo_bytes)
    assert session.export_map("displacement", "jpg")[:2] == b"\xff\xd8"


def test_save_maps_and_bundle(session: TextureGenerationSession, photo_bytes: bytes, tmp_path) -> None:
    session.load_image(photo_bytes)
    written = session.save_maps(tmp_path / "maps", ["baseColor", "emissive"], "webp")
    assert sorted(path.name for path in written.values()) == ["texture_baseColor.webp", "texture_emissive.webp"]
    assert all(path.exists() for path in written.values())
    bundle = session.save_bundle(tmp_path / "bundle.zip", MAP_KINDS)
    assert zipfile.is_zipfile(bundle)


def test_clear_releases_everything(session: TextureGenerationSession, photo_bytes: bytes) -> None:
    session.load_image(photo_bytes)
    session.compose()
    session.clear()
    assert session.pool.live_count == 0
    assert session.source is None
    assert session.maps.is_empty()


def test_load_with_material_type_generates_once(
    session: TextureGenerationSession, notices: Recorder, photo_bytes: bytes, monkeypatch
) -> None:
    calls = []
    real_generate = session_module.generate_map

    def counting(kind, source, parameters=None):
        calls.append(kind)
        return real_generate(kind, source, parameters)

    monkeypatch.setattr(session_module, "generate_map", counting)
    session.load_image(photo_bytes, material_type="wood")
    assert sorted(calls) == sorted(MAP_KINDS)
    assert session.classification.preset_name == "wood"
    assert session.parameters.strength("normal") == pytest.approx(1.2)
    assert notices.messages[-1] == ("Material optimized for wood", "success")


def test_new_source_tears_down_composed_material(session: TextureGenerationSession, photo_bytes: bytes) -> None:
    session.load_image(photo_bytes)
    bindings = list(session.compose().bindings())
    session.load_image(png_bytes(Image.new("RGB", (4, 4), (200, 10, 10))))
    assert session.composer.current is None
    assert all(binding.released for binding in bindings)
    assert session.pool.live_count == len(MAP_KINDS)
    material = session.compose()
    assert not any(binding.handle.released for binding in material.bindings())


def test_compose_waits_for_inflight_regeneration(
    session: TextureGenerationSession, photo_bytes: bytes, monkeypatch
) -> None:
    session.load_image(photo_bytes)
    started = threading.Event()
    proceed = threading.Event()
    real_generate = session_module.generate_map

    def blocking(kind, source, parameters=None):
        if kind == "normal":
            started.set()
            proceed.wait(timeout=10)
        return real_generate(kind, source, parameters)

    monkeypatch.setattr(session_module, "generate_map", blocking)
    regeneration = threading.Thread(target=session.set_strength, args=("normal", 1.5))
    regeneration.start()
    assert started.wait(timeout=10)

    composed = []
    composing = threading.Thread(target=lambda: composed.append(session.compose()))
    composing.start()
    composing.join(timeout=0.2)
    assert not composed

    proceed.set()
    regeneration.join(timeout=10)
    composing.join(timeout=10)
    material = composed[0]
    assert material.texture("normal_map") is session.maps["normal"]
    assert not any(binding.handle.released for binding in material.bindings())
