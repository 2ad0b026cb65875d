"""I/O helpers for writing generated maps and bundles."""
from __future__ import annotations

import io
import os
import threading
import time
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Mapping, Optional


_LOCK_REGISTRY: dict[Path, threading.Lock] = {}
_LOCK_REGISTRY_GUARD = threading.Lock()

EXPORT_FORMATS: Mapping[str, str] = {
    "png": "PNG",
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "webp": "WEBP",
}


def ensure_dir(path: Path) -> Path:
    """Ensure that *path* exists and return it."""

    path.mkdir(parents=True, exist_ok=True)
    return path


def _acquire_file_lock(target: Path) -> threading.Lock:
    """Return the in-process lock for *target*, already acquired."""

    with _LOCK_REGISTRY_GUARD:
        lock = _LOCK_REGISTRY.get(target)
        if lock is None:
            lock = threading.Lock()
            _LOCK_REGISTRY[target] = lock
    lock.acquire()
    return lock


@contextmanager
def file_lock(path: Path) -> Iterator[None]:
    """Context manager providing a lightweight file lock."""

    temp_lock = path.with_suffix(path.suffix + ".lock")
    lock = _acquire_file_lock(temp_lock)
    try:
        while True:
            try:
                fd = os.open(temp_lock, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                os.close(fd)
                break
            except FileExistsError:
                time.sleep(0.05)
        yield
    finally:
        try:
            os.remove(temp_lock)
        except FileNotFoundError:
            pass
        lock.release()


class SafeFileManager:
    """Manage atomic file writes with automatic directory handling."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)
        ensure_dir(self.base_dir)

    def resolve(self, path: Path | str) -> Path:
        """Resolve *path* relative to :attr:`base_dir`."""

        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.base_dir / candidate
        ensure_dir(candidate.parent)
        return candidate

    def atomic_write(self, data: bytes, path: Path | str) -> Path:
        """Safely write *data* to *path* using a temporary file."""

        destination = self.resolve(path)
        temp_dir = destination.parent / ".tmp_exports"
        ensure_dir(temp_dir)
        temp_path = temp_dir / f"{destination.name}.tmp"
        with file_lock(destination):
            temp_path.write_bytes(data)
            os.replace(temp_path, destination)
        return destination


def atomic_write(data: bytes, path: Path | str, base_dir: Optional[Path] = None) -> Path:
    """Convenience wrapper to persist *data* atomically."""

    if base_dir is None:
        path = Path(path).resolve()
        base_dir = path.parent
    return SafeFileManager(base_dir).atomic_write(data, path)


def build_zip(members: Mapping[str, bytes]) -> bytes:
    """Pack ``name -> bytes`` members into an in-memory zip archive."""

    stream = io.BytesIO()
    with zipfile.ZipFile(stream, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, data in members.items():
            archive.writestr(name, data)
    return stream.getvalue()
