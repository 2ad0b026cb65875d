"""Exception taxonomy for the material pipeline."""
from __future__ import annotations


class MaterialPipelineError(Exception):
    """Base class for every recoverable pipeline failure."""


class DecodeError(MaterialPipelineError):
    """Raised when input bytes cannot be decoded as a raster image."""


UnsupportedInput = DecodeError


class MissingSourceError(MaterialPipelineError):
    """Raised when regeneration or export is requested before an image was decoded."""

    def __init__(self, message: str = "Please upload a texture first") -> None:
        super().__init__(message)


class UnsupportedExportTarget(MaterialPipelineError):
    """Raised when an export has no map kinds selected or an unknown format."""


__all__ = [
    "DecodeError",
    "MaterialPipelineError",
    "MissingSourceError",
    "UnsupportedExportTarget",
    "UnsupportedInput",
]
