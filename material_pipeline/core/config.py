"""Configuration module for the material map pipeline."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, MutableMapping, Optional, Tuple


BASE_DIR = Path.cwd()

PATH_OUTPUT = BASE_DIR / "texture_maps"
EXPORT_FORMAT = "png"
MATERIAL_TYPE = "auto"
EMISSIVE_THRESHOLD = 210.0

EXPORT_MAPS: Tuple[str, ...] = ("baseColor", "normal", "roughness", "displacement", "ao", "emissive")


@dataclass
class PipelineConfig:
    """Runtime configuration for the material pipeline."""

    output_path: Path = PATH_OUTPUT
    export_format: str = EXPORT_FORMAT
    export_maps: Tuple[str, ...] = EXPORT_MAPS
    export_zip: bool = False
    material_type: str = MATERIAL_TYPE
    emissive_threshold: float = EMISSIVE_THRESHOLD
    threads: Optional[int] = None
    log_file: Path = PATH_OUTPUT / "processing.log"

    def as_dict(self) -> Dict[str, object]:
        """Return the configuration as a plain dictionary."""

        return {
            "PATH_OUTPUT": self.output_path,
            "EXPORT_FORMAT": self.export_format,
            "EXPORT_MAPS": tuple(self.export_maps),
            "EXPORT_ZIP": self.export_zip,
            "MATERIAL_TYPE": self.material_type,
            "EMISSIVE_THRESHOLD": self.emissive_threshold,
            "THREADS": self.threads,
            "LOG_FILE": self.log_file,
        }


def build_config(overrides: Optional[Mapping[str, object]] = None) -> Dict[str, object]:
    """Create a configuration dictionary with optional overrides.

    Unknown keys are ignored.
    """

    config = PipelineConfig()
    if overrides:
        mutable: MutableMapping[str, object] = config.as_dict()
        for key, value in overrides.items():
            if key in mutable:
                mutable[key] = value
        return dict(mutable)
    return config.as_dict()
