"""Command line interface for the PBR texture-map generator."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, Optional, Sequence

from .core import config
from .core.errors import MaterialPipelineError
from .core.utils_io import EXPORT_FORMATS, atomic_write

LOGGER = logging.getLogger("material_pipeline.main_generate")

MAP_CHOICES = ("baseColor", "normal", "roughness", "displacement", "ao", "emissive")
MATERIAL_CHOICES = ("auto", "metal", "wood", "stone", "fabric", "plastic")


class BoolAction(argparse.Action):
    """Robust boolean flag parser supporting affirmative and negative forms."""

    def __call__(self, parser, namespace, values, option_string=None):  # type: ignore[override]
        if values is None:
            setattr(namespace, self.dest, True)
            return
        normalized = str(values).strip().lower()
        if normalized in {"1", "y", "yes", "t", "true", "on"}:
            setattr(namespace, self.dest, True)
        elif normalized in {"0", "n", "no", "f", "false", "off"}:
            setattr(namespace, self.dest, False)
        else:
            raise argparse.ArgumentTypeError(f"Invalid boolean for {option_string}: {values!r}")


def _configure_logging(log_path: Path) -> None:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S")
    file_handler = logging.FileHandler(log_path, encoding="utf-8", delay=True)
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logging.basicConfig(level=logging.INFO, handlers=[file_handler, console_handler], force=True)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate PBR texture maps from a single color photograph")
    parser.add_argument("--input", type=Path, required=True, help="Source color image")
    parser.add_argument("--output", type=Path, default=config.PATH_OUTPUT, help="Directory to write maps into")
    parser.add_argument(
        "--material-type",
        choices=MATERIAL_CHOICES,
        default=config.MATERIAL_TYPE,
        help="Material preset to seed strengths with (default: auto-detect)",
    )
    for kind in ("normal", "roughness", "displacement", "ao", "emissive"):
        parser.add_argument(
            f"--{kind}-strength",
            type=float,
            default=None,
            help=f"Override the {kind} strength after the preset is applied",
        )
    parser.add_argument(
        "--emissive-threshold",
        type=float,
        default=config.EMISSIVE_THRESHOLD,
        help="Brightness above which pixels emit",
    )
    parser.add_argument("--tiling-x", type=float, default=1.0)
    parser.add_argument("--tiling-y", type=float, default=1.0)
    parser.add_argument("--offset-x", type=float, default=0.0)
    parser.add_argument("--offset-y", type=float, default=0.0)
    parser.add_argument("--rotation", type=float, default=0.0, help="UV rotation in degrees")
    parser.add_argument(
        "--format",
        choices=sorted(EXPORT_FORMATS),
        default=config.EXPORT_FORMAT,
        help="Image format for exported maps",
    )
    parser.add_argument(
        "--maps",
        nargs="*",
        choices=MAP_CHOICES,
        default=list(config.EXPORT_MAPS),
        help="Map kinds to export",
    )
    parser.add_argument(
        "--zip",
        nargs="?",
        default=False,
        action=BoolAction,
        help="Bundle the maps into texture_maps.zip (default: false)",
    )
    parser.add_argument("--no-zip", dest="zip", action="store_false", help="Write one file per map")
    parser.add_argument("--threads", type=int, default=None, help="Generate maps on a thread pool")
    parser.add_argument("--log-file", type=Path, default=None, help="Log file path")
    return parser.parse_args(argv)


def build_runtime_config(args: argparse.Namespace) -> Dict[str, object]:
    output = args.output.resolve()
    overrides: Dict[str, object] = {
        "PATH_OUTPUT": output,
        "EXPORT_FORMAT": args.format,
        "EXPORT_MAPS": tuple(args.maps),
        "EXPORT_ZIP": args.zip,
        "MATERIAL_TYPE": args.material_type,
        "EMISSIVE_THRESHOLD": args.emissive_threshold,
        "THREADS": args.threads,
        "LOG_FILE": (args.log_file or output / "processing.log").resolve(),
    }
    return config.build_config(overrides)


def run(args: argparse.Namespace, cfg: Dict[str, object]) -> Path:
    """Generate, compose and export the maps described by *args*."""

    from .modules.pbr.composer import UVTransform
    from .modules.pbr.session import TextureGenerationSession

    session = TextureGenerationSession(threads=cfg["THREADS"])  # type: ignore[arg-type]
    session.set_emissive_threshold(cfg["EMISSIVE_THRESHOLD"])
    session.load_image(args.input, material_type=str(cfg["MATERIAL_TYPE"]))
    result = session.classification
    LOGGER.info("Using %s preset (metalness %.2f)", result.preset_name, result.metalness)

    for kind in ("normal", "roughness", "displacement", "ao", "emissive"):
        value = getattr(args, f"{kind}_strength")
        if value is not None:
            session.set_strength(kind, value)

    uv = UVTransform.from_values(args.tiling_x, args.tiling_y, args.offset_x, args.offset_y, args.rotation)
    description = session.compose(uv=uv)

    output = Path(cfg["PATH_OUTPUT"])  # type: ignore[arg-type]
    kinds = list(cfg["EXPORT_MAPS"])  # type: ignore[call-overload]
    fmt = str(cfg["EXPORT_FORMAT"])
    if cfg["EXPORT_ZIP"]:
        session.save_bundle(output / "texture_maps.zip", kinds, fmt)
    else:
        written = session.save_maps(output, kinds, fmt)
        LOGGER.info("Wrote %d maps to %s", len(written), output)

    document = {
        "preset": result.preset_name,
        "strengths": session.parameters.as_dict(),
        "material": description.as_dict(),
    }
    return atomic_write(json.dumps(document, indent=2).encode("utf-8"), output / "material.json")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    cfg = build_runtime_config(args)
    _configure_logging(Path(cfg["LOG_FILE"]))  # type: ignore[arg-type]
    LOGGER.info(
        "CLI flags resolved -> material=%s, format=%s, zip=%s",
        args.material_type,
        args.format,
        args.zip,
    )
    try:
        run(args, cfg)
    except MaterialPipelineError as exc:
        LOGGER.error("Generation failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
