"""Procedural PBR texture-map generation from a single color photograph."""
from __future__ import annotations

__version__ = "0.1.0"
