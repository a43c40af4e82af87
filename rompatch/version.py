"""Version utilities for ROM Patch."""

from __future__ import annotations

from importlib import metadata

DEFAULT_VERSION = "1.0.0"


def load_version() -> str:
    try:
        return metadata.version("rompatch")
    except metadata.PackageNotFoundError:
        return DEFAULT_VERSION
