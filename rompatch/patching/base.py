"""Shared patch types and the extension dispatch table."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Any, Dict, Sequence, Union


class PatchFormat(Enum):
    """Supported patch formats."""

    IPS = auto()  # International Patching System
    BPS = auto()  # Beat Patching System
    UNKNOWN = auto()

    @property
    def extension(self) -> str:
        return _EXTENSIONS.get(self, "")


_EXTENSIONS = {
    PatchFormat.IPS: ".ips",
    PatchFormat.BPS: ".bps",
}

FORMAT_BY_EXTENSION = {ext: fmt for fmt, ext in _EXTENSIONS.items()}


def format_from_path(path: Union[str, Path]) -> PatchFormat:
    """Pick the patch format from a file name's extension (case-insensitive)."""
    return FORMAT_BY_EXTENSION.get(Path(path).suffix.lower(), PatchFormat.UNKNOWN)


@dataclass(frozen=True)
class Patch(ABC):
    """Abstract decoded patch: an ordered instruction list plus a display name.

    The display name is the patch file name; it is used to name the patched
    output. Instances are immutable once a decoder has produced them.
    """

    name: str

    format = PatchFormat.UNKNOWN

    @property
    @abstractmethod
    def instructions(self) -> Sequence[Any]:
        """Records or actions in patch order."""

    @abstractmethod
    def apply(self, source: bytes) -> bytes:
        """Apply this patch to ``source`` and return the target bytes."""

    def describe(self) -> Dict[str, Any]:
        """Summary used for logging and the ``--info`` command."""
        return {
            "name": self.name,
            "format": self.format.name,
            "instructions": len(self.instructions),
        }
