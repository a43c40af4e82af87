"""ROM Patch - apply IPS and BPS patches to ROM images."""

from .exceptions import (
    BoundsError,
    IntegrityError,
    PatchError,
    RomPatchError,
    StructuralError,
)
from .patching import (
    BpsPatch,
    IpsPatch,
    Patch,
    Patcher,
    PatchFormat,
    PatchResult,
    decode_bps,
    decode_ips,
)

__all__ = [
    "BoundsError",
    "IntegrityError",
    "PatchError",
    "RomPatchError",
    "StructuralError",
    "BpsPatch",
    "IpsPatch",
    "Patch",
    "Patcher",
    "PatchFormat",
    "PatchResult",
    "decode_bps",
    "decode_ips",
]
