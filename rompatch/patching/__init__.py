"""Patch decoding and application.

Formats:
- IPS: absolute offset records with run-length encoding
- BPS: cursor-relative actions with CRC-32 verification
"""

from .base import FORMAT_BY_EXTENSION, Patch, PatchFormat, format_from_path
from .bps import (
    BpsAction,
    BpsActionKind,
    BpsApplier,
    BpsDecoder,
    BpsPatch,
    SourceCopy,
    SourceRead,
    TargetCopy,
    TargetRead,
    decode_bps,
)
from .ips import (
    IpsApplier,
    IpsDecoder,
    IpsLiteralRecord,
    IpsPatch,
    IpsRecord,
    IpsRunRecord,
    decode_ips,
)
from .patcher import (
    Patcher,
    PatchResult,
    apply_batch,
    apply_bps_patch,
    apply_ips_patch,
    decode_patch,
    derive_output_path,
)
from .varint import decode_signed, decode_varint, encode_signed, encode_varint

__all__ = [
    # Shared
    "FORMAT_BY_EXTENSION",
    "Patch",
    "PatchFormat",
    "format_from_path",
    "decode_varint",
    "decode_signed",
    "encode_varint",
    "encode_signed",
    # IPS
    "IpsApplier",
    "IpsDecoder",
    "IpsLiteralRecord",
    "IpsPatch",
    "IpsRecord",
    "IpsRunRecord",
    "decode_ips",
    # BPS
    "BpsAction",
    "BpsActionKind",
    "BpsApplier",
    "BpsDecoder",
    "BpsPatch",
    "SourceCopy",
    "SourceRead",
    "TargetCopy",
    "TargetRead",
    "decode_bps",
    # Files
    "Patcher",
    "PatchResult",
    "apply_batch",
    "apply_bps_patch",
    "apply_ips_patch",
    "decode_patch",
    "derive_output_path",
]
