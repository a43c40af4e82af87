"""CRC-32 helpers used to verify patch, source and target buffers."""

import zlib
from pathlib import Path
from typing import Type, Union

from .exceptions import FileOperationError, PatchError


def crc32_bytes(data: bytes) -> int:
    """Calculate the CRC-32 of an in-memory buffer as an unsigned 32-bit value."""
    return zlib.crc32(data) & 0xFFFFFFFF


def format_crc32(value: int) -> str:
    """Render a CRC-32 value the way DAT files and reports show it."""
    return "%08X" % (value & 0xFFFFFFFF)


def verify_crc32(data: bytes, expected: int, error_cls: Type[PatchError],
                 label: str = "data") -> int:
    """Compare the CRC-32 of ``data`` with ``expected``.

    Args:
        data: Buffer to checksum
        expected: Checksum declared by the patch
        error_cls: Error class raised on mismatch (an IntegrityError for
            ROMs, PatchChecksumMismatchError for the patch itself)
        label: Human readable name of the buffer for the error message

    Returns:
        The calculated checksum
    """
    actual = crc32_bytes(data)
    if actual != expected:
        raise error_cls(
            f"{label.capitalize()} checksum mismatch: expected {format_crc32(expected)}, "
            f"got {format_crc32(actual)}",
            expected=format_crc32(expected),
            actual=format_crc32(actual),
        )
    return actual


def calculate_crc32(file_path: Union[str, Path], chunk_size: int = 1048576) -> str:
    """Calculate the CRC-32 of a file without loading it whole.

    Returns:
        CRC32 value as an upper-case hex string

    Raises:
        FileOperationError: the file cannot be read
    """
    crc = 0
    try:
        with open(file_path, 'rb') as f:
            while True:
                data = f.read(chunk_size)
                if not data:
                    break
                crc = zlib.crc32(data, crc)
    except OSError as exc:
        raise FileOperationError(
            f"Cannot checksum file: {exc}", file_path=str(file_path), operation="read"
        ) from exc
    return format_crc32(crc)
