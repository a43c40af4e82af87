"""Biased variable-length integers used by BPS patches.

Each byte carries seven value bits; a set high bit terminates the number.
After every non-final byte the place value is added to the result, so each
byte count covers its own range of values and every number has exactly one
encoding.
"""

from __future__ import annotations

from typing import Tuple

from ..exceptions import TruncatedVarintError


def decode_varint(data: bytes, pos: int) -> Tuple[int, int]:
    """Decode one number starting at ``pos``.

    Returns:
        Tuple of (value, position after the terminating byte)

    Raises:
        TruncatedVarintError: the buffer ends before a terminating byte
    """
    start = pos
    end = len(data)
    result = 0
    shift = 1
    while True:
        if pos >= end:
            raise TruncatedVarintError(
                f"Variable-length number starting at {start:#x} is truncated",
                offset=start,
            )
        byte = data[pos]
        pos += 1
        result += (byte & 0x7F) * shift
        if byte & 0x80:
            break
        shift <<= 7
        result += shift
    return result, pos


def decode_signed(data: bytes, pos: int) -> Tuple[int, int]:
    """Decode a relative offset: bit 0 is the sign, the rest the magnitude."""
    value, pos = decode_varint(data, pos)
    magnitude = value >> 1
    return (-magnitude if value & 1 else magnitude), pos


def encode_varint(value: int) -> bytes:
    """Encode a non-negative number in the canonical biased form."""
    if value < 0:
        raise ValueError(f"Cannot encode negative number {value}")
    out = bytearray()
    while True:
        low = value & 0x7F
        value >>= 7
        if value == 0:
            out.append(0x80 | low)
            return bytes(out)
        out.append(low)
        value -= 1


def encode_signed(value: int) -> bytes:
    """Encode a relative offset as magnitude << 1 with the sign in bit 0."""
    return encode_varint((abs(value) << 1) | (1 if value < 0 else 0))
