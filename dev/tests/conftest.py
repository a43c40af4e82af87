from __future__ import annotations

import logging
import sys
import zlib
from pathlib import Path

import pytest

# Ensure repo root on path
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _reset_rompatch_logger():
    """setup_logging() detaches the package logger from root; undo that between tests."""

    yield
    logger = logging.getLogger("rompatch")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def build_ips():
    """Build raw IPS bytes from (offset, data) and (offset, length, value) tuples."""

    def _build(*records, header: bytes = b"PATCH", footer: bytes = b"EOF") -> bytes:
        out = bytearray(header)
        for record in records:
            if len(record) == 2:
                offset, data = record
                out += offset.to_bytes(3, "big") + len(data).to_bytes(2, "big") + data
            else:
                offset, length, value = record
                out += offset.to_bytes(3, "big") + b"\x00\x00" + length.to_bytes(2, "big") + bytes([value])
        out += footer
        return bytes(out)

    return _build


@pytest.fixture
def build_bps():
    """Serialize a BPS patch for source -> target with correct checksums by default."""

    from rompatch.patching import BpsPatch

    def _build(source: bytes, target: bytes, actions, metadata=None,
               source_checksum=None, target_checksum=None, target_size=None) -> bytes:
        return BpsPatch(
            name="",
            source_size=len(source),
            target_size=len(target) if target_size is None else target_size,
            actions=tuple(actions),
            source_checksum=zlib.crc32(source) if source_checksum is None else source_checksum,
            target_checksum=zlib.crc32(target) if target_checksum is None else target_checksum,
            metadata=metadata,
        ).to_bytes()

    return _build


@pytest.fixture
def seal_bps():
    """Append source/target checksums and a valid patch checksum to a hand-written body."""

    def _seal(body: bytes, source_crc: int = 0, target_crc: int = 0) -> bytes:
        data = body + source_crc.to_bytes(4, "little") + target_crc.to_bytes(4, "little")
        return data + zlib.crc32(data).to_bytes(4, "little")

    return _seal
