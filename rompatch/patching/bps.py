"""BPS (Beat Patching System) decoder and applier.

BPS Format:
- Header: "BPS1" (4 bytes)
- source_size, target_size, metadata_size (variable-length numbers)
- metadata (metadata_size bytes of UTF-8, usually XML change notes)
- Actions until 12 bytes remain; each starts with a number whose low two
  bits select the action and whose remaining bits hold ``length - 1``
- Footer: source CRC-32, target CRC-32, patch CRC-32 (4 bytes each, little-endian)

SourceCopy and TargetCopy carry a signed delta for their own relative
cursor; the cursors persist from one copy action to the next.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional, Tuple, Union

from ..exceptions import (
    BadHeaderError,
    InvalidMetadataEncodingError,
    OutOfBoundsError,
    PatchChecksumMismatchError,
    SizeMismatchError,
    SourceChecksumMismatchError,
    SourceSizeMismatchError,
    TargetChecksumMismatchError,
    UnexpectedEofError,
)
from ..hash_utils import crc32_bytes, format_crc32, verify_crc32
from .base import Patch, PatchFormat
from .varint import decode_signed, decode_varint, encode_signed, encode_varint

logger = logging.getLogger(__name__)

BPS_MAGIC = b"BPS1"
BPS_FOOTER_SIZE = 12
CHECKSUM_BYTEORDER = "little"


class BpsActionKind(IntEnum):
    """Action selector stored in the two low bits of an action number."""

    SOURCE_READ = 0
    TARGET_READ = 1
    SOURCE_COPY = 2
    TARGET_COPY = 3


class _BpsAction:
    kind: BpsActionKind
    length: int

    def __post_init__(self) -> None:
        if self.length < 1:
            raise ValueError(f"{type(self).__name__} length must be at least 1, got {self.length}")

    @property
    def payload(self) -> int:
        return ((self.length - 1) << 2) | int(self.kind)

    def encode(self) -> bytes:
        return encode_varint(self.payload)


@dataclass(frozen=True)
class SourceRead(_BpsAction):
    """Copy ``length`` source bytes found at the current output position."""

    length: int

    kind = BpsActionKind.SOURCE_READ


@dataclass(frozen=True)
class TargetRead(_BpsAction):
    """Write the literal bytes stored in the patch after the action number."""

    data: bytes

    kind = BpsActionKind.TARGET_READ

    @property
    def length(self) -> int:
        return len(self.data)

    def encode(self) -> bytes:
        return encode_varint(self.payload) + bytes(self.data)


@dataclass(frozen=True)
class SourceCopy(_BpsAction):
    """Move the source cursor by ``relative_offset`` then copy ``length`` bytes from it."""

    length: int
    relative_offset: int

    kind = BpsActionKind.SOURCE_COPY

    def encode(self) -> bytes:
        return encode_varint(self.payload) + encode_signed(self.relative_offset)


@dataclass(frozen=True)
class TargetCopy(_BpsAction):
    """Move the target cursor by ``relative_offset`` then copy already written output."""

    length: int
    relative_offset: int

    kind = BpsActionKind.TARGET_COPY

    def encode(self) -> bytes:
        return encode_varint(self.payload) + encode_signed(self.relative_offset)


BpsAction = Union[SourceRead, TargetRead, SourceCopy, TargetCopy]


@dataclass(frozen=True)
class BpsPatch(Patch):
    """A decoded BPS patch.

    ``source_size`` and ``target_size`` are the values declared by the patch;
    they are checked against the real buffers when the patch is applied.
    """

    source_size: int = 0
    target_size: int = 0
    actions: Tuple[BpsAction, ...] = ()
    source_checksum: int = 0
    target_checksum: int = 0
    patch_checksum: int = 0
    metadata: Optional[str] = None

    format = PatchFormat.BPS

    @property
    def instructions(self) -> Tuple[BpsAction, ...]:
        return self.actions

    def apply(self, source: bytes, verify_checksums: bool = True) -> bytes:
        return BpsApplier(self, verify_checksums=verify_checksums).apply(source)

    def to_bytes(self) -> bytes:
        """Serialize the patch.

        The patch checksum is recalculated over the written bytes, so the
        stored ``patch_checksum`` is not consulted.
        """
        metadata = (self.metadata or "").encode("utf-8")
        out = bytearray(BPS_MAGIC)
        out += encode_varint(self.source_size)
        out += encode_varint(self.target_size)
        out += encode_varint(len(metadata))
        out += metadata
        for action in self.actions:
            out += action.encode()
        out += self.source_checksum.to_bytes(4, CHECKSUM_BYTEORDER)
        out += self.target_checksum.to_bytes(4, CHECKSUM_BYTEORDER)
        out += crc32_bytes(bytes(out)).to_bytes(4, CHECKSUM_BYTEORDER)
        return bytes(out)

    def describe(self) -> Dict[str, Any]:
        summary = super().describe()
        counts = {kind.name.lower(): 0 for kind in BpsActionKind}
        for action in self.actions:
            counts[action.kind.name.lower()] += 1
        summary.update(
            {
                "source_size": self.source_size,
                "target_size": self.target_size,
                "metadata": self.metadata,
                "actions": counts,
                "source_crc32": format_crc32(self.source_checksum),
                "target_crc32": format_crc32(self.target_checksum),
                "patch_crc32": format_crc32(self.patch_checksum),
            }
        )
        return summary


class BpsDecoder:
    """Parses raw BPS bytes into a :class:`BpsPatch`.

    Args:
        data: Complete patch file contents
        name: Display name (the patch file name)
        verify_patch_checksum: Check the trailing patch CRC-32 before parsing
    """

    def __init__(self, data: bytes, name: str = "", verify_patch_checksum: bool = True):
        self._data = data
        self._name = name
        self.verify_patch_checksum = verify_patch_checksum

    def decode(self) -> BpsPatch:
        data = self._data
        header = bytes(data[: len(BPS_MAGIC)])
        if header != BPS_MAGIC:
            raise BadHeaderError(
                f"Invalid BPS header: expected {BPS_MAGIC!r}, found {header!r}",
                expected=BPS_MAGIC,
                found=header,
            )

        if len(data) < len(BPS_MAGIC) + BPS_FOOTER_SIZE:
            raise UnexpectedEofError(
                "BPS patch is too short to hold the checksum footer",
                offset=len(BPS_MAGIC),
                wanted=BPS_FOOTER_SIZE,
                available=len(data) - len(BPS_MAGIC),
            )

        footer_start = len(data) - BPS_FOOTER_SIZE
        source_crc, target_crc, patch_crc = (
            int.from_bytes(data[i : i + 4], CHECKSUM_BYTEORDER)
            for i in range(footer_start, len(data), 4)
        )

        if self.verify_patch_checksum:
            verify_crc32(bytes(data[:-4]), patch_crc, PatchChecksumMismatchError, "patch")

        logger.debug("Decoding BPS patch %r (%d bytes)", self._name, len(data))

        # Numbers may not run into the checksum footer
        body = memoryview(data)[:footer_start]
        pos = len(BPS_MAGIC)
        source_size, pos = decode_varint(body, pos)
        target_size, pos = decode_varint(body, pos)
        metadata, pos = self._read_metadata(body, pos)

        actions = []
        while pos < footer_start:
            action, pos = self._read_action(body, pos)
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Found %s", action)
            actions.append(action)

        logger.debug(
            "Decoded %d BPS actions from %r (source %d bytes, target %d bytes)",
            len(actions), self._name, source_size, target_size,
        )
        return BpsPatch(
            name=self._name,
            source_size=source_size,
            target_size=target_size,
            actions=tuple(actions),
            source_checksum=source_crc,
            target_checksum=target_crc,
            patch_checksum=patch_crc,
            metadata=metadata,
        )

    @staticmethod
    def _read_metadata(body: memoryview, pos: int) -> Tuple[Optional[str], int]:
        start = pos
        metadata_size, pos = decode_varint(body, pos)
        if metadata_size == 0:
            return None, pos
        if len(body) - pos < metadata_size:
            raise UnexpectedEofError(
                f"Metadata at {start:#x} declares {metadata_size} bytes but only "
                f"{len(body) - pos} remain",
                offset=start,
                wanted=metadata_size,
                available=len(body) - pos,
            )
        raw = bytes(body[pos : pos + metadata_size])
        try:
            metadata = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidMetadataEncodingError(
                f"Metadata is not valid UTF-8 (byte {pos + exc.start:#x})",
                offset=pos + exc.start,
            ) from exc
        return metadata, pos + metadata_size

    @staticmethod
    def _read_action(body: memoryview, pos: int) -> Tuple[BpsAction, int]:
        start = pos
        payload, pos = decode_varint(body, pos)
        kind = BpsActionKind(payload & 3)
        length = (payload >> 2) + 1

        if kind == BpsActionKind.SOURCE_READ:
            return SourceRead(length), pos

        if kind == BpsActionKind.TARGET_READ:
            if len(body) - pos < length:
                raise UnexpectedEofError(
                    f"TargetRead at {start:#x} declares {length} bytes but only "
                    f"{len(body) - pos} remain",
                    offset=start,
                    wanted=length,
                    available=len(body) - pos,
                )
            return TargetRead(bytes(body[pos : pos + length])), pos + length

        relative_offset, pos = decode_signed(body, pos)
        if kind == BpsActionKind.SOURCE_COPY:
            return SourceCopy(length, relative_offset), pos
        return TargetCopy(length, relative_offset), pos


class BpsApplier:
    """Replays BPS actions against a source buffer.

    The target is only returned once the output fills ``target_size`` exactly
    and both the source and target CRC-32 match the patch footer.
    """

    def __init__(self, patch: BpsPatch, verify_checksums: bool = True):
        self.patch = patch
        self.verify_checksums = verify_checksums

    def apply(self, source: bytes) -> bytes:
        patch = self.patch
        if len(source) != patch.source_size:
            raise SourceSizeMismatchError(
                f"Source size mismatch: expected {patch.source_size}, got {len(source)}",
                expected=patch.source_size,
                actual=len(source),
            )

        # The header value is untrusted; check it against the actions before allocating
        target_size = patch.target_size
        produced = sum(action.length for action in patch.actions)
        if produced != target_size:
            raise SizeMismatchError(
                f"Actions produce {produced} bytes, patch declares a target of {target_size}",
                expected=target_size,
                actual=produced,
            )

        output = bytearray(target_size)
        output_pos = 0
        source_rel = 0
        target_rel = 0

        logger.debug(
            "Applying %d BPS actions from %r (%d -> %d bytes)",
            len(patch.actions), patch.name, len(source), target_size,
        )

        for index, action in enumerate(patch.actions):
            length = action.length
            end = output_pos + length

            if isinstance(action, SourceRead):
                if end > len(source):
                    raise OutOfBoundsError(
                        f"Action {index} (SOURCE_READ) reads past the end of the source",
                        cursor="output",
                        offset=output_pos,
                        limit=len(source),
                    )
                output[output_pos:end] = source[output_pos:end]

            elif isinstance(action, TargetRead):
                output[output_pos:end] = action.data

            elif isinstance(action, SourceCopy):
                source_rel += action.relative_offset
                if source_rel < 0 or source_rel + length > len(source):
                    raise OutOfBoundsError(
                        f"Action {index} (SOURCE_COPY) moves the source cursor to {source_rel}, "
                        f"outside a {len(source)} byte source",
                        cursor="source_relative",
                        offset=source_rel,
                        limit=len(source),
                    )
                output[output_pos:end] = source[source_rel : source_rel + length]
                source_rel += length

            elif isinstance(action, TargetCopy):
                target_rel += action.relative_offset
                if target_rel < 0 or target_rel >= output_pos:
                    raise OutOfBoundsError(
                        f"Action {index} (TARGET_COPY) moves the target cursor to {target_rel}, "
                        f"but only {output_pos} bytes have been written",
                        cursor="target_relative",
                        offset=target_rel,
                        limit=output_pos,
                    )
                output[output_pos:end] = _copy_forward(output, target_rel, output_pos, length)
                target_rel += length

            else:
                raise TypeError(f"Unknown BPS action {action!r}")

            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Applied %s at output offset %#x", action.kind.name, output_pos)
            output_pos = end

        if self.verify_checksums:
            verify_crc32(source, patch.source_checksum, SourceChecksumMismatchError, "source")
            verify_crc32(output, patch.target_checksum, TargetChecksumMismatchError, "target")
            logger.debug("Source and target checksums verified for %r", patch.name)

        return bytes(output)


def _copy_forward(output: bytearray, start: int, output_pos: int, length: int) -> bytes:
    """Read ``length`` bytes from ``start`` as a byte-by-byte forward copy would.

    When the range reaches the write position the copy repeats the
    ``output_pos - start`` bytes before it, like an LZ77 back-reference.
    """
    if start + length <= output_pos:
        return bytes(output[start : start + length])
    period = bytes(output[start:output_pos])
    repeats = length // len(period) + 1
    return (period * repeats)[:length]


def decode_bps(data: bytes, name: str = "", verify_patch_checksum: bool = True) -> BpsPatch:
    """Decode a BPS patch."""
    return BpsDecoder(data, name, verify_patch_checksum=verify_patch_checksum).decode()
