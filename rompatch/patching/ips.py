"""IPS (International Patching System) decoder and applier.

IPS Format:
- Header: "PATCH" (5 bytes)
- Records: [offset(3) + size(2) + data(size)] or [offset(3) + 0x0000 + RLE_size(2) + RLE_byte(1)]
- Footer: "EOF" (3 bytes)

Offsets are absolute and big-endian. Records may come in any order and may
overlap; the record applied last wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

from ..exceptions import (
    BadFooterError,
    BadHeaderError,
    OutOfBoundsError,
    TrailingDataError,
    UnexpectedEofError,
    ZeroRunLengthError,
)
from .base import Patch, PatchFormat

logger = logging.getLogger(__name__)

IPS_MAGIC = b"PATCH"
IPS_FOOTER = b"EOF"
IPS_MAX_OFFSET = 0xFFFFFF

_RECORD_HEADER_SIZE = 5  # offset(3) + size(2)
_RLE_TAIL_SIZE = 3  # RLE_size(2) + RLE_byte(1)


@dataclass(frozen=True)
class IpsLiteralRecord:
    """Write ``data`` verbatim starting at ``offset``."""

    offset: int
    data: bytes

    @property
    def length(self) -> int:
        return len(self.data)

    @property
    def end(self) -> int:
        return self.offset + len(self.data)

    def __str__(self) -> str:
        return f"Record {{ offset: {self.offset:#x}, size: {len(self.data)} }}"


@dataclass(frozen=True)
class IpsRunRecord:
    """Write ``length`` copies of ``value`` starting at ``offset``."""

    offset: int
    length: int
    value: int

    @property
    def end(self) -> int:
        return self.offset + self.length

    def __str__(self) -> str:
        return (
            f"RLERecord {{ offset: {self.offset:#x}, rle_size: {self.length}, "
            f"rle_value: {self.value:#x} }}"
        )


IpsRecord = Union[IpsLiteralRecord, IpsRunRecord]


@dataclass(frozen=True)
class IpsPatch(Patch):
    """A decoded IPS patch."""

    records: Tuple[IpsRecord, ...] = ()

    format = PatchFormat.IPS

    @property
    def instructions(self) -> Tuple[IpsRecord, ...]:
        return self.records

    @property
    def end_offset(self) -> int:
        """Highest address written by any record (exclusive)."""
        return max((record.end for record in self.records), default=0)

    def apply(self, source: bytes) -> bytes:
        return IpsApplier(self).apply(source)

    def describe(self) -> Dict[str, Any]:
        summary = super().describe()
        summary.update(
            {
                "literal_records": sum(isinstance(r, IpsLiteralRecord) for r in self.records),
                "rle_records": sum(isinstance(r, IpsRunRecord) for r in self.records),
                "end_offset": self.end_offset,
            }
        )
        return summary


class IpsDecoder:
    """Parses raw IPS bytes into an :class:`IpsPatch`.

    Decoding is a pure function of the input bytes; the buffer is never
    modified, so the same decoder can be run repeatedly.
    """

    def __init__(self, data: bytes, name: str = ""):
        self._data = data
        self._name = name

    def decode(self) -> IpsPatch:
        data = self._data
        self._check_header()
        self._check_footer()

        end = len(data) - len(IPS_FOOTER)
        pos = len(IPS_MAGIC)
        records = []

        logger.debug("Decoding IPS patch %r (%d bytes)", self._name, len(data))

        while pos < end:
            record, pos = self._read_record(pos, end)
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Found %s", record)
            records.append(record)

        logger.debug("Decoded %d IPS records from %r", len(records), self._name)
        return IpsPatch(name=self._name, records=tuple(records))

    def _check_header(self) -> None:
        header = bytes(self._data[: len(IPS_MAGIC)])
        if header != IPS_MAGIC:
            raise BadHeaderError(
                f"Invalid IPS header: expected {IPS_MAGIC!r}, found {header!r}",
                expected=IPS_MAGIC,
                found=header,
            )

    def _check_footer(self) -> None:
        data = self._data
        if len(data) < len(IPS_MAGIC) + len(IPS_FOOTER):
            raise BadFooterError(
                "IPS patch is too short to contain the EOF footer",
                offset=len(IPS_MAGIC),
                expected=IPS_FOOTER,
                found=bytes(data[len(IPS_MAGIC):]),
            )
        footer = bytes(data[-len(IPS_FOOTER):])
        if footer != IPS_FOOTER:
            raise BadFooterError(
                f"Invalid IPS footer: expected {IPS_FOOTER!r}, found {footer!r}",
                offset=len(data) - len(IPS_FOOTER),
                expected=IPS_FOOTER,
                found=footer,
            )

    def _read_record(self, pos: int, end: int) -> Tuple[IpsRecord, int]:
        data = self._data
        start = pos

        if end - pos < _RECORD_HEADER_SIZE:
            raise TrailingDataError(
                f"{end - pos} stray byte(s) before the EOF footer",
                offset=pos,
                details={"remaining": end - pos},
            )

        offset = int.from_bytes(data[pos : pos + 3], "big")
        size = int.from_bytes(data[pos + 3 : pos + 5], "big")
        pos += _RECORD_HEADER_SIZE

        if size == 0:
            if end - pos < _RLE_TAIL_SIZE:
                raise UnexpectedEofError(
                    f"RLE record at {start:#x} is truncated",
                    offset=start,
                    wanted=_RLE_TAIL_SIZE,
                    available=end - pos,
                )
            rle_size = int.from_bytes(data[pos : pos + 2], "big")
            if rle_size == 0:
                raise ZeroRunLengthError(
                    f"RLE record at {start:#x} has a run length of zero",
                    offset=start,
                )
            return IpsRunRecord(offset=offset, length=rle_size, value=data[pos + 2]), pos + _RLE_TAIL_SIZE

        if end - pos < size:
            raise UnexpectedEofError(
                f"Record at {start:#x} declares {size} bytes but only {end - pos} remain",
                offset=start,
                wanted=size,
                available=end - pos,
            )
        return IpsLiteralRecord(offset=offset, data=bytes(data[pos : pos + size])), pos + size


class IpsApplier:
    """Replays IPS records onto a copy of the source ROM."""

    def __init__(self, patch: IpsPatch):
        self.patch = patch

    def apply(self, source: bytes) -> bytes:
        patch = self.patch
        size = max(len(source), patch.end_offset)

        # Extend ROM if needed; bytes past the source stay zero
        output = bytearray(size)
        output[: len(source)] = source

        logger.debug(
            "Applying %d IPS records from %r (%d -> %d bytes)",
            len(patch.records), patch.name, len(source), size,
        )

        for record in patch.records:
            self._check_bounds(record, size)
            if isinstance(record, IpsRunRecord):
                output[record.offset : record.end] = bytes((record.value,)) * record.length
                if logger.isEnabledFor(logging.DEBUG):
                    logger.debug(
                        "Wrote %d bytes of value %#x starting at offset %#x.",
                        record.length, record.value, record.offset,
                    )
            else:
                output[record.offset : record.end] = record.data
                if logger.isEnabledFor(logging.DEBUG):
                    logger.debug(
                        "Wrote %d bytes starting at offset %#x.", record.length, record.offset
                    )

        return bytes(output)

    @staticmethod
    def _check_bounds(record: IpsRecord, size: int) -> None:
        if record.offset < 0 or record.offset > IPS_MAX_OFFSET or record.end > size:
            raise OutOfBoundsError(
                f"{record} does not fit an output of {size} bytes",
                cursor="output",
                offset=record.offset,
                limit=size,
            )


def decode_ips(data: bytes, name: str = "") -> IpsPatch:
    """Decode an IPS patch."""
    return IpsDecoder(data, name).decode()
