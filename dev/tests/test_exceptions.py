import zlib

import pytest

from rompatch.exceptions import (
    BadHeaderError,
    BoundsError,
    FileOperationError,
    FileTooLargeError,
    IntegrityError,
    OutOfBoundsError,
    PatchChecksumMismatchError,
    PatchError,
    RomPatchError,
    SourceChecksumMismatchError,
    StructuralError,
    TrailingDataError,
    UnexpectedEofError,
    UnsupportedFormatError,
)
from rompatch.hash_utils import calculate_crc32, crc32_bytes, format_crc32, verify_crc32


@pytest.mark.parametrize(
    "error,family",
    [
        (BadHeaderError("x", expected=b"PATCH", found=b"PATCX"), StructuralError),
        (TrailingDataError("x", offset=9), StructuralError),
        (UnexpectedEofError("x", offset=3, wanted=4, available=1), BoundsError),
        (OutOfBoundsError("x", cursor="output", offset=5, limit=4), BoundsError),
        (SourceChecksumMismatchError("x", expected="0", actual="1"), IntegrityError),
    ],
)
def test_patch_error_families(error, family):
    assert isinstance(error, family)
    assert isinstance(error, PatchError)
    assert isinstance(error, RomPatchError)


def test_families_do_not_overlap():
    assert not issubclass(IntegrityError, (StructuralError, BoundsError))
    assert not issubclass(StructuralError, BoundsError)


def test_to_dict():
    error = OutOfBoundsError("cursor left the buffer", cursor="target_relative", offset=7, limit=3)
    data = error.to_dict()
    assert data["error_code"] == "OUT_OF_BOUNDS"
    assert data["message"] == "cursor left the buffer"
    assert data["details"] == {"cursor": "target_relative", "limit": 3, "offset": 7}
    assert "timestamp" in data
    assert error.offset == 7


def test_header_details_are_hex():
    error = BadHeaderError("bad", expected=b"BPS1", found=b"UPS1")
    assert error.details == {"expected": "42505331", "found": "55505331", "offset": 0}


def test_file_errors():
    error = FileTooLargeError("too big", file_path="hack.ips", size=10, limit=4)
    assert isinstance(error, FileOperationError)
    assert error.details["operation"] == "read"
    assert error.details["size"] == 10
    assert UnsupportedFormatError("nope", file_path="a.ups").error_code == "UNSUPPORTED_FORMAT"


def test_crc32_check_value():
    assert crc32_bytes(b"123456789") == 0xCBF43926
    assert crc32_bytes(b"") == 0
    assert format_crc32(0xCBF43926) == "CBF43926"
    assert format_crc32(0x1F) == "0000001F"


def test_verify_crc32():
    data = b"ROM data"
    assert verify_crc32(data, zlib.crc32(data), PatchChecksumMismatchError) == zlib.crc32(data)

    with pytest.raises(PatchChecksumMismatchError) as excinfo:
        verify_crc32(data, 0x12345678, PatchChecksumMismatchError, "patch")
    assert str(excinfo.value).startswith("Patch checksum mismatch: expected 12345678")
    assert excinfo.value.expected == "12345678"
    assert excinfo.value.actual == format_crc32(zlib.crc32(data))


def test_calculate_crc32_streams_file(tmp_path):
    path = tmp_path / "game.sfc"
    path.write_bytes(b"123456789" * 1000)
    assert calculate_crc32(path, chunk_size=7) == format_crc32(zlib.crc32(b"123456789" * 1000))


def test_calculate_crc32_missing_file(tmp_path):
    with pytest.raises(FileOperationError):
        calculate_crc32(tmp_path / "missing.sfc")
