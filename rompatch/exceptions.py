#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""
ROM Patch - Consolidated Exception Classes

This module contains all exception classes used in the project,
centralized in one place to avoid duplication and improve consistency.
"""

from datetime import datetime
from typing import Dict, Any, Optional


class RomPatchError(Exception):
    """Base class for all project-specific errors."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.error_code = error_code or "ERROR"
        self.details = details or {}
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """Converts the exception to a dictionary for structured logging."""
        return {
            'error_code': self.error_code,
            'message': str(self),
            'details': self.details,
            'timestamp': self.timestamp.isoformat()
        }


# =====================================================================================================
# Patch errors (raised by the decode/apply core)
# =====================================================================================================

class PatchError(RomPatchError):
    """Base class for errors raised while decoding or applying a patch."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code or "PATCH_ERROR", details)


class StructuralError(PatchError):
    """Raised when the patch bytes do not follow the format grammar."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 offset: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        structural_details = details or {}
        if offset is not None:
            structural_details['offset'] = offset
        super().__init__(message, error_code or "STRUCTURAL_ERROR", structural_details)
        self.offset = offset


class BadHeaderError(StructuralError):
    """Raised when the patch does not start with the expected header tag."""

    def __init__(self, message: str, expected: bytes = b"", found: bytes = b"",
                 details: Optional[Dict[str, Any]] = None):
        header_details = details or {}
        header_details['expected'] = expected.hex()
        header_details['found'] = found.hex()
        super().__init__(message, "BAD_HEADER", 0, header_details)


class BadFooterError(StructuralError):
    """Raised when the patch does not end with the expected footer tag."""

    def __init__(self, message: str, offset: Optional[int] = None,
                 expected: bytes = b"", found: bytes = b"",
                 details: Optional[Dict[str, Any]] = None):
        footer_details = details or {}
        footer_details['expected'] = expected.hex()
        footer_details['found'] = found.hex()
        super().__init__(message, "BAD_FOOTER", offset, footer_details)


class TruncatedVarintError(StructuralError):
    """Raised when a variable-length integer runs past the end of the buffer."""

    def __init__(self, message: str, offset: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "TRUNCATED_VARINT", offset, details)


class InvalidMetadataEncodingError(StructuralError):
    """Raised when embedded patch metadata is not valid UTF-8."""

    def __init__(self, message: str, offset: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "INVALID_METADATA_ENCODING", offset, details)


class ZeroRunLengthError(StructuralError):
    """Raised when a run-length record declares a run of zero bytes."""

    def __init__(self, message: str, offset: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "ZERO_RUN_LENGTH", offset, details)


class TrailingDataError(StructuralError):
    """Raised when bytes remain that cannot form another record or action."""

    def __init__(self, message: str, offset: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "TRAILING_DATA", offset, details)


class PatchChecksumMismatchError(StructuralError):
    """Raised when the patch file's own CRC-32 differs from its trailer.

    The patch file is corrupt; unlike an IntegrityError this says nothing
    about the ROM it is applied to.
    """

    def __init__(self, message: str, expected: Any = None, actual: Any = None,
                 details: Optional[Dict[str, Any]] = None):
        checksum_details = details or {}
        checksum_details['expected'] = expected
        checksum_details['actual'] = actual
        super().__init__(message, "PATCH_CHECKSUM_MISMATCH", None, checksum_details)
        self.expected = expected
        self.actual = actual


class BoundsError(PatchError):
    """Base class for reads or writes past the end of a buffer."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 offset: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        bounds_details = details or {}
        if offset is not None:
            bounds_details['offset'] = offset
        super().__init__(message, error_code or "BOUNDS_ERROR", bounds_details)
        self.offset = offset


class UnexpectedEofError(BoundsError):
    """Raised when a declared length would read past the end of the patch."""

    def __init__(self, message: str, offset: Optional[int] = None,
                 wanted: Optional[int] = None, available: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        eof_details = details or {}
        if wanted is not None:
            eof_details['wanted'] = wanted
        if available is not None:
            eof_details['available'] = available
        super().__init__(message, "UNEXPECTED_EOF", offset, eof_details)


class OutOfBoundsError(BoundsError):
    """Raised when a cursor leaves its buffer while a patch is applied."""

    def __init__(self, message: str, cursor: Optional[str] = None,
                 offset: Optional[int] = None, limit: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        oob_details = details or {}
        if cursor:
            oob_details['cursor'] = cursor
        if limit is not None:
            oob_details['limit'] = limit
        super().__init__(message, "OUT_OF_BOUNDS", offset, oob_details)


class SizeMismatchError(BoundsError):
    """Raised when the produced output does not fill the declared target size."""

    def __init__(self, message: str, expected: int = 0, actual: int = 0,
                 details: Optional[Dict[str, Any]] = None):
        size_details = details or {}
        size_details['expected'] = expected
        size_details['actual'] = actual
        super().__init__(message, "SIZE_MISMATCH", None, size_details)
        self.expected = expected
        self.actual = actual


class IntegrityError(PatchError):
    """Base class for checksum failures: the patch is fine, the input is not."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 expected: Any = None, actual: Any = None,
                 details: Optional[Dict[str, Any]] = None):
        integrity_details = details or {}
        integrity_details['expected'] = expected
        integrity_details['actual'] = actual
        super().__init__(message, error_code or "INTEGRITY_ERROR", integrity_details)
        self.expected = expected
        self.actual = actual


class SourceSizeMismatchError(IntegrityError):
    """Raised when the source buffer length differs from the patch header."""

    def __init__(self, message: str, expected: int = 0, actual: int = 0,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "SOURCE_SIZE_MISMATCH", expected, actual, details)


class SourceChecksumMismatchError(IntegrityError):
    """Raised when the source CRC-32 differs from the patch trailer."""

    def __init__(self, message: str, expected: Any = None, actual: Any = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "SOURCE_CHECKSUM_MISMATCH", expected, actual, details)


class TargetChecksumMismatchError(IntegrityError):
    """Raised when the produced target CRC-32 differs from the patch trailer."""

    def __init__(self, message: str, expected: Any = None, actual: Any = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "TARGET_CHECKSUM_MISMATCH", expected, actual, details)


# =====================================================================================================
# Configuration -related errors
# =====================================================================================================

class ConfigurationError(RomPatchError):
    """Base class for configuration errors."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 file_path: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        config_details = details or {}
        if file_path:
            config_details['file_path'] = file_path
        super().__init__(message, error_code or "CONFIG_ERROR", config_details)


class ValidationError(ConfigurationError):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 expected_type: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        validation_details = details or {}
        if field_name:
            validation_details['field_name'] = field_name
        if expected_type:
            validation_details['expected_type'] = expected_type
        super().__init__(message, "VALIDATION_ERROR", None, validation_details)


# =====================================================================================================
# IO -related errors
# =====================================================================================================

class FileOperationError(RomPatchError):
    """Raised when file operation errors occur."""

    def __init__(self, message: str, file_path: Optional[str] = None,
                 operation: Optional[str] = None,
                 error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        file_details = details or {}
        if file_path:
            file_details['file_path'] = str(file_path)
        if operation:
            file_details['operation'] = operation
        super().__init__(message, error_code or "FILE_OP_ERROR", file_details)


class UnsupportedFormatError(FileOperationError):
    """Raised when no decoder is registered for a patch file's extension."""

    def __init__(self, message: str, file_path: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, file_path, "detect_format", "UNSUPPORTED_FORMAT", details)


class FileTooLargeError(FileOperationError):
    """Raised when a patch or ROM exceeds the configured size limit."""

    def __init__(self, message: str, file_path: Optional[str] = None,
                 size: int = 0, limit: int = 0,
                 details: Optional[Dict[str, Any]] = None):
        size_details = details or {}
        size_details['size'] = size
        size_details['limit'] = limit
        super().__init__(message, file_path, "read", "FILE_TOO_LARGE", size_details)
