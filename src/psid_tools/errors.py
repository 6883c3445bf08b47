"""
PSID Tools Error Hierarchy
==========================

This module defines the exception hierarchy for the whole package.
All exceptions inherit from PSIDError, allowing callers to catch every
PSID-related error with a single except clause if desired.

Exception Hierarchy
-------------------
PSIDError (base)
├── DecodeError (reading a PSID byte stream)
│   ├── PSIDFormatError - bad magic or unsupported version
│   ├── TruncatedHeaderError - header shorter than declared
│   └── TruncatedPayloadError - embedded load address missing (strict mode)
├── PSIDIOError - open/read/write failure at the file boundary
└── FieldError (header field access)
    ├── UnknownFieldError - no such field name
    ├── ReadOnlyFieldError - field is derived and cannot be set
    ├── VersionMismatchError - field does not exist in this PSID version
    ├── InvalidValueError - value outside the field's domain
    └── InvalidSongNumberError - song number outside [1, songs]

Decode errors are raised after the header has been reset to its default
state. Field errors leave the header untouched for the affected field.
"""

from typing import Any, Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class PSIDError(Exception):
    """
    Base exception for all PSID errors.

        try:
            header = PSIDHeader.from_file("Commando.sid")
        except PSIDError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Decode Exceptions
# =============================================================================

class DecodeError(PSIDError):
    """Base exception for failures while decoding a PSID byte stream."""
    pass


class PSIDFormatError(DecodeError):
    """
    The source is not a PSID file this package understands.

    Raised when the first four bytes are not the ASCII magic "PSID" or
    the version word is neither 1 nor 2.
    """
    pass


class TruncatedHeaderError(DecodeError):
    """
    The header region is shorter than the file declares.

    Raised when fewer than 8 bytes are available for the magic, version
    and dataOffset words, or when fewer than ``dataOffset - 8`` bytes
    follow them.
    """

    def __init__(self, expected: int, actual: int, message: str = ""):
        self.expected = expected
        self.actual = actual
        if not message:
            message = f"truncated header: expected {expected} bytes, got {actual}"
        super().__init__(message)


class TruncatedPayloadError(DecodeError):
    """
    The payload is too short to hold its embedded load address.

    Only raised when strict payload checking is enabled in the
    configuration; by default a short payload is accepted.
    """
    pass


# =============================================================================
# I/O Exceptions
# =============================================================================

class PSIDIOError(PSIDError):
    """
    Opening, reading or writing a PSID source or sink failed.

    The underlying OSError is available as ``__cause__``.
    """

    def __init__(self, target: Any, message: str = ""):
        self.target = target
        if not message:
            message = f"I/O error on {target}"
        super().__init__(message)


# =============================================================================
# Field Access Exceptions
# =============================================================================

class FieldError(PSIDError):
    """
    Base exception for header field access errors.

    Attributes:
        field: Name of the field the operation targeted
        value: The rejected value, when one was supplied
    """

    def __init__(self, field: str, message: str, value: Optional[Any] = None):
        self.field = field
        self.value = value
        super().__init__(message)


class UnknownFieldError(FieldError):
    """No field with the given name exists."""

    def __init__(self, field: str):
        super().__init__(field, f"no such field: {field!r}")


class ReadOnlyFieldError(FieldError):
    """
    The field is derived from other fields and cannot be set.

    Applies to fileSize, realLoadAddress and padding.
    """

    def __init__(self, field: str):
        super().__init__(field, f"read-only field: {field!r}")


class VersionMismatchError(FieldError):
    """
    The field does not exist in the header's current PSID version.

    flags, startPage, pageLength and reserved only exist in version 2.
    """

    def __init__(self, field: str, version: int):
        self.version = version
        super().__init__(
            field, f"can't change {field!r} when PSID version is {version}"
        )


class InvalidValueError(FieldError):
    """The supplied value is outside the domain of the field."""
    pass


class InvalidSongNumberError(FieldError):
    """
    A song number outside [1, songs] was supplied to a per-song accessor.
    """

    def __init__(self, song: int, songs: int):
        self.song = song
        self.songs = songs
        super().__init__(
            "speed",
            f"invalid song number {song} (tune has {songs} songs)",
            value=song,
        )
