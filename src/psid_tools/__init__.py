"""
PSID Tools - PSID Header Codec for Commodore-64 Music Files
===========================================================

This package reads, edits, validates and writes PSID files, the format
used by the High Voltage SID Collection to distribute Commodore-64 music:
a fixed big-endian header (version 1 or 2/2NG) in front of the C64
player and music data.

Main Components
---------------
- **psid**: The header codec
    PSIDHeader with decoding, field access, validation, encoding and the
    MD5 fingerprint used by the HVSC song-length database

- **config**: Codec configuration (environment driven)

- **cli**: The psidtool command-line tool

Quick Start
-----------
Read a tune and print its credits:
    >>> from psid_tools import PSIDHeader
    >>> header = PSIDHeader.from_file("Commando.sid")
    >>> print(header.get("name"), "by", header.get("author"))

Edit and write it back as a canonical v2NG file:
    >>> header.set(copyright="1985 Elite")
    []
    >>> header.set_sid_model_by_name("6581")
    >>> header.write("Commando.sid", validate=True)

Or use the command-line tool:
    $ psidtool info Commando.sid
    $ psidtool set Commando.sid copyright="1985 Elite"
    $ psidtool md5 *.sid

Reference Documentation
-----------------------
- PSID format: https://www.hvsc.c64.org/download/C64Music/DOCUMENTS/SID_file_format.txt
- High Voltage SID Collection: https://www.hvsc.c64.org/
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from psid_tools.config import CodecConfig, get_default_config, set_default_config
from psid_tools.errors import (
    PSIDError,
    DecodeError,
    PSIDFormatError,
    TruncatedHeaderError,
    TruncatedPayloadError,
    PSIDIOError,
    FieldError,
    UnknownFieldError,
    ReadOnlyFieldError,
    VersionMismatchError,
    InvalidValueError,
    InvalidSongNumberError,
)
from psid_tools.psid import (
    PSIDHeader,
    HeaderField,
    FlagField,
    Clock,
    SIDModel,
)

__all__ = [
    # Version info
    "__version__",
    # Header
    "PSIDHeader",
    "HeaderField",
    "FlagField",
    "Clock",
    "SIDModel",
    # Configuration
    "CodecConfig",
    "get_default_config",
    "set_default_config",
    # Exception hierarchy
    "PSIDError",
    "DecodeError",
    "PSIDFormatError",
    "TruncatedHeaderError",
    "TruncatedPayloadError",
    "PSIDIOError",
    "FieldError",
    "UnknownFieldError",
    "ReadOnlyFieldError",
    "VersionMismatchError",
    "InvalidValueError",
    "InvalidSongNumberError",
]
