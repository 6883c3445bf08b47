"""
PSID File Handling
==================

Read, edit, validate and write PSID files: the header format (versions 1
and 2/2NG) that prepends Commodore-64 music data in the High Voltage SID
Collection.

This module provides:
- **PSIDHeader**: the in-memory file with its field accessors
- **Field definitions**: the field registry and the flags sub-fields
- **Decoder / encoder**: the byte layout of versions 1 and 2
- **Fingerprint**: the MD5 used by the HVSC song-length database

Quick Start
-----------
    >>> from psid_tools.psid import PSIDHeader
    >>> header = PSIDHeader.from_file("Commando.sid")
    >>> header.get("author")
    'Rob Hubbard'
    >>> header.get_speed(1)
    0
    >>> header.md5()
    '...'

Reference
---------
- PSID format: https://www.hvsc.c64.org/download/C64Music/DOCUMENTS/SID_file_format.txt
"""

# =============================================================================
# Public API Exports
# =============================================================================

from psid_tools.psid.fields import (
    Clock,
    FieldKind,
    FlagField,
    HeaderField,
    SIDModel,
    MAGIC,
    V1_DATA_OFFSET,
    V2_DATA_OFFSET,
    MAX_DATA_SIZE,
    header_size,
)
from psid_tools.psid.fingerprint import calculate_md5
from psid_tools.psid.header import PSIDHeader
from psid_tools.psid.parser import DecodeResult, decode
from psid_tools.psid.validator import normalize
from psid_tools.psid.writer import encode, write

__all__ = [
    # Header
    "PSIDHeader",
    # Field definitions
    "Clock",
    "FieldKind",
    "FlagField",
    "HeaderField",
    "SIDModel",
    "MAGIC",
    "V1_DATA_OFFSET",
    "V2_DATA_OFFSET",
    "MAX_DATA_SIZE",
    "header_size",
    # Codec
    "DecodeResult",
    "decode",
    "encode",
    "write",
    "normalize",
    "calculate_md5",
]
