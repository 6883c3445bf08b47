"""
PSID Field Definitions
======================

This module defines the closed set of header fields, the layout constants
of the PSID file format, and the sub-fields packed into the v2NG flags word.

PSID Structure Overview
-----------------------
A PSID file contains:
1. Fixed header (0x76 bytes for v1, 0x7C bytes for v2), big-endian
2. Optional padding up to dataOffset
3. C64 data (optionally prefixed by a 2-byte little-endian load address)

Header Layout
-------------
    Offset  Size  Field
    ------  ----  -----
    0x00    4     magic "PSID"
    0x04    2     version
    0x06    2     dataOffset
    0x08    2     loadAddress
    0x0A    2     initAddress
    0x0C    2     playAddress
    0x0E    2     songs
    0x10    2     startSong
    0x12    4     speed
    0x16    32    name
    0x36    32    author
    0x56    32    copyright
    0x76    2     flags        (v2 only)
    0x78    1     startPage    (v2 only)
    0x79    1     pageLength   (v2 only)
    0x7A    2     reserved     (v2 only)

Flags Word (v2NG)
-----------------
    Bit 0:    MUS player required
    Bit 1:    PlaySID specific
    Bits 2-3: Clock (0 unknown, 1 PAL, 2 NTSC, 3 either)
    Bits 4-5: SID model (0 unknown, 1 MOS6581, 2 MOS8580, 3 either)
    Bits 6-15: reserved, must be 0

Reference
---------
- PSID format: https://www.hvsc.c64.org/download/C64Music/DOCUMENTS/SID_file_format.txt
"""

from enum import Enum, IntEnum
from typing import Optional
import struct


# =============================================================================
# Layout Constants
# =============================================================================

MAGIC = b"PSID"

# magic(4) + version(2) + dataOffset(2)
PREAMBLE_SIZE = 8
PREAMBLE_FORMAT = ">4sHH"

# loadAddress, initAddress, playAddress, songs, startSong, speed, 3 x text
COMMON_FORMAT = ">HHHHHI32s32s32s"
COMMON_SIZE = struct.calcsize(COMMON_FORMAT)  # 2*5 + 4 + 32*3 = 114

# flags, startPage, pageLength, reserved
V2_FORMAT = ">HBBH"
V2_SIZE = struct.calcsize(V2_FORMAT)  # 6

V1_DATA_OFFSET = 0x76
V2_DATA_OFFSET = 0x7C

TEXT_SIZE = 32
TEXT_MAX_LENGTH = TEXT_SIZE - 1

# 64KB of C64 memory plus the optional 2-byte embedded load address
MAX_DATA_SIZE = 0xFFFF + 2

MAX_SONGS = 256
SPEED_BITS = 32

# Speed byte fed to the fingerprint for a CIA-timed song
CIA_SPEED_MARKER = 60

SUPPORTED_VERSIONS = (1, 2)


def header_size(version: int) -> int:
    """Size of the fixed header for a PSID version."""
    return V2_DATA_OFFSET if version >= 2 else V1_DATA_OFFSET


# =============================================================================
# Field Registry
# =============================================================================

class FieldKind(Enum):
    """Value type of a header field."""
    INT = "int"
    TEXT = "text"
    BYTES = "bytes"
    PATH = "path"


class HeaderField(Enum):
    """
    Every field recognized by PSIDHeader.

    Each member carries the field's external (file format) name, the
    attribute that stores it, its value kind, whether it is read-only and
    whether it only exists in PSID version 2. Members are declared in file
    order, followed by the derived fields.
    """

    VERSION = ("version", "version", FieldKind.INT, False, False)
    DATA_OFFSET = ("dataOffset", "data_offset", FieldKind.INT, False, False)
    LOAD_ADDRESS = ("loadAddress", "load_address", FieldKind.INT, False, False)
    INIT_ADDRESS = ("initAddress", "init_address", FieldKind.INT, False, False)
    PLAY_ADDRESS = ("playAddress", "play_address", FieldKind.INT, False, False)
    SONGS = ("songs", "songs", FieldKind.INT, False, False)
    START_SONG = ("startSong", "start_song", FieldKind.INT, False, False)
    SPEED = ("speed", "speed", FieldKind.INT, False, False)
    NAME = ("name", "name", FieldKind.TEXT, False, False)
    AUTHOR = ("author", "author", FieldKind.TEXT, False, False)
    COPYRIGHT = ("copyright", "copyright", FieldKind.TEXT, False, False)
    FLAGS = ("flags", "flags", FieldKind.INT, False, True)
    START_PAGE = ("startPage", "start_page", FieldKind.INT, False, True)
    PAGE_LENGTH = ("pageLength", "page_length", FieldKind.INT, False, True)
    RESERVED = ("reserved", "reserved", FieldKind.INT, False, True)
    DATA = ("data", "data", FieldKind.BYTES, False, False)

    # Not part of the file format
    PADDING = ("padding", "padding", FieldKind.BYTES, True, False)
    FILE_NAME = ("fileName", "file_name", FieldKind.PATH, False, False)
    FILE_SIZE = ("fileSize", "file_size", FieldKind.INT, True, False)
    REAL_LOAD_ADDRESS = ("realLoadAddress", "real_load_address", FieldKind.INT, True, False)

    def __init__(self, key: str, attr: str, kind: FieldKind,
                 read_only: bool, v2_only: bool):
        self.key = key
        self.attr = attr
        self.kind = kind
        self.read_only = read_only
        self.v2_only = v2_only

    @classmethod
    def lookup(cls, name: "str | HeaderField") -> Optional["HeaderField"]:
        """
        Resolve a field by its external name or attribute name.

        Returns None for unknown names; field names are case-sensitive.
        """
        if isinstance(name, cls):
            return name
        return _FIELDS_BY_NAME.get(name)

    @property
    def is_text(self) -> bool:
        return self.kind is FieldKind.TEXT


_FIELDS_BY_NAME = {}
for _field in HeaderField:
    _FIELDS_BY_NAME[_field.key] = _field
    _FIELDS_BY_NAME[_field.attr] = _field
del _field

# Fields stored in the file, in file order
FILE_FIELDS = tuple(f for f in HeaderField if f not in (
    HeaderField.PADDING,
    HeaderField.FILE_NAME,
    HeaderField.FILE_SIZE,
    HeaderField.REAL_LOAD_ADDRESS,
))

# Names reported by field_names(): file fields, then the derived ones
PUBLIC_FIELDS = FILE_FIELDS + (
    HeaderField.FILE_NAME,
    HeaderField.FILE_SIZE,
    HeaderField.REAL_LOAD_ADDRESS,
)

TEXT_FIELDS = (HeaderField.NAME, HeaderField.AUTHOR, HeaderField.COPYRIGHT)
V2_FIELDS = tuple(f for f in HeaderField if f.v2_only)


# =============================================================================
# Flags Sub-fields
# =============================================================================

class FlagField(Enum):
    """Bit groups packed into the v2NG flags word: (offset, width)."""

    MUS_PLAYER = (0, 1)
    PLAYSID_SPECIFIC = (1, 1)
    CLOCK = (2, 2)
    SID_MODEL = (4, 2)

    def __init__(self, offset: int, width: int):
        self.offset = offset
        self.width = width

    @property
    def max_value(self) -> int:
        return (1 << self.width) - 1

    @property
    def mask(self) -> int:
        return self.max_value << self.offset

    def extract(self, flags: int) -> int:
        """Read this bit group out of a flags word."""
        return (flags >> self.offset) & self.max_value

    def insert(self, flags: int, value: int) -> int:
        """Clear this bit group in a flags word, then OR value into it."""
        return (flags & ~self.mask) | ((value & self.max_value) << self.offset)


class Clock(IntEnum):
    """Video standard the tune was written for (flags bits 2-3)."""
    UNKNOWN = 0
    PAL = 1
    NTSC = 2
    EITHER = 3

    @classmethod
    def from_name(cls, name: str) -> Optional["Clock"]:
        """Resolve a case-insensitive alias, None if unrecognized."""
        return _CLOCK_ALIASES.get(name.strip().lower())

    @property
    def canonical_name(self) -> str:
        return self.name

    def get_description(self) -> str:
        """Get a human-readable description of the clock."""
        descriptions = {
            Clock.UNKNOWN: "Unknown",
            Clock.PAL: "PAL (50Hz)",
            Clock.NTSC: "NTSC (60Hz)",
            Clock.EITHER: "PAL and NTSC",
        }
        return descriptions[self]


class SIDModel(IntEnum):
    """SID chip the tune was written for (flags bits 4-5)."""
    UNKNOWN = 0
    MOS6581 = 1
    MOS8580 = 2
    EITHER = 3

    @classmethod
    def from_name(cls, name: str) -> Optional["SIDModel"]:
        """Resolve a case-insensitive alias, None if unrecognized."""
        return _MODEL_ALIASES.get(name.strip().lower())

    @property
    def canonical_name(self) -> str:
        names = {
            SIDModel.UNKNOWN: "UNKNOWN",
            SIDModel.MOS6581: "6581",
            SIDModel.MOS8580: "8580",
            SIDModel.EITHER: "EITHER",
        }
        return names[self]

    def get_description(self) -> str:
        """Get a human-readable description of the SID model."""
        descriptions = {
            SIDModel.UNKNOWN: "Unknown",
            SIDModel.MOS6581: "MOS6581",
            SIDModel.MOS8580: "MOS8580",
            SIDModel.EITHER: "MOS6581 and MOS8580",
        }
        return descriptions[self]


_NEITHER = ("unknown", "none", "neither")
_BOTH = ("any", "both", "either")

_CLOCK_ALIASES = {
    **{alias: Clock.UNKNOWN for alias in _NEITHER},
    "pal": Clock.PAL,
    "ntsc": Clock.NTSC,
    **{alias: Clock.EITHER for alias in _BOTH},
}

_MODEL_ALIASES = {
    **{alias: SIDModel.UNKNOWN for alias in _NEITHER},
    "6581": SIDModel.MOS6581,
    "8580": SIDModel.MOS8580,
    **{alias: SIDModel.EITHER for alias in _BOTH},
}


def coerce_text(value, encoding: str = "latin-1") -> str:
    """Convert a text field value to str, decoding bytes with encoding."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode(encoding, errors="replace")
    return str(value)
