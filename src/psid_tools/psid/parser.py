"""
PSID Decoder
============

This module reads the PSID byte layout into plain field values. It knows
nothing about PSIDHeader beyond the attribute names listed in
psid_tools.psid.fields; PSIDHeader.read() applies the result and resets
itself when decoding fails.

Sources
-------
A source may be:
- a path (str or os.PathLike), opened and closed here
- an open binary stream, rewound to its start when seekable
- a bytes-like object

Usage Example
-------------
    >>> from psid_tools.psid.parser import decode
    >>> with open("Commando.sid", "rb") as f:
    ...     result = decode(f)
    >>> result.fields["songs"]
    19
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, Optional, Union
import io
import logging
import os
import struct

from psid_tools.errors import (
    PSIDFormatError,
    PSIDIOError,
    TruncatedHeaderError,
    TruncatedPayloadError,
)
from psid_tools.psid.fields import (
    COMMON_FORMAT,
    COMMON_SIZE,
    MAGIC,
    MAX_DATA_SIZE,
    PREAMBLE_FORMAT,
    PREAMBLE_SIZE,
    SUPPORTED_VERSIONS,
    V2_FORMAT,
    V2_SIZE,
)

# Logger for this module
logger = logging.getLogger(__name__)

Source = Union[str, os.PathLike, bytes, bytearray, memoryview, BinaryIO]


@dataclass
class DecodeResult:
    """
    Output of a successful decode.

    Attributes:
        fields: Header values keyed by PSIDHeader attribute name. Text
            fields hold the raw 32-byte slots, nulls included.
        padding: Bytes between the fixed header and dataOffset
        bytes_read: Total number of bytes consumed from the source
        file_name: The path the source was opened from, None for streams
    """
    fields: dict = field(default_factory=dict)
    padding: bytes = b""
    bytes_read: int = 0
    file_name: Optional[str] = None


# =============================================================================
# Source Handling
# =============================================================================

def is_path(source: object) -> bool:
    """True if the source names a file rather than holding its content."""
    return isinstance(source, (str, os.PathLike))


@contextmanager
def open_source(source: Source) -> Iterator[BinaryIO]:
    """
    Yield a binary stream positioned at the start of the source.

    Paths are opened here and closed on exit; caller-owned streams are
    left open.

    Raises:
        PSIDIOError: If the path cannot be opened
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        yield io.BytesIO(bytes(source))
        return

    if is_path(source):
        try:
            stream = open(source, "rb")
        except OSError as e:
            raise PSIDIOError(source, f"error opening {os.fspath(source)}: {e}") from e
        with stream:
            yield stream
        return

    if source.seekable():
        source.seek(0)
    yield source


def _read(stream: BinaryIO, size: int, target: object) -> bytes:
    """Read up to size bytes, looping over short reads until EOF."""
    chunks = []
    remaining = size
    try:
        while remaining > 0:
            chunk = stream.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
    except OSError as e:
        raise PSIDIOError(target, f"error reading {target}: {e}") from e
    return b"".join(chunks)


# =============================================================================
# Decoding
# =============================================================================

def decode(source: Source, strict_payload: bool = False) -> DecodeResult:
    """
    Decode a PSID file into field values.

    Args:
        source: Path, binary stream or bytes holding the PSID file
        strict_payload: Reject a zero loadAddress without the 2-byte
            embedded address in the payload

    Returns:
        A DecodeResult with the header values, padding and payload

    Raises:
        PSIDFormatError: Bad magic or unsupported version
        TruncatedHeaderError: Header shorter than declared
        TruncatedPayloadError: Missing embedded load address (strict only)
        PSIDIOError: The source could not be opened or read
    """
    target = os.fspath(source) if is_path(source) else "<stream>"

    with open_source(source) as stream:
        preamble = _read(stream, PREAMBLE_SIZE, target)
        if len(preamble) < PREAMBLE_SIZE:
            raise TruncatedHeaderError(PREAMBLE_SIZE, len(preamble))

        magic, version, data_offset = struct.unpack(PREAMBLE_FORMAT, preamble)
        if magic != MAGIC:
            raise PSIDFormatError(f"{target} is not a PSID file (magic {magic!r})")
        if version not in SUPPORTED_VERSIONS:
            raise PSIDFormatError(f"{target}: unsupported PSID version {version}")

        region_size = data_offset - PREAMBLE_SIZE
        fixed_size = COMMON_SIZE + (V2_SIZE if version == 2 else 0)
        if region_size < fixed_size:
            raise TruncatedHeaderError(
                PREAMBLE_SIZE + fixed_size, data_offset,
                f"dataOffset 0x{data_offset:04X} too small for a v{version} header",
            )

        region = _read(stream, region_size, target)
        if len(region) != region_size:
            raise TruncatedHeaderError(data_offset, PREAMBLE_SIZE + len(region))

        data = _read(stream, MAX_DATA_SIZE, target)

    result = DecodeResult(
        padding=region[fixed_size:],
        bytes_read=PREAMBLE_SIZE + len(region) + len(data),
        file_name=target if is_path(source) else None,
    )

    (load_address, init_address, play_address, songs, start_song, speed,
     name, author, copyright) = struct.unpack_from(COMMON_FORMAT, region)

    result.fields = {
        "version": version,
        "data_offset": data_offset,
        "load_address": load_address,
        "init_address": init_address,
        "play_address": play_address,
        "songs": songs,
        "start_song": start_song,
        "speed": speed,
        "name": name,
        "author": author,
        "copyright": copyright,
        "data": data,
    }

    if version == 2:
        flags, start_page, page_length, reserved = struct.unpack_from(
            V2_FORMAT, region, COMMON_SIZE
        )
    else:
        flags = start_page = page_length = reserved = None

    result.fields.update(
        flags=flags,
        start_page=start_page,
        page_length=page_length,
        reserved=reserved,
    )

    if strict_payload and load_address == 0 and len(data) < 2:
        raise TruncatedPayloadError(
            f"{target}: loadAddress is 0 but the payload holds only "
            f"{len(data)} byte(s)"
        )

    logger.debug(
        f"Decoded PSID v{version} from {target}: dataOffset 0x{data_offset:04X}, "
        f"{len(result.padding)} padding bytes, {len(data)} data bytes"
    )
    return result
