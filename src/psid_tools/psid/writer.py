"""
PSID Encoder
============

Serializes a PSIDHeader to the PSID byte layout. The output matches the
header's stored version: version 1 headers are written without the
flags/startPage/pageLength/reserved words, whatever those attributes hold.

Encoding is best effort. Numbers are masked to the width of their slot,
text is truncated or null-padded to 32 bytes, and characters the text
encoding cannot represent are replaced. Only the sink can make a write
fail.
"""

from typing import TYPE_CHECKING, BinaryIO, Union
import logging
import os
import struct

from psid_tools.errors import PSIDIOError
from psid_tools.psid.fields import (
    COMMON_FORMAT,
    MAGIC,
    PREAMBLE_FORMAT,
    V2_FORMAT,
)

if TYPE_CHECKING:
    from psid_tools.psid.header import PSIDHeader

# Logger for this module
logger = logging.getLogger(__name__)

Sink = Union[str, os.PathLike, BinaryIO]


def _u8(value) -> int:
    return (value or 0) & 0xFF


def _u16(value) -> int:
    return (value or 0) & 0xFFFF


def _u32(value) -> int:
    return (value or 0) & 0xFFFFFFFF


def _text(value: str, encoding: str) -> bytes:
    # struct's "32s" truncates or null-pads to the slot size
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return (value or "").encode(encoding, errors="replace")


def encode(header: "PSIDHeader") -> bytes:
    """
    Serialize a header to bytes without validating it.

    Args:
        header: The header to encode

    Returns:
        The complete PSID file: fixed header, padding, data
    """
    encoding = header.config.text_encoding

    out = bytearray()
    out += struct.pack(PREAMBLE_FORMAT, MAGIC, _u16(header.version), _u16(header.data_offset))
    out += struct.pack(
        COMMON_FORMAT,
        _u16(header.load_address),
        _u16(header.init_address),
        _u16(header.play_address),
        _u16(header.songs),
        _u16(header.start_song),
        _u32(header.speed),
        _text(header.name, encoding),
        _text(header.author, encoding),
        _text(header.copyright, encoding),
    )

    if header.version == 2:
        out += struct.pack(
            V2_FORMAT,
            _u16(header.flags),
            _u8(header.start_page),
            _u8(header.page_length),
            _u16(header.reserved),
        )

    out += header.padding
    out += header.data
    return bytes(out)


def write(header: "PSIDHeader", sink: Sink) -> int:
    """
    Encode a header and write it to a path or binary stream.

    Streams are rewound to their start when seekable and left open.

    Returns:
        Number of bytes written

    Raises:
        PSIDIOError: If the sink cannot be opened or written
    """
    output = encode(header)

    if isinstance(sink, (str, os.PathLike)):
        target = os.fspath(sink)
        try:
            with open(sink, "wb") as f:
                f.write(output)
        except OSError as e:
            raise PSIDIOError(target, f"couldn't write {target}: {e}") from e
    else:
        target = "<stream>"
        try:
            if sink.seekable():
                sink.seek(0)
            sink.write(output)
        except OSError as e:
            raise PSIDIOError(target, f"couldn't write {target}: {e}") from e

    logger.debug(f"Wrote PSID v{header.version} to {target} ({len(output)} bytes)")
    return len(output)
