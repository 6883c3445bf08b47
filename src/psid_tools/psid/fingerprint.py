"""
PSID Fingerprint
================

Content digest identifying a tune independently of its credits.

The digest covers only what determines how the tune plays: the C64 data
(without its embedded load address), the init and play addresses, the
number of songs and each song's speed. Renaming a tune or re-crediting it
leaves the fingerprint unchanged, which is what lets the HVSC song-length
database key its entries by this value. The byte sequence and the MD5
algorithm must therefore stay exactly as they are.

Digest input, in order:
    data        data[2:] when loadAddress is 0 and data is non-empty, else data
    initAddress 2 bytes, little-endian
    playAddress 2 bytes, little-endian
    songs       2 bytes, little-endian
    speed       1 byte per song: 0 (VBI) or 60 (CIA); songs past 32 use bit 31
"""

from typing import TYPE_CHECKING
import hashlib
import struct

from psid_tools.psid.fields import CIA_SPEED_MARKER, SPEED_BITS

if TYPE_CHECKING:
    from psid_tools.psid.header import PSIDHeader


def speed_bit(speed: int, song_index: int) -> int:
    """Speed bit of a 0-based song index; indices past 31 share bit 31."""
    return (speed >> min(song_index, SPEED_BITS - 1)) & 1


def calculate_md5(header: "PSIDHeader") -> str:
    """
    Calculate the MD5 fingerprint of a header.

    Args:
        header: The header to fingerprint

    Returns:
        Lowercase hexadecimal MD5 digest
    """
    md5 = hashlib.md5()

    data = header.data
    if header.load_address == 0 and data:
        md5.update(data[2:])
    else:
        md5.update(data)

    md5.update(struct.pack("<H", (header.init_address or 0) & 0xFFFF))
    md5.update(struct.pack("<H", (header.play_address or 0) & 0xFFFF))

    songs = header.songs or 0
    md5.update(struct.pack("<H", songs & 0xFFFF))

    speed = header.speed or 0
    md5.update(bytes(
        CIA_SPEED_MARKER if speed_bit(speed, i) else 0
        for i in range(songs)
    ))

    return md5.hexdigest()
