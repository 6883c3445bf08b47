"""
PSID Header Normalization
=========================

normalize() rewrites a header in place into canonical PSID v2NG form.
It never fails: out-of-range values are clamped rather than rejected, so
any header, however it was populated, comes out writable.

Rules, applied in order (later rules rely on earlier ones):

     1. version 2, dataOffset 0x7C
     2. text fields are re-encoded, lose trailing nulls and are cut to
        31 bytes; characters the encoding cannot hold become "?"
     3. a zero initAddress becomes loadAddress, or the embedded load address
     4. a non-zero loadAddress is moved into the first two bytes of data
     5. load/init/play addresses outside 0x0000-0xFFFF become 0
     6. startPage/pageLength outside 0x00-0xFF become 0
     7. songs is clamped to [1, 256]
     8. startSong outside [1, songs] becomes 1; a startSong of 0 is
        reset too, not only one beyond songs
     9. speed keeps only the bits of existing songs
    10. flags keeps only its known sub-fields
    11. pageLength is 0 when startPage is 0
    12. reserved is 0
    13. padding is dropped
    14. fileSize is recomputed

Normalizing twice gives the same result as normalizing once.
"""

from typing import TYPE_CHECKING
import logging

from psid_tools.psid.fields import (
    FlagField,
    MAX_SONGS,
    SPEED_BITS,
    TEXT_FIELDS,
    TEXT_MAX_LENGTH,
    V2_DATA_OFFSET,
    coerce_text,
)

if TYPE_CHECKING:
    from psid_tools.psid.header import PSIDHeader

# Logger for this module
logger = logging.getLogger(__name__)


def _in_range(value, limit: int) -> bool:
    return value is not None and 0 <= value <= limit


def _le16(data: bytes) -> int:
    """Little-endian word at the start of data, 0 if data is too short."""
    if len(data) < 2:
        return 0
    return data[0] | (data[1] << 8)


def normalize(header: "PSIDHeader") -> None:
    """
    Normalize a header in place to canonical PSID v2NG form.

    Args:
        header: The header to rewrite
    """
    if header.version != 2 or header.data_offset != V2_DATA_OFFSET:
        logger.debug(
            f"Normalizing v{header.version} header with dataOffset "
            f"0x{(header.data_offset or 0):04X} to v2"
        )
    header.version = 2
    header.data_offset = V2_DATA_OFFSET

    encoding = header.config.text_encoding
    for text_field in TEXT_FIELDS:
        value = coerce_text(getattr(header, text_field.attr), encoding)
        raw = value.encode(encoding, errors="replace").rstrip(b"\x00")
        if len(raw) > TEXT_MAX_LENGTH:
            logger.debug(f"'{text_field.key}' longer than {TEXT_MAX_LENGTH} bytes - chopped")
            raw = raw[:TEXT_MAX_LENGTH]
        # A character cut in half by the chop is dropped
        setattr(header, text_field.attr, raw.decode(encoding, errors="ignore").rstrip("\x00"))

    # An init address rule 5 would clear counts as 0 here
    if not _in_range(header.init_address, 0xFFFF) or header.init_address == 0:
        if header.load_address:
            header.init_address = header.load_address & 0xFFFF
        else:
            header.init_address = _le16(header.data)
        logger.debug(f"'initAddress' was 0 - set to 0x{header.init_address:04X}")

    if header.load_address:
        load = header.load_address & 0xFFFF
        header.data = bytes((load & 0xFF, load >> 8)) + header.data
        header.load_address = 0
        logger.debug("'loadAddress' moved into the data")

    for attr in ("load_address", "init_address", "play_address"):
        if not _in_range(getattr(header, attr), 0xFFFF):
            setattr(header, attr, 0)

    for attr in ("start_page", "page_length"):
        if not _in_range(getattr(header, attr), 0xFF):
            setattr(header, attr, 0)

    songs = header.songs or 0
    header.songs = min(max(songs, 1), MAX_SONGS)

    if not 1 <= (header.start_song or 0) <= header.songs:
        header.start_song = 1

    speed_mask = (1 << min(header.songs, SPEED_BITS)) - 1
    header.speed = (header.speed or 0) & speed_mask

    old_flags = header.flags or 0
    flags = 0
    for flag_field in FlagField:
        flags = flag_field.insert(flags, flag_field.extract(old_flags))
    header.flags = flags

    if header.start_page == 0:
        header.page_length = 0

    header.reserved = 0

    if header.padding:
        logger.debug(f"Removed {len(header.padding)} padding bytes")
    header.padding = b""

    header.recalculate_file_size()
