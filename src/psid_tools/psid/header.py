"""
PSID Header
===========

This module provides PSIDHeader, the in-memory representation of a PSID
file: the header fields, the padding between the header and the data, and
the C64 data itself.

A header is created with default values or decoded from a file, edited in
place through the accessor API, and written back out. Every field can be
read by its PSID name with get(); set() takes any number of field/value
pairs at once and applies the version rules of the format:

- version 1 headers have no flags, startPage, pageLength or reserved
  fields (they read as None) and a fixed dataOffset of 0x76
- version 2 headers always carry those four fields and may declare a
  dataOffset beyond 0x7C, the gap being filled with padding

Usage Examples
--------------
Reading and editing a file:
    >>> from psid_tools import PSIDHeader
    >>> header = PSIDHeader.from_file("Commando.sid")
    >>> header.get("name")
    'Commando'
    >>> header.set(author="Rob Hubbard", copyright="1985 Elite")
    []
    >>> header.set_clock_by_name("pal")
    >>> header.validate()
    >>> header.write("Commando2.sid")

Fingerprinting:
    >>> header.md5()
    '2a1b...'
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union
import logging
import operator
import os

from psid_tools.config import CodecConfig, get_default_config
from psid_tools.errors import (
    DecodeError,
    FieldError,
    InvalidSongNumberError,
    InvalidValueError,
    PSIDIOError,
    ReadOnlyFieldError,
    UnknownFieldError,
    VersionMismatchError,
)
from psid_tools.psid import parser, validator, writer
from psid_tools.psid.fingerprint import calculate_md5
from psid_tools.psid.fields import (
    Clock,
    FieldKind,
    FlagField,
    HeaderField,
    PUBLIC_FIELDS,
    SIDModel,
    SPEED_BITS,
    SUPPORTED_VERSIONS,
    TEXT_FIELDS,
    V1_DATA_OFFSET,
    V2_DATA_OFFSET,
    V2_FIELDS,
    coerce_text,
)

# Logger for this module
logger = logging.getLogger(__name__)


@dataclass
class PSIDHeader:
    """
    A PSID file held in memory.

    Attributes use Python names; get() and set() use the PSID field names
    (``dataOffset``, ``loadAddress``, ...). Text fields are stored as the
    characters of their 32-byte slot and may carry trailing nulls until
    the header is validated.

    Attributes:
        version: PSID version, 1 or 2
        data_offset: Offset of the C64 data in the file
        load_address: C64 load address, 0 when embedded in the data
        init_address: Address of the init routine
        play_address: Address of the play routine
        songs: Number of songs
        start_song: Song played by default (1-based)
        speed: Timing bit per song (0 = VBI, 1 = CIA timer)
        name: Tune title
        author: Composer
        copyright: Release year and publisher
        flags: v2NG flags word (None for version 1)
        start_page: First free memory page (None for version 1)
        page_length: Number of free pages (None for version 1)
        reserved: Reserved word (None for version 1)
        data: C64 program, optionally prefixed by its load address
        padding: Bytes between the fixed header and dataOffset
        file_name: Path last read from or written to
        file_size: Size of the file, recomputed after every change
        config: Codec configuration
        validate_on_write: Normalize before writing; None defers to config
    """

    version: int = 2
    data_offset: int = V2_DATA_OFFSET
    load_address: int = 0
    init_address: int = 0
    play_address: int = 0
    songs: int = 0
    start_song: int = 0
    speed: int = 0
    name: str = "<?>"
    author: str = "<?>"
    copyright: str = "20?? <?>"
    flags: Optional[int] = 0
    start_page: Optional[int] = 0
    page_length: Optional[int] = 0
    reserved: Optional[int] = 0
    data: bytes = field(default=b"", repr=False)
    padding: bytes = field(default=b"", repr=False)
    file_name: str = ""
    file_size: int = V2_DATA_OFFSET
    config: CodecConfig = field(default_factory=get_default_config, repr=False, compare=False)
    validate_on_write: Optional[bool] = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Bring the layout fields in line with the version."""
        if self.version not in SUPPORTED_VERSIONS:
            raise InvalidValueError(
                "version", f"unsupported PSID version {self.version}", self.version
            )
        self._apply_layout(self.version, self.data_offset)
        self.recalculate_file_size()

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_file(cls, filepath: Union[str, os.PathLike], **kwargs) -> "PSIDHeader":
        """
        Create a PSIDHeader from a PSID file on disk.

        Args:
            filepath: Path to the PSID file
            **kwargs: config / validate_on_write for the new header

        Raises:
            DecodeError: If the file is not a valid PSID file
            PSIDIOError: If the file cannot be read
        """
        header = cls(**kwargs)
        header.read(filepath)
        return header

    @classmethod
    def from_bytes(cls, data: bytes, **kwargs) -> "PSIDHeader":
        """Create a PSIDHeader from the raw bytes of a PSID file."""
        header = cls(**kwargs)
        header.read(data)
        return header

    def initialize(self) -> None:
        """
        Reset every field to its default value.

        The configuration and the validate-on-write setting are kept.
        """
        defaults = PSIDHeader(config=self.config)
        for header_field in HeaderField:
            if header_field is not HeaderField.REAL_LOAD_ADDRESS:
                setattr(self, header_field.attr, getattr(defaults, header_field.attr))

    # =========================================================================
    # Decode / Encode
    # =========================================================================

    def read(self, source: Optional[parser.Source] = None) -> None:
        """
        Populate the header from a PSID file.

        Args:
            source: Path, open binary stream or bytes. When omitted, the
                header's file_name is read.

        Raises:
            DecodeError: If the source is not a valid PSID file
            PSIDIOError: If the source cannot be read

        On failure the header is reset to its defaults before the error
        propagates; nothing from a previous file survives.
        """
        if source is None:
            source = self.file_name

        try:
            result = parser.decode(source, strict_payload=self.config.strict_payload)
        except (DecodeError, PSIDIOError) as e:
            logger.warning(f"Failed to read PSID: {e}")
            self.initialize()
            raise

        encoding = self.config.text_encoding
        text_attrs = {f.attr for f in TEXT_FIELDS}
        for attr, value in result.fields.items():
            if attr in text_attrs:
                value = value.decode(encoding, errors="replace")
            setattr(self, attr, value)

        self.padding = result.padding
        self.file_size = result.bytes_read
        if result.file_name is not None:
            self.file_name = result.file_name

    def to_bytes(self, validate: Optional[bool] = None) -> bytes:
        """
        Encode the header as the bytes of a PSID file.

        Args:
            validate: Normalize first; None uses the validate-on-write setting
        """
        if self._should_validate(validate):
            self.validate()
        return writer.encode(self)

    def write(self, target: Optional[writer.Sink] = None,
              validate: Optional[bool] = None) -> int:
        """
        Write the header to a PSID file.

        The file is written as the stored version, whether or not the
        other fields agree with it, unless validation is requested.

        Args:
            target: Path or binary stream. When omitted, file_name is used.
            validate: Normalize first; None uses the validate-on-write setting

        Returns:
            Number of bytes written

        Raises:
            PSIDIOError: If the target cannot be written
        """
        if target is None:
            if not self.file_name:
                raise PSIDIOError("", "no file name to write to")
            target = self.file_name

        if self._should_validate(validate):
            self.validate()

        written = writer.write(self, target)
        if parser.is_path(target):
            self.file_name = os.fspath(target)
        return written

    def _should_validate(self, validate: Optional[bool]) -> bool:
        if validate is not None:
            return validate
        if self.validate_on_write is not None:
            return self.validate_on_write
        return self.config.validate_on_write

    # =========================================================================
    # Validation and Fingerprint
    # =========================================================================

    def validate(self) -> None:
        """
        Normalize the header in place to canonical PSID v2NG form.

        See psid_tools.psid.validator for the exact rules. Never fails.
        """
        validator.normalize(self)

    def md5(self) -> str:
        """
        MD5 fingerprint of the tune, as used by the HVSC song-length database.

        Credits (name, author, copyright) and layout fields do not take part.
        """
        return calculate_md5(self)

    fingerprint = md5

    def recalculate_file_size(self) -> int:
        """Recompute file_size from dataOffset, padding and data."""
        self.file_size = (self.data_offset or 0) + len(self.padding) + len(self.data)
        return self.file_size

    # =========================================================================
    # Field Access
    # =========================================================================

    @staticmethod
    def field_names() -> list[str]:
        """
        All recognized field names, in file order, followed by fileName,
        fileSize and realLoadAddress.
        """
        return [f.key for f in PUBLIC_FIELDS]

    @property
    def real_load_address(self) -> int:
        """
        Where the data is loaded into C64 memory.

        loadAddress when non-zero, otherwise the little-endian word at the
        start of data (0 when data holds fewer than 2 bytes).
        """
        if self.load_address:
            return self.load_address
        if len(self.data) < 2:
            return 0
        return self.data[0] | (self.data[1] << 8)

    def get(self, name: Union[str, HeaderField]) -> Any:
        """
        Get a field value by name.

        Text fields are returned without their trailing nulls. Version 2
        fields read as None on a version 1 header.

        Raises:
            UnknownFieldError: If no such field exists
        """
        header_field = HeaderField.lookup(name)
        if header_field is None:
            raise UnknownFieldError(str(name))

        value = getattr(self, header_field.attr)
        if header_field.is_text:
            value = coerce_text(value, self.config.text_encoding).rstrip("\x00")
        return value

    def get_all(self) -> dict[str, Any]:
        """Get every field from field_names() as a dict."""
        return {f.key: self.get(f) for f in PUBLIC_FIELDS}

    def set(self, updates: Optional[Mapping[Union[str, HeaderField], Any]] = None,
            /, **fields: Any) -> list[FieldError]:
        """
        Set one or more fields.

        Each pair is checked and applied on its own: a rejected pair is
        logged and skipped without affecting the others. version and
        dataOffset are applied first, so a batch that switches to version 2
        can also set the version 2 fields.

        Args:
            updates: Mapping of field name to value
            **fields: More field/value pairs by keyword

        Returns:
            The errors of the rejected pairs; empty when everything applied

        Example:
            >>> header.set({"dataOffset": 0x80}, name="Tune", flags=0x14)
            []
        """
        pairs = dict(updates or {})
        pairs.update(fields)

        rejected: list[FieldError] = []
        layout: dict[HeaderField, int] = {}
        assignments: list[tuple[HeaderField, Any]] = []

        for name, value in pairs.items():
            try:
                header_field = self._resolve_settable(name)
                if header_field in (HeaderField.VERSION, HeaderField.DATA_OFFSET):
                    layout[header_field] = self._check_int(header_field, value)
                else:
                    assignments.append((header_field, value))
            except FieldError as e:
                rejected.append(e)

        if layout:
            rejected.extend(self._apply_layout(
                layout.get(HeaderField.VERSION),
                layout.get(HeaderField.DATA_OFFSET),
            ))

        for header_field, value in assignments:
            try:
                if header_field.v2_only and self.version != 2:
                    raise VersionMismatchError(header_field.key, self.version)
                setattr(self, header_field.attr, self._coerce(header_field, value))
            except FieldError as e:
                rejected.append(e)

        for error in rejected:
            logger.warning(f"Ignored: {error}")

        self.recalculate_file_size()
        return rejected

    def _resolve_settable(self, name: Union[str, HeaderField]) -> HeaderField:
        header_field = HeaderField.lookup(name)
        if header_field is None:
            raise UnknownFieldError(str(name))
        if header_field.read_only:
            raise ReadOnlyFieldError(header_field.key)
        return header_field

    @staticmethod
    def _check_int(header_field: HeaderField, value: Any) -> int:
        try:
            return operator.index(value)
        except TypeError:
            raise InvalidValueError(
                header_field.key, f"{header_field.key!r} needs an integer, got {value!r}", value
            ) from None

    def _coerce(self, header_field: HeaderField, value: Any) -> Any:
        """Convert a value to the storage type of a field."""
        if header_field.kind is FieldKind.INT:
            return self._check_int(header_field, value)
        if header_field.kind is FieldKind.TEXT:
            if not isinstance(value, (str, bytes, bytearray)):
                raise InvalidValueError(
                    header_field.key, f"{header_field.key!r} needs text, got {value!r}", value
                )
            return coerce_text(value, self.config.text_encoding)
        if header_field.kind is FieldKind.BYTES:
            if not isinstance(value, (bytes, bytearray, memoryview)):
                raise InvalidValueError(
                    header_field.key, f"{header_field.key!r} needs bytes, got {type(value).__name__}", value
                )
            return bytes(value)
        if not isinstance(value, (str, os.PathLike)):
            raise InvalidValueError(
                header_field.key, f"{header_field.key!r} needs a path, got {value!r}", value
            )
        return os.fspath(value)

    def _apply_layout(self, version: Optional[int], data_offset: Optional[int]) -> list[FieldError]:
        """
        Apply a version and/or dataOffset change.

        A new version governs a dataOffset given alongside it; otherwise
        the stored version does. Switching to version 1 discards padding
        and the version 2 fields.
        """
        rejected: list[FieldError] = []

        if version is not None and version not in SUPPORTED_VERSIONS:
            rejected.append(InvalidValueError(
                "version", f"PSID version number {version} is not 1 or 2 - ignored", version
            ))
            version = None
            if data_offset is None:
                return rejected

        if version is None:
            version = self.version
        if data_offset is None:
            data_offset = self.data_offset

        if version == 1:
            self.version = 1
            self.data_offset = V1_DATA_OFFSET
            for v2_field in V2_FIELDS:
                setattr(self, v2_field.attr, None)
            self.padding = b""
        elif version == 2:
            if data_offset < V2_DATA_OFFSET:
                data_offset = V2_DATA_OFFSET
                self.padding = b""
            else:
                length = data_offset - V2_DATA_OFFSET
                self.padding = self.padding[:length].ljust(length, b"\x00")
            for v2_field in V2_FIELDS:
                if getattr(self, v2_field.attr) is None:
                    setattr(self, v2_field.attr, 0)
            self.version = 2
            self.data_offset = data_offset
        else:
            rejected.append(InvalidValueError(
                "dataOffset", f"can't place dataOffset for PSID version {version}", data_offset
            ))

        return rejected

    # =========================================================================
    # Flags Sub-fields
    # =========================================================================

    def _get_flag(self, flag_field: FlagField) -> Optional[int]:
        if self.flags is None:
            return None
        return flag_field.extract(self.flags)

    def _set_flag(self, flag_field: FlagField, value: int) -> None:
        if self.flags is None:
            raise VersionMismatchError("flags", self.version)
        if isinstance(value, bool):
            value = int(value)
        if not isinstance(value, int) or not 0 <= value <= flag_field.max_value:
            raise InvalidValueError(
                "flags",
                f"{flag_field.name.lower()} must be in 0..{flag_field.max_value}, got {value!r}",
                value,
            )
        self.flags = flag_field.insert(self.flags, value)

    def get_mus_player(self) -> Optional[int]:
        """Bit 0 of flags: 1 if a Compute!'s Sidplayer MUS player must be merged."""
        return self._get_flag(FlagField.MUS_PLAYER)

    def set_mus_player(self, value: int) -> None:
        self._set_flag(FlagField.MUS_PLAYER, value)

    def get_playsid_specific(self) -> Optional[int]:
        """Bit 1 of flags: 1 if the tune relies on PlaySID sample extensions."""
        return self._get_flag(FlagField.PLAYSID_SPECIFIC)

    def set_playsid_specific(self, value: int) -> None:
        self._set_flag(FlagField.PLAYSID_SPECIFIC, value)

    def get_clock(self) -> Optional[Clock]:
        """Bits 2-3 of flags: video standard, None for version 1."""
        value = self._get_flag(FlagField.CLOCK)
        return None if value is None else Clock(value)

    def set_clock(self, value: int) -> None:
        self._set_flag(FlagField.CLOCK, value)

    def get_clock_by_name(self) -> Optional[str]:
        """Canonical clock name: UNKNOWN, PAL, NTSC or EITHER."""
        clock = self.get_clock()
        return None if clock is None else clock.canonical_name

    def set_clock_by_name(self, name: str) -> None:
        """
        Set the clock from a case-insensitive name.

        Accepts pal, ntsc, unknown/none/neither and any/both/either.

        Raises:
            InvalidValueError: If the name is not recognized
            VersionMismatchError: If the header is version 1
        """
        clock = Clock.from_name(name) if isinstance(name, str) else None
        if clock is None:
            raise InvalidValueError("flags", f"unknown clock name {name!r}", name)
        self.set_clock(clock)

    def get_sid_model(self) -> Optional[SIDModel]:
        """Bits 4-5 of flags: SID chip model, None for version 1."""
        value = self._get_flag(FlagField.SID_MODEL)
        return None if value is None else SIDModel(value)

    def set_sid_model(self, value: int) -> None:
        self._set_flag(FlagField.SID_MODEL, value)

    def get_sid_model_by_name(self) -> Optional[str]:
        """Canonical model name: UNKNOWN, 6581, 8580 or EITHER."""
        model = self.get_sid_model()
        return None if model is None else model.canonical_name

    def set_sid_model_by_name(self, name: str) -> None:
        """
        Set the SID model from a case-insensitive name.

        Accepts 6581, 8580, unknown/none/neither and any/both/either.

        Raises:
            InvalidValueError: If the name is not recognized
            VersionMismatchError: If the header is version 1
        """
        model = SIDModel.from_name(name) if isinstance(name, str) else None
        if model is None:
            raise InvalidValueError("flags", f"unknown SID model name {name!r}", name)
        self.set_sid_model(model)

    # =========================================================================
    # Per-song Speed
    # =========================================================================

    def _speed_bit(self, song: int) -> int:
        songs = self.songs or 0
        if not isinstance(song, int) or song < 1 or song > songs:
            raise InvalidSongNumberError(song, songs)
        return min(song, SPEED_BITS) - 1

    def get_speed(self, song: int) -> int:
        """
        Timing of a song: 0 for vertical blank, 1 for CIA timer.

        Songs beyond 32 share the bit of song 32.

        Raises:
            InvalidSongNumberError: If song is not in [1, songs]
        """
        return ((self.speed or 0) >> self._speed_bit(song)) & 1

    def set_speed(self, song: int, bit: int) -> None:
        """
        Set the timing of a song (0 = vertical blank, 1 = CIA timer).

        Raises:
            InvalidSongNumberError: If song is not in [1, songs]
            InvalidValueError: If bit is not 0 or 1
        """
        index = self._speed_bit(song)
        if bit not in (0, 1):
            raise InvalidValueError("speed", f"speed bit must be 0 or 1, got {bit!r}", bit)
        speed = self.speed or 0
        if bit:
            self.speed = speed | (1 << index)
        else:
            self.speed = speed & ~(1 << index)
