"""
PSID Header Unit Tests
======================

Tests for PSIDHeader decoding, encoding and field access.

Test Categories
---------------
1. Defaults: Construction and reset
2. Decode: Reading version 1 and 2 files, failures
3. Encode: Byte layout and round-trips
4. Field access: get/set and the version rules
5. Flags: Packed sub-field accessors
6. Speed: Per-song timing bits
"""

import io
import struct

import pytest

from psid_tools import (
    Clock,
    CodecConfig,
    HeaderField,
    InvalidSongNumberError,
    InvalidValueError,
    PSIDFormatError,
    PSIDHeader,
    PSIDIOError,
    ReadOnlyFieldError,
    SIDModel,
    TruncatedHeaderError,
    TruncatedPayloadError,
    UnknownFieldError,
    VersionMismatchError,
)


# =============================================================================
# Defaults
# =============================================================================

class TestDefaults:
    """Tests for header construction."""

    def test_default_values(self):
        """A new header is an empty version 2 file."""
        header = PSIDHeader()
        assert header.version == 2
        assert header.data_offset == 0x7C
        assert header.get("name") == "<?>"
        assert header.get("author") == "<?>"
        assert header.get("copyright") == "20?? <?>"
        assert header.flags == 0
        assert header.start_page == 0
        assert header.page_length == 0
        assert header.reserved == 0
        assert header.data == b""
        assert header.padding == b""
        assert header.file_name == ""
        assert header.file_size == 0x7C

    def test_version_1_construction(self):
        """Constructing a v1 header drops the v2 fields."""
        header = PSIDHeader(version=1)
        assert header.data_offset == 0x76
        assert header.flags is None
        assert header.start_page is None
        assert header.page_length is None
        assert header.reserved is None

    def test_invalid_version_construction(self):
        with pytest.raises(InvalidValueError):
            PSIDHeader(version=3)

    def test_initialize_resets_fields(self, v2_psid_data: bytes):
        header = PSIDHeader.from_bytes(v2_psid_data)
        header.initialize()
        assert header == PSIDHeader()


# =============================================================================
# Decode
# =============================================================================

class TestDecode:
    """Tests for reading PSID files."""

    def test_v1_scenario(self, v1_psid_data: bytes):
        """The crafted v1 buffer decodes to its fields."""
        header = PSIDHeader.from_bytes(v1_psid_data)
        assert header.version == 1
        assert header.data_offset == 0x76
        assert header.get("name") == "Test"
        assert header.get("author") == "Me"
        assert header.get("copyright") == "2024"
        assert header.get("realLoadAddress") == 0x1000
        assert header.get_speed(1) == 0
        assert header.data == b"\x00\x10"

    def test_v1_has_no_v2_fields(self, v1_psid_data: bytes):
        header = PSIDHeader.from_bytes(v1_psid_data)
        for name in ("flags", "startPage", "pageLength", "reserved"):
            assert header.get(name) is None

    def test_v2_fields(self, v2_psid_data: bytes):
        header = PSIDHeader.from_bytes(v2_psid_data)
        assert header.version == 2
        assert header.load_address == 0
        assert header.songs == 3
        assert header.start_song == 2
        assert header.speed == 0b101
        assert header.flags == 0x24
        assert header.start_page == 0x20
        assert header.page_length == 0x10
        assert header.reserved == 0
        assert header.padding == b""
        assert header.real_load_address == 0x1000

    def test_file_size_is_bytes_read(self, v2_psid_data: bytes):
        header = PSIDHeader.from_bytes(v2_psid_data)
        assert header.file_size == len(v2_psid_data)

    def test_padding_preserved(self, psid_builder):
        data = psid_builder(version=2, padding=b"\xAA\xBB\xCC\xDD")
        header = PSIDHeader.from_bytes(data)
        assert header.data_offset == 0x80
        assert header.padding == b"\xAA\xBB\xCC\xDD"
        assert header.data == b"\x00\x10"

    def test_empty_payload(self, psid_builder):
        header = PSIDHeader.from_bytes(psid_builder(data=b""))
        assert header.data == b""
        assert header.real_load_address == 0x1000

    def test_payload_capped(self, psid_builder):
        """At most 64KB plus the 2-byte load address is read."""
        header = PSIDHeader.from_bytes(psid_builder(data=bytes(70000)))
        assert len(header.data) == 65537
        assert header.file_size == 0x7C + 65537

    def test_bad_magic(self, psid_builder):
        data = b"RSID" + psid_builder()[4:]
        with pytest.raises(PSIDFormatError):
            PSIDHeader.from_bytes(data)

    def test_bad_version(self, psid_builder):
        data = psid_builder()
        data = data[:4] + struct.pack(">H", 3) + data[6:]
        with pytest.raises(PSIDFormatError):
            PSIDHeader.from_bytes(data)

    def test_failed_read_resets_header(self, v2_psid_data: bytes):
        """Nothing of a previously loaded file survives a failed read."""
        header = PSIDHeader.from_bytes(v2_psid_data)
        with pytest.raises(PSIDFormatError):
            header.read(b"NOPE" + bytes(200))
        assert header == PSIDHeader()

    def test_truncated_header(self, v2_psid_data: bytes):
        header = PSIDHeader.from_bytes(v2_psid_data)
        with pytest.raises(TruncatedHeaderError):
            header.read(v2_psid_data[:100])
        assert header.get("name") == "<?>"

    def test_truncated_preamble(self):
        with pytest.raises(TruncatedHeaderError):
            PSIDHeader.from_bytes(b"PSID\x00")

    def test_data_offset_too_small(self, psid_builder):
        with pytest.raises(TruncatedHeaderError):
            PSIDHeader.from_bytes(psid_builder(version=2, data_offset=0x76))

    def test_read_from_path_records_file_name(self, v2_psid_file):
        header = PSIDHeader.from_file(v2_psid_file)
        assert header.get("fileName") == str(v2_psid_file)

    def test_read_from_stream_keeps_file_name(self, v2_psid_data: bytes):
        header = PSIDHeader(file_name="previous.sid")
        stream = io.BytesIO(b"junk" + v2_psid_data)
        stream.seek(4)
        with pytest.raises(PSIDFormatError):
            # Streams are rewound before reading
            header.read(stream)

        header.read(io.BytesIO(v2_psid_data))
        assert header.file_name == ""

        header.set(fileName="kept.sid")
        header.read(io.BytesIO(v2_psid_data))
        assert header.file_name == "kept.sid"

    def test_read_defaults_to_file_name(self, v2_psid_file):
        header = PSIDHeader()
        header.set(fileName=str(v2_psid_file))
        header.read()
        assert header.get("name") == "Commando"

    def test_missing_file(self, tmp_path):
        with pytest.raises(PSIDIOError):
            PSIDHeader.from_file(tmp_path / "missing.sid")

    def test_strict_payload(self, psid_builder):
        data = psid_builder(load_address=0, data=b"\x00")
        PSIDHeader.from_bytes(data)

        config = CodecConfig(strict_payload=True)
        with pytest.raises(TruncatedPayloadError):
            PSIDHeader.from_bytes(data, config=config)


# =============================================================================
# Encode
# =============================================================================

class TestEncode:
    """Tests for writing PSID files."""

    def test_v1_roundtrip_bytes(self, v1_psid_data: bytes):
        header = PSIDHeader.from_bytes(v1_psid_data)
        assert header.to_bytes() == v1_psid_data

    def test_v2_roundtrip_bytes(self, v2_psid_data: bytes):
        header = PSIDHeader.from_bytes(v2_psid_data)
        assert header.to_bytes() == v2_psid_data

    def test_padding_roundtrip_bytes(self, psid_builder):
        data = psid_builder(padding=b"\x01\x02\x03")
        assert PSIDHeader.from_bytes(data).to_bytes() == data

    def test_v1_layout(self, v1_psid_data: bytes):
        output = PSIDHeader.from_bytes(v1_psid_data).to_bytes()
        assert len(output) == 0x76 + 2
        assert output[0x76:] == b"\x00\x10"

    def test_v2_layout(self):
        header = PSIDHeader()
        header.set(songs=2, flags=0x14, startPage=0x30, pageLength=0x08, data=b"\x00\x10")
        output = header.to_bytes()
        assert output[:4] == b"PSID"
        assert struct.unpack(">HH", output[4:8]) == (2, 0x7C)
        assert struct.unpack(">H", output[14:16]) == (2,)
        assert output[22:25] == b"<?>"
        assert output[25:54] == bytes(29)
        assert struct.unpack(">HBBH", output[118:124]) == (0x14, 0x30, 0x08, 0)
        assert output[124:] == b"\x00\x10"

    def test_long_text_truncated_to_slot(self):
        header = PSIDHeader()
        header.set(name="X" * 40)
        output = header.to_bytes()
        assert output[22:54] == b"X" * 32
        assert output[54:57] == b"<?>"

    def test_roundtrip_validated_header(self):
        header = PSIDHeader()
        header.set(
            loadAddress=0x0801, initAddress=0x0810, playAddress=0x0820,
            songs=40, startSong=5, speed=0xDEADBEEFFF,
            name="Name", author="Author", copyright="1987 Someone",
            flags=0x3F, startPage=0x04, pageLength=0x02,
            data=b"\xA9\x00\x60",
        )
        header.set_speed(40, 1)
        header.validate()

        decoded = PSIDHeader.from_bytes(header.to_bytes())
        assert decoded.get_all() == header.get_all()
        assert decoded.padding == header.padding

    def test_writes_stored_version_unvalidated(self, v1_psid_data: bytes):
        """Without validation a v1 header stays a v1 file."""
        header = PSIDHeader.from_bytes(v1_psid_data)
        header.set(songs=999)
        output = header.to_bytes()
        assert struct.unpack(">H", output[4:6]) == (1,)
        assert struct.unpack(">H", output[14:16]) == (999,)

    def test_validate_on_write_flag(self, v1_psid_data: bytes):
        header = PSIDHeader(validate_on_write=True)
        header.read(v1_psid_data)
        output = header.to_bytes()
        assert struct.unpack(">HH", output[4:8]) == (2, 0x7C)
        assert header.version == 2

    def test_validate_argument_overrides_flag(self, v1_psid_data: bytes):
        header = PSIDHeader(validate_on_write=True)
        header.read(v1_psid_data)
        assert header.to_bytes(validate=False) == v1_psid_data

    def test_validate_on_write_from_config(self, v1_psid_data: bytes):
        header = PSIDHeader(config=CodecConfig(validate_on_write=True))
        header.read(v1_psid_data)
        header.to_bytes()
        assert header.version == 2

    def test_out_of_range_values_masked(self):
        header = PSIDHeader()
        header.set(initAddress=0x12345, speed=-1)
        output = header.to_bytes()
        assert struct.unpack(">H", output[10:12]) == (0x2345,)
        assert struct.unpack(">I", output[18:22]) == (0xFFFFFFFF,)

    def test_write_to_file(self, tmp_path, v2_psid_data: bytes):
        header = PSIDHeader.from_bytes(v2_psid_data)
        path = tmp_path / "out.sid"
        written = header.write(path)
        assert written == len(v2_psid_data)
        assert path.read_bytes() == v2_psid_data
        assert header.file_name == str(path)

    def test_write_to_stream(self, v2_psid_data: bytes):
        header = PSIDHeader.from_bytes(v2_psid_data)
        stream = io.BytesIO()
        header.write(stream)
        assert stream.getvalue() == v2_psid_data

    def test_write_defaults_to_file_name(self, v2_psid_file):
        header = PSIDHeader.from_file(v2_psid_file)
        header.set(name="Renamed")
        header.write()
        assert PSIDHeader.from_file(v2_psid_file).get("name") == "Renamed"

    def test_write_without_file_name(self):
        with pytest.raises(PSIDIOError):
            PSIDHeader().write()

    def test_write_error(self, tmp_path):
        with pytest.raises(PSIDIOError):
            PSIDHeader().write(tmp_path / "missing" / "out.sid")


# =============================================================================
# Field Access
# =============================================================================

class TestFieldAccess:
    """Tests for get() and set()."""

    def test_field_names(self):
        names = PSIDHeader.field_names()
        assert names[:3] == ["version", "dataOffset", "loadAddress"]
        assert names[-4:] == ["data", "fileName", "fileSize", "realLoadAddress"]
        assert "padding" not in names

    def test_get_unknown_field(self):
        with pytest.raises(UnknownFieldError):
            PSIDHeader().get("tempo")

    def test_field_names_are_case_sensitive(self):
        with pytest.raises(UnknownFieldError):
            PSIDHeader().get("DATAOFFSET")

    def test_get_by_enum(self):
        assert PSIDHeader().get(HeaderField.DATA_OFFSET) == 0x7C

    def test_get_strips_trailing_nulls(self):
        header = PSIDHeader()
        header.name = "Tune\x00\x00\x00"
        assert header.get("name") == "Tune"
        assert header.name == "Tune\x00\x00\x00"

    def test_get_all(self, v2_psid_data: bytes):
        values = PSIDHeader.from_bytes(v2_psid_data).get_all()
        assert set(values) == set(PSIDHeader.field_names())
        assert values["author"] == "Rob Hubbard"
        assert values["realLoadAddress"] == 0x1000

    def test_real_load_address(self):
        header = PSIDHeader()
        header.set(loadAddress=0x2000, data=b"\x00\x10")
        assert header.get("realLoadAddress") == 0x2000
        header.set(loadAddress=0)
        assert header.get("realLoadAddress") == 0x1000
        header.set(data=b"\x01")
        assert header.get("realLoadAddress") == 0

    def test_set_returns_no_errors(self):
        header = PSIDHeader()
        assert header.set(name="Tune", author="Someone") == []
        assert header.get("name") == "Tune"

    def test_set_mapping_and_keywords(self):
        header = PSIDHeader()
        header.set({"playAddress": 0x1003}, initAddress=0x1000)
        assert header.play_address == 0x1003
        assert header.init_address == 0x1000

    def test_set_text_from_bytes(self):
        header = PSIDHeader()
        header.set(author=b"J\xf6rg")
        assert header.get("author") == "Jörg"

    @pytest.mark.parametrize("name", ["fileSize", "realLoadAddress", "padding"])
    def test_read_only_fields(self, name):
        header = PSIDHeader()
        errors = header.set({name: 1})
        assert len(errors) == 1
        assert isinstance(errors[0], ReadOnlyFieldError)

    def test_unknown_field_skipped_others_applied(self):
        """A bad pair doesn't abort the rest of the batch."""
        header = PSIDHeader()
        errors = header.set(tempo=120, name="Tune", songs=3)
        assert [type(e) for e in errors] == [UnknownFieldError]
        assert errors[0].field == "tempo"
        assert header.get("name") == "Tune"
        assert header.songs == 3

    def test_invalid_type_rejected(self):
        header = PSIDHeader()
        errors = header.set(songs="three", data="not bytes", name=5)
        assert len(errors) == 3
        assert all(isinstance(e, InvalidValueError) for e in errors)
        assert header.songs == 0

    def test_no_range_check_on_set(self):
        header = PSIDHeader()
        assert header.set(songs=1000, startSong=2000) == []
        assert header.songs == 1000

    def test_set_file_name(self):
        header = PSIDHeader()
        header.set(fileName="tune.sid")
        assert header.get("fileName") == "tune.sid"

    def test_file_size_recomputed(self):
        header = PSIDHeader()
        header.set(data=b"\x00" * 10)
        assert header.get("fileSize") == 0x7C + 10
        header.set(version=2, dataOffset=0x80)
        assert header.get("fileSize") == 0x80 + 4 + 10

    def test_set_version_1(self, v2_psid_data: bytes):
        header = PSIDHeader.from_bytes(v2_psid_data)
        header.set(version=1)
        assert header.version == 1
        assert header.data_offset == 0x76
        assert header.flags is None
        assert header.start_page is None
        assert header.page_length is None
        assert header.reserved is None
        assert header.padding == b""

    def test_data_offset_fixed_in_version_1(self, v1_psid_data: bytes):
        header = PSIDHeader.from_bytes(v1_psid_data)
        header.set(dataOffset=0x90)
        assert header.data_offset == 0x76

    def test_set_version_2_initializes_fields(self, v1_psid_data: bytes):
        header = PSIDHeader.from_bytes(v1_psid_data)
        header.set(version=2)
        assert header.version == 2
        assert header.data_offset == 0x7C
        assert header.flags == 0
        assert header.start_page == 0
        assert header.page_length == 0
        assert header.reserved == 0

    def test_data_offset_below_minimum_clamped(self):
        header = PSIDHeader()
        header.set(dataOffset=0x80)
        header.set(dataOffset=0x10)
        assert header.data_offset == 0x7C
        assert header.padding == b""

    def test_data_offset_grows_padding(self):
        header = PSIDHeader()
        header.set(dataOffset=0x90)
        assert header.padding == bytes(0x90 - 0x7C)

    def test_data_offset_resizes_existing_padding(self, psid_builder):
        header = PSIDHeader.from_bytes(psid_builder(padding=b"ABCDEFGH"))
        header.set(dataOffset=0x80)
        assert header.padding == b"ABCD"
        header.set(dataOffset=0x86)
        assert header.padding == b"ABCD" + bytes(6)

    def test_padding_lost_across_version_1(self, psid_builder):
        """Padding content is not remembered through a v1 detour."""
        header = PSIDHeader.from_bytes(psid_builder(padding=b"\xAA" * 20))
        assert header.data_offset == 0x90

        header.set(version=1)
        header.set(version=2, dataOffset=0x90)
        assert header.data_offset == 0x90
        assert header.padding == bytes(20)

    def test_new_version_governs_data_offset(self, v1_psid_data: bytes):
        header = PSIDHeader.from_bytes(v1_psid_data)
        header.set(dataOffset=0x84, version=2)
        assert header.version == 2
        assert header.data_offset == 0x84
        assert header.padding == bytes(8)

    def test_invalid_version_ignored(self, v2_psid_data: bytes):
        header = PSIDHeader.from_bytes(v2_psid_data)
        errors = header.set(version=3, name="Still here")
        assert [type(e) for e in errors] == [InvalidValueError]
        assert header.version == 2
        assert header.get("name") == "Still here"

    @pytest.mark.parametrize("name", ["flags", "startPage", "pageLength", "reserved"])
    def test_v2_fields_rejected_in_version_1(self, v1_psid_data: bytes, name):
        header = PSIDHeader.from_bytes(v1_psid_data)
        errors = header.set({name: 1})
        assert [type(e) for e in errors] == [VersionMismatchError]
        assert header.get(name) is None

    def test_v2_fields_with_version_switch(self, v1_psid_data: bytes):
        """Switching to version 2 in the same batch allows the v2 fields."""
        header = PSIDHeader.from_bytes(v1_psid_data)
        assert header.set(flags=0x04, version=2) == []
        assert header.flags == 0x04


# =============================================================================
# Flags
# =============================================================================

class TestFlags:
    """Tests for the packed flags sub-field accessors."""

    def test_decoded_sub_fields(self, v2_psid_data: bytes):
        header = PSIDHeader.from_bytes(v2_psid_data)
        assert header.get_mus_player() == 0
        assert header.get_playsid_specific() == 0
        assert header.get_clock() == Clock.PAL
        assert header.get_sid_model() == SIDModel.MOS8580
        assert header.get_clock_by_name() == "PAL"
        assert header.get_sid_model_by_name() == "8580"

    def test_clock_by_name(self):
        header = PSIDHeader()
        header.set_clock_by_name("pal")
        assert header.get_clock() == 1
        header.set_clock_by_name("NTSC")
        assert header.get_clock_by_name() == "NTSC"

    @pytest.mark.parametrize("alias,expected", [
        ("unknown", Clock.UNKNOWN),
        ("None", Clock.UNKNOWN),
        ("neither", Clock.UNKNOWN),
        ("Any", Clock.EITHER),
        ("both", Clock.EITHER),
        ("EITHER", Clock.EITHER),
    ])
    def test_clock_aliases(self, alias, expected):
        header = PSIDHeader()
        header.set_clock_by_name(alias)
        assert header.get_clock() == expected

    def test_sid_model_by_name(self):
        header = PSIDHeader()
        header.set_sid_model_by_name("6581")
        assert header.get_sid_model() == SIDModel.MOS6581
        header.set_sid_model_by_name("both")
        assert header.get_sid_model_by_name() == "EITHER"

    def test_unknown_names_rejected(self):
        header = PSIDHeader()
        with pytest.raises(InvalidValueError):
            header.set_clock_by_name("secam")
        with pytest.raises(InvalidValueError):
            header.set_sid_model_by_name("6582")
        assert header.flags == 0

    def test_sub_fields_are_independent(self):
        header = PSIDHeader()
        header.set(flags=0xFFC0)
        header.set_clock(2)
        header.set_mus_player(1)
        header.set_sid_model(1)
        header.set_playsid_specific(1)
        assert header.flags == 0xFFC0 | 0b011011
        header.set_clock(0)
        assert header.flags == 0xFFC0 | 0b010011
        assert header.get_sid_model() == 1

    def test_values_wider_than_field_rejected(self):
        header = PSIDHeader()
        with pytest.raises(InvalidValueError):
            header.set_clock(4)
        with pytest.raises(InvalidValueError):
            header.set_mus_player(2)
        with pytest.raises(InvalidValueError):
            header.set_sid_model(-1)
        assert header.flags == 0

    def test_version_1_getters(self, v1_psid_data: bytes):
        header = PSIDHeader.from_bytes(v1_psid_data)
        assert header.get_mus_player() is None
        assert header.get_playsid_specific() is None
        assert header.get_clock() is None
        assert header.get_sid_model() is None
        assert header.get_clock_by_name() is None
        assert header.get_sid_model_by_name() is None

    def test_version_1_setters(self, v1_psid_data: bytes):
        header = PSIDHeader.from_bytes(v1_psid_data)
        with pytest.raises(VersionMismatchError):
            header.set_clock(1)
        with pytest.raises(VersionMismatchError):
            header.set_sid_model_by_name("8580")
        with pytest.raises(VersionMismatchError):
            header.set_mus_player(1)
        assert header.flags is None


# =============================================================================
# Speed
# =============================================================================

class TestSpeed:
    """Tests for the per-song speed accessors."""

    def test_set_and_get(self):
        header = PSIDHeader()
        header.set(songs=8)
        for song in range(1, 9):
            header.set_speed(song, 1)
            assert header.get_speed(song) == 1
            header.set_speed(song, 0)
            assert header.get_speed(song) == 0

    def test_other_songs_unaffected(self):
        header = PSIDHeader()
        header.set(songs=4, speed=0b1010)
        header.set_speed(1, 1)
        assert header.speed == 0b1011
        header.set_speed(4, 0)
        assert header.speed == 0b0011

    def test_songs_beyond_32_share_bit_31(self):
        header = PSIDHeader()
        header.set(songs=256)
        header.set_speed(200, 1)
        assert header.speed == 1 << 31
        assert header.get_speed(32) == 1
        assert header.get_speed(33) == 1
        assert header.get_speed(31) == 0

    @pytest.mark.parametrize("song", [0, -1, 5])
    def test_invalid_song_number(self, song):
        header = PSIDHeader()
        header.set(songs=4)
        with pytest.raises(InvalidSongNumberError):
            header.get_speed(song)
        with pytest.raises(InvalidSongNumberError):
            header.set_speed(song, 1)

    def test_invalid_bit(self):
        header = PSIDHeader()
        header.set(songs=1)
        with pytest.raises(InvalidValueError):
            header.set_speed(1, 2)
        assert header.speed == 0
