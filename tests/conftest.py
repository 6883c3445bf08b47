"""
PSID Tools - Test Configuration
===============================

Shared fixtures for the PSID tests: a builder for crafted PSID byte
buffers, ready-made version 1 and version 2 files, and isolation of the
global codec configuration.
"""

import struct
from pathlib import Path
from typing import Callable

import pytest

from psid_tools.config import set_default_config


def build_psid(
    version: int = 2,
    data_offset: int | None = None,
    load_address: int = 0x1000,
    init_address: int = 0x1000,
    play_address: int = 0x1003,
    songs: int = 1,
    start_song: int = 1,
    speed: int = 0,
    name: bytes = b"Test",
    author: bytes = b"Me",
    copyright: bytes = b"2024",
    flags: int = 0,
    start_page: int = 0,
    page_length: int = 0,
    reserved: int = 0,
    padding: bytes = b"",
    data: bytes = b"\x00\x10",
) -> bytes:
    """
    Build the bytes of a PSID file.

    dataOffset defaults to the fixed header size of the version plus the
    padding length.
    """
    if data_offset is None:
        data_offset = (0x7C if version == 2 else 0x76) + len(padding)

    result = bytearray()
    result.extend(b"PSID")
    result.extend(struct.pack(">HH", version, data_offset))
    result.extend(struct.pack(
        ">HHHHHI",
        load_address, init_address, play_address, songs, start_song, speed,
    ))
    result.extend(struct.pack(">32s32s32s", name, author, copyright))
    if version == 2:
        result.extend(struct.pack(">HBBH", flags, start_page, page_length, reserved))
    result.extend(padding)
    result.extend(data)
    return bytes(result)


@pytest.fixture(autouse=True)
def reset_default_config():
    """Make every test start from the environment-derived default config."""
    set_default_config(None)
    yield
    set_default_config(None)


@pytest.fixture
def psid_builder() -> Callable[..., bytes]:
    """The build_psid() helper, for tests that craft their own files."""
    return build_psid


@pytest.fixture
def v1_psid_data() -> bytes:
    """
    A version 1 file.

    load=$1000 init=$1000 play=$1003, one song, VBI speed,
    name "Test", author "Me", copyright "2024", data 00 10.
    """
    return build_psid(version=1)


@pytest.fixture
def v2_psid_data() -> bytes:
    """
    A version 2 file with an embedded load address and three songs.

    Flags: PAL clock, MOS8580. Data: load address $1000 then RTS.
    """
    return build_psid(
        version=2,
        load_address=0,
        init_address=0x1000,
        play_address=0x1003,
        songs=3,
        start_song=2,
        speed=0b101,
        name=b"Commando",
        author=b"Rob Hubbard",
        copyright=b"1985 Elite",
        flags=(1 << 2) | (2 << 4),
        start_page=0x20,
        page_length=0x10,
        data=b"\x00\x10\x60",
    )


@pytest.fixture
def v2_psid_file(tmp_path: Path, v2_psid_data: bytes) -> Path:
    """The version 2 file written to disk."""
    path = tmp_path / "Commando.sid"
    path.write_bytes(v2_psid_data)
    return path
