"""
psidtool - PSID File Command-Line Interface
===========================================

This module implements the command-line interface for inspecting and
editing PSID files.

Commands
--------
- **info**: Show the header of a PSID file
- **get**: Print individual fields
- **set**: Change fields and write the file back
- **speed**: Show or change the timing of one song
- **flags**: Show or change the clock and SID model
- **validate**: Rewrite a file in canonical PSID v2NG form
- **md5**: Print HVSC song-length database fingerprints
- **fields**: List the recognized field names

Usage Examples
--------------
Show a file:
    $ psidtool info Commando.sid

Change the credits in place:
    $ psidtool set Commando.sid author="Rob Hubbard" copyright="1985 Elite"

Write a canonical copy:
    $ psidtool validate Commando.sid -o Commando-v2.sid

Use the CIA timer for song 3:
    $ psidtool speed Commando.sid 3 1

Fingerprint a directory:
    $ psidtool md5 C64Music/MUSICIANS/H/Hubbard_Rob/*.sid
"""

import sys
from pathlib import Path
from typing import Any, Optional

import click

from psid_tools import __version__
from psid_tools.cli.errors import ExitCode, handle_cli_exception, setup_logging
from psid_tools.errors import PSIDError
from psid_tools.psid import (
    Clock,
    FieldKind,
    HeaderField,
    PSIDHeader,
    SIDModel,
    header_size,
)


# =============================================================================
# Parameter Types
# =============================================================================

class ClockChoice(click.ParamType):
    """
    Click parameter type for clock selection.

    Accepts: pal, ntsc, unknown/none/neither, any/both/either (case-insensitive)
    """
    name = "clock"

    def convert(self, value: Any, param: Optional[click.Parameter],
                ctx: Optional[click.Context]) -> Clock:
        """Convert string to Clock."""
        if isinstance(value, Clock):
            return value

        clock = Clock.from_name(value)
        if clock is None:
            self.fail(
                f"Invalid clock '{value}'. Choose from: pal, ntsc, unknown, either",
                param, ctx
            )
        return clock


class SIDModelChoice(click.ParamType):
    """
    Click parameter type for SID model selection.

    Accepts: 6581, 8580, unknown/none/neither, any/both/either (case-insensitive)
    """
    name = "sid_model"

    def convert(self, value: Any, param: Optional[click.Parameter],
                ctx: Optional[click.Context]) -> SIDModel:
        """Convert string to SIDModel."""
        if isinstance(value, SIDModel):
            return value

        model = SIDModel.from_name(value)
        if model is None:
            self.fail(
                f"Invalid SID model '{value}'. Choose from: 6581, 8580, unknown, either",
                param, ctx
            )
        return model


CLOCK = ClockChoice()
SID_MODEL = SIDModelChoice()

PSID_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)
OUTPUT_FILE = click.Path(dir_okay=False, path_type=Path)


# =============================================================================
# Helpers
# =============================================================================

def parse_number(text: str) -> int:
    """
    Parse a number given on the command line.

    Accepts decimal, 0x-prefixed hex and $-prefixed hex (C64 style).
    """
    text = text.strip()
    if text.startswith("$"):
        return int(text[1:], 16)
    try:
        return int(text, 0)
    except ValueError:
        return int(text, 10)


def parse_field_value(header_field: HeaderField, text: str) -> Any:
    """
    Convert the text of a FIELD=VALUE argument to the field's type.

    Binary fields take ``@path`` to load their content from a file.

    Raises:
        click.BadParameter: If the text does not fit the field
    """
    if header_field.kind is FieldKind.INT:
        try:
            return parse_number(text)
        except ValueError:
            raise click.BadParameter(
                f"{header_field.key} needs a number, got '{text}'"
            ) from None

    if header_field.kind is FieldKind.BYTES:
        if not text.startswith("@"):
            raise click.BadParameter(
                f"{header_field.key} needs @FILE to load its bytes from"
            )
        return Path(text[1:]).read_bytes()

    return text


def format_word(value: Optional[int]) -> str:
    """Format a 16-bit value as C64 hex, or '-' when absent."""
    return "-" if value is None else f"${value:04X}"


def format_value(value: Any) -> str:
    """Format a field value for get output."""
    if value is None:
        return "-"
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


def write_back(header: PSIDHeader, psid_file: Path, output: Optional[Path],
               validate: bool) -> int:
    """Write the header to output, or back to the file it came from."""
    return header.write(output or psid_file, validate=True if validate else None)


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.version_option(__version__, "--version", "-V", prog_name="psidtool")
def main() -> None:
    """
    PSID file tool for Commodore-64 music files.

    Inspect, edit, validate and fingerprint PSID files (.sid).

    \b
    Commands:
      info      Show the header of a PSID file
      get       Print individual fields
      set       Change fields and write the file back
      speed     Show or change the timing of one song
      flags     Show or change clock and SID model
      validate  Rewrite a file in canonical v2NG form
      md5       Print song-length database fingerprints
      fields    List the recognized field names

    \b
    Examples:
      psidtool info Commando.sid
      psidtool set Commando.sid name="Commando" songs=19
      psidtool md5 *.sid
    """
    pass


# =============================================================================
# Info Command
# =============================================================================

@main.command("info")
@click.argument("psid_file", type=PSID_FILE)
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def cmd_info(psid_file: Path, verbose: bool) -> None:
    """
    Show the header of a PSID file.

    \b
    Example:
      psidtool info Commando.sid
    """
    setup_logging(verbose)
    try:
        header = PSIDHeader.from_file(psid_file)

        click.echo(f"PSID Information: {psid_file}")
        click.echo("=" * 40)
        click.echo(f"Name:        {header.get('name')}")
        click.echo(f"Author:      {header.get('author')}")
        click.echo(f"Copyright:   {header.get('copyright')}")
        click.echo()
        click.echo(f"Version:     {header.version}")
        click.echo(f"Data offset: {format_word(header.data_offset)}"
                   f" (header {header_size(header.version)} bytes,"
                   f" {len(header.padding)} padding)")
        load = format_word(header.load_address)
        if header.load_address == 0:
            load += f" (embedded: {format_word(header.real_load_address)})"
        click.echo(f"Load:        {load}")
        click.echo(f"Init:        {format_word(header.init_address)}")
        click.echo(f"Play:        {format_word(header.play_address)}")
        click.echo(f"Songs:       {header.songs} (start song {header.start_song})")
        click.echo(f"Speed:       ${header.speed:08X}")

        if header.flags is not None:
            click.echo()
            click.echo(f"Flags:       ${header.flags:04X}")
            click.echo(f"  MUS player:      {'yes' if header.get_mus_player() else 'no'}")
            click.echo(f"  PlaySID samples: {'yes' if header.get_playsid_specific() else 'no'}")
            click.echo(f"  Clock:           {header.get_clock().get_description()}")
            click.echo(f"  SID model:       {header.get_sid_model().get_description()}")
            click.echo(f"Start page:  ${header.start_page:02X}"
                       f" (length ${header.page_length:02X})")

        click.echo()
        click.echo(f"Data:        {len(header.data)} bytes")
        click.echo(f"File size:   {header.file_size} bytes")
        click.echo(f"MD5:         {header.md5()}")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Read")


# =============================================================================
# Get / Set Commands
# =============================================================================

@main.command("get")
@click.argument("psid_file", type=PSID_FILE)
@click.argument("field_names", nargs=-1, required=True)
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def cmd_get(psid_file: Path, field_names: tuple[str, ...], verbose: bool) -> None:
    """
    Print one or more fields of a PSID file.

    Each field is printed on its own line as NAME=VALUE. Binary fields
    (data, padding) are printed as hex.

    \b
    Example:
      psidtool get Commando.sid name author realLoadAddress
    """
    setup_logging(verbose)
    try:
        header = PSIDHeader.from_file(psid_file)
        for name in field_names:
            click.echo(f"{name}={format_value(header.get(name))}")
    except Exception as e:
        handle_cli_exception(e, verbose=verbose)


@main.command("set")
@click.argument("psid_file", type=PSID_FILE)
@click.argument("assignments", nargs=-1, required=True)
@click.option("-o", "--output", type=OUTPUT_FILE,
              help="Write to this file instead of changing PSID_FILE")
@click.option("--validate", is_flag=True, help="Normalize to v2NG before writing")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def cmd_set(
    psid_file: Path,
    assignments: tuple[str, ...],
    output: Optional[Path],
    validate: bool,
    verbose: bool,
) -> None:
    """
    Change fields and write the file back.

    ASSIGNMENTS are FIELD=VALUE pairs. Numbers may be decimal, 0x or $ hex;
    data takes @FILE. Pairs that cannot be applied are reported and
    skipped, and the exit code is 1.

    \b
    Examples:
      psidtool set Commando.sid author="Rob Hubbard"
      psidtool set Commando.sid version=2 dataOffset=0x7C -o out.sid
      psidtool set Commando.sid data=@player.bin loadAddress=0
    """
    setup_logging(verbose)
    try:
        updates = {}
        for assignment in assignments:
            name, sep, text = assignment.partition("=")
            if not sep:
                raise click.BadParameter(f"expected FIELD=VALUE, got '{assignment}'")
            header_field = HeaderField.lookup(name)
            # Unknown names are left for PSIDHeader.set() to reject
            updates[name] = parse_field_value(header_field, text) if header_field else text

        header = PSIDHeader.from_file(psid_file)
        rejected = header.set(updates)
        for error in rejected:
            click.echo(f"Ignored: {error}", err=True)

        written = write_back(header, psid_file, output, validate)
        click.echo(f"Wrote {output or psid_file} ({written} bytes)")

        if rejected:
            sys.exit(ExitCode.PSID_ERROR)

    except Exception as e:
        handle_cli_exception(e, verbose=verbose)


# =============================================================================
# Speed / Flags Commands
# =============================================================================

@main.command("speed")
@click.argument("psid_file", type=PSID_FILE)
@click.argument("song", type=int)
@click.argument("bit", type=click.Choice(["0", "1"]), required=False)
@click.option("-o", "--output", type=OUTPUT_FILE,
              help="Write to this file instead of changing PSID_FILE")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def cmd_speed(psid_file: Path, song: int, bit: Optional[str],
              output: Optional[Path], verbose: bool) -> None:
    """
    Show or change the timing of one song.

    Without BIT, prints 0 (vertical blank) or 1 (CIA timer). With BIT,
    sets it and writes the file back. Songs past 32 share song 32's bit.

    \b
    Examples:
      psidtool speed Commando.sid 1
      psidtool speed Commando.sid 3 1
    """
    setup_logging(verbose)
    try:
        header = PSIDHeader.from_file(psid_file)
        if bit is None:
            click.echo(header.get_speed(song))
            return

        header.set_speed(song, int(bit))
        write_back(header, psid_file, output, validate=False)
        click.echo(f"Song {song} speed set to {'CIA' if bit == '1' else 'VBI'}")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose)


@main.command("flags")
@click.argument("psid_file", type=PSID_FILE)
@click.option("--clock", "clock", type=CLOCK, help="pal, ntsc, unknown or either")
@click.option("--model", "model", type=SID_MODEL, help="6581, 8580, unknown or either")
@click.option("-o", "--output", type=OUTPUT_FILE,
              help="Write to this file instead of changing PSID_FILE")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def cmd_flags(psid_file: Path, clock: Optional[Clock], model: Optional[SIDModel],
              output: Optional[Path], verbose: bool) -> None:
    """
    Show or change the clock and SID model of a v2 file.

    \b
    Examples:
      psidtool flags Commando.sid
      psidtool flags Commando.sid --clock pal --model 6581
    """
    setup_logging(verbose)
    try:
        header = PSIDHeader.from_file(psid_file)

        if clock is None and model is None:
            click.echo(f"clock={format_value(header.get_clock_by_name())}")
            click.echo(f"sidModel={format_value(header.get_sid_model_by_name())}")
            return

        if clock is not None:
            header.set_clock(clock)
        if model is not None:
            header.set_sid_model(model)

        write_back(header, psid_file, output, validate=False)
        click.echo(f"clock={header.get_clock_by_name()}")
        click.echo(f"sidModel={header.get_sid_model_by_name()}")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose)


# =============================================================================
# Validate Command
# =============================================================================

@main.command("validate")
@click.argument("psid_file", type=PSID_FILE)
@click.option("-o", "--output", type=OUTPUT_FILE,
              help="Write to this file instead of changing PSID_FILE")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def cmd_validate(psid_file: Path, output: Optional[Path], verbose: bool) -> None:
    """
    Rewrite a PSID file in canonical v2NG form.

    Bumps the version to 2, removes padding, moves a non-zero load address
    into the data, clamps out-of-range fields and clears reserved bits.

    \b
    Example:
      psidtool validate old.sid -o new.sid
    """
    setup_logging(verbose)
    try:
        header = PSIDHeader.from_file(psid_file)
        written = write_back(header, psid_file, output, validate=True)
        click.echo(f"Wrote {output or psid_file} ({written} bytes)")
    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Validation")


# =============================================================================
# MD5 / Fields Commands
# =============================================================================

@main.command("md5")
@click.argument("psid_files", nargs=-1, required=True, type=PSID_FILE)
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def cmd_md5(psid_files: tuple[Path, ...], verbose: bool) -> None:
    """
    Print the song-length database fingerprint of each file.

    Output lines are "<md5>  <file>". Files that cannot be read are
    reported on stderr and make the exit code 1.

    \b
    Example:
      psidtool md5 *.sid
    """
    setup_logging(verbose)
    failed = False
    for psid_file in psid_files:
        try:
            click.echo(f"{PSIDHeader.from_file(psid_file).md5()}  {psid_file}")
        except PSIDError as e:
            click.echo(f"Error: {psid_file}: {e}", err=True)
            failed = True
    if failed:
        sys.exit(ExitCode.PSID_ERROR)


@main.command("fields")
def cmd_fields() -> None:
    """List the field names recognized by get and set."""
    for name in PSIDHeader.field_names():
        click.echo(name)


if __name__ == "__main__":
    main()
