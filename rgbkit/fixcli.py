"""Command-line front end that fixes Game Boy ROM headers."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError, version
from typing import Iterator

from .header import (
    NINTENDO_LOGO,
    FixError,
    FixSpec,
    HeaderOptions,
    LOGO_SIZE,
    Model,
    convert_logo,
    fix_file,
    fix_stream,
    parse_fix_spec,
)
from .mbc import (
    MbcFeatureError,
    MbcRangeError,
    MbcType,
    Tpp1RevisionError,
    UnknownMbcError,
    _strtoul,
    accepted_mbc_names,
    has_ram,
    is_tpp1,
    mbc_name,
    parse_mbc,
)

PROGRAM = "rgbfix"

_SHORT_OPTIONS = {
    "C": False,
    "c": False,
    "f": True,
    "i": True,
    "j": False,
    "k": True,
    "L": True,
    "l": True,
    "m": True,
    "n": True,
    "O": False,
    "p": True,
    "r": True,
    "s": False,
    "t": True,
    "V": False,
    "v": False,
}

# Same order as the short options.
_LONG_OPTIONS = (
    ("color-only", "C"),
    ("color-compatible", "c"),
    ("fix-spec", "f"),
    ("game-id", "i"),
    ("non-japanese", "j"),
    ("new-licensee", "k"),
    ("logo", "L"),
    ("old-licensee", "l"),
    ("mbc-type", "m"),
    ("rom-version", "n"),
    ("overwrite", "O"),
    ("pad-value", "p"),
    ("ram-size", "r"),
    ("sgb-compatible", "s"),
    ("title", "t"),
    ("version", "V"),
    ("validate", "v"),
)

_USAGE = (
    "Usage: rgbfix [-jOsVv] [-C | -c] [-f <fix_spec>] [-i <game_id>] [-k <licensee>]\n"
    "              [-L <logo_file>] [-l <licensee_byte>] [-m <mbc_type>]\n"
    "              [-n <rom_version>] [-p <pad_value>] [-r <ram_size>] [-t <title_str>]\n"
    "              <file> ...\n"
    "Useful options:\n"
    "    -m, --mbc-type <value>      set the MBC type byte to this value; refer\n"
    "                                  to the man page for a list of values\n"
    "    -p, --pad-value <value>     pad to the next valid size using this value\n"
    "    -r, --ram-size <code>       set the cart RAM size byte to this value\n"
    "    -V, --version               print RGBFIX version and exit\n"
    "    -v, --validate              fix the header logo and both checksums (-f lhg)\n"
    "\n"
    "For help, use `man rgbfix'.\n"
)


class _Stop(Exception):
    """Option processing ended the run early with an exit status."""

    def __init__(self, status: int) -> None:
        super().__init__(status)
        self.status = status


@dataclass
class _Invocation:
    options: HeaderOptions
    files: list[str] = field(default_factory=list)
    failed: bool = False


def _package_version() -> str:
    try:
        return version("rgbkit")
    except PackageNotFoundError:
        return "unknown"


def _stderr(text: str) -> None:
    sys.stderr.write(text)


def _usage_failure(message: str) -> _Stop:
    _stderr(f"{PROGRAM}: {message}\n")
    _stderr(_USAGE)
    return _Stop(1)


def _match_long(name: str, long_only: bool) -> str | None:
    candidates = [(long, short) for long, short in _LONG_OPTIONS if long.startswith(name)]
    for long, short in candidates:
        if long == name:
            return short
    if len(candidates) == 1:
        if long_only and len(name) == 1 and name in _SHORT_OPTIONS:
            return None
        return candidates[0][1]
    if long_only:
        return None
    if candidates:
        raise _usage_failure(f"option is ambiguous: {name}")
    raise _usage_failure(f"unrecognized option: {name}")


def _getopt(args: list[str], operands: list[str]) -> Iterator[tuple[str, str | None]]:
    """Yield (short option, argument) pairs; collect operands into `operands`."""
    i = 0
    while i < len(args):
        arg = args[i]
        i += 1
        if arg == "--":
            operands.extend(args[i:])
            return
        if not arg.startswith("-") or arg == "-":
            operands.append(arg)
            continue

        long_only = not arg.startswith("--")
        body = arg[1:] if long_only else arg[2:]
        name, equals, value = body.partition("=")
        short = _match_long(name, long_only)
        if short is not None:
            if _SHORT_OPTIONS[short]:
                if not equals:
                    if i >= len(args):
                        raise _usage_failure(f"option requires an argument: {name}")
                    value = args[i]
                    i += 1
                yield short, value
            elif equals:
                raise _usage_failure(f"option does not take an argument: {name}")
            else:
                yield short, None
            continue

        for pos, ch in enumerate(body):
            if ch not in _SHORT_OPTIONS:
                raise _usage_failure(f"unrecognized option: {ch}")
            if not _SHORT_OPTIONS[ch]:
                yield ch, None
                continue
            rest = body[pos + 1:]
            if not rest:
                if i >= len(args):
                    raise _usage_failure(f"option requires an argument: {ch}")
                rest = args[i]
                i += 1
            yield ch, rest
            break


def parse_byte(text: str, option: str) -> int:
    """Parse a byte-sized option argument (decimal, octal, `0x` or `$` hex)."""
    if not text:
        raise ValueError(f"Argument to option '{option}' may not be empty")
    if text.startswith("$"):
        digits, base = text[1:], 16
    else:
        digits, base = text, 0
    value, end = _strtoul(digits, 0, base)
    if end != len(digits):
        raise ValueError(f"Expected number as argument to option '{option}', got {text}")
    value = value or 0
    if value > 0xFF:
        raise ValueError(f"Argument to option '{option}' is larger than 255: {value}")
    return value


def _read_logo(filename: str) -> bytes:
    if filename == "-":
        display = "<stdin>"
        data = sys.stdin.buffer.read(LOGO_SIZE + 1)
    else:
        display = filename
        try:
            with open(filename, "rb") as handle:
                data = handle.read(LOGO_SIZE + 1)
        except OSError as exc:
            _stderr(
                f'FATAL: Failed to open "{display}" for reading: {exc.strerror or exc}\n'
            )
            raise _Stop(1) from exc
    if len(data) != LOGO_SIZE:
        _stderr(f'FATAL: "{display}" is not {LOGO_SIZE} bytes\n')
        raise _Stop(1)
    return convert_logo(data)


def build_options(argv: list[str]) -> _Invocation:
    """Parse command-line arguments into header options and the files to fix."""
    errors = 0

    def report(message: str) -> None:
        nonlocal errors
        _stderr(message)
        errors += 1

    def warn(message: str) -> None:
        _stderr(f"warning: {message}\n")

    fix_spec = FixSpec.NONE
    model = Model.DMG
    game_id: bytes | None = None
    japanese = True
    logo_filename: str | None = None
    new_licensee: bytes | None = None
    old_licensee: int | None = None
    cartridge: int | None = None
    tpp1_revision = (0, 0)
    rom_version: int | None = None
    overwrite = False
    pad_value: int | None = None
    ram_size: int | None = None
    sgb = False
    title_text = ""
    title: bytes | None = None
    title_len = 0

    def byte_option(arg: str, option: str, current: int | None) -> int | None:
        try:
            return parse_byte(arg, option)
        except ValueError as exc:
            report(f"error: {exc}\n")
            return current

    files: list[str] = []
    for opt, arg in _getopt(list(argv), files):
        if opt in ("C", "c"):
            model = Model.BOTH if opt == "c" else Model.CGB
            if title_len > 15:
                title_len = 15
                warn(f'Truncating title "{title_text}" to 15 chars')
        elif opt == "f":
            fix_spec, spec_warnings = parse_fix_spec(arg)
            for message in spec_warnings:
                warn(message)
        elif opt == "i":
            game_id = os.fsencode(arg)
            if len(game_id) > 4:
                game_id = game_id[:4]
                warn(f'Truncating game ID "{arg}" to 4 chars')
            if title_len > 11:
                title_len = 11
                warn(f'Truncating title "{title_text}" to 11 chars')
        elif opt == "j":
            japanese = False
        elif opt == "k":
            new_licensee = os.fsencode(arg)
            if len(new_licensee) > 2:
                new_licensee = new_licensee[:2]
                warn(f'Truncating new licensee "{arg}" to 2 chars')
        elif opt == "L":
            logo_filename = arg
        elif opt == "l":
            old_licensee = byte_option(arg, "l", old_licensee)
        elif opt == "m":
            try:
                parsed = parse_mbc(arg)
            except UnknownMbcError as exc:
                for message in exc.warnings:
                    warn(message)
                report(f'error: Unknown MBC "{arg}"\nAccepted MBC names:\n')
                _stderr(accepted_mbc_names())
                cartridge = None
            except MbcFeatureError as exc:
                for message in exc.warnings:
                    warn(message)
                report(
                    f'error: Features incompatible with MBC ("{arg}")\n'
                    "Accepted combinations:\n"
                )
                _stderr(accepted_mbc_names())
                cartridge = None
            except MbcRangeError:
                report(f"error: Specified MBC ID out of range 0-255: {arg}\n")
                cartridge = None
            except Tpp1RevisionError as exc:
                report(f"error: {exc}\n")
                cartridge = None
            else:
                if parsed.is_help:
                    _stderr("Accepted MBC names:\n")
                    _stderr(accepted_mbc_names())
                    raise _Stop(0)
                for message in parsed.warnings:
                    warn(message)
                cartridge = parsed.mbc
                if parsed.tpp1_revision is not None:
                    tpp1_revision = parsed.tpp1_revision
                if cartridge in (MbcType.ROM_RAM, MbcType.ROM_RAM_BATTERY):
                    warn(f'MBC "{arg}" is under-specified and poorly supported')
        elif opt == "n":
            rom_version = byte_option(arg, "n", rom_version)
        elif opt == "O":
            overwrite = True
        elif opt == "p":
            pad_value = byte_option(arg, "p", pad_value)
        elif opt == "r":
            ram_size = byte_option(arg, "r", ram_size)
        elif opt == "s":
            sgb = True
        elif opt == "t":
            title_text = arg
            title = os.fsencode(arg)
            max_len = 11 if game_id is not None else 15 if model is not Model.DMG else 16
            title_len = len(title)
            if title_len > max_len:
                title_len = max_len
                warn(f'Truncating title "{arg}" to {max_len} chars')
        elif opt == "V":
            sys.stdout.write(f"{PROGRAM} {_package_version()}\n")
            raise _Stop(0)
        elif opt == "v":
            fix_spec = FixSpec.LOGO | FixSpec.HEADER_SUM | FixSpec.GLOBAL_SUM

    tpp1 = cartridge is not None and is_tpp1(cartridge)
    if tpp1 and not japanese:
        warn("TPP1 overwrites region flag for its identification code, ignoring `-j`")

    if ram_size is not None and cartridge is not None and not tpp1:
        try:
            name = mbc_name(cartridge)
        except ValueError:
            name = None
        if name is not None:
            if cartridge in (MbcType.ROM_RAM, MbcType.ROM_RAM_BATTERY):
                if ram_size != 1:
                    warn(f'MBC "{name}" should have 2 KiB of RAM (-r 1)')
            elif has_ram(cartridge):
                if ram_size == 0:
                    warn(f'MBC "{name}" has RAM, but RAM size was set to 0')
                elif ram_size == 1:
                    warn(f'RAM size 1 (2 KiB) was specified for MBC "{name}"')
            elif ram_size:
                warn(f'MBC "{name}" has no RAM, but RAM size was set to {ram_size}')

    if sgb and old_licensee is not None and old_licensee != 0x33:
        warn(
            f"SGB compatibility enabled, but old licensee is 0x{old_licensee:02x}, not 0x33"
        )

    logo = _read_logo(logo_filename) if logo_filename is not None else NINTENDO_LOGO

    if not files:
        _stderr(
            "FATAL: Please specify an input file (pass `-` to read from standard input)\n"
        )
        _stderr(_USAGE)
        raise _Stop(1)

    options = HeaderOptions(
        fix_spec=fix_spec,
        model=model,
        game_id=game_id,
        japanese=japanese,
        logo=logo,
        new_licensee=new_licensee,
        old_licensee=old_licensee,
        cartridge_type=cartridge,
        tpp1_revision=tpp1_revision,
        rom_version=rom_version,
        overwrite=overwrite,
        pad_value=pad_value,
        ram_size=ram_size,
        sgb=sgb,
        title=title[:title_len] if title is not None else None,
    )
    return _Invocation(options=options, files=files, failed=errors > 0)


def _process(name: str, options: HeaderOptions) -> bool:
    """Fix one file ("-" meaning standard streams); return whether it failed."""
    display = "<stdin>" if name == "-" else name
    try:
        if name == "-":
            result = fix_stream(sys.stdin.buffer, sys.stdout.buffer, options)
        else:
            result = fix_file(name, options)
    except FixError as exc:
        _stderr(f"FATAL: {exc}\n")
        _stderr(f'Fixing "{display}" failed with 1 error\n')
        return True
    for message in result.warnings:
        _stderr(f"warning: {message}\n")
    return False


def main(argv: list[str] | None = None) -> int:
    """Run the header fixer; return the process exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        invocation = build_options(args)
    except _Stop as stop:
        return stop.status

    failed = invocation.failed
    for name in invocation.files:
        failed = _process(name, invocation.options) or failed
    return 1 if failed else 0