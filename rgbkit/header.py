"""Game Boy ROM header fixing: logo, title, flags, sizes and checksums."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import BinaryIO

from .mbc import is_tpp1

BANK_SIZE = 0x4000
MAX_BANKS = 0x10000
HEADER_SIZE = 0x150
TPP1_HEADER_SIZE = 0x154

NINTENDO_LOGO = bytes(
    [
        0xCE, 0xED, 0x66, 0x66, 0xCC, 0x0D, 0x00, 0x0B,
        0x03, 0x73, 0x00, 0x83, 0x00, 0x0C, 0x00, 0x0D,
        0x00, 0x08, 0x11, 0x1F, 0x88, 0x89, 0x00, 0x0E,
        0xDC, 0xCC, 0x6E, 0xE6, 0xDD, 0xDD, 0xD9, 0x99,
        0xBB, 0xBB, 0x67, 0x63, 0x6E, 0x0E, 0xEC, 0xCC,
        0xDD, 0xDC, 0x99, 0x9F, 0xBB, 0xB9, 0x33, 0x3E,
    ]
)
LOGO_SIZE = len(NINTENDO_LOGO)


class FixSpec(IntFlag):
    """Which header parts to fix (or deliberately trash)."""

    NONE = 0
    LOGO = 1 << 7
    TRASH_LOGO = 1 << 6
    HEADER_SUM = 1 << 5
    TRASH_HEADER_SUM = 1 << 4
    GLOBAL_SUM = 1 << 3
    TRASH_GLOBAL_SUM = 1 << 2


class Model(Enum):
    """Which hardware the ROM declares support for; DMG leaves the CGB byte alone."""

    DMG = "dmg"
    BOTH = "both"
    CGB = "cgb"


class FixError(Exception):
    """A ROM could not be fixed."""


_SPEC_LETTERS: dict[str, tuple[FixSpec, FixSpec, str]] = {
    "l": (FixSpec.LOGO, FixSpec.TRASH_LOGO, "L"),
    "L": (FixSpec.TRASH_LOGO, FixSpec.LOGO, "l"),
    "h": (FixSpec.HEADER_SUM, FixSpec.TRASH_HEADER_SUM, "H"),
    "H": (FixSpec.TRASH_HEADER_SUM, FixSpec.HEADER_SUM, "h"),
    "g": (FixSpec.GLOBAL_SUM, FixSpec.TRASH_GLOBAL_SUM, "G"),
    "G": (FixSpec.TRASH_GLOBAL_SUM, FixSpec.GLOBAL_SUM, "g"),
}


def parse_fix_spec(spec: str) -> tuple[FixSpec, tuple[str, ...]]:
    """Parse a fix spec such as "lhg"; return the flags and any warnings."""
    flags = FixSpec.NONE
    warnings: list[str] = []
    for letter in spec:
        entry = _SPEC_LETTERS.get(letter)
        if entry is None:
            warnings.append(f"Ignoring '{letter}' in fix spec")
            continue
        current, opposite, opposite_letter = entry
        if flags & opposite:
            warnings.append(f"'{letter}' overriding '{opposite_letter}' in fix spec")
        flags = (flags & ~opposite) | current
    return flags, tuple(warnings)


def convert_logo(data: bytes) -> bytes:
    """Convert a 48-byte 1bpp logo image into the header's logo layout."""
    if len(data) != LOGO_SIZE:
        raise ValueError(f"logo is not {LOGO_SIZE} bytes (got {len(data)})")

    def highs(i: int) -> int:
        return (data[i * 2] & 0xF0) | ((data[i * 2 + 1] & 0xF0) >> 4)

    def lows(i: int) -> int:
        return ((data[i * 2] & 0x0F) << 4) | (data[i * 2 + 1] & 0x0F)

    mid = LOGO_SIZE // 2
    logo = bytearray(LOGO_SIZE)
    for i in range(0, mid, 4):
        logo[i:i + 4] = bytes((highs(i), highs(i + 1), lows(i), lows(i + 1)))
        logo[mid + i:mid + i + 4] = bytes(
            (highs(i + 2), highs(i + 3), lows(i + 2), lows(i + 3))
        )
    return bytes(logo)


def trash_logo(logo: bytes) -> bytes:
    """Invert every bit of a logo."""
    return bytes(0xFF ^ b for b in logo)


def _as_bytes(value: bytes | str | None) -> bytes | None:
    if isinstance(value, str):
        return value.encode()
    return value


@dataclass
class HeaderOptions:
    """What to write into a ROM header. None means "leave alone"."""

    fix_spec: FixSpec = FixSpec.NONE
    model: Model = Model.DMG
    game_id: bytes | None = None
    japanese: bool = True
    logo: bytes = NINTENDO_LOGO
    new_licensee: bytes | None = None
    old_licensee: int | None = None
    cartridge_type: int | None = None
    tpp1_revision: tuple[int, int] = (0, 0)
    rom_version: int | None = None
    overwrite: bool = False
    pad_value: int | None = None
    ram_size: int | None = None
    sgb: bool = False
    title: bytes | None = None

    def __post_init__(self) -> None:
        self.game_id = _as_bytes(self.game_id)
        self.new_licensee = _as_bytes(self.new_licensee)
        self.title = _as_bytes(self.title)
        self.logo = bytes(self.logo)
        if len(self.logo) != LOGO_SIZE:
            raise ValueError(f"logo must be {LOGO_SIZE} bytes")
        for name in ("old_licensee", "rom_version", "pad_value", "ram_size"):
            value = getattr(self, name)
            if value is not None and not 0 <= value <= 0xFF:
                raise ValueError(f"{name} must be between 0 and 255, not {value}")
        if self.cartridge_type is not None and not 0 <= self.cartridge_type <= 0x1FF:
            raise ValueError(f"invalid cartridge type {self.cartridge_type:#x}")
        if any(not 0 <= part <= 0xFF for part in self.tpp1_revision):
            raise ValueError("TPP1 revision numbers must be 8-bit")


@dataclass(frozen=True)
class FixResult:
    """The fixed ROM contents and the warnings raised while fixing it."""

    rom: bytes
    warnings: tuple[str, ...] = field(default_factory=tuple)


class _Writer:
    def __init__(self, rom0: bytearray, overwrite: bool) -> None:
        self.rom0 = rom0
        self.overwrite = overwrite
        self.warnings: list[str] = []

    def put(self, addr: int, fixed: bytes, area: str) -> None:
        if not self.overwrite:
            original = self.rom0[addr:addr + len(fixed)]
            if any(o != 0 and o != f for o, f in zip(original, fixed)):
                self.warnings.append(f"Overwrote a non-zero byte in the {area}")
        self.rom0[addr:addr + len(fixed)] = fixed

    def put_byte(self, addr: int, value: int, area: str) -> None:
        self.put(addr, bytes((value & 0xFF,)), area)


def _fix(rom: bytes, options: HeaderOptions, name: str) -> FixResult:
    tpp1 = options.cartridge_type is not None and is_tpp1(options.cartridge_type)
    header_size = TPP1_HEADER_SIZE if tpp1 else HEADER_SIZE

    rom0 = bytearray(rom[:BANK_SIZE])
    if len(rom0) < header_size:
        raise FixError(
            f'"{name}" too short, expected at least {header_size} '
            f"(${header_size:x}) bytes, got only {len(rom0)}"
        )
    if len(rom) > MAX_BANKS * BANK_SIZE:
        raise FixError(f'"{name}" has more than 65536 banks')

    spec = options.fix_spec
    out = _Writer(rom0, options.overwrite)

    if spec & (FixSpec.LOGO | FixSpec.TRASH_LOGO):
        logo = trash_logo(options.logo) if spec & FixSpec.TRASH_LOGO else options.logo
        area = "Nintendo logo" if options.logo == NINTENDO_LOGO else "logo"
        out.put(0x104, logo, area)

    if options.title is not None:
        out.put(0x134, options.title, "title")
    if options.game_id is not None:
        out.put(0x13F, options.game_id, "manufacturer code")
    if options.model is not Model.DMG:
        out.put_byte(0x143, 0x80 if options.model is Model.BOTH else 0xC0, "CGB flag")
    if options.new_licensee is not None:
        out.put(0x144, options.new_licensee, "new licensee code")
    if options.sgb:
        out.put_byte(0x146, 0x03, "SGB flag")

    if options.cartridge_type is not None:
        out.put_byte(0x147, 0xBC if tpp1 else options.cartridge_type, "cartridge type")

    if tpp1:
        out.put(0x149, b"\xc1\x65", "TPP1 identification code")
        out.put(0x150, bytes(options.tpp1_revision), "TPP1 revision number")
        if options.ram_size is not None:
            out.put_byte(0x152, options.ram_size, "RAM size")
        out.put_byte(0x153, options.cartridge_type & 0xFF, "TPP1 feature flags")
    else:
        if options.ram_size is not None:
            out.put_byte(0x149, options.ram_size, "RAM size")
        if not options.japanese:
            out.put_byte(0x14A, 0x01, "destination code")

    if options.old_licensee is not None:
        out.put_byte(0x14B, options.old_licensee, "old licensee code")
    elif options.sgb and rom0[0x14B] != 0x33:
        out.warnings.append(
            f"SGB compatibility enabled, but old licensee was 0x{rom0[0x14B]:02x}, not 0x33"
        )

    if options.rom_version is not None:
        out.put_byte(0x14C, options.rom_version, "mask ROM version number")

    romx = bytes(rom[BANK_SIZE:])
    nb_banks = max(1, -(-len(rom) // BANK_SIZE))
    global_sum = sum(romx)
    pad_len = 0

    if options.pad_value is not None:
        if nb_banks == 1:
            rom0.extend(bytes((options.pad_value,)) * (BANK_SIZE - len(rom0)))
            nb_banks = 2
        if nb_banks & (nb_banks - 1):
            nb_banks = 1 << nb_banks.bit_length()
        rom0[0x148] = (nb_banks // 2).bit_length() - 1
        pad_len = (nb_banks - 1) * BANK_SIZE - len(romx)
        global_sum += options.pad_value * pad_len

    if spec & (FixSpec.HEADER_SUM | FixSpec.TRASH_HEADER_SUM):
        checksum = 0
        for byte in rom0[0x134:0x14D]:
            checksum -= byte + 1
        if spec & FixSpec.TRASH_HEADER_SUM:
            checksum = ~checksum
        out.put_byte(0x14D, checksum, "header checksum")

    if spec & (FixSpec.GLOBAL_SUM | FixSpec.TRASH_GLOBAL_SUM):
        global_sum += sum(rom0[:0x14E]) + sum(rom0[0x150:])
        if spec & FixSpec.TRASH_GLOBAL_SUM:
            global_sum = ~global_sum
        global_sum &= 0xFFFF
        out.put(0x14E, global_sum.to_bytes(2, "big"), "global checksum")

    padding = bytes((options.pad_value,)) * pad_len if pad_len else b""
    return FixResult(bytes(rom0) + romx + padding, tuple(out.warnings))


def fix_rom(rom: bytes, options: HeaderOptions) -> FixResult:
    """Fix a ROM image held in memory and return the fixed image."""
    return _fix(bytes(rom), options, "<rom>")


def fix_stream(source: BinaryIO, sink: BinaryIO, options: HeaderOptions) -> FixResult:
    """Read a ROM from `source`, fix it, and write the result to `sink`."""
    try:
        data = source.read()
    except OSError as exc:
        raise FixError(f"Failed to read \"<stdin>\"'s header: {exc.strerror or exc}") from exc
    result = _fix(data, options, "<stdin>")
    try:
        sink.write(result.rom)
        sink.flush()
    except OSError as exc:
        raise FixError(f"Failed to write \"<stdin>\"'s ROM0: {exc.strerror or exc}") from exc
    return result


def fix_file(path: str | os.PathLike[str], options: HeaderOptions) -> FixResult:
    """Fix a ROM file in place."""
    name = os.fsdecode(path)
    try:
        handle = open(path, "r+b")
    except OSError as exc:
        raise FixError(
            f'Failed to open "{name}" for reading+writing: {exc.strerror or exc}'
        ) from exc
    with handle:
        try:
            info = os.fstat(handle.fileno())
        except OSError as exc:
            raise FixError(f'Failed to stat "{name}": {exc.strerror or exc}') from exc
        if not stat.S_ISREG(info.st_mode):
            raise FixError(
                f'"{name}" is not a regular file, and thus cannot be modified in-place'
            )
        if info.st_size < HEADER_SIZE:
            raise FixError(
                f'"{name}" too short, expected at least 336 ($150) bytes, '
                f"got only {info.st_size}"
            )
        if info.st_size >= MAX_BANKS * BANK_SIZE:
            raise FixError(f'"{name}" has more than 65536 banks')
        try:
            data = handle.read()
        except OSError as exc:
            raise FixError(f"Failed to read \"{name}\"'s header: {exc.strerror or exc}") from exc
        result = _fix(data, options, name)
        try:
            handle.seek(0)
            handle.write(result.rom)
        except OSError as exc:
            raise FixError(f"Failed to write \"{name}\"'s ROM0: {exc.strerror or exc}") from exc
    return result