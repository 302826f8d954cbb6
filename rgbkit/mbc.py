"""Memory bank controller names, values and the parser for their textual form."""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from enum import IntEnum


class MbcType(IntEnum):
    """Cartridge type values; TPP1 values carry their feature flags in the low byte."""

    ROM = 0x00
    ROM_RAM = 0x08
    ROM_RAM_BATTERY = 0x09

    MBC1 = 0x01
    MBC1_RAM = 0x02
    MBC1_RAM_BATTERY = 0x03

    MBC2 = 0x05
    MBC2_BATTERY = 0x06

    MMM01 = 0x0B
    MMM01_RAM = 0x0C
    MMM01_RAM_BATTERY = 0x0D

    MBC3 = 0x11
    MBC3_TIMER_BATTERY = 0x0F
    MBC3_TIMER_RAM_BATTERY = 0x10
    MBC3_RAM = 0x12
    MBC3_RAM_BATTERY = 0x13

    MBC5 = 0x19
    MBC5_RAM = 0x1A
    MBC5_RAM_BATTERY = 0x1B
    MBC5_RUMBLE = 0x1C
    MBC5_RUMBLE_RAM = 0x1D
    MBC5_RUMBLE_RAM_BATTERY = 0x1E

    MBC6 = 0x20

    MBC7_SENSOR_RUMBLE_RAM_BATTERY = 0x22

    POCKET_CAMERA = 0xFC
    BANDAI_TAMA5 = 0xFD
    HUC3 = 0xFE
    HUC1_RAM_BATTERY = 0xFF

    TPP1 = 0x100
    TPP1_RUMBLE = 0x101
    TPP1_MULTIRUMBLE = 0x102
    TPP1_MULTIRUMBLE_RUMBLE = 0x103
    TPP1_TIMER = 0x104
    TPP1_TIMER_RUMBLE = 0x105
    TPP1_TIMER_MULTIRUMBLE = 0x106
    TPP1_TIMER_MULTIRUMBLE_RUMBLE = 0x107
    TPP1_BATTERY = 0x108
    TPP1_BATTERY_RUMBLE = 0x109
    TPP1_BATTERY_MULTIRUMBLE = 0x10A
    TPP1_BATTERY_MULTIRUMBLE_RUMBLE = 0x10B
    TPP1_BATTERY_TIMER = 0x10C
    TPP1_BATTERY_TIMER_RUMBLE = 0x10D
    TPP1_BATTERY_TIMER_MULTIRUMBLE = 0x10E
    TPP1_BATTERY_TIMER_MULTIRUMBLE_RUMBLE = 0x10F


class MbcError(ValueError):
    """An MBC specification could not be accepted."""

    def __init__(self, message: str, warnings: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.warnings = warnings


class UnknownMbcError(MbcError):
    """The MBC does not exist, or the text has a syntax error."""


class MbcFeatureError(MbcError):
    """The requested features are incompatible with the MBC."""


class MbcRangeError(MbcError):
    """A numeric MBC value is outside 0-255."""


class Tpp1RevisionError(MbcError):
    """The TPP1 revision numbers are invalid or unsupported."""


@dataclass(frozen=True)
class ParsedMbc:
    """Result of parsing an MBC specification.

    `mbc` is None when the specification asked for the list of names ("help").
    """

    mbc: int | None
    tpp1_revision: tuple[int, int] | None = None
    warnings: tuple[str, ...] = field(default_factory=tuple)
    is_help: bool = False


_RAM = 1 << 7
_BATTERY = 1 << 6
_TIMER = 1 << 5
_RUMBLE = 1 << 4
_SENSOR = 1 << 3
_MULTIRUMBLE = 1 << 2

_NAMES: dict[int, str] = {
    MbcType.ROM: "ROM",
    MbcType.ROM_RAM: "ROM+RAM",
    MbcType.ROM_RAM_BATTERY: "ROM+RAM+BATTERY",
    MbcType.MBC1: "MBC1",
    MbcType.MBC1_RAM: "MBC1+RAM",
    MbcType.MBC1_RAM_BATTERY: "MBC1+RAM+BATTERY",
    MbcType.MBC2: "MBC2",
    MbcType.MBC2_BATTERY: "MBC2+BATTERY",
    MbcType.MMM01: "MMM01",
    MbcType.MMM01_RAM: "MMM01+RAM",
    MbcType.MMM01_RAM_BATTERY: "MMM01+RAM+BATTERY",
    MbcType.MBC3: "MBC3",
    MbcType.MBC3_TIMER_BATTERY: "MBC3+TIMER+BATTERY",
    MbcType.MBC3_TIMER_RAM_BATTERY: "MBC3+TIMER+RAM+BATTERY",
    MbcType.MBC3_RAM: "MBC3+RAM",
    MbcType.MBC3_RAM_BATTERY: "MBC3+RAM+BATTERY",
    MbcType.MBC5: "MBC5",
    MbcType.MBC5_RAM: "MBC5+RAM",
    MbcType.MBC5_RAM_BATTERY: "MBC5+RAM+BATTERY",
    MbcType.MBC5_RUMBLE: "MBC5+RUMBLE",
    MbcType.MBC5_RUMBLE_RAM: "MBC5+RUMBLE+RAM",
    MbcType.MBC5_RUMBLE_RAM_BATTERY: "MBC5+RUMBLE+RAM+BATTERY",
    MbcType.MBC6: "MBC6",
    MbcType.MBC7_SENSOR_RUMBLE_RAM_BATTERY: "MBC7+SENSOR+RUMBLE+RAM+BATTERY",
    MbcType.POCKET_CAMERA: "POCKET CAMERA",
    MbcType.BANDAI_TAMA5: "BANDAI TAMA5",
    MbcType.HUC3: "HUC3",
    MbcType.HUC1_RAM_BATTERY: "HUC1+RAM+BATTERY",
    MbcType.TPP1: "TPP1",
    MbcType.TPP1_RUMBLE: "TPP1+RUMBLE",
    MbcType.TPP1_MULTIRUMBLE: "TPP1+MULTIRUMBLE",
    MbcType.TPP1_MULTIRUMBLE_RUMBLE: "TPP1+MULTIRUMBLE",
    MbcType.TPP1_TIMER: "TPP1+TIMER",
    MbcType.TPP1_TIMER_RUMBLE: "TPP1+TIMER+RUMBLE",
    MbcType.TPP1_TIMER_MULTIRUMBLE: "TPP1+TIMER+MULTIRUMBLE",
    MbcType.TPP1_TIMER_MULTIRUMBLE_RUMBLE: "TPP1+TIMER+MULTIRUMBLE",
    MbcType.TPP1_BATTERY: "TPP1+BATTERY",
    MbcType.TPP1_BATTERY_RUMBLE: "TPP1+BATTERY+RUMBLE",
    MbcType.TPP1_BATTERY_MULTIRUMBLE: "TPP1+BATTERY+MULTIRUMBLE",
    MbcType.TPP1_BATTERY_MULTIRUMBLE_RUMBLE: "TPP1+BATTERY+MULTIRUMBLE",
    MbcType.TPP1_BATTERY_TIMER: "TPP1+BATTERY+TIMER",
    MbcType.TPP1_BATTERY_TIMER_RUMBLE: "TPP1+BATTERY+TIMER+RUMBLE",
    MbcType.TPP1_BATTERY_TIMER_MULTIRUMBLE: "TPP1+BATTERY+TIMER+MULTIRUMBLE",
    MbcType.TPP1_BATTERY_TIMER_MULTIRUMBLE_RUMBLE: "TPP1+BATTERY+TIMER+MULTIRUMBLE",
}

_WITH_RAM = frozenset(
    {
        MbcType.ROM_RAM,
        MbcType.ROM_RAM_BATTERY,
        MbcType.MBC1_RAM,
        MbcType.MBC1_RAM_BATTERY,
        MbcType.MMM01_RAM,
        MbcType.MMM01_RAM_BATTERY,
        MbcType.MBC3_TIMER_RAM_BATTERY,
        MbcType.MBC3_RAM,
        MbcType.MBC3_RAM_BATTERY,
        MbcType.MBC5_RAM,
        MbcType.MBC5_RAM_BATTERY,
        MbcType.MBC5_RUMBLE_RAM,
        MbcType.MBC5_RUMBLE_RAM_BATTERY,
        MbcType.MBC7_SENSOR_RUMBLE_RAM_BATTERY,
        MbcType.POCKET_CAMERA,
        MbcType.HUC3,
        MbcType.HUC1_RAM_BATTERY,
    }
)

_ACCEPTED = (
    "\tROM ($00) [aka ROM_ONLY]\n"
    "\tMBC1 ($01), MBC1+RAM ($02), MBC1+RAM+BATTERY ($03)\n"
    "\tMBC2 ($05), MBC2+BATTERY ($06)\n"
    "\tROM+RAM ($08) [deprecated], ROM+RAM+BATTERY ($09) [deprecated]\n"
    "\tMMM01 ($0B), MMM01+RAM ($0C), MMM01+RAM+BATTERY ($0D)\n"
    "\tMBC3+TIMER+BATTERY ($0F), MBC3+TIMER+RAM+BATTERY ($10)\n"
    "\tMBC3 ($11), MBC3+RAM ($12), MBC3+RAM+BATTERY ($13)\n"
    "\tMBC5 ($19), MBC5+RAM ($1A), MBC5+RAM+BATTERY ($1B)\n"
    "\tMBC5+RUMBLE ($1C), MBC5+RUMBLE+RAM ($1D), MBC5+RUMBLE+RAM+BATTERY ($1E)\n"
    "\tMBC6 ($20)\n"
    "\tMBC7+SENSOR+RUMBLE+RAM+BATTERY ($22)\n"
    "\tPOCKET_CAMERA ($FC)\n"
    "\tBANDAI_TAMA5 ($FD) [aka TAMA5]\n"
    "\tHUC3 ($FE)\n"
    "\tHUC1+RAM+BATTERY ($FF)\n"
    "\n\tTPP1_1.0, TPP1_1.0+RUMBLE, TPP1_1.0+MULTIRUMBLE, TPP1_1.0+TIMER,\n"
    "\tTPP1_1.0+TIMER+RUMBLE, TPP1_1.0+TIMER+MULTIRUMBLE, TPP1_1.0+BATTERY,\n"
    "\tTPP1_1.0+BATTERY+RUMBLE, TPP1_1.0+BATTERY+MULTIRUMBLE,\n"
    "\tTPP1_1.0+BATTERY+TIMER, TPP1_1.0+BATTERY+TIMER+RUMBLE,\n"
    "\tTPP1_1.0+BATTERY+TIMER+MULTIRUMBLE\n"
)

_ALNUM = frozenset(string.digits + string.ascii_letters)


def accepted_mbc_names() -> str:
    """Return the human-readable list of accepted MBC names."""
    return _ACCEPTED


def is_tpp1(mbc: int) -> bool:
    """Whether the value denotes a TPP1 mapper."""
    return (mbc & 0xFF00) == MbcType.TPP1


def mbc_name(mbc: int) -> str:
    """Return the display name of a known cartridge type."""
    try:
        return _NAMES[mbc]
    except KeyError:
        raise ValueError(f"No name for cartridge type {mbc:#x}") from None


def has_ram(mbc: int) -> bool:
    """Whether a (non-TPP1) cartridge type is marked as having RAM."""
    if is_tpp1(mbc):
        raise ValueError("TPP1 may or may not have RAM")
    if mbc not in _NAMES:
        raise ValueError(f"Unknown cartridge type {mbc:#x}")
    return mbc in _WITH_RAM


def _digit(ch: str) -> int:
    return int(ch, 36) if ch in _ALNUM else 99


def _strtoul(text: str, pos: int, base: int) -> tuple[int | None, int]:
    """Parse an unsigned number the way the C library does; return (value, end)."""
    n = len(text)
    i = pos
    while i < n and text[i] in " \t\n\v\f\r":
        i += 1
    negative = False
    if i < n and text[i] in "+-":
        negative = text[i] == "-"
        i += 1
    has_hex_prefix = (
        text[i:i + 2].lower() == "0x" and i + 2 < n and _digit(text[i + 2]) < 16
    )
    if base == 0:
        if has_hex_prefix:
            base = 16
            i += 2
        elif text[i:i + 1] == "0":
            base = 8
        else:
            base = 10
    elif base == 16 and has_hex_prefix:
        i += 2
    start = i
    while i < n and _digit(text[i]) < base:
        i += 1
    if i == start:
        return None, pos
    value = int(text[start:i], base)
    if negative:
        value = -value % (1 << 64)
    return value, i


class _Cursor:
    def __init__(self, text: str, unknown: str) -> None:
        self.text = text
        self.pos = 0
        self.unknown = unknown

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def next(self) -> str:
        ch = self.peek()
        self.pos += 1
        return ch

    def skip(self, chars: str) -> None:
        while self.peek() and self.peek() in chars:
            self.pos += 1

    def expect(self, expected: str) -> None:
        for want in expected:
            ch = self.next()
            if not ch:
                raise UnknownMbcError(self.unknown)
            if "a" <= ch <= "z":
                ch = ch.upper()
            elif ch == "_":
                ch = " "
            if ch != want:
                raise UnknownMbcError(self.unknown)

    def fail(self) -> UnknownMbcError:
        return UnknownMbcError(self.unknown)


def _as_type(value: int) -> int:
    try:
        return MbcType(value)
    except ValueError:
        return value


def _parse_number(name: str) -> ParsedMbc:
    base = 0
    text = name
    if text.startswith("$"):
        text = text[1:]
        base = 16
    value, end = _strtoul(text, 0, base)
    if end != len(text):
        raise UnknownMbcError(f'Unknown MBC "{name}"')
    value = value or 0
    if value > 0xFF:
        raise MbcRangeError(f"Specified MBC ID out of range 0-255: {name}")
    return ParsedMbc(_as_type(value))


def _parse_tpp1_revision(cur: _Cursor) -> tuple[int, int]:
    cur.skip(" _")
    major, end = _strtoul(cur.text, cur.pos, 10)
    if major is None:
        raise Tpp1RevisionError("Failed to parse TPP1 major revision number")
    cur.pos = end
    if major != 1:
        raise Tpp1RevisionError("RGBFIX only supports TPP1 version 1.0")
    cur.expect(".")
    minor, end = _strtoul(cur.text, cur.pos, 10)
    if minor is None:
        raise Tpp1RevisionError("Failed to parse TPP1 minor revision number")
    cur.pos = end
    if minor > 0xFF:
        raise Tpp1RevisionError("TPP1 minor revision number must be 8-bit")
    return major, minor


def parse_mbc(name: str) -> ParsedMbc:
    """Parse an MBC given by number (decimal, `0x`/`$` hex, octal) or by name."""
    if name.lower() == "help":
        return ParsedMbc(None, is_help=True)

    if name[:1].isdigit() and name[:1] in string.digits or name[:1] == "$":
        return _parse_number(name)

    cur = _Cursor(name, f'Unknown MBC "{name}"')
    revision: tuple[int, int] | None = None
    cur.skip(" \t")

    first = cur.next()
    if first in ("R", "r"):
        cur.expect("OM")
        cur.skip(" \t_")
        if cur.peek() in ("O", "o") and cur.peek():
            cur.pos += 1
            cur.expect("NLY")
        mbc = MbcType.ROM
    elif first in ("M", "m"):
        second = cur.next()
        if second in ("B", "b") and second:
            if cur.next() not in ("C", "c"):
                raise cur.fail()
            numbers = {
                "1": MbcType.MBC1,
                "2": MbcType.MBC2,
                "3": MbcType.MBC3,
                "5": MbcType.MBC5,
                "6": MbcType.MBC6,
                "7": MbcType.MBC7_SENSOR_RUMBLE_RAM_BATTERY,
            }
            digit = cur.next()
            if digit not in numbers:
                raise cur.fail()
            mbc = numbers[digit]
        elif second in ("M", "m") and second:
            cur.expect("M01")
            mbc = MbcType.MMM01
        else:
            raise cur.fail()
    elif first in ("P", "p") and first:
        cur.expect("OCKET CAMERA")
        mbc = MbcType.POCKET_CAMERA
    elif first in ("B", "b") and first:
        cur.expect("ANDAI TAMA5")
        mbc = MbcType.BANDAI_TAMA5
    elif first in ("T", "t") and first:
        second = cur.next()
        if second == "A":
            cur.expect("MA5")
            mbc = MbcType.BANDAI_TAMA5
        elif second == "P":
            cur.expect("P1")
            revision = _parse_tpp1_revision(cur)
            mbc = MbcType.TPP1
        else:
            raise cur.fail()
    elif first in ("H", "h") and first:
        cur.expect("UC")
        digit = cur.next()
        if digit == "1":
            mbc = MbcType.HUC1_RAM_BATTERY
        elif digit == "3":
            mbc = MbcType.HUC3
        else:
            raise cur.fail()
    else:
        raise cur.fail()

    features = 0
    while True:
        cur.skip(" \t_")
        if not cur.peek():
            break
        if cur.next() != "+":
            raise cur.fail()
        cur.skip(" \t_")
        ch = cur.next()
        if ch in ("B", "b") and ch:
            cur.expect("ATTERY")
            features |= _BATTERY
        elif ch in ("M", "m") and ch:
            cur.expect("ULTIRUMBLE")
            features |= _MULTIRUMBLE
        elif ch in ("R", "r") and ch:
            sub = cur.next()
            if sub in ("U", "u") and sub:
                cur.expect("MBLE")
                features |= _RUMBLE
            elif sub in ("A", "a") and sub:
                if not cur.peek() or cur.peek() not in ("M", "m"):
                    raise cur.fail()
                cur.pos += 1
                features |= _RAM
            else:
                raise cur.fail()
        elif ch in ("S", "s") and ch:
            cur.expect("ENSOR")
            features |= _SENSOR
        elif ch in ("T", "t") and ch:
            cur.expect("IMER")
            features |= _TIMER
        else:
            raise cur.fail()

    warnings: list[str] = []
    feature_error = f'Features incompatible with MBC ("{name}")'
    value = int(mbc)

    def ram_variants(value: int, features: int) -> int:
        if features == _RAM:
            return value + 1
        if features == _RAM | _BATTERY:
            return value + 2
        if features:
            raise MbcFeatureError(feature_error, tuple(warnings))
        return value

    if mbc == MbcType.ROM:
        if features:
            value = ram_variants(MbcType.ROM_RAM - 1, features)
    elif mbc in (MbcType.MBC1, MbcType.MMM01):
        value = ram_variants(value, features)
    elif mbc == MbcType.MBC2:
        if features == _BATTERY:
            value = MbcType.MBC2_BATTERY
        elif features:
            raise MbcFeatureError(feature_error)
    elif mbc == MbcType.MBC3:
        if features & _TIMER:
            if not features & _BATTERY:
                warnings.append("MBC3+TIMER implies BATTERY")
            features &= ~(_TIMER | _BATTERY)
            value = MbcType.MBC3_TIMER_BATTERY
        value = ram_variants(value, features)
    elif mbc == MbcType.MBC5:
        if features & _RUMBLE:
            features &= ~_RUMBLE
            value = MbcType.MBC5_RUMBLE
        value = ram_variants(value, features)
    elif mbc in (MbcType.MBC6, MbcType.POCKET_CAMERA, MbcType.BANDAI_TAMA5, MbcType.HUC3):
        if features:
            raise MbcFeatureError(feature_error)
    elif mbc == MbcType.MBC7_SENSOR_RUMBLE_RAM_BATTERY:
        if features != _SENSOR | _RUMBLE | _RAM | _BATTERY:
            raise MbcFeatureError(feature_error)
    elif mbc == MbcType.HUC1_RAM_BATTERY:
        if features != _RAM | _BATTERY:
            raise MbcFeatureError(feature_error)
    elif mbc == MbcType.TPP1:
        if features & _RAM:
            warnings.append("TPP1 requests RAM implicitly if given a non-zero RAM size")
        if features & _BATTERY:
            value |= 0x08
        if features & _TIMER:
            value |= 0x04
        if features & _MULTIRUMBLE:
            value |= 0x03
        if features & _RUMBLE:
            value |= 0x01
        if features & _SENSOR:
            raise MbcFeatureError(feature_error, tuple(warnings))

    return ParsedMbc(_as_type(value), revision, tuple(warnings))