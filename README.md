# rgbkit

Tools for Game Boy development, usable as a library and from the command line.
No third-party libraries are needed.

- **ROM header fixing** (`rgbkit.header`): write the logo, title, manufacturer
  code, CGB/SGB flags, cartridge type, RAM size, licensee codes and mask ROM
  version into a ROM header, pad the ROM to a power-of-two number of banks, and
  compute (or deliberately spoil) the header and global checksums.
- **Cartridge types** (`rgbkit.mbc`): parse names such as `MBC5+RAM+BATTERY`,
  numbers such as `$1B` or `0x1b`, and TPP1 specifications such as
  `TPP1_1.0+TIMER`; give names back with `mbc_name`, and tell whether a type
  has RAM with `has_ram`.
- **Assembler diagnostics** (`rgbkit.diagnostics`): `-W` style warning flags,
  including meta flags (`all`, `extra`, `everything`), parametric flags such as
  `truncation=2`, `error=<flag>` and `no-error=<flag>`, and an error counter
  with an optional maximum.
- **Assembler symbols** (`rgbkit.symbols`): a symbol table with global, local
  and anonymous labels, constants (`EQU`), variables, string constants
  (`EQUS`), macros, forward references, purging, exporting and the built-in
  symbols (`@`, `_NARG`, `.`, `..`, `_RS`, version and date/time symbols).
- **Colours** (`rgbkit.rgba`): an `Rgba` colour with packing to and from
  `0xRRGGBBAA` and expansion of CGB RGB555 colours.

## Installation

```
pip install .
```

## Fixing a ROM from the command line

```
rgbkit-fix -v -p 0xFF game.gb
```

`-v` (`--validate`) fixes the logo and both checksums; `-p` (`--pad-value`)
pads the ROM with the given byte up to the next power-of-two number of banks
(at least two) and writes the ROM size byte. Other options:

| Option | Meaning |
| --- | --- |
| `-C`, `--color-only` | mark the ROM as CGB-only |
| `-c`, `--color-compatible` | mark the ROM as CGB-compatible |
| `-f`, `--fix-spec <spec>` | choose what to fix (`l`, `h`, `g`) or trash (`L`, `H`, `G`) |
| `-i`, `--game-id <id>` | set the game ID (truncated to 4 characters) |
| `-j`, `--non-japanese` | set the destination code to non-Japanese |
| `-k`, `--new-licensee <code>` | set the new licensee code (truncated to 2 characters) |
| `-L`, `--logo <file>` | use a logo from a 48-byte 1bpp file (`-` for standard input) |
| `-l`, `--old-licensee <byte>` | set the old licensee byte |
| `-m`, `--mbc-type <mbc>` | set the cartridge type (`-m help` lists the accepted names) |
| `-n`, `--rom-version <byte>` | set the mask ROM version number |
| `-O`, `--overwrite` | do not warn when overwriting non-zero bytes |
| `-r`, `--ram-size <byte>` | set the RAM size byte |
| `-s`, `--sgb-compatible` | mark the ROM as SGB-compatible |
| `-t`, `--title <title>` | set the title (truncated to 16, 15 or 11 characters) |
| `-V`, `--version` | print the version and exit |

Byte arguments may be decimal, octal (leading `0`), or hexadecimal (`0x` or
`$` prefix). Long options may also be given with a single dash.

Pass `-` as the file name to read the ROM from standard input and write the
fixed ROM to standard output. Files given by name are modified in place. The
exit status is 1 if any option or file failed.

## Using the library

```python
from rgbkit.header import FixSpec, HeaderOptions, fix_rom
from rgbkit.mbc import parse_mbc, accepted_mbc_names
from rgbkit.rgba import Rgba

print(accepted_mbc_names())
parsed = parse_mbc("MBC5+RAM+BATTERY")

options = HeaderOptions(
    fix_spec=FixSpec.LOGO | FixSpec.HEADER_SUM | FixSpec.GLOBAL_SUM,
    cartridge_type=parsed.mbc,
    title="DEMO",
)
result = fix_rom(bytes(0x8000), options)
fixed = result.rom
for message in result.warnings:
    print(message)

white = Rgba.from_cgb_color(0x7FFF)
assert white.to_css() == 0xFFFFFFFF
```

`fix_rom` works on ROM bytes in memory, `fix_file` edits a file in place, and
`fix_stream` copies from one binary stream to another; all three take a
`HeaderOptions` and return a `FixResult` holding the fixed ROM and its
warnings. Problems that stop a ROM from being fixed raise `FixError`.
`parse_fix_spec` turns a string such as `"lhg"` into `FixSpec` flags, and
`convert_logo` turns a 48-byte 1bpp image into the header's logo layout.
Invalid cartridge type texts raise a subclass of `MbcError`.

For the assembler side, `Diagnostics` tracks warning flags and error counts,
and `SymbolTable` holds every symbol defined during assembly:

```python
from rgbkit.diagnostics import Diagnostics, WarningId
from rgbkit.symbols import SymbolTable

diagnostics = Diagnostics()
diagnostics.process_flag("all")
diagnostics.process_flag("error=truncation")
print(diagnostics.behavior(WarningId.TRUNCATION_1))

table = SymbolTable()
table.add_equ("SCREEN_WIDTH", 160)
assert table.get_constant_value("SCREEN_WIDTH") == 160
```

Rejected symbol operations raise `SymbolError`; nonsensical names such as
`a.b.c` raise `FatalSymbolError`. The table reads the current section, offset,
macro argument count and source position from its `section`, `offset`,
`macro_arg_count`, `source` and `line_no` attributes, which the caller keeps
up to date.

## What this package does not do

There is no assembler, linker or graphics converter here: the symbol table and
diagnostics are building blocks, and nothing lexes or parses assembly source,
writes object files, or links them into a ROM. The only command is
`rgbkit-fix`. `Rgba` does not convert colours back to CGB RGB555.

## Running the tests

```
pip install ".[test]"
pytest
```