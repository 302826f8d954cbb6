import io
import sys

import pytest

from rgbkit.fixcli import build_options, main, parse_byte
from rgbkit.header import NINTENDO_LOGO, FixSpec, Model, convert_logo
from rgbkit.mbc import MbcType


def _rom(tmp_path, size=0x8000, name="game.gb"):
    path = tmp_path / name
    path.write_bytes(bytes(size))
    return path


@pytest.mark.parametrize(
    "text, expected",
    [("0x12", 0x12), ("$ff", 255), ("10", 10), ("010", 8), ("$", 0), ("255", 255)],
)
def test_parse_byte_values(text, expected):
    assert parse_byte(text, "p") == expected


def test_parse_byte_empty():
    with pytest.raises(ValueError, match="may not be empty"):
        parse_byte("", "p")


def test_parse_byte_too_large():
    with pytest.raises(ValueError, match="larger than 255: 256"):
        parse_byte("256", "r")


def test_parse_byte_garbage():
    with pytest.raises(ValueError, match="Expected number as argument to option 'n', got 12z"):
        parse_byte("12z", "n")


def test_validate_sets_full_fix_spec():
    inv = build_options(["-v", "rom.gb"])
    assert inv.options.fix_spec == FixSpec.LOGO | FixSpec.HEADER_SUM | FixSpec.GLOBAL_SUM
    assert inv.files == ["rom.gb"]
    assert inv.failed is False


def test_long_and_long_only_options():
    inv = build_options(["--title", "HELLO", "-rom-version=3", "f.gb"])
    assert inv.options.title == b"HELLO"
    assert inv.options.rom_version == 3


def test_clustered_short_options_and_permutation():
    inv = build_options(["a.gb", "-jOs", "b.gb"])
    assert inv.options.japanese is False
    assert inv.options.overwrite is True
    assert inv.options.sgb is True
    assert inv.files == ["a.gb", "b.gb"]


def test_double_dash_ends_options():
    inv = build_options(["--", "-v"])
    assert inv.files == ["-v"]
    assert inv.options.fix_spec == FixSpec.NONE


def test_title_truncation_by_model(capsys):
    inv = build_options(["-t", "ABCDEFGHIJKLMNOPQRST", "-C", "f.gb"])
    assert inv.options.title == b"ABCDEFGHIJKLMNO"
    assert inv.options.model is Model.CGB
    assert "to 15 chars" in capsys.readouterr().err


def test_game_id_truncation(capsys):
    inv = build_options(["-i", "ABCDEF", "f.gb"])
    assert inv.options.game_id == b"ABCD"
    assert "Truncating game ID" in capsys.readouterr().err


def test_mbc_by_name():
    inv = build_options(["-m", "MBC5+RAM+BATTERY", "f.gb"])
    assert inv.options.cartridge_type == MbcType.MBC5_RAM_BATTERY


def test_mbc_tpp1_revision():
    inv = build_options(["-m", "TPP1_1.0+BATTERY", "f.gb"])
    assert inv.options.cartridge_type == MbcType.TPP1_BATTERY
    assert inv.options.tpp1_revision == (1, 0)


def test_bad_mbc_marks_failure(capsys):
    inv = build_options(["-m", "MBC9", "f.gb"])
    assert inv.failed is True
    assert inv.options.cartridge_type is None
    assert 'Unknown MBC "MBC9"' in capsys.readouterr().err


def test_ram_size_warning(capsys):
    build_options(["-m", "MBC1", "-r", "2", "f.gb"])
    assert 'MBC "MBC1" has no RAM, but RAM size was set to 2' in capsys.readouterr().err


def test_fix_spec_option():
    inv = build_options(["-f", "lH", "f.gb"])
    assert inv.options.fix_spec == FixSpec.LOGO | FixSpec.TRASH_HEADER_SUM


def test_version(capsys):
    assert main(["-V"]) == 0
    assert capsys.readouterr().out.startswith("rgbfix ")


def test_mbc_help(capsys):
    assert main(["-m", "help"]) == 0
    assert "Accepted MBC names:" in capsys.readouterr().err


def test_unknown_option(capsys):
    assert main(["-z", "f.gb"]) == 1
    assert "Usage: rgbfix" in capsys.readouterr().err


def test_missing_file(capsys):
    assert main(["-v"]) == 1
    assert "Please specify an input file" in capsys.readouterr().err


def test_fix_file_in_place(tmp_path):
    path = _rom(tmp_path)
    assert main(["-v", str(path)]) == 0
    data = path.read_bytes()
    assert len(data) == 0x8000
    assert data[0x104:0x134] == NINTENDO_LOGO
    stored = int.from_bytes(data[0x14E:0x150], "big")
    assert (sum(data[:0x14E]) + sum(data[0x150:])) & 0xFFFF == stored


def test_fixing_twice_is_idempotent(tmp_path, capsys):
    path = _rom(tmp_path)
    assert main(["-v", "-t", "GAME", str(path)]) == 0
    first = path.read_bytes()
    assert main(["-v", "-t", "GAME", str(path)]) == 0
    assert path.read_bytes() == first
    assert "Overwrote" not in capsys.readouterr().err


def test_padding(tmp_path):
    path = _rom(tmp_path, size=0x4001)
    assert main(["-p", "0xFF", str(path)]) == 0
    data = path.read_bytes()
    assert len(data) == 0x8000
    assert data[0x148] == 0
    assert data[-1] == 0xFF


def test_short_file_fails(tmp_path, capsys):
    path = _rom(tmp_path, size=0x100)
    assert main(["-v", str(path)]) == 1
    assert "too short" in capsys.readouterr().err


def test_custom_logo(tmp_path):
    logo_data = bytes(range(48))
    logo_path = tmp_path / "logo.1bpp"
    logo_path.write_bytes(logo_data)
    path = _rom(tmp_path)
    assert main(["-L", str(logo_path), "-f", "l", str(path)]) == 0
    assert path.read_bytes()[0x104:0x134] == convert_logo(logo_data)


def test_logo_wrong_size(tmp_path, capsys):
    logo_path = tmp_path / "logo.1bpp"
    logo_path.write_bytes(bytes(10))
    path = _rom(tmp_path)
    assert main(["-L", str(logo_path), str(path)]) == 1
    assert "is not 48 bytes" in capsys.readouterr().err


def test_stdin_to_stdout(monkeypatch):
    source = io.TextIOWrapper(io.BytesIO(bytes(0x8000)))
    sink_bytes = io.BytesIO()
    sink = io.TextIOWrapper(sink_bytes)
    monkeypatch.setattr(sys, "stdin", source)
    monkeypatch.setattr(sys, "stdout", sink)
    assert main(["-f", "l", "-"]) == 0
    sink.flush()
    out = sink_bytes.getvalue()
    assert len(out) == 0x8000
    assert out[0x104:0x134] == NINTENDO_LOGO


def test_option_error_fails_but_processes(tmp_path):
    path = _rom(tmp_path)
    assert main(["-p", "300", "-f", "l", str(path)]) == 1
    assert path.read_bytes()[0x104:0x134] == NINTENDO_LOGO