import io

import pytest

from rgbkit.header import (
    NINTENDO_LOGO,
    FixError,
    FixResult,
    FixSpec,
    HeaderOptions,
    Model,
    convert_logo,
    fix_file,
    fix_rom,
    fix_stream,
    parse_fix_spec,
    trash_logo,
)
from rgbkit.mbc import MbcType

ALL_FIXES = FixSpec.LOGO | FixSpec.HEADER_SUM | FixSpec.GLOBAL_SUM


def test_parse_fix_spec_full():
    flags, warnings = parse_fix_spec("lhg")
    assert flags == ALL_FIXES
    assert warnings == ()


def test_parse_fix_spec_override_warns():
    flags, warnings = parse_fix_spec("lL")
    assert flags == FixSpec.TRASH_LOGO
    assert warnings == ("'L' overriding 'l' in fix spec",)


def test_parse_fix_spec_ignores_unknown():
    flags, warnings = parse_fix_spec("x")
    assert flags == FixSpec.NONE
    assert warnings == ("Ignoring 'x' in fix spec",)


def test_convert_logo_rejects_wrong_size():
    with pytest.raises(ValueError):
        convert_logo(bytes(47))


@pytest.mark.parametrize("fill", [0x00, 0xFF])
def test_convert_logo_uniform(fill):
    assert convert_logo(bytes([fill]) * 48) == bytes([fill]) * 48


def test_trash_logo_involution():
    assert trash_logo(trash_logo(NINTENDO_LOGO)) == NINTENDO_LOGO
    assert all(a ^ b == 0xFF for a, b in zip(trash_logo(NINTENDO_LOGO), NINTENDO_LOGO))


def test_logo_written():
    result = fix_rom(bytes(0x8000), HeaderOptions(fix_spec=FixSpec.LOGO))
    assert result.rom[0x104:0x134] == NINTENDO_LOGO
    assert len(result.rom) == 0x8000


def test_trash_logo_written():
    result = fix_rom(bytes(0x8000), HeaderOptions(fix_spec=FixSpec.TRASH_LOGO))
    assert result.rom[0x104:0x134] == trash_logo(NINTENDO_LOGO)


def test_header_checksum_of_blank_header():
    result = fix_rom(bytes(0x8000), HeaderOptions(fix_spec=FixSpec.HEADER_SUM))
    assert result.rom[0x14D] == 0xE7


def test_trashed_header_checksum_is_complement():
    good = fix_rom(bytes(0x8000), HeaderOptions(fix_spec=FixSpec.HEADER_SUM))
    bad = fix_rom(bytes(0x8000), HeaderOptions(fix_spec=FixSpec.TRASH_HEADER_SUM))
    assert bad.rom[0x14D] == good.rom[0x14D] ^ 0xFF


def test_global_checksum_of_blank_rom_equals_header_sum():
    spec = FixSpec.HEADER_SUM | FixSpec.GLOBAL_SUM
    out = fix_rom(bytes(0x8000), HeaderOptions(fix_spec=spec)).rom
    assert out[0x14E:0x150] == bytes([0, out[0x14D]])


def test_fixing_is_idempotent():
    rom = bytes(range(256)) * 0x80
    options = HeaderOptions(fix_spec=ALL_FIXES, title="HELLO", pad_value=0xFF)
    once = fix_rom(rom, options)
    twice = fix_rom(once.rom, options)
    assert twice.rom == once.rom
    assert twice.warnings == ()


def test_padding_to_two_banks():
    out = fix_rom(bytes(0x5000), HeaderOptions(pad_value=0xFF)).rom
    assert len(out) == 0x8000
    assert out[0x148] == 0
    assert set(out[0x5000:]) == {0xFF}


def test_padding_small_rom_fills_rom0():
    out = fix_rom(bytes(0x200), HeaderOptions(pad_value=0xFF)).rom
    assert len(out) == 0x8000
    assert set(out[0x200:]) == {0xFF}


def test_padding_rounds_to_power_of_two():
    out = fix_rom(bytes(0x9000), HeaderOptions(pad_value=0)).rom
    assert len(out) == 0x10000
    assert out[0x148] == 1


def test_too_short_rom():
    with pytest.raises(FixError, match="too short"):
        fix_rom(bytes(0x14F), HeaderOptions())


def test_tpp1_needs_longer_header():
    options = HeaderOptions(cartridge_type=MbcType.TPP1, tpp1_revision=(1, 0))
    with pytest.raises(FixError, match="too short"):
        fix_rom(bytes(0x152), options)


def test_tpp1_fields():
    options = HeaderOptions(cartridge_type=MbcType.TPP1_BATTERY, tpp1_revision=(1, 0))
    out = fix_rom(bytes(0x8000), options).rom
    assert out[0x147] == 0xBC
    assert out[0x149:0x14B] == b"\xc1\x65"
    assert out[0x150:0x152] == b"\x01\x00"
    assert out[0x153] == 0x08


@pytest.mark.parametrize("model, value", [(Model.BOTH, 0x80), (Model.CGB, 0xC0)])
def test_cgb_flag(model, value):
    out = fix_rom(bytes(0x8000), HeaderOptions(model=model)).rom
    assert out[0x143] == value


def test_dmg_leaves_cgb_byte():
    rom = bytearray(0x8000)
    rom[0x143] = 0x42
    out = fix_rom(bytes(rom), HeaderOptions()).rom
    assert out[0x143] == 0x42


def test_regular_mapper_fields():
    options = HeaderOptions(
        cartridge_type=MbcType.MBC5_RAM_BATTERY,
        ram_size=3,
        japanese=False,
        old_licensee=0x33,
        rom_version=2,
        sgb=True,
        game_id="ABCD",
        new_licensee="01",
    )
    result = fix_rom(bytes(0x8000), options)
    out = result.rom
    assert out[0x147] == MbcType.MBC5_RAM_BATTERY
    assert out[0x149] == 3
    assert out[0x14A] == 0x01
    assert out[0x14B] == 0x33
    assert out[0x14C] == 2
    assert out[0x146] == 0x03
    assert out[0x13F:0x143] == b"ABCD"
    assert out[0x144:0x146] == b"01"
    assert result.warnings == ()


def test_sgb_wrong_licensee_warns():
    result = fix_rom(bytes(0x8000), HeaderOptions(sgb=True))
    assert result.warnings == (
        "SGB compatibility enabled, but old licensee was 0x00, not 0x33",
    )


def test_overwrite_warning():
    rom = bytearray(0x8000)
    rom[0x134:0x139] = b"WORLD"
    result = fix_rom(bytes(rom), HeaderOptions(title="HELLO"))
    assert result.rom[0x134:0x139] == b"HELLO"
    assert result.warnings == ("Overwrote a non-zero byte in the title",)
    quiet = fix_rom(bytes(rom), HeaderOptions(title="HELLO", overwrite=True))
    assert quiet.warnings == ()


def test_options_validate_bytes():
    with pytest.raises(ValueError):
        HeaderOptions(pad_value=256)
    with pytest.raises(ValueError):
        HeaderOptions(logo=bytes(3))


def test_fix_stream_writes_result():
    source = io.BytesIO(bytes(0x8000))
    sink = io.BytesIO()
    result = fix_stream(source, sink, HeaderOptions(fix_spec=FixSpec.LOGO))
    assert isinstance(result, FixResult)
    assert sink.getvalue() == result.rom
    assert sink.getvalue()[0x104:0x134] == NINTENDO_LOGO


def test_fix_file_in_place(tmp_path):
    path = tmp_path / "game.gb"
    path.write_bytes(bytes(0x5000))
    result = fix_file(path, HeaderOptions(fix_spec=ALL_FIXES, pad_value=0))
    content = path.read_bytes()
    assert content == result.rom
    assert len(content) == 0x8000
    assert content[0x104:0x134] == NINTENDO_LOGO


def test_fix_file_too_small(tmp_path):
    path = tmp_path / "tiny.gb"
    path.write_bytes(bytes(0x10))
    with pytest.raises(FixError, match="336"):
        fix_file(path, HeaderOptions())
    assert path.read_bytes() == bytes(0x10)


def test_fix_file_directory(tmp_path):
    with pytest.raises(FixError):
        fix_file(tmp_path, HeaderOptions())


def test_fix_file_missing(tmp_path):
    with pytest.raises(FixError, match="Failed to open"):
        fix_file(tmp_path / "absent.gb", HeaderOptions())