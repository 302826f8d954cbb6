import pytest

from rgbkit.rgba import Rgba


def test_from_packed_splits_channels():
    color = Rgba.from_packed(0x11223344)
    assert (color.red, color.green, color.blue, color.alpha) == (0x11, 0x22, 0x33, 0x44)


@pytest.mark.parametrize("packed", [0, 0xFFFFFFFF, 0x12345678, 0x80FF0001])
def test_packed_round_trip(packed):
    assert Rgba.from_packed(packed).to_css() == packed


def test_equality_matches_packed_value():
    assert Rgba.from_packed(0x01020304) == Rgba(1, 2, 3, 4)
    assert Rgba(1, 2, 3, 4) != Rgba(1, 2, 3, 5)


def test_cgb_white_is_full_intensity_opaque():
    assert Rgba.from_cgb_color(0x7FFF) == Rgba(255, 255, 255, 255)


def test_cgb_transparent_bit():
    color = Rgba.from_cgb_color(Rgba.TRANSPARENT)
    assert color.alpha == 0
    assert color.is_transparent()


@pytest.mark.parametrize("level", range(32))
def test_cgb_expansion_keeps_high_bits(level):
    color = Rgba.from_cgb_color(level | level << 5 | level << 10)
    assert color.red >> 3 == level
    assert color.is_gray()
    assert color.is_opaque()


def test_cgb_channels_are_independent():
    color = Rgba.from_cgb_color(0x1F << 5)
    assert color.red == 0
    assert color.blue == 0
    assert color.green == Rgba.from_cgb_color(0x1F).red


def test_transparency_threshold():
    assert Rgba(0, 0, 0, Rgba.TRANSPARENCY_THRESHOLD - 1).is_transparent()
    assert not Rgba(0, 0, 0, Rgba.TRANSPARENCY_THRESHOLD).is_transparent()


def test_opacity_threshold():
    assert Rgba(0, 0, 0, Rgba.OPACITY_THRESHOLD).is_opaque()
    assert not Rgba(0, 0, 0, Rgba.OPACITY_THRESHOLD - 1).is_opaque()


def test_is_gray():
    assert Rgba(7, 7, 7, 0).is_gray()
    assert not Rgba(7, 7, 8, 0).is_gray()


def test_out_of_range_channel():
    with pytest.raises(ValueError):
        Rgba(256, 0, 0, 0)