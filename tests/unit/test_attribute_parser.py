"""Unit tests for attribute delta parsing."""

import math

import pytest

from chocodrop.backend.attribute_parser import (
    parse_attribute_deltas,
    parse_color,
    parse_opacity,
    parse_position,
    parse_rotation,
    parse_scale,
    parse_size,
    parse_translation,
)


class TestColor:
    def test_japanese_color(self):
        assert parse_color("赤くして") == 0xFF0000
        assert parse_color("青色に変えて") == 0x0000FF

    def test_english_color_is_whole_word(self):
        assert parse_color("make it red") == 0xFF0000
        assert parse_color("redundant") is None

    def test_hex_color(self):
        assert parse_color("#12abef にして") == 0x12ABEF


class TestScale:
    def test_explicit_factor(self):
        assert parse_scale("2倍にして") == 2.0
        assert parse_scale("make it 3x") == 3.0

    def test_relative_words(self):
        assert parse_scale("大きくして") == 1.5
        assert parse_scale("小さくして") == 0.7
        assert parse_scale("赤くして") is None

    def test_big_move_is_not_a_resize(self):
        assert parse_scale("大きく右に移動", moving=True) is None


class TestTranslation:
    def test_direction(self):
        offset = parse_translation("右に移動して")
        assert (offset.x, offset.y, offset.z) == (5.0, 0.0, 0.0)

    def test_slightly_halves(self):
        offset = parse_translation("少し左に移動")
        assert offset.x == -2.5

    def test_a_lot_doubles(self):
        offset = parse_translation("大きく右に移動")
        assert offset.x == 10.0

    def test_distance_override(self):
        offset = parse_translation("上に2メートル移動")
        assert (offset.x, offset.y, offset.z) == (0.0, 2.0, 0.0)

    def test_no_trigger(self):
        assert parse_translation("右の猫") is None


class TestRotationOpacity:
    def test_degrees(self):
        assert parse_rotation("90度回転して") == pytest.approx(math.pi / 2)

    def test_default_and_counter_clockwise(self):
        assert parse_rotation("回転して") == pytest.approx(math.pi / 4)
        assert parse_rotation("反時計回りに回転") == pytest.approx(-math.pi / 4)

    def test_opacity_levels(self):
        assert parse_opacity("半透明にして") == 0.5
        assert parse_opacity("透明にして") == 0.3
        assert parse_opacity("不透明にして") == 1.0
        assert parse_opacity("赤くして") is None


class TestDeltas:
    def test_effects_do_not_leak_into_attributes(self):
        deltas = parse_attribute_deltas("キラキラ光らせて")
        assert {e.kind for e in deltas.effects} == {"glow", "sparkle"}
        assert deltas.color is None
        assert deltas.opacity is None

    def test_monochrome_is_not_a_color(self):
        deltas = parse_attribute_deltas("白黒にして")
        assert [e.kind for e in deltas.effects] == ["monochrome"]
        assert deltas.color is None

    def test_combined(self):
        deltas = parse_attribute_deltas("赤くして2倍にして反転")
        assert deltas.color == 0xFF0000
        assert deltas.scale == 2.0
        assert deltas.flip is True
        assert not deltas.is_empty()

    def test_empty(self):
        assert parse_attribute_deltas("もっとすごくして").is_empty()


class TestPlacement:
    def test_default_position(self):
        p = parse_position("猫")
        assert (p.x, p.y, p.z) == (0.0, 5.0, 10.0)

    def test_named_placement(self):
        p = parse_position("空に浮かぶ城")
        assert (p.x, p.y, p.z) == (0.0, 20.0, 10.0)

    def test_size(self):
        assert parse_size("大きな猫") == 2.0
        assert parse_size("小さな猫") == 0.5
        assert parse_size("猫", 1.0) == 1.0
