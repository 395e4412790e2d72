"""Unit tests for the effect keyword catalog, presets and chroma key."""

from chocodrop.backend.effect_catalog import (
    auto_effect_theme,
    auto_effects_from_prompt,
    chroma_key_config,
    parse_effects,
    requires_chroma_key,
    strip_effect_keywords,
)


class TestParseEffects:
    def test_preset_expansion(self):
        specs = parse_effects("魔法っぽくして")
        assert [s.kind for s in specs] == ["glow", "pulse", "sparkle"]
        assert specs[0].params["color"] == 0xCC44FF

    def test_one_instance_per_kind(self):
        specs = parse_effects("ネオンで光らせて")
        assert [s.kind for s in specs] == ["glow"]

    def test_english_keywords(self):
        kinds = {s.kind for s in parse_effects("make it glow and spin")}
        assert kinds == {"glow", "spin"}

    def test_cosmic_family(self):
        assert [s.kind for s in parse_effects("オーロラみたいに")] == ["aurora"]

    def test_returned_specs_are_copies(self):
        parse_effects("魔法っぽく")[0].params["color"] = 0
        assert parse_effects("魔法っぽく")[0].params["color"] == 0xCC44FF

    def test_nothing(self):
        assert parse_effects("赤くして") == []


class TestChromaKey:
    def test_detection(self):
        assert requires_chroma_key("グリーンバックを抜いて")
        assert requires_chroma_key("背景をなくして")
        assert requires_chroma_key("remove background please")
        assert not requires_chroma_key("猫を消して")

    def test_color_and_threshold(self):
        config = chroma_key_config("緑の背景を透過して")
        assert config["color"] == 0x00FF00
        assert config["threshold"] == 0.32
        assert config["smoothing"] == 0.1

    def test_defaults_to_white(self):
        assert chroma_key_config("背景を透過して")["color"] == 0xFFFFFF

    def test_strip_removes_background_phrase(self):
        assert "背景" not in strip_effect_keywords("白い背景を透過して")


class TestAutoEffects:
    def test_theme_from_prompt(self):
        assert auto_effect_theme("a cute cat") == "きらめ"
        assert auto_effect_theme("宇宙を飛ぶドラゴン") == "宇宙"
        assert auto_effect_theme("a plain box") is None

    def test_effects_from_prompt(self):
        assert [s.kind for s in auto_effects_from_prompt("宇宙を飛ぶドラゴン")] == ["cosmic"]
        assert auto_effects_from_prompt("") == []
