"""Unit tests for intent classification."""

import pytest

from chocodrop.backend.effects import EffectKind
from chocodrop.backend.intent_classifier import classify, detect_media_type
from chocodrop.backend.models import IntentType, MediaType


class TestEmpty:
    @pytest.mark.parametrize("text", ["", "   ", "\n"])
    def test_blank_is_empty(self, text):
        parsed = classify(text)
        assert parsed.intent_type == IntentType.EMPTY
        assert parsed.confidence == 1.0
        assert parsed.rule == "empty"


class TestDelete:
    @pytest.mark.parametrize("selected", [False, True])
    def test_delete_always_needs_target(self, selected):
        parsed = classify("猫を削除して", has_selected_object=selected)
        assert parsed.intent_type == IntentType.DELETE
        assert parsed.needs_target is True
        assert parsed.requires_confirmation is True
        assert parsed.confidence == 0.9

    def test_delete_all(self):
        parsed = classify("すべて削除して")
        assert parsed.intent_type == IntentType.DELETE
        assert parsed.delete_all is True

    def test_ordinal_import_delete(self):
        parsed = classify("2番目にインポートした猫を削除")
        assert parsed.intent_type == IntentType.DELETE
        assert parsed.needs_target is True

    def test_english_delete(self):
        assert classify("remove the red car").intent_type == IntentType.DELETE

    def test_background_removal_is_not_delete(self):
        parsed = classify("白い背景を消して", has_selected_object=True)
        assert parsed.intent_type == IntentType.MODIFY
        kinds = [e.kind for e in parsed.attribute_deltas.effects]
        assert kinds == [EffectKind.CHROMA_KEY.value]
        assert parsed.attribute_deltas.color is None
        assert parsed.attribute_deltas.effects[0].params["color"] == 0xFFFFFF


class TestGenerate:
    def test_generate_image(self):
        parsed = classify("猫の画像を作って")
        assert parsed.intent_type == IntentType.GENERATE
        assert parsed.media_type == MediaType.IMAGE
        assert parsed.rule == "generate_verb"

    def test_generate_video(self):
        parsed = classify("ドラゴンの動画を生成して")
        assert parsed.intent_type == IntentType.GENERATE
        assert parsed.media_type == MediaType.VIDEO

    def test_fresh_creation_ignores_selection(self):
        parsed = classify("新しい猫", has_selected_object=True)
        assert parsed.intent_type == IntentType.GENERATE

    def test_unknown_text_defaults_to_generate(self):
        parsed = classify("夕焼けの海")
        assert parsed.intent_type == IntentType.GENERATE
        assert parsed.rule == "default_generate"

    def test_size_and_position_hints(self):
        parsed = classify("大きなドラゴンを左上に作って")
        assert parsed.size == 2.0
        assert (parsed.position.x, parsed.position.y, parsed.position.z) == (-8.0, 4.0, 15.0)


class TestModify:
    def test_selected_object(self):
        parsed = classify("赤くして", has_selected_object=True)
        assert parsed.intent_type == IntentType.MODIFY
        assert parsed.needs_target is False
        assert parsed.rule == "selected_object"
        assert parsed.attribute_deltas.color == 0xFF0000

    def test_vocabulary_without_selection_needs_target(self):
        parsed = classify("赤くして")
        assert parsed.intent_type == IntentType.MODIFY
        assert parsed.needs_target is True
        assert parsed.rule == "modify_vocabulary"

    def test_explicit_reference(self):
        parsed = classify("さっきの猫を青くして")
        assert parsed.intent_type == IntentType.MODIFY
        assert parsed.has_explicit_target is True
        assert parsed.needs_target is True

    @pytest.mark.parametrize("text", ["2つ目の猫を赤くして", "3個目の猫を赤くして", "最終の猫を赤くして"])
    def test_ordinal_beats_selection(self, text):
        parsed = classify(text, has_selected_object=True)
        assert parsed.intent_type == IntentType.MODIFY
        assert parsed.rule == "explicit_target"
        assert parsed.needs_target is True

    def test_past_tense_generation_is_a_reference(self):
        parsed = classify("生成した猫を赤くして")
        assert parsed.intent_type == IntentType.MODIFY
        assert parsed.rule == "explicit_target"


class TestSelectAndImport:
    def test_select(self):
        parsed = classify("猫を選択して")
        assert parsed.intent_type == IntentType.SELECT
        assert parsed.needs_target is True

    def test_import(self):
        parsed = classify("画像をインポートして")
        assert parsed.intent_type == IntentType.IMPORT
        assert parsed.needs_target is False


class TestMediaType:
    def test_video_words(self):
        assert detect_media_type("猫の動画")[0] == MediaType.VIDEO
        assert detect_media_type("a short movie clip")[0] == MediaType.VIDEO

    def test_default_image(self):
        media, confidence = detect_media_type("猫")
        assert media == MediaType.IMAGE
        assert confidence == 0.6
