"""Unit tests for the Japanese/English keyword dictionary."""

from chocodrop.backend.dictionary import (
    build_keyword_hints,
    match_keyword_with_filename,
    mentions_any,
    reverse_lookup,
    taxonomy_terms,
    translate_keyword,
)


class TestTranslation:
    def test_translate_known_word(self):
        assert translate_keyword("花") == "flower"
        assert translate_keyword("ネコ") == "cat"

    def test_unknown_word_passes_through(self):
        assert translate_keyword("テーブルクロス") == "テーブルクロス"

    def test_reverse_lookup_collects_spellings(self):
        spellings = reverse_lookup("cat")
        assert {"猫", "ネコ", "ねこ"} <= set(spellings)


class TestTaxonomy:
    def test_longest_key_first(self):
        terms = taxonomy_terms("流れ星")
        assert terms[0][0] == "流れ星"

    def test_english_alias_detected(self):
        keys = [jp for jp, _ in taxonomy_terms("a small red flower")]
        assert "花" in keys

    def test_word_boundary(self):
        assert mentions_any("two cats on a mat", ["cat"])
        assert not mentions_any("category list", ["cat"])


class TestFilenameMatch:
    def test_japanese_keyword_matches_english_filename(self):
        assert match_keyword_with_filename("猫", "cat-a.png")

    def test_direct_substring(self):
        assert match_keyword_with_filename("sunset", "my_sunset_photo.jpg")

    def test_no_match(self):
        assert not match_keyword_with_filename("犬", "cat-a.png")
        assert not match_keyword_with_filename("猫", None)


class TestKeywordHints:
    def test_prompt_hints(self):
        hints = build_keyword_hints("a small red flower")
        assert "flower" in hints
        assert "花" in hints
        assert "a small red flower" in hints
        assert "a" not in hints

    def test_file_hints(self):
        hints = build_keyword_hints("cat-a.png", "cat-a.png", "image")
        assert "cat-a" in hints
        assert "cat" in hints
        assert "猫" in hints
        assert "画像" in hints
