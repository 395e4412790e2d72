"""Bilingual keyword dictionary (Japanese → English).

Static taxonomy used by the target resolver and the object registry.
Kana and kanji spellings of the same noun map to one English tag, so
"猫", "ネコ" and "ねこ" all resolve to ``cat``.  Lookups are the only thing
this module does; it holds no state.

Usage::

    from chocodrop.backend.dictionary import translate_keyword, match_keyword_with_filename
    translate_keyword("花")                          # "flower"
    match_keyword_with_filename("猫", "cat-a.png")   # True
"""

import re
from pathlib import PurePath
from typing import Iterable, Optional

# ── Taxonomy ─────────────────────────────────────────────────

_FANTASY: dict[str, str] = {
    "ユニコーン": "unicorn", "ドラゴン": "dragon", "龍": "dragon",
    "怪獣": "monster", "モンスター": "monster",
    "魔法使い": "wizard", "魔術師": "sorcerer", "魔女": "witch", "妖精": "fairy",
    "魔法杖": "magic wand", "杖": "wand", "魔法": "magic", "呪文": "spell",
    "魔法陣": "magic circle", "水晶玉": "crystal ball", "魔導書": "grimoire",
    "フェニックス": "phoenix", "グリフィン": "griffin", "ペガサス": "pegasus",
    "幽霊": "ghost", "精霊": "spirit", "ロボット": "robot",
}

_MEDIA: dict[str, str] = {
    "画像": "image", "写真": "photo", "イメージ": "image", "絵": "picture",
    "イラスト": "illustration", "ファイル": "file", "素材": "asset",
    "動画": "video", "ビデオ": "video", "ムービー": "movie", "映像": "video",
    "クリップ": "clip",
}

_ANIMALS: dict[str, str] = {
    "猫": "cat", "ネコ": "cat", "ねこ": "cat",
    "犬": "dog", "イヌ": "dog", "いぬ": "dog",
    "狼": "wolf", "熊": "bear", "ライオン": "lion", "トラ": "tiger", "虎": "tiger",
    "象": "elephant", "キリン": "giraffe", "シマウマ": "zebra", "パンダ": "panda",
    "ウサギ": "rabbit", "うさぎ": "rabbit", "リス": "squirrel", "ハムスター": "hamster",
    "馬": "horse", "ウマ": "horse", "牛": "cow", "豚": "pig", "羊": "sheep",
    "狐": "fox", "キツネ": "fox", "魚": "fish", "さかな": "fish",
    "フクロウ": "owl", "ワシ": "eagle", "カラス": "crow", "ハト": "dove",
    "ペンギン": "penguin", "イルカ": "dolphin", "クジラ": "whale", "サメ": "shark",
    "タコ": "octopus", "カニ": "crab", "エビ": "shrimp", "蝶": "butterfly",
    "チョウ": "butterfly", "鳥": "bird", "とり": "bird", "トリ": "bird",
}

_NATURE: dict[str, str] = {
    "花": "flower", "はな": "flower", "ハナ": "flower",
    "桜": "cherry blossom", "さくら": "cherry blossom", "バラ": "rose",
    "ひまわり": "sunflower", "チューリップ": "tulip",
    "雲": "cloud", "空": "sky", "海": "ocean", "湖": "lake", "川": "river",
    "山": "mountain", "やま": "mountain", "森": "forest", "木": "tree",
    "草原": "meadow", "砂漠": "desert", "滝": "waterfall", "洞窟": "cave",
    "島": "island", "自然": "nature",
}

_BUILDINGS: dict[str, str] = {
    "城": "castle", "宮殿": "palace", "家": "house", "塔": "tower",
    "教会": "church", "神殿": "temple", "図書館": "library", "学校": "school",
    "病院": "hospital", "駅": "station", "空港": "airport", "港": "port",
    "橋": "bridge", "灯台": "lighthouse", "風車": "windmill", "庭": "garden",
    "公園": "park", "遊園地": "amusement park",
}

_VEHICLES: dict[str, str] = {
    "車": "car", "電車": "train", "バス": "bus", "飛行機": "airplane",
    "ヘリコプター": "helicopter", "船": "ship", "ヨット": "yacht",
    "自転車": "bicycle", "バイク": "motorcycle", "ロケット": "rocket",
}

_SKY_AND_WEATHER: dict[str, str] = {
    "月": "moon", "太陽": "sun", "星": "star", "彗星": "comet",
    "流れ星": "shooting star", "星座": "constellation", "銀河": "galaxy",
    "惑星": "planet", "宇宙": "space", "虹": "rainbow", "雷": "lightning",
    "雪": "snow", "雨": "rain", "嵐": "storm", "霧": "fog", "氷": "ice",
    "火": "fire", "水": "water", "風": "wind", "光": "light", "影": "shadow",
    "夜": "night", "朝": "morning", "夕方": "evening",
}

_FOOD_AND_PEOPLE: dict[str, str] = {
    "ケーキ": "cake", "りんご": "apple", "リンゴ": "apple", "パン": "bread",
    "寿司": "sushi", "お茶": "tea", "コーヒー": "coffee", "チョコ": "chocolate",
    "人": "person", "女の子": "girl", "男の子": "boy", "子供": "child",
    "侍": "samurai", "忍者": "ninja", "王様": "king", "お姫様": "princess",
}

_COLORS_AND_MATERIALS: dict[str, str] = {
    "赤": "red", "青": "blue", "緑": "green", "黄色": "yellow", "白": "white",
    "黒": "black", "紫": "purple", "ピンク": "pink", "オレンジ": "orange",
    "茶色": "brown", "グレー": "gray", "金": "gold", "銀": "silver",
    "銅": "copper", "鉄": "iron", "石": "stone", "木材": "wood",
    "ガラス": "glass", "水晶": "crystal", "ダイヤモンド": "diamond",
}

TRANSLATION_DICTIONARY: dict[str, str] = {
    **_FANTASY,
    **_MEDIA,
    **_ANIMALS,
    **_NATURE,
    **_BUILDINGS,
    **_VEHICLES,
    **_SKY_AND_WEATHER,
    **_FOOD_AND_PEOPLE,
    **_COLORS_AND_MATERIALS,
}

# Extra English spellings that should count as the same tag.
_ENGLISH_ALIASES: dict[str, list[str]] = {
    "cat": ["kitten", "kitty"],
    "dog": ["puppy"],
    "flower": ["blossom"],
    "cherry blossom": ["sakura", "cherry"],
    "image": ["picture", "photo"],
    "video": ["movie", "clip"],
    "gray": ["grey"],
    "airplane": ["plane"],
    "ocean": ["sea"],
}

MEDIA_BASE_WORDS: dict[str, list[str]] = {
    "image": ["image", "photo", "picture", "画像", "写真", "イメージ"],
    "video": ["video", "movie", "clip", "動画", "ビデオ", "ムービー", "映像"],
}

_TOKEN_SPLIT = re.compile(r"[\s_/\-]+")


# ── Lookups ──────────────────────────────────────────────────

def translate_keyword(word: str) -> str:
    """Return the English tag for a Japanese word, or the word unchanged."""
    return TRANSLATION_DICTIONARY.get(word, word)


def reverse_lookup(tag: str) -> list[str]:
    """All Japanese spellings that translate to *tag*."""
    tag = tag.lower()
    return [jp for jp, en in TRANSLATION_DICTIONARY.items() if en == tag]


def object_keywords() -> dict[str, list[str]]:
    """Japanese key → English aliases (the tag plus extra spellings)."""
    keywords: dict[str, list[str]] = {}
    for jp, en in TRANSLATION_DICTIONARY.items():
        keywords[jp] = [en] + _ENGLISH_ALIASES.get(en, [])
    return keywords


_OBJECT_KEYWORDS = object_keywords()


def taxonomy_terms(text: str) -> list[tuple[str, list[str]]]:
    """Dictionary entries mentioned in *text*, in either language.

    Returns ``(japanese, english_aliases)`` pairs.  Longer Japanese keys are
    tried first so "流れ星" wins over "星".
    """
    lowered = text.lower()
    found: list[tuple[str, list[str]]] = []
    for jp in sorted(_OBJECT_KEYWORDS, key=len, reverse=True):
        aliases = _OBJECT_KEYWORDS[jp]
        if jp in lowered or any(_contains_word(lowered, alias) for alias in aliases):
            found.append((jp, aliases))
    return found


def match_keyword_with_filename(keyword: str, filename: Optional[str],
                                keywords: Optional[dict[str, list[str]]] = None) -> bool:
    """Does *keyword* name the file *filename*?

    Three checks: the keyword itself appears in the filename; the keyword
    contains a Japanese key whose English alias appears in the filename; or
    the keyword's translation appears in the filename.
    """
    if not keyword or not filename:
        return False
    keywords = keywords if keywords is not None else _OBJECT_KEYWORDS
    name = filename.lower()
    lowered = keyword.lower()
    if lowered in name:
        return True
    for jp, aliases in keywords.items():
        if jp in keyword and any(alias in name for alias in aliases):
            return True
    translated = translate_keyword(keyword).lower()
    return translated != lowered and translated in name


def tokenize(text: str) -> list[str]:
    return [t for t in _TOKEN_SPLIT.split(text.lower()) if len(t) > 1]


def build_keyword_hints(prompt: str, file_name: Optional[str] = None,
                        media: Optional[str] = None) -> set[str]:
    """Normalized tokens for an object, used as its matching vocabulary."""
    hints: set[str] = set()
    sources: list[str] = []
    if prompt:
        lowered = prompt.strip().lower()
        hints.add(lowered)
        hints.update(tokenize(lowered))
        sources.append(lowered)
    if file_name:
        stem = PurePath(file_name).stem.lower()
        hints.add(stem)
        hints.update(tokenize(stem))
        sources.append(stem)
    if media in MEDIA_BASE_WORDS:
        hints.update(MEDIA_BASE_WORDS[media])
    for text in sources:
        for jp, aliases in taxonomy_terms(text):
            hints.add(jp)
            hints.update(aliases)
    hints.discard("")
    return hints


def _contains_word(text: str, word: str) -> bool:
    """ASCII words match on word boundaries (plural allowed); "cat" must not hit "category"."""
    if word.isascii():
        return re.search(rf"(?<![a-z]){re.escape(word)}(?:e?s)?(?![a-z])", text) is not None
    return word in text


def mentions_any(text: str, words: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(_contains_word(lowered, w.lower()) for w in words)
