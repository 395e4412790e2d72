"""Effect vocabulary: keywords, presets, chroma key and prompt themes.

Turns free text into a list of :class:`EffectSpec` values that the effect
registry can apply.  Nothing here touches a scene node.
"""

import re
from typing import Optional

from .dictionary import mentions_any
from .effects import EffectKind
from .models import EffectSpec

# ── Keyword catalog ──────────────────────────────────────────
# Longer keywords come first; a matched keyword is consumed so "ネオン" and
# "光る" inside one sentence each count once.

EFFECT_KEYWORDS: list[tuple[tuple[str, ...], EffectSpec]] = [
    (("光らせ", "光る", "glow", "glowing"),
     EffectSpec(EffectKind.GLOW.value, {"color": 0xFFFFFF, "intensity": 0.5}, "光る")),
    (("ネオン", "neon"),
     EffectSpec(EffectKind.GLOW.value, {"color": 0x00FFFF, "intensity": 0.8}, "ネオン")),
    (("ホログラム", "hologram"),
     EffectSpec(EffectKind.GLOW.value, {"color": 0x00FFFF, "intensity": 0.6}, "ホログラム")),
    (("メタリック", "metallic"),
     EffectSpec(EffectKind.MATERIAL.value, {"metalness": 0.8, "roughness": 0.2}, "メタリック")),
    (("金属質",),
     EffectSpec(EffectKind.MATERIAL.value, {"metalness": 0.9, "roughness": 0.1}, "金属質")),
    (("ガラス", "glassy"),
     EffectSpec(EffectKind.MATERIAL.value, {"metalness": 0.0, "roughness": 0.0}, "ガラス")),
    (("マット", "matte"),
     EffectSpec(EffectKind.MATERIAL.value, {"metalness": 0.0, "roughness": 1.0}, "マット")),
    (("ふわふわ", "浮く", "浮かせ", "漂う", "float", "floating"),
     EffectSpec(EffectKind.FLOAT.value, {"speed": 0.5, "amplitude": 0.5}, "ふわふわ")),
    (("ドクドク", "鼓動", "脈動", "pulse", "pulsing"),
     EffectSpec(EffectKind.PULSE.value, {"speed": 1.0, "amplitude": 0.1}, "鼓動")),
    (("くるくる", "スピン", "回る", "spin", "spinning"),
     EffectSpec(EffectKind.SPIN.value, {"speed": 0.25, "axis": "y"}, "くるくる")),
    (("キラキラ", "sparkling"),
     EffectSpec(EffectKind.SPARKLE.value, {"intensity": 0.9}, "キラキラ")),
    (("きらめ", "twinkle", "sparkle"),
     EffectSpec(EffectKind.SPARKLE.value, {"intensity": 0.8}, "きらめ")),
    (("輝",),
     EffectSpec(EffectKind.SPARKLE.value, {"intensity": 1.0}, "輝")),
    (("虹色", "rainbow"),
     EffectSpec(EffectKind.RAINBOW_GLOW.value, {}, "虹色")),
    (("宇宙", "cosmic"),
     EffectSpec(EffectKind.COSMIC.value, {}, "宇宙")),
    (("オーロラ", "aurora"),
     EffectSpec(EffectKind.AURORA.value, {}, "オーロラ")),
    (("星雲", "nebula"),
     EffectSpec(EffectKind.NEBULA.value, {}, "星雲")),
    (("エネルギー", "energy"),
     EffectSpec(EffectKind.ENERGY.value, {}, "エネルギー")),
    (("神秘的", "mystic", "mystical"),
     EffectSpec(EffectKind.MYSTIC.value, {}, "神秘的")),
    (("水彩画", "水彩", "watercolor"),
     EffectSpec(EffectKind.WATERCOLOR.value, {}, "水彩")),
    (("パステル", "pastel"),
     EffectSpec(EffectKind.PASTEL.value, {}, "パステル")),
    (("モノクロ", "白黒", "monochrome", "grayscale", "black and white"),
     EffectSpec(EffectKind.MONOCHROME.value, {}, "モノクロ")),
]

PRESET_EFFECTS: dict[str, list[EffectSpec]] = {
    "魔法っぽく": [
        EffectSpec(EffectKind.GLOW.value, {"color": 0xCC44FF, "intensity": 0.7}, "魔法っぽく"),
        EffectSpec(EffectKind.PULSE.value, {"speed": 1.2, "amplitude": 0.08}, "魔法っぽく"),
        EffectSpec(EffectKind.SPARKLE.value, {"intensity": 0.6}, "魔法っぽく"),
    ],
    "幽霊": [
        EffectSpec(EffectKind.OPACITY.value, {"value": 0.6}, "幽霊"),
        EffectSpec(EffectKind.FLOAT.value, {"speed": 0.3, "amplitude": 0.3}, "幽霊"),
        EffectSpec(EffectKind.GLOW.value, {"color": 0xFFFFFF, "intensity": 0.3}, "幽霊"),
    ],
    "サイバー": [
        EffectSpec(EffectKind.GLOW.value, {"color": 0x00FFAA, "intensity": 0.8}, "サイバー"),
        EffectSpec(EffectKind.MATERIAL.value, {"metalness": 0.8, "roughness": 0.1}, "サイバー"),
        EffectSpec(EffectKind.SPIN.value, {"speed": 1.0, "axis": "y"}, "サイバー"),
    ],
    "夢みたい": [
        EffectSpec(EffectKind.OPACITY.value, {"value": 0.7}, "夢みたい"),
        EffectSpec(EffectKind.FLOAT.value, {"speed": 0.4, "amplitude": 0.4}, "夢みたい"),
        EffectSpec(EffectKind.RAINBOW.value, {"speed": 0.2}, "夢みたい"),
    ],
}

_PRESET_ALIASES: dict[str, tuple[str, ...]] = {
    "魔法っぽく": ("魔法っぽく", "魔法みたい", "magical"),
    "幽霊": ("幽霊", "ゴースト", "ghostly"),
    "サイバー": ("サイバー", "cyber"),
    "夢みたい": ("夢みたい", "夢のよう", "dreamy"),
}

# ── Chroma key ───────────────────────────────────────────────

_CHROMA_KEYWORDS = (
    "クロマキー", "グリーンバック", "ブルーバック", "背景を透過", "背景透過",
    "背景を透明", "背景透明", "背景を消", "背景消", "背景抜",
    "remove background", "transparent background", "chroma key", "green screen",
)
_CHROMA_BACKGROUND = re.compile(r"背景.*(透過|透明|消|なくして)")
_HEX_COLOR = re.compile(r"#([0-9a-fA-F]{6})")

_CHROMA_COLORS: list[tuple[tuple[str, ...], int]] = [
    (("白", "ホワイト", "しろ", "white"), 0xFFFFFF),
    (("黒", "ブラック", "くろ", "black"), 0x000000),
    (("緑", "グリーン", "みどり", "green"), 0x00FF00),
    (("青", "ブルー", "あお", "blue"), 0x0000FF),
    (("赤", "レッド", "あか", "red"), 0xFF0000),
    (("黄", "イエロー", "きいろ", "yellow"), 0xFFFF00),
    (("ピンク", "pink"), 0xFFC0CB),
    (("オレンジ", "orange"), 0xFF8800),
]

_CHROMA_THRESHOLDS: dict[int, float] = {
    0xFFFFFF: 0.22,
    0x000000: 0.24,
    0x00FF00: 0.32,
    0x0000FF: 0.30,
}
CHROMA_DEFAULT_THRESHOLD = 0.28
CHROMA_SMOOTHING = 0.1


def requires_chroma_key(text: str) -> bool:
    lowered = text.lower()
    if any(k in lowered for k in _CHROMA_KEYWORDS):
        return True
    return _CHROMA_BACKGROUND.search(text) is not None


def detect_chroma_key_color(text: str) -> int:
    m = _HEX_COLOR.search(text)
    if m:
        return int(m.group(1), 16)
    lowered = text.lower()
    for tokens, value in _CHROMA_COLORS:
        if any(token in lowered for token in tokens):
            return value
    return 0xFFFFFF


def chroma_key_config(text: str) -> dict:
    color = detect_chroma_key_color(text)
    return {
        "color": color,
        "threshold": _CHROMA_THRESHOLDS.get(color, CHROMA_DEFAULT_THRESHOLD),
        "smoothing": CHROMA_SMOOTHING,
    }


# ── Parsing ──────────────────────────────────────────────────

def _copy(spec: EffectSpec) -> EffectSpec:
    return EffectSpec(spec.kind, dict(spec.params), spec.label)


def parse_effects(text: str) -> list[EffectSpec]:
    """Effects named in *text*, at most one per kind, presets expanded."""
    remaining = text.lower()
    found: list[EffectSpec] = []
    seen: set[str] = set()

    def _add(spec: EffectSpec) -> None:
        if spec.kind not in seen:
            seen.add(spec.kind)
            found.append(_copy(spec))

    for name, aliases in _PRESET_ALIASES.items():
        hit = next((a for a in aliases if a in remaining), None)
        if hit:
            remaining = remaining.replace(hit, " ")
            for spec in PRESET_EFFECTS[name]:
                _add(spec)

    if requires_chroma_key(text):
        _add(EffectSpec(EffectKind.CHROMA_KEY.value, chroma_key_config(text), "chroma_key"))
        for keyword in _CHROMA_KEYWORDS:
            remaining = remaining.replace(keyword, " ")

    for keywords, spec in EFFECT_KEYWORDS:
        hit = next((k for k in keywords if _keyword_in(remaining, k)), None)
        if hit:
            remaining = remaining.replace(hit, " ")
            _add(spec)
    return found


def strip_effect_keywords(text: str) -> str:
    """*text* with every effect, preset and chroma keyword blanked out.

    Attribute parsing runs on the result so "白黒" or "金属質" are not read
    as color words.
    """
    stripped = text
    words = [a for aliases in _PRESET_ALIASES.values() for a in aliases]
    words += list(_CHROMA_KEYWORDS)
    words += [k for keywords, _ in EFFECT_KEYWORDS for k in keywords if not k.isascii()]
    for word in sorted(words, key=len, reverse=True):
        stripped = stripped.replace(word, " ")
    if requires_chroma_key(text):
        stripped = _CHROMA_BACKGROUND.sub(" ", stripped)
    return stripped


def _keyword_in(text: str, keyword: str) -> bool:
    if keyword.isascii():
        return mentions_any(text, [keyword])
    return keyword in text


# ── Prompt themes ────────────────────────────────────────────

_THEMES: list[tuple[tuple[str, ...], str]] = [
    (("ユニコーン", "unicorn", "魔法", "magic", "魔女", "witch", "wizard", "fairy", "妖精"), "魔法っぽく"),
    (("ドラゴン", "dragon", "宇宙", "space", "星", "star"), "宇宙"),
    (("幽霊", "ghost", "精霊", "spirit"), "幽霊"),
    (("ロボット", "robot", "サイバー", "cyber", "未来", "future"), "サイバー"),
    (("猫", "cat", "犬", "dog", "鳥", "bird"), "きらめ"),
    (("花", "flower", "桜", "cherry", "自然", "nature"), "パステル"),
]


def auto_effect_theme(prompt: str) -> Optional[str]:
    """Name of the effect theme a generation prompt suggests, if any."""
    if not prompt:
        return None
    for words, theme in _THEMES:
        if mentions_any(prompt, words):
            return theme
    return None


def auto_effects_from_prompt(prompt: str) -> list[EffectSpec]:
    theme = auto_effect_theme(prompt)
    if theme is None:
        return []
    return parse_effects(theme)
