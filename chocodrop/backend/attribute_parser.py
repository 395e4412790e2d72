"""Attribute delta parsing.

Extracts color, scale, rotation, translation, opacity, flip and effects from
a modification sentence, plus placement/size hints for new objects.  All
functions are pure; nothing here needs a scene.

Japanese is the primary vocabulary, English words are accepted alongside.
"""

import math
import re
from typing import Optional

from .effect_catalog import parse_effects, requires_chroma_key, strip_effect_keywords
from .models import AttributeDeltas
from .scene_node import Vector3

# ── Colors ───────────────────────────────────────────────────

COLOR_MAP: list[tuple[tuple[str, ...], int]] = [
    (("オレンジ色", "オレンジ", "橙色", "橙", "orange"), 0xFF8800),
    (("ピンク色", "ピンク", "pink"), 0xFFC0CB),
    (("グレー", "灰色", "灰", "gray", "grey"), 0x808080),
    (("黄色", "黄", "yellow"), 0xFFFF00),
    (("赤色", "赤", "red"), 0xFF0000),
    (("青色", "青", "blue"), 0x0000FF),
    (("緑色", "緑", "green"), 0x00FF00),
    (("紫色", "紫", "purple"), 0xFF00FF),
    (("白色", "白", "white"), 0xFFFFFF),
    (("黒色", "黒", "black"), 0x000000),
    (("茶色", "茶", "brown"), 0x8B4513),
    (("銀色", "銀", "silver"), 0xC0C0C0),
    (("金色", "金", "gold"), 0xFFD700),
]

_HEX_COLOR = re.compile(r"#([0-9a-fA-F]{6})\b")

# ── Scale ────────────────────────────────────────────────────

_SCALE_FACTOR = re.compile(r"(\d+(?:\.\d+)?)\s*(?:倍|x\b|times\b)", re.IGNORECASE)
_SCALE_UP = re.compile(r"大きく|拡大|\b(?:bigger|larger|enlarge)\b", re.IGNORECASE)
_SCALE_DOWN = re.compile(r"小さく|縮小|\b(?:smaller|shrink)\b", re.IGNORECASE)
SCALE_UP_FACTOR = 1.5
SCALE_DOWN_FACTOR = 0.7

# ── Movement ─────────────────────────────────────────────────

_MOVE_TRIGGER = re.compile(r"移動|動か|へ|\bmove\b", re.IGNORECASE)
_DISTANCE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:メートル|m\b)")
_SLIGHTLY = re.compile(r"少し|ちょっと|\b(?:slightly|a little|a bit)\b", re.IGNORECASE)
_A_LOT = re.compile(r"大きく|たくさん|\b(?:a lot|far)\b", re.IGNORECASE)

# (pattern, axis, magnitude)
_DIRECTIONS: list[tuple[re.Pattern, str, float]] = [
    (re.compile(r"右|\bright\b", re.IGNORECASE), "x", 5.0),
    (re.compile(r"左|\bleft\b", re.IGNORECASE), "x", -5.0),
    (re.compile(r"上|\bup\b", re.IGNORECASE), "y", 3.0),
    (re.compile(r"下|\bdown\b", re.IGNORECASE), "y", -3.0),
    (re.compile(r"手前|前へ|前に|近く|\b(?:forward|closer)\b", re.IGNORECASE), "z", 3.0),
    (re.compile(r"後ろ|奥|遠く|\b(?:back|backward|away)\b", re.IGNORECASE), "z", -3.0),
]

# ── Rotation / opacity / flip ────────────────────────────────

_ROTATE = re.compile(r"回転|回して|回す|\b(?:rotate|turn)\b", re.IGNORECASE)
_DEGREES = re.compile(r"(\d+(?:\.\d+)?)\s*(?:度|°|degrees?\b)", re.IGNORECASE)
_COUNTER_CLOCKWISE = re.compile(r"反時計|左回り|\bcounter-?clockwise\b", re.IGNORECASE)
DEFAULT_ROTATION = math.pi / 4

_OPACITY: list[tuple[re.Pattern, float]] = [
    (re.compile(r"半透明|\b(?:semi-transparent|translucent)\b", re.IGNORECASE), 0.5),
    (re.compile(r"不透明|濃く|\bopaque\b", re.IGNORECASE), 1.0),
    (re.compile(r"透明|\btransparent\b", re.IGNORECASE), 0.3),
]

_FLIP = re.compile(r"左右反転|反転|ひっくり返|ミラー|\b(?:flip|mirror)\b", re.IGNORECASE)

# ── Placement for new objects ────────────────────────────────

DEFAULT_POSITION = (0.0, 5.0, 10.0)

_PLACEMENTS: list[tuple[re.Pattern, tuple[float, float, float]]] = [
    (re.compile(r"左下|\bbottom left\b", re.IGNORECASE), (-8.0, 0.0, 10.0)),
    (re.compile(r"右上|\btop right\b", re.IGNORECASE), (5.0, 4.0, 12.0)),
    (re.compile(r"左上|\btop left\b", re.IGNORECASE), (-8.0, 4.0, 15.0)),
    (re.compile(r"右下|\bbottom right\b", re.IGNORECASE), (8.0, 0.0, 10.0)),
    (re.compile(r"中央|真ん中|正面|\b(?:center|centre|middle)\b", re.IGNORECASE), (0.0, 3.0, 12.0)),
    (re.compile(r"天空|空に|\bsky\b", re.IGNORECASE), (0.0, 20.0, 10.0)),
    (re.compile(r"地面|足元|\bground\b", re.IGNORECASE), (0.0, 1.0, 8.0)),
]

_SIZE_LARGE = re.compile(r"大きな|大きい|\b(?:big|large|huge)\b", re.IGNORECASE)
_SIZE_SMALL = re.compile(r"小さな|小さい|\b(?:small|tiny|little)\b", re.IGNORECASE)


# ── Parsers ──────────────────────────────────────────────────

def parse_color(text: str) -> Optional[int]:
    m = _HEX_COLOR.search(text)
    if m:
        return int(m.group(1), 16)
    lowered = text.lower()
    for words, value in COLOR_MAP:
        for word in words:
            if word.isascii():
                if re.search(rf"\b{word}\b", lowered):
                    return value
            elif word in text:
                return value
    return None


def parse_scale(text: str, moving: bool = False) -> Optional[float]:
    m = _SCALE_FACTOR.search(text)
    if m:
        return float(m.group(1))
    if _SCALE_UP.search(text) and not (moving and "大きく" in text and "拡大" not in text):
        return SCALE_UP_FACTOR
    if _SCALE_DOWN.search(text):
        return SCALE_DOWN_FACTOR
    return None


def parse_translation(text: str) -> Optional[Vector3]:
    """Offset for a movement sentence, or None when no direction is given."""
    if not _MOVE_TRIGGER.search(text):
        return None
    offset = {"x": 0.0, "y": 0.0, "z": 0.0}
    found = False
    for pattern, axis, magnitude in _DIRECTIONS:
        if offset[axis] == 0.0 and pattern.search(text):
            offset[axis] = magnitude
            found = True
    if not found:
        return None

    m = _DISTANCE.search(text)
    if m:
        distance = float(m.group(1))
        for axis in offset:
            if offset[axis]:
                offset[axis] = math.copysign(distance, offset[axis])
    if _SLIGHTLY.search(text):
        factor = 0.5
    elif _A_LOT.search(text):
        factor = 2.0
    else:
        factor = 1.0
    return Vector3(offset["x"] * factor, offset["y"] * factor, offset["z"] * factor)


def parse_rotation(text: str) -> Optional[float]:
    if not _ROTATE.search(text):
        return None
    m = _DEGREES.search(text)
    angle = math.radians(float(m.group(1))) if m else DEFAULT_ROTATION
    if _COUNTER_CLOCKWISE.search(text):
        angle = -angle
    return angle


def parse_opacity(text: str) -> Optional[float]:
    for pattern, value in _OPACITY:
        if pattern.search(text):
            return value
    return None


def parse_attribute_deltas(text: str) -> AttributeDeltas:
    """Everything a modification sentence asks to change."""
    effects = parse_effects(text)
    plain = strip_effect_keywords(text)
    translation = parse_translation(plain)
    # Color words in a chroma request name the key color, not a new tint
    chroma = requires_chroma_key(text)
    return AttributeDeltas(
        color=None if chroma else parse_color(plain),
        scale=parse_scale(plain, moving=translation is not None),
        rotation=parse_rotation(plain),
        translation=translation,
        opacity=None if chroma else parse_opacity(plain),
        flip=bool(_FLIP.search(plain)),
        effects=effects,
    )


def parse_position(text: str) -> Vector3:
    """Where a freshly generated object should be placed."""
    for pattern, (x, y, z) in _PLACEMENTS:
        if pattern.search(text):
            return Vector3(x, y, z)
    x, y, z = DEFAULT_POSITION
    if re.search(r"右|\bright\b", text, re.IGNORECASE):
        x = 5.0
    elif re.search(r"左|\bleft\b", text, re.IGNORECASE):
        x = -5.0
    if re.search(r"上|\babove\b", text, re.IGNORECASE):
        y = 8.0
    elif re.search(r"下|\bbelow\b", text, re.IGNORECASE):
        y = 2.0
    if re.search(r"手前|近く|\bnear\b", text, re.IGNORECASE):
        z = 5.0
    elif re.search(r"奥|遠く|\bfar\b", text, re.IGNORECASE):
        z = 20.0
    return Vector3(x, y, z)


def parse_size(text: str, default: float = 1.0) -> float:
    if _SIZE_LARGE.search(text):
        return 2.0
    if _SIZE_SMALL.search(text):
        return 0.5
    return default
