"""Intent classifier — free text → ParsedCommand.

Deterministic and keyword-based.  An ordered list of named rules is
evaluated top to bottom and the first rule whose predicate matches builds the
result.  Media type (image/video) is guessed independently.

Rule order:
    1. delete words (always need a target, always confirm)
    2. select words / import requests
    3. explicit generation verbs
    4. explicit target references (ordinals, "〜した", demonstratives)
    5. selection bound + not a fresh-creation phrase
    6. generic modification vocabulary
    7. fallback: generate

Ambiguous text lands on "generate" rather than on a destructive branch.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from . import config
from .attribute_parser import parse_attribute_deltas, parse_position, parse_size
from .effect_catalog import parse_effects, requires_chroma_key
from .models import AttributeDeltas, IntentType, MediaType, ParsedCommand

logger = logging.getLogger(__name__)

# ── Vocabulary ───────────────────────────────────────────────

DELETE_PATTERN = re.compile(
    r"削除|消去|消して|消す|取り除|除去|\b(?:delete|remove|clear|erase)\b",
    re.IGNORECASE,
)
DELETE_ALL_PATTERN = re.compile(r"全部|すべて|全て|\b(?:all|everything)\b", re.IGNORECASE)

SELECT_PATTERN = re.compile(r"選択|選んで|\b(?:select|pick)\b", re.IGNORECASE)

IMPORT_PATTERN = re.compile(
    r"(?:インポート|取り込|読み込|アップロード)(?:して|んで|む|みたい|する|したい)"
    r"|ファイルを(?:開|選)"
    r"|\bimport\b(?!ed)|\bupload\b(?!ed)|\bopen\s+(?:a\s+)?file\b",
    re.IGNORECASE,
)

GENERATE_PATTERN = re.compile(
    r"作って|作る|作成(?!した)|生成(?!した)|描いて|描く|書いて"
    r"|\b(?:create|generate|draw)\b"
    r"|\bmake\s+(?:a|an|me|some|new|another)\b",
    re.IGNORECASE,
)

TARGET_REFERENCE_PATTERNS: list[re.Pattern] = [
    # ordinals
    re.compile(r"(?:\d+|[一二三四五六七八九十]+)(?:番目|つ目|個目)|最初の|最初に|初回|最後に|最終"),
    re.compile(r"\b(?:the\s+)?\d+(?:st|nd|rd|th)\b|\b(?:first|second|third|fourth|fifth)\s+one\b"
               r"|\bthe\s+(?:first|second|third|fourth|fifth)\b",
               re.IGNORECASE),
    # "the X I imported / generated"
    re.compile(r"(?:インポート|取り込|アップロード|読み込)(?:した|んだ)|(?:生成|作成)した|作った|描いた"),
    re.compile(r"\bI\s+(?:imported|uploaded|generated|created|made|drew)\b", re.IGNORECASE),
    # demonstratives pointing at earlier objects
    re.compile(r"さっき|先ほど|直前|この前|前回|前の|最後の|最新の|(?:その|あの|この)(?!よう|まま)|それ|あれ|これ"),
    re.compile(r"\b(?:that one|this one|the (?:previous|last|latest) one|it)\b", re.IGNORECASE),
]

FRESH_CREATION_PATTERN = re.compile(
    r"新しい|新規|もう一[つ枚個]|別の|\b(?:another|new)\b", re.IGNORECASE,
)

MODIFY_PATTERNS: list[re.Pattern] = [
    re.compile(r"移動|動かして|変更|変えて|修正|調整|回転|回して|反転|ミラー|傾け|向きを変え"
               r"|左右(?:逆|反転)|上下(?:逆|反転)|逆さ|ひっくり返"),
    re.compile(r"大きく|小さく|拡大|縮小|透明|[くに]して|[くに]する"),
    re.compile(r"光らせ|光って|浮かせ|浮かべ|漂わせ|っぽく|みたいに|キラキラ|きらきら|ふわふわ|くるくる"),
    re.compile(r"を.*色|を.*サイズ|を.*に.*して"),
    re.compile(r"\b(?:move|change|modify|edit|rotate|turn|flip|mirror|scale|resize|enlarge|shrink"
               r"|recolou?r|paint|bigger|smaller|transparent|opaque)\b"
               r"|\bmake\s+it\b",
               re.IGNORECASE),
]

VIDEO_PATTERN = re.compile(r"動画|ビデオ|映像|ムービー|\b(?:video|movie|clip)\b", re.IGNORECASE)
MOTION_PATTERN = re.compile(r"アニメーション|動く|\b(?:animated|animation|motion|moving)\b", re.IGNORECASE)
IMAGE_PATTERN = re.compile(
    r"画像|写真|絵|イラスト|イメージ|\b(?:image|picture|photo|illustration)\b", re.IGNORECASE,
)


def _search(pattern: re.Pattern, text: str) -> Optional[str]:
    m = pattern.search(text)
    return m.group(0) if m else None


def _search_any(patterns: list[re.Pattern], text: str) -> Optional[str]:
    for pattern in patterns:
        hit = _search(pattern, text)
        if hit:
            return hit
    return None


# ── Media type ───────────────────────────────────────────────

def detect_media_type(text: str) -> tuple[MediaType, float]:
    """Best-effort image/video guess with its confidence."""
    if VIDEO_PATTERN.search(text):
        return MediaType.VIDEO, 0.8
    if MOTION_PATTERN.search(text) and GENERATE_PATTERN.search(text):
        return MediaType.VIDEO, 0.8
    if IMAGE_PATTERN.search(text):
        return MediaType.IMAGE, 0.8
    return MediaType.IMAGE, 0.6


# ── Rules ────────────────────────────────────────────────────

Predicate = Callable[[str, bool], Optional[str]]
Handler = Callable[[str, bool, str], ParsedCommand]


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    predicate: Predicate
    handler: Handler


def _is_delete(text: str, has_selected: bool) -> Optional[str]:
    if requires_chroma_key(text):
        return None
    return _search(DELETE_PATTERN, text)


def _delete(text: str, has_selected: bool, keyword: str) -> ParsedCommand:
    media, _ = detect_media_type(text)
    return ParsedCommand(
        text=text,
        intent_type=IntentType.DELETE,
        media_type=media,
        confidence=0.9,
        needs_target=True,
        requires_confirmation=True,
        delete_all=DELETE_ALL_PATTERN.search(text) is not None,
        detected_keyword=keyword,
    )


def _is_select(text: str, has_selected: bool) -> Optional[str]:
    return _search(SELECT_PATTERN, text)


def _select(text: str, has_selected: bool, keyword: str) -> ParsedCommand:
    media, _ = detect_media_type(text)
    return ParsedCommand(
        text=text,
        intent_type=IntentType.SELECT,
        media_type=media,
        confidence=0.85,
        needs_target=True,
        detected_keyword=keyword,
    )


def _is_import(text: str, has_selected: bool) -> Optional[str]:
    return _search(IMPORT_PATTERN, text)


def _import(text: str, has_selected: bool, keyword: str) -> ParsedCommand:
    media, _ = detect_media_type(text)
    return ParsedCommand(
        text=text,
        intent_type=IntentType.IMPORT,
        media_type=media,
        confidence=0.85,
        detected_keyword=keyword,
        position=parse_position(text),
        size=parse_size(text, config.DEFAULT_OBJECT_SCALE),
    )


def _effects_only(text: str) -> Optional[AttributeDeltas]:
    effects = parse_effects(text)
    return AttributeDeltas(effects=effects) if effects else None


def _generate(text: str, has_selected: bool, keyword: str) -> ParsedCommand:
    media, confidence = detect_media_type(text)
    return ParsedCommand(
        text=text,
        intent_type=IntentType.GENERATE,
        media_type=media,
        confidence=confidence,
        detected_keyword=keyword,
        attribute_deltas=_effects_only(text),
        position=parse_position(text),
        size=parse_size(text, config.DEFAULT_OBJECT_SCALE),
    )


def _is_generate(text: str, has_selected: bool) -> Optional[str]:
    return _search(GENERATE_PATTERN, text)


def _is_target_reference(text: str, has_selected: bool) -> Optional[str]:
    return _search_any(TARGET_REFERENCE_PATTERNS, text)


def _modify_explicit(text: str, has_selected: bool, keyword: str) -> ParsedCommand:
    media, _ = detect_media_type(text)
    return ParsedCommand(
        text=text,
        intent_type=IntentType.MODIFY,
        media_type=media,
        confidence=0.85,
        needs_target=True,
        has_explicit_target=True,
        detected_keyword=keyword,
        attribute_deltas=parse_attribute_deltas(text),
    )


def _is_bound_to_selection(text: str, has_selected: bool) -> Optional[str]:
    if has_selected and not FRESH_CREATION_PATTERN.search(text):
        return ""
    return None


def _modify_selected(text: str, has_selected: bool, keyword: str) -> ParsedCommand:
    media, _ = detect_media_type(text)
    return ParsedCommand(
        text=text,
        intent_type=IntentType.MODIFY,
        media_type=media,
        confidence=0.75,
        needs_target=False,
        detected_keyword=keyword,
        attribute_deltas=parse_attribute_deltas(text),
    )


def _is_modify(text: str, has_selected: bool) -> Optional[str]:
    return _search_any(MODIFY_PATTERNS, text)


def _modify(text: str, has_selected: bool, keyword: str) -> ParsedCommand:
    media, _ = detect_media_type(text)
    return ParsedCommand(
        text=text,
        intent_type=IntentType.MODIFY,
        media_type=media,
        confidence=0.8,
        needs_target=not has_selected,
        detected_keyword=keyword,
        attribute_deltas=parse_attribute_deltas(text),
    )


def _always(text: str, has_selected: bool) -> Optional[str]:
    return ""


RULES: list[ClassificationRule] = [
    ClassificationRule("delete", _is_delete, _delete),
    ClassificationRule("select", _is_select, _select),
    ClassificationRule("import", _is_import, _import),
    ClassificationRule("generate_verb", _is_generate, _generate),
    ClassificationRule("explicit_target", _is_target_reference, _modify_explicit),
    ClassificationRule("selected_object", _is_bound_to_selection, _modify_selected),
    ClassificationRule("modify_vocabulary", _is_modify, _modify),
    ClassificationRule("default_generate", _always, _generate),
]


# ── Public API ───────────────────────────────────────────────

def classify(text: str, has_selected_object: bool = False) -> ParsedCommand:
    """Classify one user sentence.  Pure: no registry access, no side effects."""
    stripped = (text or "").strip()
    if not stripped:
        return ParsedCommand(text="", intent_type=IntentType.EMPTY, confidence=1.0, rule="empty")

    for rule in RULES:
        keyword = rule.predicate(stripped, has_selected_object)
        if keyword is None:
            continue
        parsed = rule.handler(stripped, has_selected_object, keyword)
        parsed.rule = rule.name
        logger.info(
            "Classified %r → %s/%s (rule=%s, keyword=%r, needs_target=%s, conf=%.2f)",
            stripped[:80], parsed.intent_type.value, parsed.media_type.value,
            rule.name, keyword, parsed.needs_target, parsed.confidence,
        )
        return parsed
    return _generate(stripped, has_selected_object, "")
