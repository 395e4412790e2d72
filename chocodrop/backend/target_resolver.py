"""Target resolver — which existing object does a sentence refer to?

Steps, first match wins:
    1. ordinal phrase            ("2番目にインポートした猫", "2つ目の猫", "the 2nd one I imported")
    2. source + name phrase      ("生成した花", "the flower I generated")
    3. referential phrase        ("さっきの", "the last one", "これ")
    4. plain keyword match       ("花", "flower")

Inside a step the first registry entry that matches wins; there is no global
relevance score.  A miss is returned as a :class:`Resolution` carrying an
error code and the live candidate ids so the UI can ask the user.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .dictionary import (
    MEDIA_BASE_WORDS, match_keyword_with_filename, mentions_any, taxonomy_terms,
)
from .models import ErrorCode, Resolution, SceneObjectRecord, SourceKind
from .object_registry import ObjectRegistry

logger = logging.getLogger(__name__)


@dataclass
class ResolutionContext:
    selected_id: Optional[str] = None


# ── Phrase patterns ──────────────────────────────────────────

_KANJI_NUMERALS = {
    "一": 1, "二": 2, "三": 3, "四": 4, "五": 5,
    "六": 6, "七": 7, "八": 8, "九": 9, "十": 10,
}
_ENGLISH_ORDINALS = {"first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5, "last": -1}

_ORDINAL_JA = r"(?:(\d+|[一二三四五六七八九十])(?:番目|つ目|個目)|(最初|初回)|(最後|最終))"

ORDINAL_IMPORT_JA = re.compile(
    _ORDINAL_JA + r"(?:に|の)?(?:インポート|取り込|アップロード|読み込)(?:した|んだ)(.*)"
)
ORDINAL_IMPORT_EN = re.compile(
    r"\b(?:the\s+)?(?:(\d+)(?:st|nd|rd|th)|(first|second|third|fourth|fifth|last))\s+"
    r"(.*?)\s*(?:that\s+|which\s+)?I\s+(?:imported|uploaded|loaded)\b",
    re.IGNORECASE,
)
# Ordinal over name matches, no import verb ("2番目の猫", "the second cat")
ORDINAL_NAME_JA = re.compile(_ORDINAL_JA + r"の(.+)")
ORDINAL_NAME_EN = re.compile(
    r"\bthe\s+(?:(\d+)(?:st|nd|rd|th)|(first|second|third|fourth|fifth|last))\s+(.+)",
    re.IGNORECASE,
)

SOURCE_NAME_JA = re.compile(
    r"(インポート|取り込|アップロード|読み込|生成|作成|作っ|描い)(?:した|んだ|た)(.+)"
)
SOURCE_NAME_EN = re.compile(
    r"\bthe\s+(.+?)\s+(?:that\s+|which\s+)?I\s+(imported|uploaded|loaded|generated|created|made|drew)\b",
    re.IGNORECASE,
)
_IMPORT_SOURCE_WORDS = ("インポート", "取り込", "アップロード", "読み込", "imported", "uploaded", "loaded")

REFERENTIAL = re.compile(
    r"さっき|先ほど|直前|最近|前回|前の|この前|最後|最新|これ|それ|あれ"
    r"|\b(?:last|previous|latest|recent|before|it|this|that)\b",
    re.IGNORECASE,
)
_PRONOUN_ONLY = re.compile(r"^(?:これ|それ|あれ|it|this|that|this one|that one)?$")
_SELECTION_PRONOUN = re.compile(r"これ|それ|\b(?:it|this)\b", re.IGNORECASE)
_RECENCY = re.compile(
    r"さっき|先ほど|直前|最近|前回|前の|この前|最後|最新|\b(?:last|previous|latest|recent|before)\b",
    re.IGNORECASE,
)
IMPORT_CONTEXT = re.compile(r"インポート|取り込|アップロード|読み込|\b(?:import|upload)", re.IGNORECASE)
GENERATED_CONTEXT = re.compile(r"生成|作っ|作成|描い|\b(?:creat|generat|made|drew)", re.IGNORECASE)

# ── Normalization ────────────────────────────────────────────

_PUNCTUATION = re.compile(r"[。、，,.!?！？「」『』]")
_LEADING_REFERENTIAL = re.compile(
    r"^(?:(?:さっき|先ほど|直前|最近|この前|その|あの|この|前回|前の|最新|最後)\s*(?:の)?"
    r"|(?:last|latest|previous|the|that|this|a|an)\s+)\s*",
    re.IGNORECASE,
)
_POLITE_SUFFIX = re.compile(
    r"(?:してください|して下さい|してね|してよ|してくれ|してくれませんか|してくださいね"
    r"|してくださいよ|お願いします?|お願い|頼む|please)\s*$",
    re.IGNORECASE,
)
_TRAILING_VERB = re.compile(
    r"(?:を)?(?:左右反転|反転|削除|消して|消す|変更|変えて|塗り替えて|塗って|回転|回して|移動"
    r"|動かして|拡大|縮小|大きく|小さく|並べ|寄せて|整列|選択|選んで|指定|生成|作って|描いて"
    r"|アップロード|アップして|読み込んで|読み込んだ|開いて|閉じて|置いて|配置して|貼り付けて"
    r"|\bflip|\bdelete|\bremove|\bchange|\bmake|\bturn|\brotate|\bmove|\bscale|\bresize"
    r"|\bgenerate|\bcreate|\bselect).*$",
    re.IGNORECASE,
)
_LEADING_VERB_EN = re.compile(
    r"^(?:please\s+)?(?:delete|remove|erase|clear|make|turn|paint|colou?r|rotate|move|scale"
    r"|resize|flip|change|select|pick|modify|edit)\s+(?:the\s+)?",
    re.IGNORECASE,
)
_TRAILING_MODIFIER_EN = re.compile(
    r"(?<=\S)\s+(?:red|blue|green|yellow|purple|orange|white|black|gr[ae]y|pink|brown|silver|gold"
    r"|bigger|smaller|larger|transparent|opaque|semi-transparent|translucent|glow|glowing|spin"
    r"|float|to|by|into|with|at|around)\b.*$",
    re.IGNORECASE,
)
_TRAILING_PARTICLE = re.compile(r"(?:を|に|へ|で|から|まで|と|や|って|は|が|の)$")
_MEDIA_SUFFIX = re.compile(
    r"\s*(?:の)?(?:画像|写真|イメージ|動画|ビデオ|映像|image|photo|picture|video)$", re.IGNORECASE,
)
_FILLER = re.compile(r"^(?:one|ones|object|objects|thing|file|もの|やつ|の)$", re.IGNORECASE)


def normalize_target_phrase(phrase: str) -> str:
    """Reduce a sentence to the noun phrase naming its target."""
    text = _PUNCTUATION.sub(" ", phrase or "").strip().lower()

    previous = None
    while previous != text:
        previous = text
        text = _LEADING_REFERENTIAL.sub("", text).strip()

    text = _POLITE_SUFFIX.sub("", text).strip()
    text = _LEADING_VERB_EN.sub("", text).strip()
    text = _TRAILING_MODIFIER_EN.sub("", text).strip()
    if "を" in text:
        text = text.split("を", 1)[0]
    text = _TRAILING_VERB.sub("", text).strip()

    # "もの" is a filler word, not "も" + の
    previous = None
    while previous != text and not _FILLER.match(text):
        previous = text
        text = _TRAILING_PARTICLE.sub("", text).strip()

    # A bare media word ("画像", "the video") names no particular object
    text = _MEDIA_SUFFIX.sub("", text).strip()
    if _FILLER.match(text):
        text = ""
    return re.sub(r"\s+", " ", text).strip()


def is_referential(phrase: str) -> bool:
    return REFERENTIAL.search(phrase or "") is not None


# ── Matching ─────────────────────────────────────────────────

def _searchable_text(record: SceneObjectRecord) -> str:
    parts = [record.original_prompt.lower()]
    if record.file_name:
        parts.append(record.file_name.lower())
    parts.extend(sorted(record.keyword_hints))
    return " ".join(parts)


def matches_object(record: SceneObjectRecord, target: str) -> bool:
    """Does *target* (already normalized) name *record*?"""
    if not target:
        return False
    target = target.lower()
    reversible = len(target) > 1 or not target.isascii()
    media_words = {w for words in MEDIA_BASE_WORDS.values() for w in words}

    for hint in record.keyword_hints:
        if hint in media_words:
            continue
        if hint in target or (reversible and target in hint):
            return True

    haystack = _searchable_text(record)
    for jp, aliases in taxonomy_terms(target):
        if jp in haystack or mentions_any(haystack, aliases):
            return True

    prompt = record.original_prompt.lower()
    if prompt and (prompt in target or (reversible and target in prompt)):
        return True

    return match_keyword_with_filename(target, record.file_name)


# ── Steps ────────────────────────────────────────────────────

def _ordinal_value(number: Optional[str], word: Optional[str], last: bool = False) -> int:
    if last:
        return -1
    if number:
        return int(number) if number.isdigit() else _KANJI_NUMERALS[number]
    return _ENGLISH_ORDINALS.get((word or "first").lower(), 1)


def _parse_ordinal(phrase: str, japanese: re.Pattern,
                   english: re.Pattern) -> Optional[tuple[int, str]]:
    m = japanese.search(phrase)
    if m:
        return _ordinal_value(m.group(1), None, last=bool(m.group(3))), m.group(4)
    m = english.search(phrase)
    if m:
        return _ordinal_value(m.group(1), m.group(2)), m.group(3)
    return None


def _by_ordinal(phrase: str, registry: ObjectRegistry) -> Optional[Resolution]:
    parsed = _parse_ordinal(phrase, ORDINAL_IMPORT_JA, ORDINAL_IMPORT_EN)
    if parsed:
        index, name = parsed
        target = normalize_target_phrase(name)
        candidates = registry.imported()
        if target:
            candidates = [r for r in candidates if matches_object(r, target)]
    else:
        parsed = _parse_ordinal(phrase, ORDINAL_NAME_JA, ORDINAL_NAME_EN)
        if not parsed:
            return None
        index, name = parsed
        target = normalize_target_phrase(name)
        # "the last one" with no noun is a recency reference, not an ordinal
        if not target:
            return None
        candidates = registry.all()
        if GENERATED_CONTEXT.search(phrase):
            candidates = [r for r in candidates if r.source_kind.is_generated]
        candidates = [r for r in candidates if matches_object(r, target)]
        if not candidates:
            return None

    position = index - 1 if index > 0 else len(candidates) + index
    if 0 <= position < len(candidates):
        return Resolution(record=candidates[position], step="ordinal")
    logger.info("Ordinal %d out of range (%d candidates for %r)", index, len(candidates), target)
    return Resolution(
        step="ordinal",
        error=ErrorCode.INVALID_ORDINAL_INDEX,
        candidates=[r.id for r in candidates],
    )


def _by_source(phrase: str, registry: ObjectRegistry) -> Optional[Resolution]:
    m = SOURCE_NAME_EN.search(phrase)
    if m:
        name, verb = m.group(1), m.group(2)
    else:
        m = SOURCE_NAME_JA.search(phrase)
        if not m:
            return None
        verb, name = m.group(1), m.group(2)

    imported = verb.lower() in _IMPORT_SOURCE_WORDS
    candidates = [
        r for r in registry.all()
        if (r.source_kind is SourceKind.IMPORTED_FILE) == imported
    ]
    target = normalize_target_phrase(name)
    if not target:
        if not candidates:
            return None
        latest = max(candidates, key=lambda r: r.recency)
        return Resolution(record=latest, step="source")
    for record in candidates:
        if matches_object(record, target):
            return Resolution(record=record, step="source")
    return None


def _by_reference(phrase: str, registry: ObjectRegistry,
                  context: ResolutionContext) -> Optional[Resolution]:
    if not is_referential(phrase):
        return None
    target = normalize_target_phrase(phrase)

    bound = _SELECTION_PRONOUN.search(phrase) and not _RECENCY.search(phrase)
    if bound and _PRONOUN_ONLY.match(target) and context.selected_id:
        selected = registry.get(context.selected_id)
        if selected is not None:
            return Resolution(record=selected, step="reference")

    candidates = registry.all()
    if IMPORT_CONTEXT.search(phrase):
        filtered = [r for r in candidates if r.source_kind is SourceKind.IMPORTED_FILE]
    elif GENERATED_CONTEXT.search(phrase):
        filtered = [r for r in candidates if r.source_kind.is_generated]
    else:
        filtered = candidates
    candidates = filtered or candidates
    if not candidates:
        return None

    candidates = sorted(candidates, key=lambda r: r.recency, reverse=True)
    if _PRONOUN_ONLY.match(target):
        return Resolution(record=candidates[0], step="reference")
    for record in candidates:
        if matches_object(record, target):
            return Resolution(record=record, step="reference")
    return None


def _by_keyword(phrase: str, registry: ObjectRegistry) -> Optional[Resolution]:
    target = normalize_target_phrase(phrase)
    if not target:
        return None
    for record in registry.all():
        if matches_object(record, target):
            return Resolution(record=record, step="keyword")
    return None


# ── Public API ───────────────────────────────────────────────

def resolve_target(phrase: str, registry: ObjectRegistry,
                   context: Optional[ResolutionContext] = None) -> Resolution:
    """Run the resolution steps in priority order."""
    context = context or ResolutionContext()
    steps = (
        lambda: _by_ordinal(phrase, registry),
        lambda: _by_source(phrase, registry),
        lambda: _by_reference(phrase, registry, context),
        lambda: _by_keyword(phrase, registry),
    )
    for step in steps:
        resolution = step()
        if resolution is None:
            continue
        if resolution.found:
            logger.info("Resolved %r → %s (step=%s)", phrase[:80], resolution.record.id, resolution.step)
        else:
            logger.info("Resolution of %r failed at step %s: %s",
                        phrase[:80], resolution.step, resolution.error.value)
        return resolution

    logger.info("No target for %r (%d live objects)", phrase[:80], len(registry))
    return Resolution(
        step="none",
        error=ErrorCode.NO_TARGET_FOUND,
        candidates=[r.id for r in registry.all()],
    )


def resolve(phrase: str, registry: ObjectRegistry,
            context: Optional[ResolutionContext] = None) -> Optional[SceneObjectRecord]:
    """Record for *phrase*, or None when nothing matches."""
    return resolve_target(phrase, registry, context).record
