"""Shared value types for the command engine.

Everything that crosses the classify → resolve → mutate boundary is a
plain dataclass or a ``str`` enum so it can be logged and serialised
without special handling.  Errors travel as :class:`ErrorCode` values inside
these results, never as exceptions.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

from .scene_node import SceneNode, Vector3


class SourceKind(str, Enum):
    GENERATED_IMAGE = "generated_image"
    GENERATED_VIDEO = "generated_video"
    GENERATED_MODEL = "generated_model"
    IMPORTED_FILE = "imported_file"

    @property
    def is_generated(self) -> bool:
        return self is not SourceKind.IMPORTED_FILE


class IntentType(str, Enum):
    GENERATE = "generate"
    MODIFY = "modify"
    DELETE = "delete"
    SELECT = "select"
    IMPORT = "import"
    EMPTY = "empty"


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class ErrorCode(str, Enum):
    NO_TARGET_FOUND = "no_target_found"
    UNSUPPORTED_MATERIAL_PROPERTY = "unsupported_material_property"
    INVALID_ORDINAL_INDEX = "invalid_ordinal_index"
    GENERATION_FAILED = "generation_failed"
    NO_APPLICABLE_ATTRIBUTES = "no_applicable_attributes"
    FILE_REQUIRED = "file_required"
    INVALID_EFFECT_PARAMS = "invalid_effect_params"


@dataclass
class EffectSpec:
    """One requested effect: its kind value plus kind-specific parameters."""
    kind: str
    params: dict = field(default_factory=dict)
    label: str = ""


@dataclass
class AttributeDeltas:
    color: Optional[int] = None
    scale: Optional[float] = None
    rotation: Optional[float] = None
    translation: Optional[Vector3] = None
    opacity: Optional[float] = None
    flip: bool = False
    effects: list[EffectSpec] = field(default_factory=list)

    def is_empty(self) -> bool:
        return (
            self.color is None
            and self.scale is None
            and self.rotation is None
            and self.translation is None
            and self.opacity is None
            and not self.flip
            and not self.effects
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ParsedCommand:
    text: str
    intent_type: IntentType
    media_type: MediaType = MediaType.IMAGE
    confidence: float = 0.0
    needs_target: bool = False
    requires_confirmation: bool = False
    has_explicit_target: bool = False
    delete_all: bool = False
    rule: str = ""
    detected_keyword: str = ""
    attribute_deltas: Optional[AttributeDeltas] = None
    position: Optional[Vector3] = None
    size: Optional[float] = None


@dataclass
class SceneObjectRecord:
    id: str
    node: SceneNode
    source_kind: SourceKind
    original_prompt: str
    keyword_hints: set[str] = field(default_factory=set)
    created_at: float = 0.0
    last_modified: Optional[float] = None
    modification_history: list[dict] = field(default_factory=list)
    file_name: Optional[str] = None
    import_order: Optional[int] = None
    model_name: Optional[str] = None
    asset_url: Optional[str] = None

    @property
    def recency(self) -> float:
        return self.last_modified if self.last_modified is not None else self.created_at

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_kind": self.source_kind.value,
            "prompt": self.original_prompt,
            "file_name": self.file_name,
            "import_order": self.import_order,
            "model_name": self.model_name,
            "asset_url": self.asset_url,
            "created_at": self.created_at,
            "last_modified": self.last_modified,
            "modifications": len(self.modification_history),
        }


@dataclass
class Resolution:
    record: Optional[SceneObjectRecord] = None
    step: str = ""
    error: Optional[ErrorCode] = None
    candidates: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.record is not None


@dataclass
class MutationResult:
    applied: bool
    summary: dict[str, Any] = field(default_factory=dict)
    skipped: dict[str, ErrorCode] = field(default_factory=dict)


@dataclass
class EffectOutcome:
    applied: bool
    effect_id: str = ""
    replaced: bool = False
    error: Optional[ErrorCode] = None
