"""Command processor — runs one user sentence end to end.

classify → resolve → act, strictly in that order; scene changes are serialized.
Destructive commands stop at ``needs_confirmation`` and only run once the
caller confirms the pending job.  Unresolved targets stop at
``needs_disambiguation`` with the live candidates; no other object is
mutated in their place.

Usage::

    processor = CommandProcessor(registry, effects, GenerationClient(url))
    outcome = await processor.submit("2番目にインポートした猫を削除")
    processor.confirm(outcome.job_id)
"""

import asyncio
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from . import config
from .effect_catalog import auto_effects_from_prompt
from .effects import EffectKind, EffectRegistry, effect_id_for
from .intent_classifier import classify
from .models import (
    AttributeDeltas, ErrorCode, IntentType, MediaType, ParsedCommand,
    Resolution, SceneObjectRecord, SourceKind,
)
from .mutation_engine import apply_mutation
from .object_registry import ObjectRegistry
from .scene_node import Material, SceneNode, Vector3
from .target_resolver import ResolutionContext, normalize_target_phrase, resolve_target
from ..generation_client import GenerationClient, GenerationResult

logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    NEEDS_CONFIRMATION = "needs_confirmation"
    NEEDS_DISAMBIGUATION = "needs_disambiguation"
    NEEDS_FILE = "needs_file"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EMPTY = "empty"


@dataclass
class CommandOutcome:
    job_id: str
    status: OutcomeStatus
    command: str
    intent: str = ""
    message: str = ""
    object_id: Optional[str] = None
    error: Optional[ErrorCode] = None
    disambiguation: Optional[dict] = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class PendingCommand:
    job_id: str
    parsed: ParsedCommand
    target_ids: list[str]
    created_at: float


def _label(record: SceneObjectRecord) -> str:
    return record.file_name or record.original_prompt or record.id


class CommandProcessor:
    """Owns the current selection, pending confirmations and command history."""

    def __init__(self, registry: ObjectRegistry, effects: EffectRegistry,
                 generation_client: Optional[GenerationClient] = None,
                 clock: Callable[[], float] = time.time,
                 history_size: int = config.COMMAND_HISTORY_SIZE,
                 auto_effects: bool = config.AUTO_EFFECTS,
                 feedback_seconds: float = config.RECOGNITION_FEEDBACK_SECONDS):
        self.registry = registry
        self.effects = effects
        self.generation_client = generation_client
        self.auto_effects = auto_effects
        self.feedback_seconds = feedback_seconds
        self.selected_id: Optional[str] = None
        self.history: deque[dict] = deque(maxlen=history_size)
        self._pending: dict[str, PendingCommand] = {}
        self._clock = clock
        self._lock = asyncio.Lock()
        self._handlers = {
            IntentType.DELETE: self._handle_delete,
            IntentType.MODIFY: self._handle_modify,
            IntentType.SELECT: self._handle_select,
            IntentType.IMPORT: self._handle_import,
        }

    # ── Selection ────────────────────────────────────────────

    def select(self, object_id: Optional[str]) -> bool:
        if object_id is None:
            self.selected_id = None
            return True
        if not self.registry.contains(object_id):
            return False
        self.selected_id = object_id
        return True

    @property
    def selected(self) -> Optional[SceneObjectRecord]:
        if self.selected_id is None:
            return None
        record = self.registry.get(self.selected_id)
        if record is None:
            self.selected_id = None
        return record

    # ── Submission ───────────────────────────────────────────

    async def submit(self, text: str, selected_id: Optional[str] = None) -> CommandOutcome:
        """Process one sentence.

        Scene work is serialized.  A generate command releases the lock while
        it waits on the generation server and takes it again to place the
        result, so other commands keep running in the meantime.
        """
        async with self._lock:
            if selected_id is not None:
                self.select(selected_id)
            job_id = str(uuid.uuid4())[:8]
            parsed = classify(text, self.selected is not None)
            logger.info("Job %s: %r → %s", job_id, parsed.text[:80], parsed.intent_type.value)

            if parsed.intent_type is IntentType.EMPTY:
                return CommandOutcome(
                    job_id=job_id, status=OutcomeStatus.EMPTY, command="",
                    intent=IntentType.EMPTY.value, message="コマンドを入力してください",
                )
            handler = self._handlers.get(parsed.intent_type)
            if handler is not None:
                outcome = handler(parsed, job_id)
                self._remember(outcome)
                return outcome

        outcome = await self._handle_generate(parsed, job_id)
        self._remember(outcome)
        return outcome

    def _remember(self, outcome: CommandOutcome) -> None:
        if outcome.status is OutcomeStatus.EMPTY:
            return
        self.history.appendleft({
            "job_id": outcome.job_id,
            "command": outcome.command,
            "intent": outcome.intent,
            "status": outcome.status.value,
            "object_id": outcome.object_id,
            "timestamp": self._clock(),
        })

    def _context(self) -> ResolutionContext:
        return ResolutionContext(selected_id=self.selected_id)

    def _disambiguation(self, parsed: ParsedCommand, job_id: str,
                        resolution: Resolution) -> CommandOutcome:
        candidates = []
        for object_id in resolution.candidates:
            record = self.registry.get(object_id)
            if record is not None:
                candidates.append({"id": record.id, "label": _label(record),
                                   "source_kind": record.source_kind.value})
        error = resolution.error or ErrorCode.NO_TARGET_FOUND
        if error is ErrorCode.INVALID_ORDINAL_INDEX:
            message = "指定された番号のオブジェクトが見つかりません"
        else:
            message = "対象のオブジェクトが見つかりません。どれを指しているか選んでください"
        return CommandOutcome(
            job_id=job_id,
            status=OutcomeStatus.NEEDS_DISAMBIGUATION,
            command=parsed.text,
            intent=parsed.intent_type.value,
            message=message,
            error=error,
            disambiguation={"phrase": normalize_target_phrase(parsed.text), "candidates": candidates},
        )

    # ── Delete ───────────────────────────────────────────────

    def _handle_delete(self, parsed: ParsedCommand, job_id: str) -> CommandOutcome:
        if parsed.delete_all:
            target_ids = [r.id for r in self.registry.all()]
            if not target_ids:
                return CommandOutcome(
                    job_id=job_id, status=OutcomeStatus.FAILED, command=parsed.text,
                    intent=parsed.intent_type.value, message="削除するオブジェクトがありません",
                    error=ErrorCode.NO_TARGET_FOUND,
                )
            message = f"{len(target_ids)}個のオブジェクトをすべて削除しますか？"
        else:
            record = None
            if not normalize_target_phrase(parsed.text):
                record = self.selected
            if record is None:
                resolution = resolve_target(parsed.text, self.registry, self._context())
                if not resolution.found:
                    return self._disambiguation(parsed, job_id, resolution)
                record = resolution.record
            target_ids = [record.id]
            message = f"「{_label(record)}」を削除しますか？"

        self._pending[job_id] = PendingCommand(
            job_id=job_id, parsed=parsed, target_ids=target_ids, created_at=self._clock(),
        )
        logger.info("Job %s: delete of %s awaiting confirmation", job_id, target_ids)
        return CommandOutcome(
            job_id=job_id,
            status=OutcomeStatus.NEEDS_CONFIRMATION,
            command=parsed.text,
            intent=parsed.intent_type.value,
            message=message,
            object_id=target_ids[0] if len(target_ids) == 1 else None,
            details={"target_ids": target_ids},
        )

    def pending(self) -> list[PendingCommand]:
        return list(self._pending.values())

    def confirm(self, job_id: str) -> Optional[CommandOutcome]:
        """Run a pending destructive command.  None when the job is unknown."""
        pending = self._pending.pop(job_id, None)
        if pending is None:
            return None
        disposed = [oid for oid in pending.target_ids if self.registry.dispose(oid)]
        if self.selected_id in disposed:
            self.selected_id = None
        logger.info("Job %s: CONFIRMED, disposed %s", job_id, disposed)

        if disposed:
            status, message, error = OutcomeStatus.COMPLETED, f"{len(disposed)}個のオブジェクトを削除しました", None
        else:
            status, message, error = (OutcomeStatus.FAILED, "対象のオブジェクトは既に削除されています",
                                      ErrorCode.NO_TARGET_FOUND)
        outcome = CommandOutcome(
            job_id=job_id, status=status, command=pending.parsed.text,
            intent=pending.parsed.intent_type.value, message=message, error=error,
            object_id=disposed[0] if len(disposed) == 1 else None,
            details={"disposed": disposed},
        )
        self._remember(outcome)
        return outcome

    def cancel(self, job_id: str) -> Optional[CommandOutcome]:
        pending = self._pending.pop(job_id, None)
        if pending is None:
            return None
        logger.info("Job %s: CANCELLED by user", job_id)
        outcome = CommandOutcome(
            job_id=job_id, status=OutcomeStatus.CANCELLED, command=pending.parsed.text,
            intent=pending.parsed.intent_type.value, message="削除をキャンセルしました",
        )
        self._remember(outcome)
        return outcome

    # ── Modify / select ──────────────────────────────────────

    def _handle_modify(self, parsed: ParsedCommand, job_id: str) -> CommandOutcome:
        feedback = False
        if parsed.needs_target:
            resolution = resolve_target(parsed.text, self.registry, self._context())
            if not resolution.found:
                return self._disambiguation(parsed, job_id, resolution)
            record = resolution.record
            feedback = record.id != self.selected_id
        else:
            record = self.selected
            if record is None:
                return self._disambiguation(parsed, job_id, Resolution(
                    error=ErrorCode.NO_TARGET_FOUND,
                    candidates=[r.id for r in self.registry.all()],
                ))
        self.selected_id = record.id

        deltas = parsed.attribute_deltas or AttributeDeltas()
        if deltas.is_empty():
            return CommandOutcome(
                job_id=job_id, status=OutcomeStatus.FAILED, command=parsed.text,
                intent=parsed.intent_type.value, object_id=record.id,
                message="変更内容を理解できませんでした（例：「赤くして」「大きくして」）",
                error=ErrorCode.NO_APPLICABLE_ATTRIBUTES,
            )

        result = apply_mutation(record, deltas, self.registry, self.effects, command=parsed.text)
        if feedback and result.applied:
            self._recognition_feedback(record)

        skipped = {name: code.value for name, code in result.skipped.items()}
        if not result.applied:
            status, message = OutcomeStatus.FAILED, "このオブジェクトには適用できない変更です"
            error = ErrorCode.UNSUPPORTED_MATERIAL_PROPERTY
        elif skipped:
            status, message, error = OutcomeStatus.PARTIAL, "一部の変更のみ適用しました", None
        else:
            status, message, error = OutcomeStatus.COMPLETED, f"「{_label(record)}」を変更しました", None
        return CommandOutcome(
            job_id=job_id, status=status, command=parsed.text, intent=parsed.intent_type.value,
            message=message, object_id=record.id, error=error,
            details={"applied": result.summary, "skipped": skipped},
        )

    def _recognition_feedback(self, record: SceneObjectRecord) -> None:
        """Short sparkle telling the user which object was understood."""
        if self.effects.get(effect_id_for(record.id, EffectKind.SPARKLE)) is not None:
            return
        self.effects.request_effect(
            record, EffectKind.SPARKLE, {"intensity": 0.8}, duration=self.feedback_seconds,
        )

    def _handle_select(self, parsed: ParsedCommand, job_id: str) -> CommandOutcome:
        resolution = resolve_target(parsed.text, self.registry, self._context())
        if not resolution.found:
            return self._disambiguation(parsed, job_id, resolution)
        record = resolution.record
        self.selected_id = record.id
        self._recognition_feedback(record)
        return CommandOutcome(
            job_id=job_id, status=OutcomeStatus.COMPLETED, command=parsed.text,
            intent=parsed.intent_type.value, object_id=record.id,
            message=f"「{_label(record)}」を選択しました",
        )

    # ── Import ───────────────────────────────────────────────

    def _handle_import(self, parsed: ParsedCommand, job_id: str) -> CommandOutcome:
        return CommandOutcome(
            job_id=job_id, status=OutcomeStatus.NEEDS_FILE, command=parsed.text,
            intent=parsed.intent_type.value, message="インポートするファイルを選択してください",
            error=ErrorCode.FILE_REQUIRED,
            details={
                "media": parsed.media_type.value,
                "position": parsed.position.to_dict() if parsed.position else None,
                "size": parsed.size,
            },
        )

    def import_file(self, file_name: str, asset_url: Optional[str] = None,
                    media: str = "image", position: Optional[Vector3] = None,
                    size: Optional[float] = None) -> SceneObjectRecord:
        """Register a file the user picked; it becomes an imported-file record."""
        node = self._build_node(asset_url, position, size)
        object_id = self.registry.import_file(file_name, node, media=media, asset_url=asset_url)
        record = self.registry.get(object_id)
        if media == MediaType.VIDEO.value:
            self._start_playback_clock(record)
        return record

    # ── Generate ─────────────────────────────────────────────

    async def _handle_generate(self, parsed: ParsedCommand, job_id: str) -> CommandOutcome:
        if self.generation_client is None:
            return CommandOutcome(
                job_id=job_id, status=OutcomeStatus.FAILED, command=parsed.text,
                intent=parsed.intent_type.value, message="生成サーバーが設定されていません",
                error=ErrorCode.GENERATION_FAILED,
            )

        media = parsed.media_type.value
        result = await self.generation_client.request_generation(parsed.text, {
            "media": media, "width": 512, "height": 512, "duration": config.VIDEO_DURATION,
        })
        async with self._lock:
            return self._place_generated(parsed, job_id, result)

    def _place_generated(self, parsed: ParsedCommand, job_id: str,
                         result: GenerationResult) -> CommandOutcome:
        if not result.success:
            logger.warning("Job %s: generation failed: %s", job_id, result.error)
            return CommandOutcome(
                job_id=job_id, status=OutcomeStatus.FAILED, command=parsed.text,
                intent=parsed.intent_type.value, message=f"生成に失敗しました: {result.error}",
                error=ErrorCode.GENERATION_FAILED,
            )

        kind = SourceKind.GENERATED_VIDEO if parsed.media_type is MediaType.VIDEO else SourceKind.GENERATED_IMAGE
        node = self._build_node(result.asset_url, parsed.position, parsed.size)
        object_id = self.registry.create(
            kind, parsed.text, node, model_name=result.model_name, asset_url=result.asset_url,
        )
        record = self.registry.get(object_id)
        if kind is SourceKind.GENERATED_VIDEO:
            self._start_playback_clock(record)

        specs = list(parsed.attribute_deltas.effects) if parsed.attribute_deltas else []
        if self.auto_effects and not specs:
            specs = auto_effects_from_prompt(parsed.text)
        applied_effects = [
            spec.kind for spec in specs
            if self.effects.request_effect(record, spec.kind, spec.params).applied
        ]
        return CommandOutcome(
            job_id=job_id, status=OutcomeStatus.COMPLETED, command=parsed.text,
            intent=parsed.intent_type.value, object_id=object_id,
            message=f"{'動画' if kind is SourceKind.GENERATED_VIDEO else '画像'}を生成しました",
            details={
                "asset_url": result.asset_url,
                "model_name": result.model_name,
                "size": [result.width, result.height],
                "effects": applied_effects,
            },
        )

    # ── Helpers ──────────────────────────────────────────────

    def _build_node(self, asset_url: Optional[str], position: Optional[Vector3],
                    size: Optional[float]) -> SceneNode:
        scale = size if size is not None else config.DEFAULT_OBJECT_SCALE
        return SceneNode(
            position=position.copy() if position else Vector3(0.0, 5.0, 10.0),
            scale=Vector3(scale, scale, scale),
            material=Material(map=asset_url, transparent=True),
        )

    def _start_playback_clock(self, record: SceneObjectRecord) -> None:
        """Video textures advance with the frame loop; track their playhead."""
        start = self.effects.now()
        node = record.node

        def _advance(now: float) -> None:
            node.user_data["playback_time"] = round(now - start, 3)

        self.effects.register_external(record.id, _advance)
