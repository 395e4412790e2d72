"""Object registry: the single owner of "which objects exist".

Maps generated ids to live :class:`SceneObjectRecord` entries.  Ids come
from one monotonically increasing counter and are never reused, even after
disposal.  Disposal is the only removal path and it tears down every effect
keyed to the object before the node is released to the renderer.

Usage::

    registry = ObjectRegistry(effects=EffectRegistry())
    oid = registry.create(SourceKind.GENERATED_IMAGE, "a small red flower", node)
    registry.dispose(oid)
"""

import logging
import time
from typing import TYPE_CHECKING, Callable, Optional

from .dictionary import build_keyword_hints
from .models import SceneObjectRecord, SourceKind
from .scene_node import SceneNode

if TYPE_CHECKING:
    from .effects import EffectRegistry

logger = logging.getLogger(__name__)

_ID_PREFIX: dict[SourceKind, str] = {
    SourceKind.GENERATED_IMAGE: "generated_image",
    SourceKind.GENERATED_VIDEO: "generated_video",
    SourceKind.GENERATED_MODEL: "generated_model",
    SourceKind.IMPORTED_FILE: "imported_file",
}

_MEDIA_OF: dict[SourceKind, Optional[str]] = {
    SourceKind.GENERATED_IMAGE: "image",
    SourceKind.GENERATED_VIDEO: "video",
    SourceKind.GENERATED_MODEL: None,
    SourceKind.IMPORTED_FILE: None,
}


class ObjectRegistry:
    """Authoritative id → record map, iterated in creation order."""

    def __init__(self, effects: Optional["EffectRegistry"] = None,
                 clock: Callable[[], float] = time.time):
        self._records: dict[str, SceneObjectRecord] = {}
        self._counter = 0
        self._import_counter = 0
        self._clock = clock
        self.effects = effects
        if effects is not None:
            effects.attach(self.contains)

    # ── Creation ─────────────────────────────────────────────

    def create(self, source_kind: SourceKind, prompt: str, node: SceneNode,
               file_name: Optional[str] = None, model_name: Optional[str] = None,
               asset_url: Optional[str] = None, media: Optional[str] = None) -> str:
        """Insert a new record and return its id."""
        self._counter += 1
        object_id = f"{_ID_PREFIX[source_kind]}_{self._counter}"

        import_order = None
        if source_kind is SourceKind.IMPORTED_FILE:
            self._import_counter += 1
            import_order = self._import_counter

        hints = build_keyword_hints(prompt, file_name, media or _MEDIA_OF[source_kind])
        record = SceneObjectRecord(
            id=object_id,
            node=node,
            source_kind=source_kind,
            original_prompt=prompt,
            keyword_hints=hints,
            created_at=self._clock(),
            file_name=file_name,
            import_order=import_order,
            model_name=model_name,
            asset_url=asset_url,
        )
        node.name = node.name or object_id
        node.user_data.update({
            "object_id": object_id,
            "source": source_kind.value,
            "prompt": prompt,
            "file_name": file_name,
            "import_order": import_order,
        })
        self._records[object_id] = record
        logger.info("Registered %s (%s): %r", object_id, source_kind.value, prompt[:80])
        return object_id

    def import_file(self, file_name: str, node: SceneNode, media: str = "image",
                    asset_url: Optional[str] = None) -> str:
        """Register a user-imported file; the filename doubles as its prompt."""
        return self.create(
            SourceKind.IMPORTED_FILE, file_name, node,
            file_name=file_name, asset_url=asset_url, media=media,
        )

    # ── Queries ──────────────────────────────────────────────

    def get(self, object_id: str) -> Optional[SceneObjectRecord]:
        return self._records.get(object_id)

    def contains(self, object_id: str) -> bool:
        return object_id in self._records

    def all(self) -> list[SceneObjectRecord]:
        return list(self._records.values())

    def imported(self) -> list[SceneObjectRecord]:
        """Imported records in import order."""
        records = [r for r in self._records.values() if r.source_kind is SourceKind.IMPORTED_FILE]
        return sorted(records, key=lambda r: r.import_order or 0)

    def __len__(self) -> int:
        return len(self._records)

    # ── Updates ──────────────────────────────────────────────

    def record_modification(self, object_id: str, entry: dict) -> None:
        record = self._records.get(object_id)
        if record is None:
            return
        now = self._clock()
        record.last_modified = now
        record.modification_history.append({"timestamp": now, **entry})

    # ── Disposal ─────────────────────────────────────────────

    def dispose(self, object_id: str) -> bool:
        """Remove a record, stop its effects and release its node.

        Returns False when the id is unknown or already disposed.
        """
        record = self._records.pop(object_id, None)
        if record is None:
            logger.debug("Dispose skipped: %s not registered", object_id)
            return False
        if self.effects is not None:
            self.effects.clear_object(object_id)
        record.node.dispose()
        logger.info("Disposed %s", object_id)
        return True

    def clear_all(self) -> int:
        ids = list(self._records)
        for object_id in ids:
            self.dispose(object_id)
        logger.info("Cleared %d objects", len(ids))
        return len(ids)
