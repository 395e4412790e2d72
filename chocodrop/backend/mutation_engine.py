"""Mutation engine — applies attribute deltas to a resolved object.

Each delta field is applied on its own: it either lands completely or is
skipped with an error code when the material lacks the channel it needs.
The result is ``applied=False`` only when nothing landed.  Only applied
fields are written to the record's modification history.
"""

import logging
import math
from typing import Any, Callable, Optional

from .effects import EffectRegistry
from .models import AttributeDeltas, ErrorCode, MutationResult, SceneObjectRecord
from .object_registry import ObjectRegistry
from .scene_node import SceneNode, Vector3, format_hex

logger = logging.getLogger(__name__)


def _local_offset(node: SceneNode, offset: Vector3) -> Vector3:
    """Rotate *offset* by the node's up-axis rotation."""
    theta = node.rotation.y
    cos_t, sin_t = math.cos(theta), math.sin(theta)
    return Vector3(
        offset.x * cos_t + offset.z * sin_t,
        offset.y,
        -offset.x * sin_t + offset.z * cos_t,
    )


def _apply_color(node: SceneNode, deltas: AttributeDeltas) -> tuple[Any, Callable[[dict], None]]:
    node.material.color = deltas.color

    def _rebase(baseline: dict) -> None:
        if "color" in baseline:
            baseline["color"] = deltas.color
    return format_hex(deltas.color), _rebase


def _apply_scale(node: SceneNode, deltas: AttributeDeltas) -> tuple[Any, Callable[[dict], None]]:
    factor = deltas.scale
    node.scale.set(node.scale.x * factor, node.scale.y * factor, node.scale.z * factor)

    def _rebase(baseline: dict) -> None:
        s = baseline["scale"]
        s.set(s.x * factor, s.y * factor, s.z * factor)
    return factor, _rebase


def _apply_rotation(node: SceneNode, deltas: AttributeDeltas) -> tuple[Any, Callable[[dict], None]]:
    node.rotation.y += deltas.rotation

    def _rebase(baseline: dict) -> None:
        baseline["rotation"].y += deltas.rotation
    return round(deltas.rotation, 6), _rebase


def _apply_translation(node: SceneNode, deltas: AttributeDeltas) -> tuple[Any, Callable[[dict], None]]:
    offset = _local_offset(node, deltas.translation)
    p = node.position
    p.set(p.x + offset.x, p.y + offset.y, p.z + offset.z)

    def _rebase(baseline: dict) -> None:
        b = baseline["position"]
        b.set(b.x + offset.x, b.y + offset.y, b.z + offset.z)
    return offset.to_dict(), _rebase


def _apply_opacity(node: SceneNode, deltas: AttributeDeltas) -> tuple[Any, Callable[[dict], None]]:
    node.material.opacity = deltas.opacity
    node.material.transparent = deltas.opacity < 1.0

    def _rebase(baseline: dict) -> None:
        if "opacity" in baseline:
            baseline["opacity"] = deltas.opacity
            baseline["transparent"] = deltas.opacity < 1.0
    return deltas.opacity, _rebase


def _apply_flip(node: SceneNode, deltas: AttributeDeltas) -> tuple[Any, Callable[[dict], None]]:
    node.scale.x = -node.scale.x

    def _rebase(baseline: dict) -> None:
        baseline["scale"].x = -baseline["scale"].x
    return True, _rebase


def _needs_color(node: SceneNode) -> bool:
    return node.material is not None and node.material.has_color


def _needs_material(node: SceneNode) -> bool:
    return node.material is not None


def _needs_nothing(node: SceneNode) -> bool:
    return True


# (field, present?, capability check, applier)
_FIELDS: list[tuple[str, Callable[[AttributeDeltas], bool], Callable[[SceneNode], bool], Callable]] = [
    ("color", lambda d: d.color is not None, _needs_color, _apply_color),
    ("scale", lambda d: d.scale is not None, _needs_nothing, _apply_scale),
    ("rotation", lambda d: d.rotation is not None, _needs_nothing, _apply_rotation),
    ("translation", lambda d: d.translation is not None, _needs_nothing, _apply_translation),
    ("opacity", lambda d: d.opacity is not None, _needs_material, _apply_opacity),
    ("flip", lambda d: d.flip, _needs_nothing, _apply_flip),
]


def apply_mutation(record: SceneObjectRecord, deltas: AttributeDeltas,
                   registry: ObjectRegistry, effects: Optional[EffectRegistry] = None,
                   command: str = "") -> MutationResult:
    """Apply *deltas* to *record*'s node and log what landed.

    Effects in ``deltas.effects`` are requested through *effects* when one
    is given.  Active effects have their baselines shifted by the same delta
    so the next tick animates around the new state.
    """
    node = record.node
    summary: dict[str, Any] = {}
    skipped: dict[str, ErrorCode] = {}

    for name, present, supported, applier in _FIELDS:
        if not present(deltas):
            continue
        if not supported(node):
            skipped[name] = ErrorCode.UNSUPPORTED_MATERIAL_PROPERTY
            logger.info("%s: %s skipped, material lacks the channel", record.id, name)
            continue
        value, rebase = applier(node, deltas)
        summary[name] = value
        if effects is not None:
            for instance in effects.effects_for(record.id):
                rebase(instance.baseline)

    if deltas.effects and effects is not None:
        applied_effects = []
        for spec in deltas.effects:
            outcome = effects.request_effect(record, spec.kind, spec.params)
            if outcome.applied:
                applied_effects.append(spec.kind)
            else:
                skipped[f"effect:{spec.kind}"] = outcome.error
        if applied_effects:
            summary["effects"] = applied_effects

    applied = bool(summary)
    if applied:
        entry: dict[str, Any] = {"changes": summary}
        if command:
            entry["command"] = command
        registry.record_modification(record.id, entry)
        logger.info("Mutated %s: %s", record.id, ", ".join(summary))
    else:
        logger.info("Nothing applied to %s (skipped: %s)", record.id,
                    ", ".join(skipped) or "no deltas")
    return MutationResult(applied=applied, summary=summary, skipped=skipped)
