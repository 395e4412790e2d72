"""Effect & animation registry.

Named, parameterized visual effects bound to one scene object each.  At most
one instance per (object, kind) exists: requesting a kind again replaces its
parameters and restarts its clock.  Static kinds (opacity, glow, material,
chroma key, monochrome) write their fields once at request time; animated
kinds are advanced by :meth:`EffectRegistry.tick`, which evaluates a pure
function of ``elapsed - start_time`` for every active instance and writes
the result straight onto the node.

The registry does not own a timer.  ``tick`` reports whether anything is
left to animate; the host stops its frame loop when it returns False and the
``on_start`` hook fires again when the next animated effect arrives.

Speeds are in cycles per second.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union

from .models import EffectOutcome, ErrorCode, SceneObjectRecord
from .scene_node import (
    MATERIAL_STANDARD, SceneNode, hsl_to_hex, lerp_color, luminance, rgb_to_hex,
)

logger = logging.getLogger(__name__)

TWO_PI = 2 * math.pi


class EffectKind(str, Enum):
    OPACITY = "opacity"
    GLOW = "glow"
    MATERIAL = "material"
    FLOAT = "float"
    PULSE = "pulse"
    SPIN = "spin"
    SPARKLE = "sparkle"
    RAINBOW = "rainbow"
    # cosmic family
    COSMIC = "cosmic"
    AURORA = "aurora"
    NEBULA = "nebula"
    ENERGY = "energy"
    MYSTIC = "mystic"
    RAINBOW_GLOW = "rainbow_glow"
    # watercolor family
    WATERCOLOR = "watercolor"
    PASTEL = "pastel"
    CHROMA_KEY = "chroma_key"
    MONOCHROME = "monochrome"

    @property
    def family(self) -> str:
        if self in COSMIC_FAMILY:
            return "cosmic"
        if self in WATERCOLOR_FAMILY:
            return "watercolor"
        return self.value

    @property
    def animated(self) -> bool:
        return self not in STATIC_KINDS


COSMIC_FAMILY = frozenset({
    EffectKind.COSMIC, EffectKind.AURORA, EffectKind.NEBULA,
    EffectKind.ENERGY, EffectKind.MYSTIC, EffectKind.RAINBOW_GLOW,
})
WATERCOLOR_FAMILY = frozenset({EffectKind.WATERCOLOR, EffectKind.PASTEL})
STATIC_KINDS = frozenset({
    EffectKind.OPACITY, EffectKind.GLOW, EffectKind.MATERIAL,
    EffectKind.CHROMA_KEY, EffectKind.MONOCHROME,
})

# ── Default parameters ───────────────────────────────────────

DEFAULT_PARAMS: dict[EffectKind, dict[str, Any]] = {
    EffectKind.OPACITY: {"value": 1.0},
    EffectKind.GLOW: {"color": 0xFFFFFF, "intensity": 0.5},
    EffectKind.MATERIAL: {"metalness": 0.5, "roughness": 0.5},
    EffectKind.FLOAT: {"speed": 0.5, "amplitude": 0.5},
    EffectKind.PULSE: {"speed": 1.0, "amplitude": 0.1},
    EffectKind.SPIN: {"speed": 0.25, "axis": "y"},
    EffectKind.SPARKLE: {"speed": 3.0, "intensity": 1.0, "color": 0xFFFFFF},
    EffectKind.RAINBOW: {"speed": 0.2},
    EffectKind.COSMIC: {"colors": [0x4444FF, 0xFF4488, 0x44FFAA], "intensity": 0.9, "speed": 0.5},
    EffectKind.AURORA: {"colors": [0x00FFAA, 0x4488FF, 0xFF88AA], "intensity": 0.8, "speed": 0.8},
    EffectKind.NEBULA: {"colors": [0x8844FF, 0xFF8844, 0x44AAFF], "intensity": 1.0, "speed": 0.3},
    EffectKind.ENERGY: {"colors": [0xFFAA00, 0x00AAFF, 0xAA00FF], "intensity": 0.7, "speed": 1.5},
    EffectKind.MYSTIC: {"colors": [0xAA44FF, 0xFF44AA, 0x44FFFF], "intensity": 0.6, "speed": 0.6},
    EffectKind.RAINBOW_GLOW: {
        "colors": [0xFF0000, 0xFF8800, 0xFFFF00, 0x00FF00, 0x0088FF, 0x4400FF, 0x8800FF],
        "intensity": 0.5, "speed": 1.0,
    },
    EffectKind.WATERCOLOR: {"colors": [0xFF6B9D, 0x4ECDC4, 0xFFE66D, 0x95E1D3], "opacity": 0.6, "speed": 0.3},
    EffectKind.PASTEL: {"colors": [0xFFB3BA, 0xFFDFBA, 0xFFFFBA, 0xBAFFC9, 0xBAE1FF], "opacity": 0.7, "speed": 0.2},
    EffectKind.CHROMA_KEY: {"color": 0xFFFFFF, "threshold": 0.22, "smoothing": 0.1},
    EffectKind.MONOCHROME: {},
}

_NUMERIC_PARAMS = (
    "value", "intensity", "metalness", "roughness", "speed",
    "amplitude", "opacity", "threshold", "smoothing",
)
_AXES = ("x", "y", "z")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_color(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 0xFFFFFF


def invalid_param(params: dict[str, Any]) -> Optional[str]:
    """Name of the first parameter the updaters cannot use, or None."""
    for key in _NUMERIC_PARAMS:
        if key in params and not _is_number(params[key]):
            return key
    if "color" in params and not _is_color(params["color"]):
        return "color"
    if "colors" in params:
        colors = params["colors"]
        if not isinstance(colors, list) or not colors or not all(_is_color(c) for c in colors):
            return "colors"
    if "axis" in params and params["axis"] not in _AXES:
        return "axis"
    return None


# Fields each kind overwrites; restored from the baseline on clear.
_TOUCHED: dict[EffectKind, tuple[str, ...]] = {
    EffectKind.OPACITY: ("opacity", "transparent"),
    EffectKind.GLOW: ("color", "emissive", "emissive_intensity"),
    EffectKind.MATERIAL: ("metalness", "roughness"),
    EffectKind.FLOAT: ("position",),
    EffectKind.PULSE: ("scale",),
    EffectKind.SPIN: ("rotation",),
    EffectKind.SPARKLE: ("color", "emissive", "emissive_intensity"),
    EffectKind.RAINBOW: ("color", "emissive", "emissive_intensity"),
    EffectKind.WATERCOLOR: ("color", "opacity", "transparent"),
    EffectKind.PASTEL: ("color", "opacity", "transparent"),
    EffectKind.CHROMA_KEY: ("chroma_key", "transparent"),
    EffectKind.MONOCHROME: ("color", "grayscale"),
}
for _kind in COSMIC_FAMILY:
    _TOUCHED[_kind] = ("color", "emissive", "emissive_intensity")

_MATERIAL_FIELDS = (
    "color", "opacity", "transparent", "emissive", "emissive_intensity",
    "metalness", "roughness", "chroma_key", "grayscale",
)


@dataclass
class EffectInstance:
    effect_id: str
    object_id: str
    kind: EffectKind
    node: SceneNode
    params: dict[str, Any]
    start_time: float
    duration: Optional[float] = None
    baseline: dict[str, Any] = field(default_factory=dict)

    @property
    def animated(self) -> bool:
        return self.kind.animated

    def expired(self, now: float) -> bool:
        return self.duration is not None and now - self.start_time >= self.duration

    def to_dict(self) -> dict[str, Any]:
        return {
            "effect_id": self.effect_id,
            "object_id": self.object_id,
            "kind": self.kind.value,
            "family": self.kind.family,
            "params": self.params,
            "start_time": self.start_time,
            "duration": self.duration,
        }


def effect_id_for(object_id: str, kind: EffectKind) -> str:
    return f"{object_id}_{kind.value}"


# ── Baseline snapshot / restore ──────────────────────────────

def _snapshot(node: SceneNode) -> dict[str, Any]:
    snap: dict[str, Any] = {
        "position": node.position.copy(),
        "rotation": node.rotation.copy(),
        "scale": node.scale.copy(),
    }
    if node.material is not None:
        for name in _MATERIAL_FIELDS:
            snap[name] = getattr(node.material, name)
    return snap


def _restore(node: SceneNode, baseline: dict[str, Any], fields: tuple[str, ...]) -> None:
    for name in fields:
        if name not in baseline:
            continue
        if name in ("position", "rotation", "scale"):
            saved = baseline[name]
            getattr(node, name).set(saved.x, saved.y, saved.z)
        elif node.material is not None:
            setattr(node.material, name, baseline[name])


# ── Capability checks ────────────────────────────────────────

def _has_material(node: SceneNode) -> bool:
    return node.material is not None


def _has_color_or_emissive(node: SceneNode) -> bool:
    return node.material is not None and (node.material.has_color or node.material.has_emissive)


def _has_color(node: SceneNode) -> bool:
    return node.material is not None and node.material.has_color


def _is_standard(node: SceneNode) -> bool:
    m = node.material
    return m is not None and m.material_type == MATERIAL_STANDARD and m.metalness is not None


def _has_texture(node: SceneNode) -> bool:
    return node.material is not None and bool(node.material.map)


def _always(node: SceneNode) -> bool:
    return True


_SUPPORTS: dict[EffectKind, Callable[[SceneNode], bool]] = {
    EffectKind.OPACITY: _has_material,
    EffectKind.GLOW: _has_color_or_emissive,
    EffectKind.MATERIAL: _is_standard,
    EffectKind.FLOAT: _always,
    EffectKind.PULSE: _always,
    EffectKind.SPIN: _always,
    EffectKind.SPARKLE: _has_color_or_emissive,
    EffectKind.RAINBOW: _has_color_or_emissive,
    EffectKind.WATERCOLOR: _has_color,
    EffectKind.PASTEL: _has_color,
    EffectKind.CHROMA_KEY: _has_texture,
    EffectKind.MONOCHROME: _has_color,
}
for _kind in COSMIC_FAMILY:
    _SUPPORTS[_kind] = _has_color_or_emissive


# ── Static appliers ──────────────────────────────────────────

def _apply_opacity(node: SceneNode, inst: EffectInstance) -> None:
    value = float(inst.params["value"])
    node.material.opacity = value
    node.material.transparent = value < 1.0


def _apply_glow(node: SceneNode, inst: EffectInstance) -> None:
    m = node.material
    color = inst.params["color"]
    if m.has_emissive:
        m.emissive = color
        m.emissive_intensity = float(inst.params["intensity"])
    else:
        m.color = lerp_color(inst.baseline["color"], color, 0.4)


def _apply_material(node: SceneNode, inst: EffectInstance) -> None:
    node.material.metalness = float(inst.params["metalness"])
    node.material.roughness = float(inst.params["roughness"])


def _apply_chroma_key(node: SceneNode, inst: EffectInstance) -> None:
    node.material.chroma_key = {
        "color": inst.params["color"],
        "threshold": float(inst.params["threshold"]),
        "smoothing": float(inst.params["smoothing"]),
    }
    node.material.transparent = True


def _apply_monochrome(node: SceneNode, inst: EffectInstance) -> None:
    gray = luminance(inst.baseline["color"])
    node.material.color = rgb_to_hex(gray, gray, gray)
    node.material.grayscale = True


_APPLIERS: dict[EffectKind, Callable[[SceneNode, EffectInstance], None]] = {
    EffectKind.OPACITY: _apply_opacity,
    EffectKind.GLOW: _apply_glow,
    EffectKind.MATERIAL: _apply_material,
    EffectKind.CHROMA_KEY: _apply_chroma_key,
    EffectKind.MONOCHROME: _apply_monochrome,
}


# ── Per-frame updaters (pure in elapsed time) ────────────────

def _wave(t: float, speed: float) -> float:
    return math.sin(t * speed * TWO_PI)


def _update_float(node: SceneNode, inst: EffectInstance, t: float) -> None:
    base = inst.baseline["position"]
    node.position.y = base.y + _wave(t, inst.params["speed"]) * inst.params["amplitude"]


def _update_pulse(node: SceneNode, inst: EffectInstance, t: float) -> None:
    base = inst.baseline["scale"]
    factor = 1.0 + _wave(t, inst.params["speed"]) * inst.params["amplitude"]
    node.scale.set(base.x * factor, base.y * factor, base.z * factor)


def _update_spin(node: SceneNode, inst: EffectInstance, t: float) -> None:
    axis = inst.params.get("axis", "y")
    base = inst.baseline["rotation"].get(axis)
    node.rotation.set_axis(axis, base + t * inst.params["speed"] * TWO_PI)


def _update_sparkle(node: SceneNode, inst: EffectInstance, t: float) -> None:
    level = (_wave(t, inst.params["speed"]) * 0.5 + 0.5) * inst.params["intensity"]
    m = node.material
    if m.has_emissive:
        m.emissive = inst.params["color"]
        m.emissive_intensity = level
    else:
        m.color = lerp_color(inst.baseline["color"], inst.params["color"], level * 0.5)


def _update_rainbow(node: SceneNode, inst: EffectInstance, t: float) -> None:
    hue = (t * inst.params["speed"]) % 1.0
    color = hsl_to_hex(hue, 1.0, 0.5)
    m = node.material
    if m.has_color:
        m.color = color
    else:
        m.emissive = color
        m.emissive_intensity = 0.5


def _palette_blend(colors: list[int], t: float, speed: float) -> int:
    n = len(colors)
    if n == 1:
        return colors[0]
    phase = (t * speed) % n
    index = int(phase)
    return lerp_color(colors[index], colors[(index + 1) % n], phase - index)


_COSMIC_INTENSITY: dict[EffectKind, Callable[[float], float]] = {
    EffectKind.COSMIC: lambda t: 0.8 + 0.2 * math.sin(t * 1.8),
    EffectKind.AURORA: lambda t: 0.7 + 0.3 * math.sin(t * 2.5),
    EffectKind.NEBULA: lambda t: 0.8 + 0.2 * math.sin(t * 1.2),
    EffectKind.ENERGY: lambda t: 0.6 + 0.4 * (math.sin(t * 4) * math.cos(t * 3)),
    EffectKind.MYSTIC: lambda t: 0.7 + 0.3 * math.sin(t * 1.5) * math.cos(t * 0.8),
    EffectKind.RAINBOW_GLOW: lambda t: 0.6 + 0.3 * math.sin(t * 2.0),
}


def _update_cosmic(node: SceneNode, inst: EffectInstance, t: float) -> None:
    color = _palette_blend(inst.params["colors"], t, inst.params["speed"])
    strength = inst.params["intensity"] * _COSMIC_INTENSITY[inst.kind](t)
    m = node.material
    if m.has_emissive:
        m.emissive = color
        m.emissive_intensity = strength
    else:
        m.color = lerp_color(inst.baseline["color"], color, max(0.0, min(1.0, strength)))


_WATERCOLOR_OPACITY: dict[EffectKind, Callable[[float], float]] = {
    EffectKind.WATERCOLOR: lambda t: 0.9 + 0.1 * math.sin(t * 0.5),
    EffectKind.PASTEL: lambda t: 0.95 + 0.05 * math.sin(t * 0.3),
}


def _update_watercolor(node: SceneNode, inst: EffectInstance, t: float) -> None:
    m = node.material
    m.color = _palette_blend(inst.params["colors"], t, inst.params["speed"])
    m.opacity = inst.params["opacity"] * _WATERCOLOR_OPACITY[inst.kind](t)
    m.transparent = True


_UPDATERS: dict[EffectKind, Callable[[SceneNode, EffectInstance, float], None]] = {
    EffectKind.FLOAT: _update_float,
    EffectKind.PULSE: _update_pulse,
    EffectKind.SPIN: _update_spin,
    EffectKind.SPARKLE: _update_sparkle,
    EffectKind.RAINBOW: _update_rainbow,
    EffectKind.WATERCOLOR: _update_watercolor,
    EffectKind.PASTEL: _update_watercolor,
}
for _kind in COSMIC_FAMILY:
    _UPDATERS[_kind] = _update_cosmic


# ── Registry ─────────────────────────────────────────────────

ExternalAnimation = Callable[[float], None]


class EffectRegistry:
    """Active effect instances keyed by ``<object id>_<kind>``."""

    def __init__(self, clock: Callable[[], float] = time.monotonic,
                 on_start: Optional[Callable[[], None]] = None):
        self._clock = clock
        self._instances: dict[str, EffectInstance] = {}
        self._external: dict[str, ExternalAnimation] = {}
        self._is_live: Callable[[str], bool] = lambda object_id: True
        self.on_start = on_start
        self.running = False

    def attach(self, is_live: Callable[[str], bool]) -> None:
        """Bind to the object registry's liveness check."""
        self._is_live = is_live

    def now(self) -> float:
        return self._clock()

    # ── Requests ─────────────────────────────────────────────

    def request_effect(self, record: SceneObjectRecord, kind: Union[EffectKind, str],
                       params: Optional[dict] = None,
                       duration: Optional[float] = None) -> EffectOutcome:
        kind = EffectKind(kind)
        effect_id = effect_id_for(record.id, kind)
        node = record.node

        if not self._is_live(record.id) or node.disposed:
            logger.warning("Effect %s refused: %s is not a live object", kind.value, record.id)
            return EffectOutcome(applied=False, effect_id=effect_id, error=ErrorCode.NO_TARGET_FOUND)
        params = {**DEFAULT_PARAMS[kind], **(params or {})}
        bad = invalid_param(params)
        if bad is not None:
            logger.warning("Effect %s refused on %s: bad parameter %r=%r",
                           kind.value, record.id, bad, params[bad])
            return EffectOutcome(applied=False, effect_id=effect_id,
                                 error=ErrorCode.INVALID_EFFECT_PARAMS)
        if not _SUPPORTS[kind](node):
            logger.info("Effect %s skipped on %s: material lacks the required channel",
                        kind.value, record.id)
            return EffectOutcome(applied=False, effect_id=effect_id,
                                 error=ErrorCode.UNSUPPORTED_MATERIAL_PROPERTY)

        previous = self._instances.pop(effect_id, None)
        if previous is not None:
            # Restore first so static appliers see the original values again.
            _restore(node, previous.baseline, _TOUCHED[kind])
            baseline = previous.baseline
        else:
            baseline = _snapshot(node)

        instance = EffectInstance(
            effect_id=effect_id,
            object_id=record.id,
            kind=kind,
            node=node,
            params=params,
            start_time=self._clock(),
            duration=duration,
            baseline=baseline,
        )
        applier = _APPLIERS.get(kind)
        if applier is not None:
            applier(node, instance)
        else:
            _UPDATERS[kind](node, instance, 0.0)
        self._instances[effect_id] = instance

        logger.info("Effect %s %s on %s", kind.value,
                    "replaced" if previous else "started", record.id)
        if instance.animated or instance.duration is not None:
            self._wake()
        return EffectOutcome(applied=True, effect_id=effect_id, replaced=previous is not None)

    def clear_effect(self, record: Union[SceneObjectRecord, str],
                     kind: Union[EffectKind, str]) -> bool:
        """Remove one effect and restore the fields it overwrote."""
        object_id = record if isinstance(record, str) else record.id
        instance = self._instances.pop(effect_id_for(object_id, EffectKind(kind)), None)
        if instance is None:
            return False
        _restore(instance.node, instance.baseline, _TOUCHED[instance.kind])
        logger.info("Effect %s cleared on %s", instance.kind.value, object_id)
        return True

    def clear_object(self, object_id: str, restore: bool = False) -> int:
        """Drop every effect and external animation bound to *object_id*."""
        doomed = [eid for eid, inst in self._instances.items() if inst.object_id == object_id]
        for eid in doomed:
            instance = self._instances.pop(eid)
            if restore:
                _restore(instance.node, instance.baseline, _TOUCHED[instance.kind])
        self._external.pop(object_id, None)
        if doomed:
            logger.debug("Dropped %d effect(s) of %s", len(doomed), object_id)
        return len(doomed)

    # ── External animations ──────────────────────────────────

    def register_external(self, object_id: str, callback: ExternalAnimation) -> None:
        """Keep the loop alive for a per-object animation owned elsewhere."""
        self._external[object_id] = callback
        self._wake()

    # ── Queries ──────────────────────────────────────────────

    def get(self, effect_id: str) -> Optional[EffectInstance]:
        return self._instances.get(effect_id)

    def effects_for(self, object_id: str) -> list[EffectInstance]:
        return [inst for inst in self._instances.values() if inst.object_id == object_id]

    def all(self) -> list[EffectInstance]:
        return list(self._instances.values())

    @property
    def active_count(self) -> int:
        return len(self._instances)

    def has_pending_work(self) -> bool:
        return bool(self._external) or any(
            inst.animated or inst.duration is not None for inst in self._instances.values()
        )

    # ── Frame loop ───────────────────────────────────────────

    def tick(self, elapsed: Optional[float] = None) -> bool:
        """Advance every animated instance to clock time *elapsed*.

        Returns False once nothing is left to animate; the caller should
        stop scheduling frames until ``on_start`` fires again.
        """
        now = self._clock() if elapsed is None else elapsed
        expired: list[EffectInstance] = []
        for instance in list(self._instances.values()):
            if not self._is_live(instance.object_id):
                self._instances.pop(instance.effect_id, None)
                continue
            if instance.expired(now):
                expired.append(instance)
                continue
            if instance.animated:
                _UPDATERS[instance.kind](instance.node, instance, now - instance.start_time)

        for instance in expired:
            self.clear_effect(instance.object_id, instance.kind)

        for object_id, callback in list(self._external.items()):
            callback(now)

        if not self.has_pending_work():
            if self.running:
                logger.debug("Animation loop idle, stopping")
            self.running = False
            return False
        return True

    def _wake(self) -> None:
        if self.running:
            return
        self.running = True
        logger.debug("Animation loop starting")
        if self.on_start is not None:
            self.on_start()
