"""Headless scene node handle.

The renderer owns the real meshes; the engine only needs the fields it
reads and writes (transform vectors, a material with optional channels and a
release hook).  ``SceneNode`` is that handle.  The HTTP layer serialises it
with :meth:`SceneNode.to_dict` so the browser renderer can mirror the state.

Colors are 24-bit ints (``0xff0000``).  A material channel set to ``None``
does not exist on that material: a ``basic`` material has no emissive
channel, and only ``standard`` materials carry metalness/roughness.
"""

import colorsys
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

MATERIAL_BASIC = "basic"
MATERIAL_STANDARD = "standard"


# ── Color helpers ────────────────────────────────────────────

def hex_to_rgb(value: int) -> tuple[float, float, float]:
    return (
        ((value >> 16) & 0xFF) / 255.0,
        ((value >> 8) & 0xFF) / 255.0,
        (value & 0xFF) / 255.0,
    )


def rgb_to_hex(r: float, g: float, b: float) -> int:
    def _channel(c: float) -> int:
        return max(0, min(255, int(round(c * 255))))
    return (_channel(r) << 16) | (_channel(g) << 8) | _channel(b)


def lerp_color(a: int, b: int, t: float) -> int:
    """Linear blend from color *a* toward *b* (t=0 → a, t=1 → b)."""
    t = max(0.0, min(1.0, t))
    ra, ga, ba = hex_to_rgb(a)
    rb, gb, bb = hex_to_rgb(b)
    return rgb_to_hex(ra + (rb - ra) * t, ga + (gb - ga) * t, ba + (bb - ba) * t)


def hsl_to_hex(h: float, s: float, l: float) -> int:
    r, g, b = colorsys.hls_to_rgb(h % 1.0, l, s)
    return rgb_to_hex(r, g, b)


def luminance(value: int) -> float:
    r, g, b = hex_to_rgb(value)
    return 0.299 * r + 0.587 * g + 0.114 * b


def format_hex(value: Optional[int]) -> Optional[str]:
    return None if value is None else f"#{value:06x}"


# ── Vector ───────────────────────────────────────────────────

@dataclass
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def copy(self) -> "Vector3":
        return Vector3(self.x, self.y, self.z)

    def set(self, x: float, y: float, z: float) -> "Vector3":
        self.x, self.y, self.z = x, y, z
        return self

    def get(self, axis: str) -> float:
        return getattr(self, axis)

    def set_axis(self, axis: str, value: float) -> None:
        if axis not in ("x", "y", "z"):
            raise ValueError(f"Unknown axis: {axis}")
        setattr(self, axis, value)

    def to_dict(self) -> dict[str, float]:
        return {"x": round(self.x, 4), "y": round(self.y, 4), "z": round(self.z, 4)}


# ── Material ─────────────────────────────────────────────────

@dataclass
class Material:
    material_type: str = MATERIAL_BASIC
    color: Optional[int] = 0xFFFFFF
    opacity: float = 1.0
    transparent: bool = False
    emissive: Optional[int] = None
    emissive_intensity: float = 0.0
    metalness: Optional[float] = None
    roughness: Optional[float] = None
    map: Optional[str] = None
    chroma_key: Optional[dict] = None
    grayscale: bool = False

    @classmethod
    def standard(cls, color: int = 0xFFFFFF, **kwargs) -> "Material":
        """A lit material: emissive channel plus metalness/roughness."""
        kwargs.setdefault("emissive", 0x000000)
        kwargs.setdefault("metalness", 0.0)
        kwargs.setdefault("roughness", 1.0)
        return cls(material_type=MATERIAL_STANDARD, color=color, **kwargs)

    @property
    def has_color(self) -> bool:
        return self.color is not None

    @property
    def has_emissive(self) -> bool:
        return self.emissive is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.material_type,
            "color": format_hex(self.color),
            "opacity": round(self.opacity, 4),
            "transparent": self.transparent,
            "emissive": format_hex(self.emissive),
            "emissive_intensity": round(self.emissive_intensity, 4),
            "metalness": self.metalness,
            "roughness": self.roughness,
            "map": self.map,
            "chroma_key": self.chroma_key,
            "grayscale": self.grayscale,
        }


# ── Node ─────────────────────────────────────────────────────

@dataclass
class SceneNode:
    name: str = ""
    position: Vector3 = field(default_factory=Vector3)
    rotation: Vector3 = field(default_factory=Vector3)
    scale: Vector3 = field(default_factory=lambda: Vector3(1.0, 1.0, 1.0))
    material: Optional[Material] = None
    user_data: dict = field(default_factory=dict)
    disposed: bool = False
    _release_hooks: list[Callable[["SceneNode"], None]] = field(default_factory=list, repr=False)

    def on_dispose(self, hook: Callable[["SceneNode"], None]) -> None:
        self._release_hooks.append(hook)

    def dispose(self) -> None:
        """Signal the renderer that this node can be released. Idempotent."""
        if self.disposed:
            return
        self.disposed = True
        for hook in self._release_hooks:
            hook(self)
        logger.debug("Node %s released", self.name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "position": self.position.to_dict(),
            "rotation": self.rotation.to_dict(),
            "scale": self.scale.to_dict(),
            "material": self.material.to_dict() if self.material else None,
        }
