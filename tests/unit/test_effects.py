"""Unit tests for the effect registry and its frame loop."""

import math

import pytest

from chocodrop.backend.effects import EffectKind, EffectRegistry
from chocodrop.backend.models import ErrorCode, SourceKind
from chocodrop.backend.object_registry import ObjectRegistry
from chocodrop.backend.scene_node import Material, SceneNode


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def effects(clock):
    return EffectRegistry(clock=clock)


@pytest.fixture
def registry(effects):
    return ObjectRegistry(effects=effects)


def _add(registry, material=None, prompt="a small red flower"):
    node = SceneNode(material=material if material is not None else Material.standard(0x336699))
    object_id = registry.create(SourceKind.GENERATED_IMAGE, prompt, node)
    return registry.get(object_id)


class TestRequest:
    def test_glow_twice_keeps_one_instance(self, registry, effects):
        record = _add(registry)
        first = effects.request_effect(record, EffectKind.GLOW, {"intensity": 0.4})
        second = effects.request_effect(record, EffectKind.GLOW, {"intensity": 0.9})
        assert first.applied and not first.replaced
        assert second.applied and second.replaced
        assert effects.active_count == 1
        assert record.node.material.emissive_intensity == 0.9

    def test_effect_id_format(self, registry, effects):
        record = _add(registry)
        outcome = effects.request_effect(record, "glow")
        assert outcome.effect_id == f"{record.id}_glow"
        assert effects.get(outcome.effect_id).kind == EffectKind.GLOW

    def test_unsupported_material(self, registry, effects):
        record = _add(registry, Material())
        outcome = effects.request_effect(record, EffectKind.MATERIAL)
        assert not outcome.applied
        assert outcome.error == ErrorCode.UNSUPPORTED_MATERIAL_PROPERTY
        assert effects.active_count == 0

    def test_chroma_key_needs_texture(self, registry, effects):
        plain = _add(registry, Material())
        textured = _add(registry, Material(map="/generated/cat.png"), prompt="cat")
        assert not effects.request_effect(plain, EffectKind.CHROMA_KEY).applied
        assert effects.request_effect(textured, EffectKind.CHROMA_KEY, {"color": 0x00FF00}).applied
        assert textured.node.material.chroma_key["color"] == 0x00FF00
        assert textured.node.material.transparent is True

    def test_disposed_object_refused(self, registry, effects):
        record = _add(registry)
        registry.dispose(record.id)
        outcome = effects.request_effect(record, EffectKind.GLOW)
        assert outcome.error == ErrorCode.NO_TARGET_FOUND

    def test_glow_on_basic_material_blends_color(self, registry, effects):
        record = _add(registry, Material(color=0x000000))
        effects.request_effect(record, EffectKind.GLOW, {"color": 0xFFFFFF})
        assert record.node.material.color == 0x666666
        assert record.node.material.emissive is None

    def test_monochrome(self, registry, effects):
        record = _add(registry, Material(color=0xFF0000))
        effects.request_effect(record, EffectKind.MONOCHROME)
        assert record.node.material.color == 0x4C4C4C
        assert record.node.material.grayscale is True

    @pytest.mark.parametrize("kind, params", [
        (EffectKind.COSMIC, {"colors": []}),
        (EffectKind.SPIN, {"axis": "w"}),
        (EffectKind.PULSE, {"speed": "fast"}),
        (EffectKind.GLOW, {"color": "#ff0000"}),
    ])
    def test_bad_params_refused(self, registry, effects, kind, params):
        record = _add(registry)
        outcome = effects.request_effect(record, kind, params)
        assert not outcome.applied
        assert outcome.error == ErrorCode.INVALID_EFFECT_PARAMS
        assert effects.active_count == 0
        assert effects.running is False


class TestClear:
    def test_clear_restores_fields(self, registry, effects):
        record = _add(registry)
        effects.request_effect(record, EffectKind.GLOW, {"color": 0xFF00FF, "intensity": 0.8})
        assert effects.clear_effect(record, EffectKind.GLOW)
        assert record.node.material.emissive == 0x000000
        assert record.node.material.emissive_intensity == 0.0
        assert not effects.clear_effect(record, EffectKind.GLOW)

    def test_replace_keeps_original_baseline(self, registry, effects):
        record = _add(registry, Material(color=0x000000))
        effects.request_effect(record, EffectKind.GLOW, {"color": 0xFFFFFF})
        effects.request_effect(record, EffectKind.GLOW, {"color": 0xFFFFFF})
        assert record.node.material.color == 0x666666
        effects.clear_effect(record.id, "glow")
        assert record.node.material.color == 0x000000


class TestTick:
    def test_pulse(self, registry, effects):
        record = _add(registry)
        effects.request_effect(record, EffectKind.PULSE)
        assert effects.tick(0.25) is True
        assert record.node.scale.x == pytest.approx(1.1)

    def test_spin(self, registry, effects):
        record = _add(registry)
        effects.request_effect(record, EffectKind.SPIN)
        effects.tick(1.0)
        assert record.node.rotation.y == pytest.approx(math.pi / 2)

    def test_dispose_stops_animation(self, registry, effects):
        record = _add(registry)
        effects.request_effect(record, EffectKind.FLOAT)
        effects.request_effect(record, EffectKind.GLOW)
        registry.dispose(record.id)
        before = record.node.position.copy()
        assert effects.effects_for(record.id) == []
        assert effects.tick(0.5) is False
        assert record.node.position == before

    def test_timed_effect_expires(self, registry, effects, clock):
        record = _add(registry)
        effects.request_effect(record, EffectKind.SPARKLE, duration=3.0)
        clock.now = 1.0
        assert effects.tick() is True
        assert record.node.material.emissive_intensity > 0
        clock.now = 3.0
        assert effects.tick() is False
        assert effects.active_count == 0
        assert record.node.material.emissive == 0x000000

    def test_static_effects_do_not_keep_loop_alive(self, registry, effects):
        record = _add(registry)
        effects.request_effect(record, EffectKind.GLOW)
        assert not effects.has_pending_work()
        assert effects.tick(1.0) is False


class TestLoopHooks:
    def test_on_start_fires_once_per_run(self, clock):
        starts = []
        effects = EffectRegistry(clock=clock, on_start=lambda: starts.append(clock.now))
        registry = ObjectRegistry(effects=effects)
        record = _add(registry)

        effects.request_effect(record, EffectKind.GLOW)
        assert starts == []
        effects.request_effect(record, EffectKind.PULSE)
        effects.request_effect(record, EffectKind.SPIN)
        assert len(starts) == 1

        effects.clear_object(record.id)
        assert effects.tick() is False
        effects.request_effect(record, EffectKind.PULSE)
        assert len(starts) == 2

    def test_external_animation(self, registry, effects):
        record = _add(registry)
        seen = []
        effects.register_external(record.id, seen.append)
        assert effects.tick(2.0) is True
        assert seen == [2.0]
        registry.dispose(record.id)
        assert effects.tick(3.0) is False
        assert seen == [2.0]
