"""HTTP API tests (generation server mocked)."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from chocodrop.backend import main
from chocodrop.backend.effects import EffectRegistry
from chocodrop.generation_client import GenerationResult


@pytest.fixture
def client(monkeypatch):
    main.registry.clear_all()
    main.processor.select(None)
    main.processor.history.clear()
    main.processor._pending.clear()
    monkeypatch.setattr(main.generation_client, "ping", lambda: False)
    monkeypatch.setattr(main.generation_client, "request_generation", AsyncMock(
        return_value=GenerationResult(success=True, asset_url="/generated/cat.png", model_name="flux"),
    ))
    monkeypatch.setattr(main.processor, "auto_effects", False)
    return TestClient(main.app)


class TestStatus:
    def test_status(self, client):
        resp = client.get("/api/status")
        assert resp.status_code == 200
        body = resp.json()
        assert body["generation_connected"] is False
        assert body["objects"] == 0

    def test_classify(self, client):
        body = client.post("/api/classify", json={"command": "猫を削除して"}).json()
        assert body["intent_type"] == "delete"
        assert body["needs_target"] is True


class TestCommands:
    def test_empty(self, client):
        body = client.post("/api/command", json={"command": ""}).json()
        assert body["status"] == "empty"

    def test_generate(self, client):
        body = client.post("/api/command", json={"command": "猫の画像を作って"}).json()
        assert body["status"] == "completed"
        assert body["intent"] == "generate"
        objects = client.get("/api/objects").json()["objects"]
        assert [o["id"] for o in objects] == [body["object_id"]]
        assert objects[0]["node"]["material"]["map"] == "/generated/cat.png"

    def test_delete_needs_confirmation(self, client):
        first = client.post("/api/import", json={"file_name": "cat-a.png"}).json()["id"]
        second = client.post("/api/import", json={"file_name": "cat-b.png"}).json()["id"]

        body = client.post("/api/command", json={"command": "2番目にインポートした猫を削除"}).json()
        assert body["status"] == "needs_confirmation"
        assert body["object_id"] == second

        confirm = client.post(f"/api/command/{body['job_id']}/confirm")
        assert confirm.status_code == 200
        assert confirm.json()["status"] == "completed"
        ids = [o["id"] for o in client.get("/api/objects").json()["objects"]]
        assert ids == [first]

    def test_cancel(self, client):
        client.post("/api/import", json={"file_name": "cat-a.png"})
        body = client.post("/api/command", json={"command": "猫を削除して"}).json()
        resp = client.post(f"/api/command/{body['job_id']}/cancel")
        assert resp.json() == {"status": "cancelled", "job_id": body["job_id"]}
        assert len(client.get("/api/objects").json()["objects"]) == 1

    def test_unknown_job(self, client):
        assert client.post("/api/command/nope/confirm").status_code == 404
        assert client.post("/api/command/nope/cancel").status_code == 404

    def test_unknown_selection(self, client):
        resp = client.post("/api/command", json={"command": "赤くして", "selected_id": "missing"})
        assert resp.status_code == 404

    def test_modify_selected(self, client):
        object_id = client.post("/api/import", json={"file_name": "cat-a.png"}).json()["id"]
        body = client.post("/api/command", json={"command": "赤くして", "selected_id": object_id}).json()
        assert body["status"] == "completed"
        detail = client.get(f"/api/objects/{object_id}").json()
        assert detail["node"]["material"]["color"] == "#ff0000"
        assert detail["history"][-1]["command"] == "赤くして"

    def test_history(self, client):
        client.post("/api/command", json={"command": "猫の画像を作って"})
        history = client.get("/api/command-history").json()["history"]
        assert history[0]["command"] == "猫の画像を作って"
        assert history[0]["status"] == "completed"


class TestObjects:
    def test_missing_object(self, client):
        assert client.get("/api/objects/missing").status_code == 404
        assert client.delete("/api/objects/missing").status_code == 404

    def test_select_and_delete(self, client):
        object_id = client.post("/api/import", json={"file_name": "cat-a.png"}).json()["id"]
        assert client.post(f"/api/objects/{object_id}/select").status_code == 200
        assert client.get("/api/objects").json()["selected_id"] == object_id
        assert client.delete(f"/api/objects/{object_id}").json()["status"] == "deleted"
        assert client.get("/api/objects").json()["selected_id"] is None

    def test_effects(self, client):
        object_id = client.post("/api/import", json={"file_name": "cat-a.png"}).json()["id"]
        body = client.post(f"/api/objects/{object_id}/effects", json={"kind": "glow"}).json()
        assert body["applied"] is True
        assert body["effect_id"] == f"{object_id}_glow"

        scene = client.get("/api/scene").json()
        assert [e["kind"] for e in scene["effects"]] == ["glow"]

        assert client.delete(f"/api/objects/{object_id}/effects/glow").status_code == 200
        assert client.delete(f"/api/objects/{object_id}/effects/glow").status_code == 404

    def test_unknown_effect_kind(self, client):
        object_id = client.post("/api/import", json={"file_name": "cat-a.png"}).json()["id"]
        resp = client.post(f"/api/objects/{object_id}/effects", json={"kind": "glitch"})
        assert resp.status_code == 400

    @pytest.mark.parametrize("body", [
        {"kind": "cosmic", "params": {"colors": []}},
        {"kind": "spin", "params": {"axis": "w"}},
    ])
    def test_bad_effect_params(self, client, body):
        object_id = client.post("/api/import", json={"file_name": "cat-a.png"}).json()["id"]
        resp = client.post(f"/api/objects/{object_id}/effects", json=body)
        assert resp.status_code == 400
        assert client.get("/api/scene").json()["effects"] == []


class TestWebSocket:
    def test_ping(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("ping")
            assert ws.receive_json() == {"event": "pong"}


class TestAnimationLoop:
    def test_crashing_callback_releases_the_loop(self, monkeypatch):
        loop_effects = EffectRegistry(clock=lambda: 0.0)
        monkeypatch.setattr(main, "effects", loop_effects)

        def broken(now):
            raise RuntimeError("video texture gone")

        loop_effects.register_external("imported_file_1", broken)
        assert loop_effects.running is True
        asyncio.run(main._animation_loop())
        assert loop_effects.running is False
