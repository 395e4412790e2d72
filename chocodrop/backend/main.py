"""ChocoDrop — FastAPI backend.

Receives natural language commands, classifies them, resolves the target
object and mutates the scene.  Destructive commands wait for the user to
confirm them via /api/command/{job_id}/confirm.
"""

import asyncio
import json
import logging
import os
import time
from dataclasses import asdict
from enum import Enum
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from . import config
from .command_processor import CommandOutcome, CommandProcessor, OutcomeStatus
from .effects import EffectKind, EffectRegistry
from .intent_classifier import classify
from .models import ErrorCode
from .object_registry import ObjectRegistry
from .scene_node import Vector3
from ..generation_client import GenerationClient

# ── Logging ──────────────────────────────────────────────────

os.makedirs(config.LOGS_DIR, exist_ok=True)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler(config.LOGS_DIR / "chocodrop.log", encoding="utf-8"),
    ],
)
logger = logging.getLogger("chocodrop")

# ── App ──────────────────────────────────────────────────────

app = FastAPI(
    title="ChocoDrop",
    version="1.0.0",
    description="Natural language → 3D scene objects",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Animation loop ───────────────────────────────────────────

_loop_task: Optional[asyncio.Task] = None


async def _animation_loop():
    interval = 1.0 / max(config.TICK_HZ, 1)
    try:
        while effects.tick():
            await asyncio.sleep(interval)
    except Exception:
        logger.exception("Animation loop crashed")
    finally:
        # Let the next animated effect start a fresh loop
        effects.running = False
    logger.debug("Animation loop finished")


def _start_animation_loop():
    """Called by the effect registry when there is something to animate."""
    global _loop_task
    if _loop_task is not None and not _loop_task.done():
        return
    try:
        _loop_task = asyncio.get_running_loop().create_task(_animation_loop())
    except RuntimeError:
        # No event loop: frames are driven by whoever calls tick()
        effects.running = False


# ── State ────────────────────────────────────────────────────

generation_client = GenerationClient(url=config.GENERATION_SERVER_URL, timeout=config.GENERATION_TIMEOUT)
effects = EffectRegistry(on_start=_start_animation_loop)
registry = ObjectRegistry(effects=effects)
processor = CommandProcessor(registry, effects, generation_client)
ws_connections: list[WebSocket] = []


def _safe_asdict(obj) -> dict:
    """Convert a dataclass to a JSON-serializable dict (enums → values)."""
    d = asdict(obj)

    def _convert(v):
        if isinstance(v, Enum):
            return v.value
        if isinstance(v, dict):
            return {k: _convert(val) for k, val in v.items()}
        if isinstance(v, (list, tuple, set)):
            return [_convert(item) for item in v]
        return v

    return {k: _convert(v) for k, v in d.items()}


def _object_or_404(object_id: str):
    record = registry.get(object_id)
    if record is None:
        raise HTTPException(404, f"Object {object_id} not found")
    return record


def _object_payload(record) -> dict:
    return {
        **record.summary(),
        "selected": record.id == processor.selected_id,
        "node": record.node.to_dict(),
        "effects": [inst.kind.value for inst in effects.effects_for(record.id)],
    }


# ── Models ───────────────────────────────────────────────────

class CommandRequest(BaseModel):
    command: str
    selected_id: Optional[str] = None


class CommandResponse(BaseModel):
    job_id: str
    status: str
    intent: str = ""
    message: str = ""
    object_id: Optional[str] = None
    error: Optional[str] = None
    disambiguation: Optional[dict] = None
    details: dict = {}


class ClassifyRequest(BaseModel):
    command: str
    has_selected_object: bool = False


class ImportRequest(BaseModel):
    file_name: str
    asset_url: Optional[str] = None
    media: str = "image"
    position: Optional[list[float]] = None
    size: Optional[float] = None


class EffectRequest(BaseModel):
    kind: str
    params: dict = {}
    duration: Optional[float] = None


def _response(outcome: CommandOutcome) -> CommandResponse:
    return CommandResponse(
        job_id=outcome.job_id,
        status=outcome.status.value,
        intent=outcome.intent,
        message=outcome.message,
        object_id=outcome.object_id,
        error=outcome.error.value if outcome.error else None,
        disambiguation=outcome.disambiguation,
        details=_safe_asdict(outcome)["details"],
    )


# ── WebSocket broadcast ──────────────────────────────────────

async def broadcast(event: str, data: dict):
    """Broadcast event to all connected WebSocket clients."""
    message = json.dumps({"event": event, "data": data}, ensure_ascii=False, default=str)
    disconnected = []
    for ws in ws_connections:
        try:
            await ws.send_text(message)
        except Exception:
            disconnected.append(ws)
    for ws in disconnected:
        ws_connections.remove(ws)


# ── Core Routes ──────────────────────────────────────────────

@app.get("/api/status")
async def status():
    reachable = await asyncio.to_thread(generation_client.ping)
    return {
        "generation_server": config.GENERATION_SERVER_URL,
        "generation_connected": reachable,
        "objects": len(registry),
        "active_effects": effects.active_count,
        "animation_running": effects.running,
        "selected_id": processor.selected_id,
        "pending_confirmations": len(processor.pending()),
    }


@app.post("/api/classify")
async def classify_command(req: ClassifyRequest):
    """Dry run: show how a sentence would be interpreted."""
    parsed = classify(req.command, req.has_selected_object)
    return _safe_asdict(parsed)


@app.post("/api/command", response_model=CommandResponse)
async def execute_command(req: CommandRequest):
    """Run one natural-language command.

    Deletes are NOT executed here; they come back as ``needs_confirmation``
    and run only after /api/command/{job_id}/confirm.
    """
    if req.selected_id is not None and not registry.contains(req.selected_id):
        raise HTTPException(404, f"Object {req.selected_id} not found")

    outcome = await processor.submit(req.command, req.selected_id)
    if outcome.status is OutcomeStatus.EMPTY:
        return _response(outcome)

    logger.info("Job %s: %s → %s", outcome.job_id, outcome.intent, outcome.status.value)
    await broadcast("job_update", {
        "job_id": outcome.job_id, "command": req.command,
        "status": outcome.status.value, "object_id": outcome.object_id,
    })
    if outcome.status is OutcomeStatus.COMPLETED and outcome.intent == "generate":
        await broadcast("object_created", _object_payload(registry.get(outcome.object_id)))
    return _response(outcome)


@app.post("/api/command/{job_id}/confirm", response_model=CommandResponse)
async def confirm_command(job_id: str):
    """Confirm and execute a pending destructive command."""
    outcome = processor.confirm(job_id)
    if outcome is None:
        raise HTTPException(404, f"No pending command found for job {job_id}")
    for object_id in outcome.details.get("disposed", []):
        await broadcast("object_removed", {"id": object_id})
    return _response(outcome)


@app.post("/api/command/{job_id}/cancel")
async def cancel_command(job_id: str):
    """Discard a pending destructive command."""
    outcome = processor.cancel(job_id)
    if outcome is None:
        raise HTTPException(404, f"No pending command found for job {job_id}")
    await broadcast("job_cancelled", {"job_id": job_id})
    return {"status": "cancelled", "job_id": job_id}


@app.get("/api/command-history")
async def get_command_history():
    return {"history": list(processor.history)}


# ── Objects ──────────────────────────────────────────────────

@app.post("/api/import")
async def import_file(req: ImportRequest):
    """Register a user-picked file as an imported object."""
    position = Vector3(*req.position) if req.position and len(req.position) == 3 else None
    record = processor.import_file(req.file_name, req.asset_url, req.media, position, req.size)
    payload = _object_payload(record)
    await broadcast("object_created", payload)
    return payload


@app.get("/api/objects")
async def list_objects():
    return {"objects": [_object_payload(r) for r in registry.all()], "selected_id": processor.selected_id}


@app.get("/api/objects/{object_id}")
async def get_object(object_id: str):
    record = _object_or_404(object_id)
    return {**_object_payload(record), "history": record.modification_history}


@app.delete("/api/objects/{object_id}")
async def delete_object(object_id: str):
    """Direct removal from the UI (the user already picked the object)."""
    _object_or_404(object_id)
    registry.dispose(object_id)
    if processor.selected_id == object_id:
        processor.select(None)
    await broadcast("object_removed", {"id": object_id})
    return {"status": "deleted", "id": object_id}


@app.post("/api/objects/{object_id}/select")
async def select_object(object_id: str):
    _object_or_404(object_id)
    processor.select(object_id)
    await broadcast("selection_changed", {"id": object_id})
    return {"status": "selected", "id": object_id}


@app.post("/api/objects/{object_id}/effects")
async def add_effect(object_id: str, req: EffectRequest):
    record = _object_or_404(object_id)
    try:
        kind = EffectKind(req.kind)
    except ValueError:
        raise HTTPException(400, f"Unknown effect kind: {req.kind}")
    outcome = effects.request_effect(record, kind, req.params, req.duration)
    if outcome.error is ErrorCode.INVALID_EFFECT_PARAMS:
        raise HTTPException(400, f"Invalid parameters for effect {req.kind}")
    if outcome.applied:
        await broadcast("effect_started", {"id": object_id, "effect_id": outcome.effect_id})
    return _safe_asdict(outcome)


@app.delete("/api/objects/{object_id}/effects/{kind}")
async def remove_effect(object_id: str, kind: str):
    _object_or_404(object_id)
    try:
        effect_kind = EffectKind(kind)
    except ValueError:
        raise HTTPException(400, f"Unknown effect kind: {kind}")
    if not effects.clear_effect(object_id, effect_kind):
        raise HTTPException(404, f"Effect {kind} is not active on {object_id}")
    return {"status": "cleared", "id": object_id, "kind": kind}


@app.get("/api/scene")
async def get_scene():
    """Full renderable snapshot: nodes plus active effect instances."""
    return {
        "timestamp": time.time(),
        "objects": [_object_payload(r) for r in registry.all()],
        "effects": [inst.to_dict() for inst in effects.all()],
        "selected_id": processor.selected_id,
    }


# ── WebSocket ────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    """WebSocket for real-time scene updates."""
    await ws.accept()
    ws_connections.append(ws)
    logger.info("WS connected (total: %d)", len(ws_connections))
    try:
        while True:
            data = await ws.receive_text()
            if data == "ping":
                await ws.send_text(json.dumps({"event": "pong"}))
    except WebSocketDisconnect:
        if ws in ws_connections:
            ws_connections.remove(ws)
        logger.info("WS disconnected (total: %d)", len(ws_connections))


# ── Startup ──────────────────────────────────────────────────

@app.on_event("startup")
async def startup():
    logger.info("ChocoDrop v1.0 starting...")
    logger.info("Generation server: %s", config.GENERATION_SERVER_URL)
    logger.info("Auto effects: %s, tick rate: %d Hz", config.AUTO_EFFECTS, config.TICK_HZ)
    if await asyncio.to_thread(generation_client.ping):
        logger.info("Generation server reachable")
    else:
        logger.warning("Generation server not reachable — generate commands will fail until it is up")
