"""Generation server client — HTTP+JSON transport for image/video generation."""

import asyncio
import json
import logging
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Sizes tried in order when an image request fails at the requested size.
FALLBACK_IMAGE_SIZES: list[tuple[int, int]] = [
    (512, 512),
    (768, 432),
    (1024, 1024),
    (640, 480),
]


@dataclass
class GenerationResult:
    success: bool
    asset_url: Optional[str] = None
    local_path: Optional[str] = None
    model_name: Optional[str] = None
    media_type: str = "image"
    width: int = 0
    height: int = 0
    error: Optional[str] = None


class GenerationClient:
    """Talks to the generation server that fronts the image/video models."""

    def __init__(self, url: str = "http://localhost:3011", timeout: int = 120):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.req_id = 0

    # ── Low-level transport ──────────────────────────────────

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        self.req_id += 1
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        summary = str(payload)[:200] if payload else ""
        logger.info("[GEN→] REQ #%d: %s %s %s", self.req_id, method, path, summary)

        t0 = time.time()
        req = urllib.request.Request(self.url + path, data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8", errors="replace")
                elapsed = time.time() - t0
                logger.info("[GEN←] RES #%d: %s %s, %.3fs", self.req_id, method, path, elapsed)
                if not raw:
                    return {}
                try:
                    parsed = json.loads(raw)
                except json.JSONDecodeError:
                    logger.error("[GEN✗] REQ #%d non-JSON response: %s", self.req_id, raw[:200])
                    return {"success": False, "error": "generation server returned a non-JSON response"}
                if not isinstance(parsed, dict):
                    return {"success": False, "error": "generation server returned an unexpected response"}
                return parsed
        except urllib.error.HTTPError as e:
            # The server reports failures as JSON bodies with a non-2xx status
            elapsed = time.time() - t0
            body = e.read().decode("utf-8", errors="replace")
            logger.error("[GEN✗] REQ #%d HTTP %d after %.3fs: %s", self.req_id, e.code, elapsed, body[:200])
            try:
                parsed = json.loads(body)
            except json.JSONDecodeError:
                parsed = {}
            if isinstance(parsed, dict):
                parsed.setdefault("success", False)
                parsed.setdefault("error", f"HTTP {e.code}")
                return parsed
            return {"success": False, "error": f"HTTP {e.code}"}
        except OSError as e:  # URLError, socket timeouts, connection resets
            elapsed = time.time() - t0
            logger.error("[GEN✗] REQ #%d FAILED after %.3fs: %s", self.req_id, elapsed, e)
            raise ConnectionError(f"Cannot reach generation server at {self.url}: {e}") from e

    # ── Server info ──────────────────────────────────────────

    def ping(self) -> bool:
        """Check if the generation server is responsive."""
        try:
            self._request("GET", "/health")
            return True
        except ConnectionError:
            return False

    def list_services(self) -> list[dict]:
        """Models the server can route to."""
        resp = self._request("GET", "/api/services")
        services = resp.get("services", [])
        return services if isinstance(services, list) else []

    # ── Generation ───────────────────────────────────────────

    def generate_image(self, prompt: str, width: int = 512, height: int = 512,
                       service: Optional[str] = None) -> dict:
        payload: dict[str, Any] = {"prompt": prompt, "width": width, "height": height}
        if service:
            payload["service"] = service
        return self._request("POST", "/api/generate", payload)

    def generate_video(self, prompt: str, width: int = 512, height: int = 512,
                       duration: int = 3, model: Optional[str] = None) -> dict:
        payload: dict[str, Any] = {
            "prompt": prompt, "width": width, "height": height, "duration": duration,
        }
        if model:
            payload["model"] = model
        return self._request("POST", "/api/generate-video", payload)

    async def request_generation(self, prompt: str, options: Optional[dict] = None) -> GenerationResult:
        """Generate one asset.  Never raises; failures come back as results.

        ``options`` keys: ``media`` ("image"/"video"), ``width``, ``height``,
        ``duration``, ``service``.  Image requests walk the fallback sizes
        until one succeeds.
        """
        options = options or {}
        media = options.get("media", "image")
        width = int(options.get("width", 512))
        height = int(options.get("height", 512))

        if media == "video":
            attempts = [(width, height)]
        else:
            attempts = [(width, height)] + [s for s in FALLBACK_IMAGE_SIZES if s != (width, height)]

        last_error = "no attempt made"
        for w, h in attempts:
            try:
                if media == "video":
                    resp = await asyncio.to_thread(
                        self.generate_video, prompt, w, h,
                        int(options.get("duration", 3)), options.get("model"),
                    )
                else:
                    resp = await asyncio.to_thread(
                        self.generate_image, prompt, w, h, options.get("service"),
                    )
            except ConnectionError as e:
                return GenerationResult(success=False, media_type=media, error=str(e))

            asset_url = resp.get("videoUrl" if media == "video" else "imageUrl") or resp.get("url")
            if resp.get("success") and asset_url:
                return GenerationResult(
                    success=True,
                    asset_url=asset_url,
                    local_path=resp.get("localPath"),
                    model_name=resp.get("modelName"),
                    media_type=media,
                    width=w,
                    height=h,
                )
            last_error = resp.get("error") or "server returned no asset"
            logger.warning("Generation at %dx%d failed: %s", w, h, last_error)

        return GenerationResult(success=False, media_type=media, error=last_error)
