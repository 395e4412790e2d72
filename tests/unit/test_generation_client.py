"""Unit tests for the generation server client (HTTP mocked)."""

import asyncio
import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

from chocodrop.generation_client import GenerationClient

URLOPEN = "urllib.request.urlopen"


def _response(payload: dict) -> MagicMock:
    resp = MagicMock()
    resp.read.return_value = json.dumps(payload).encode("utf-8")
    resp.__enter__.return_value = resp
    return resp


def _http_error(code: int, payload: dict) -> urllib.error.HTTPError:
    body = io.BytesIO(json.dumps(payload).encode("utf-8"))
    return urllib.error.HTTPError("http://localhost:3011/api/generate", code, "error", {}, body)


class TestTransport:
    def test_ping(self):
        client = GenerationClient()
        with patch(URLOPEN, return_value=_response({"status": "ok"})):
            assert client.ping() is True
        with patch(URLOPEN, side_effect=urllib.error.URLError("refused")):
            assert client.ping() is False

    def test_http_error_body_is_returned(self):
        client = GenerationClient()
        with patch(URLOPEN, side_effect=_http_error(500, {"error": "model busy"})):
            resp = client.generate_image("cat")
        assert resp == {"error": "model busy", "success": False}

    def test_list_services(self):
        client = GenerationClient()
        services = [{"id": "flux"}, {"id": "wan"}]
        with patch(URLOPEN, return_value=_response({"services": services})):
            assert client.list_services() == services


class TestRequestGeneration:
    def test_image_success(self):
        client = GenerationClient("http://gen:3011/", timeout=5)
        payload = {"success": True, "imageUrl": "/generated/cat.png", "modelName": "flux"}
        with patch(URLOPEN, return_value=_response(payload)) as urlopen:
            result = asyncio.run(client.request_generation("猫", {"media": "image"}))
        assert result.success is True
        assert result.asset_url == "/generated/cat.png"
        assert result.model_name == "flux"
        assert (result.width, result.height) == (512, 512)
        request = urlopen.call_args[0][0]
        assert request.full_url == "http://gen:3011/api/generate"
        assert json.loads(request.data)["prompt"] == "猫"

    def test_image_falls_back_to_next_size(self):
        client = GenerationClient()
        responses = [
            _response({"success": False, "error": "unsupported size"}),
            _response({"success": True, "imageUrl": "/generated/cat.png"}),
        ]
        with patch(URLOPEN, side_effect=responses) as urlopen:
            result = asyncio.run(client.request_generation("cat"))
        assert result.success is True
        assert (result.width, result.height) == (768, 432)
        assert urlopen.call_count == 2

    def test_all_sizes_fail(self):
        client = GenerationClient()
        with patch(URLOPEN, return_value=_response({"success": False, "error": "quota"})) as urlopen:
            result = asyncio.run(client.request_generation("cat"))
        assert result.success is False
        assert result.error == "quota"
        assert urlopen.call_count == 4

    def test_video(self):
        client = GenerationClient()
        payload = {"success": True, "videoUrl": "/generated/cat.mp4"}
        with patch(URLOPEN, return_value=_response(payload)) as urlopen:
            result = asyncio.run(client.request_generation("cat", {"media": "video", "duration": 5}))
        assert result.success is True
        assert result.media_type == "video"
        assert result.asset_url == "/generated/cat.mp4"
        request = urlopen.call_args[0][0]
        assert request.full_url.endswith("/api/generate-video")
        assert json.loads(request.data)["duration"] == 5

    def test_unreachable_server_never_raises(self):
        client = GenerationClient()
        with patch(URLOPEN, side_effect=urllib.error.URLError("refused")):
            result = asyncio.run(client.request_generation("cat"))
        assert result.success is False
        assert "Cannot reach" in result.error


class TestBrokenResponses:
    def test_read_timeout(self):
        client = GenerationClient(timeout=1)
        with patch(URLOPEN, side_effect=TimeoutError("timed out")):
            assert client.ping() is False
            result = asyncio.run(client.request_generation("a cat"))
        assert result.success is False
        assert "timed out" in result.error

    def test_non_json_body(self):
        client = GenerationClient()
        resp = MagicMock()
        resp.read.return_value = b"<html>bad gateway</html>"
        resp.__enter__.return_value = resp
        with patch(URLOPEN, return_value=resp) as urlopen:
            result = asyncio.run(client.request_generation("a cat"))
        assert result.success is False
        assert "non-JSON" in result.error
        assert urlopen.call_count == 4

    def test_json_that_is_not_an_object(self):
        client = GenerationClient()
        with patch(URLOPEN, return_value=_response(["unexpected"])):
            result = asyncio.run(client.request_generation("a cat", {"media": "video"}))
        assert result.success is False
        assert result.error == "generation server returned an unexpected response"
