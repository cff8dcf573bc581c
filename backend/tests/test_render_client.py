"""
Tests for promoreel.services.render_client
"""

import json

import httpx
import pytest

from promoreel.models.config import RenderFormat
from promoreel.services.render_client import RenderClient, RenderError


def client_with(handler):
    return RenderClient(transport=httpx.MockTransport(handler))


class TestRender:

    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "videoUrl": "/outputs/v.mp4", "renderTime_ms": 4200})

        result = await client_with(handler).render("export const A = 1;", 450, RenderFormat.WEBM)

        assert result.success
        assert result.video_url == "/outputs/v.mp4"
        assert result.render_time_ms == 4200
        assert seen["path"] == "/render"
        assert seen["body"] == {"remotionCode": "export const A = 1;", "durationInFrames": 450, "format": "webm"}

    @pytest.mark.asyncio
    async def test_worker_failure_is_a_result(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "error": "Unexpected token"})

        result = await client_with(handler).render("bad code")

        assert not result.success
        assert result.error == "Unexpected token"
        assert result.render_time_ms is not None

    @pytest.mark.asyncio
    async def test_missing_video_url_is_a_failure(self):
        def handler(request):
            return httpx.Response(200, json={"success": True})

        result = await client_with(handler).render("export const A = 1;")

        assert not result.success
        assert result.error == "Worker não retornou URL do vídeo"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        def handler(request):
            return httpx.Response(502, text="bad gateway")

        with pytest.raises(RenderError, match="502"):
            await client_with(handler).render("export const A = 1;")

    @pytest.mark.asyncio
    async def test_unreachable_worker_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RenderError, match="inacessível"):
            await client_with(handler).render("export const A = 1;")


@pytest.mark.asyncio
async def test_connection_check():
    def handler(request):
        assert request.url.path == "/health"
        return httpx.Response(200, json={"status": "ok"})

    assert await client_with(handler).test_connection() == {"connected": True, "details": {"status": "ok"}}
