"""
Tests for promoreel.services.api_client
"""

import json

import httpx
import pytest

from promoreel.models.pipeline import GenerationRequest
from promoreel.models.recording import CursorEvent, CursorSource, ProcessingStatus, ScreenRecording
from promoreel.services.api_client import PromoReelClient


def ndjson_body(*events):
    return "".join(json.dumps({"type": t, "data": d}) + "\n" for t, d in events).encode("utf-8")


class TestStreams:

    @pytest.mark.asyncio
    async def test_generate_projects_the_stream(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            body = ndjson_body(
                ("status", {"step": "scripting", "message": "Analyzing product description..."}),
                ("productData", {"name": "Your Product"}),
                ("videoScript", {"totalDuration": 900, "scenes": []}),
                ("complete", {"success": True, "message": "Script ready for review"}),
            )
            return httpx.Response(200, content=body, headers={"content-type": "application/x-ndjson"})

        async with PromoReelClient(transport=httpx.MockTransport(handler)) as client:
            run = await client.generate(GenerationRequest(description="Invoices", duration=30))

        assert seen["path"] == "/api/creative/generate"
        assert seen["body"]["description"] == "Invoices"
        assert seen["body"]["url"] is None
        assert run.succeeded
        assert run.product_data.name == "Your Product"
        assert run.video_script.total_duration == 900

    @pytest.mark.asyncio
    async def test_stream_yields_events(self):
        def handler(request):
            return httpx.Response(200, content=ndjson_body(("videoUrl", "/outputs/v.mp4")))

        async with PromoReelClient(transport=httpx.MockTransport(handler)) as client:
            events = [e async for e in client.stream("/api/creative/render", {"remotionCode": "x"})]

        assert [e.data for e in events] == ["/outputs/v.mp4"]

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        def handler(request):
            return httpx.Response(400, json={"detail": "URL ou descrição é obrigatória"})

        async with PromoReelClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.generate(GenerationRequest(description="x"))


class TestRecordings:

    @pytest.mark.asyncio
    async def test_upload_sends_multipart_form(self, tmp_path):
        video = tmp_path / "clip.webm"
        video.write_bytes(b"\x1aE\xdf\xa3")
        seen = {}

        def handler(request):
            seen["content_type"] = request.headers["content-type"]
            seen["body"] = request.content
            return httpx.Response(200, json={
                "success": True,
                "recordingId": "rec-1",
                "videoUrl": "/recordings/proj/recording-rec-1.webm",
                "processingStatus": "complete",
            })

        async with PromoReelClient(transport=httpx.MockTransport(handler)) as client:
            result = await client.upload_recording(
                video,
                project_id="proj",
                feature_name="Dashboard",
                cursor_data=[CursorEvent(type="click", x=1, y=2, timestamp=0)],
            )

        assert result.recording_id == "rec-1"
        assert result.processing_status == ProcessingStatus.COMPLETE
        assert seen["content_type"].startswith("multipart/form-data")
        assert b'name="featureName"' in seen["body"]
        assert b'filename="clip.webm"' in seen["body"]

    @pytest.mark.asyncio
    async def test_coordinator_polls_status_endpoint(self):
        def handler(request):
            assert request.url.path == "/api/recordings/rec-1/status"
            return httpx.Response(200, json={"recordingId": "rec-1", "status": "complete", "progress": 100})

        pending = ScreenRecording(
            id="rec-1",
            video_url="/recordings/p/rec-1.webm",
            cursor_source=CursorSource.EXTERNAL_CV,
            processing_status=ProcessingStatus.PENDING,
        )
        async with PromoReelClient(transport=httpx.MockTransport(handler)) as client:
            coordinator = client.coordinator([pending], interval=0)
            await coordinator.run()

        assert coordinator.get("rec-1").processing_status == ProcessingStatus.COMPLETE
