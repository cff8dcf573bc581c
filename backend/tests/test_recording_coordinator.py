"""
Tests for promoreel.services.recording_coordinator
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from promoreel.models.pipeline import GenerationRequest
from promoreel.models.recording import (
    CursorSource,
    ProcessingStatus,
    RecordingStatusResponse,
    ScreenRecording,
)
from promoreel.services.recording_coordinator import RecordingJobCoordinator, TickKind


def cv_recording(recording_id, status=ProcessingStatus.PENDING):
    return ScreenRecording(
        id=recording_id,
        video_url=f"/recordings/p/{recording_id}.webm",
        cursor_source=CursorSource.EXTERNAL_CV,
        processing_status=status,
    )


def status(value, **kwargs):
    return RecordingStatusResponse(status=value, **kwargs)


class ScriptedFetcher:
    """Returns queued responses per recording; exceptions are raised."""

    def __init__(self, script):
        self.script = {rid: list(responses) for rid, responses in script.items()}
        self.calls = []

    async def __call__(self, recording_id):
        self.calls.append(recording_id)
        responses = self.script[recording_id]
        item = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(item, Exception):
            raise item
        return item


class TestTick:

    @pytest.mark.asyncio
    async def test_pending_set_is_derived(self):
        tracked = ScreenRecording(id="live", video_url="/recordings/p/live.webm")
        coordinator = RecordingJobCoordinator(
            AsyncMock(),
            recordings=[tracked, cv_recording("a"), cv_recording("b", ProcessingStatus.FAILED)],
        )
        assert coordinator.pending_ids == ["a"]

    @pytest.mark.asyncio
    async def test_complete_merges_data_and_leaves_set(self):
        fetch = ScriptedFetcher({"a": [status(
            "complete",
            cursor_data=[{"type": "click", "x": 10, "y": 20, "timestamp": 100}],
            zoom_points=[{"time": 0.1, "x": 0.5, "y": 0.5}],
        )]})
        coordinator = RecordingJobCoordinator(fetch, recordings=[cv_recording("a")])

        outcomes = await coordinator.tick()

        assert [o.kind for o in outcomes] == [TickKind.RESOLVED]
        recording = coordinator.get("a")
        assert recording.processing_status == ProcessingStatus.COMPLETE
        assert len(recording.cursor_data) == 1
        assert len(recording.zoom_points) == 1
        assert coordinator.pending_ids == []
        assert await coordinator.tick() == []

    @pytest.mark.asyncio
    async def test_progress_updates_only_that_recording(self):
        fetch = ScriptedFetcher({
            "a": [status("processing", progress=30)],
            "b": [status("pending")],
        })
        coordinator = RecordingJobCoordinator(fetch, recordings=[cv_recording("a"), cv_recording("b")])

        outcomes = {o.recording_id: o for o in await coordinator.tick()}

        assert outcomes["a"].kind == TickKind.PROGRESS
        assert outcomes["a"].progress == 30
        assert outcomes["b"].kind == TickKind.UNCHANGED
        assert coordinator.get("a").processing_status == ProcessingStatus.PROCESSING
        assert coordinator.get("b").processing_status == ProcessingStatus.PENDING
        assert coordinator.get("b").progress == 0

    @pytest.mark.asyncio
    async def test_failure_is_terminal(self):
        fetch = ScriptedFetcher({"a": [status("failed", error="no cursor found")]})
        coordinator = RecordingJobCoordinator(fetch, recordings=[cv_recording("a")])

        outcomes = await coordinator.tick()

        assert outcomes[0].kind == TickKind.FAILED
        assert coordinator.get("a").error == "no cursor found"
        assert coordinator.pending_ids == []

    @pytest.mark.asyncio
    async def test_not_found_resolves_without_data(self):
        fetch = ScriptedFetcher({"a": [status("not_found")]})
        coordinator = RecordingJobCoordinator(fetch, recordings=[cv_recording("a")])

        outcomes = await coordinator.tick()

        assert outcomes[0].kind == TickKind.RESOLVED
        assert coordinator.get("a").cursor_data == []

    @pytest.mark.asyncio
    async def test_transport_error_is_isolated(self):
        fetch = ScriptedFetcher({
            "a": [status("processing", progress=50), status("complete")],
            "b": [httpx.ConnectError("connection refused")],
        })
        coordinator = RecordingJobCoordinator(fetch, recordings=[cv_recording("a"), cv_recording("b")])

        first = {o.recording_id: o.kind for o in await coordinator.tick()}
        second = {o.recording_id: o.kind for o in await coordinator.tick()}

        assert first == {"a": TickKind.PROGRESS, "b": TickKind.TRANSPORT_ERROR}
        assert second == {"a": TickKind.RESOLVED, "b": TickKind.TRANSPORT_ERROR}
        assert coordinator.get("a").processing_status == ProcessingStatus.COMPLETE
        assert coordinator.get("b").processing_status == ProcessingStatus.PENDING
        assert coordinator.pending_ids == ["b"]

    @pytest.mark.asyncio
    async def test_unexpected_fetch_error_is_isolated(self):
        fetch = ScriptedFetcher({
            "a": [asyncio.TimeoutError("slow"), status("complete")],
            "b": [status("complete")],
        })
        coordinator = RecordingJobCoordinator(fetch, recordings=[cv_recording("a"), cv_recording("b")])

        first = {o.recording_id: o.kind for o in await coordinator.tick()}

        assert first == {"a": TickKind.TRANSPORT_ERROR, "b": TickKind.RESOLVED}
        assert coordinator.get("b").processing_status == ProcessingStatus.COMPLETE
        assert coordinator.pending_ids == ["a"]

        await coordinator.tick()
        assert coordinator.pending_ids == []

    @pytest.mark.asyncio
    async def test_on_update_sync_and_async(self):
        seen = []
        async_cb = AsyncMock()

        fetch = ScriptedFetcher({"a": [status("complete")], "b": [status("pending")]})
        coordinator = RecordingJobCoordinator(
            fetch,
            recordings=[cv_recording("a"), cv_recording("b")],
            on_update=lambda outcome, recording: seen.append((outcome.kind, recording.id)),
        )
        await coordinator.tick()
        assert seen == [(TickKind.RESOLVED, "a")]

        coordinator.on_update = async_cb
        coordinator.add(cv_recording("c"))
        fetch.script["c"] = [status("failed")]
        await coordinator.tick()
        async_cb.assert_awaited_once()
        assert async_cb.await_args.args[0].kind == TickKind.FAILED


class TestLoop:

    @pytest.mark.asyncio
    async def test_run_terminates_when_all_resolved(self):
        fetch = ScriptedFetcher({
            "a": [status("processing", progress=10), status("processing", progress=70), status("complete")],
            "b": [status("failed")],
        })
        coordinator = RecordingJobCoordinator(
            fetch, recordings=[cv_recording("a"), cv_recording("b")], interval=0
        )

        await asyncio.wait_for(coordinator.run(), timeout=2)

        assert coordinator.get("a").processing_status == ProcessingStatus.COMPLETE
        assert coordinator.get("b").processing_status == ProcessingStatus.FAILED
        assert fetch.calls.count("a") == 3
        assert fetch.calls.count("b") == 1

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        fetch = ScriptedFetcher({"a": [status("pending")]})
        coordinator = RecordingJobCoordinator(fetch, recordings=[cv_recording("a")], interval=0.01)

        task = coordinator.start()
        assert coordinator.running
        assert coordinator.start() is task
        await asyncio.sleep(0.05)
        await coordinator.stop()

        assert not coordinator.running
        assert len(fetch.calls) >= 1

    @pytest.mark.asyncio
    async def test_start_without_pending_is_noop(self):
        coordinator = RecordingJobCoordinator(MagicMock(), recordings=[])
        assert coordinator.start() is None

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_polling(self):
        def on_update(outcome, recording):
            if recording.id == "a":
                raise RuntimeError("ui boom")

        fetch = ScriptedFetcher({"a": [status("complete")], "b": [status("processing"), status("complete")]})
        coordinator = RecordingJobCoordinator(
            fetch, recordings=[cv_recording("a"), cv_recording("b")], interval=0, on_update=on_update
        )

        await asyncio.wait_for(coordinator.run(), timeout=2)

        assert coordinator.get("a").processing_status == ProcessingStatus.COMPLETE
        assert coordinator.get("b").processing_status == ProcessingStatus.COMPLETE


class TestRequestRecordings:

    @pytest.mark.asyncio
    async def test_late_zoom_points_reach_next_request_only(self):
        tracked = ScreenRecording(
            id="live",
            video_url="/recordings/p/live.webm",
            zoom_points=[{"time": 1.0, "x": 0.2, "y": 0.3}],
        )
        fetch = ScriptedFetcher({
            "a": [status("processing", progress=40), status(
                "complete",
                cursor_data=[{"type": "click", "x": 10, "y": 20, "timestamp": 500}],
                zoom_points=[{"time": 0.5, "x": 0.4, "y": 0.6}],
            )],
            "b": [status("failed", error="no cursor found")],
        })
        coordinator = RecordingJobCoordinator(
            fetch, recordings=[tracked, cv_recording("a"), cv_recording("b")]
        )

        await coordinator.tick()
        first = GenerationRequest(description="Invoices", recordings=coordinator.request_recordings())

        await coordinator.tick()
        second = GenerationRequest(description="Invoices", recordings=coordinator.request_recordings())

        assert [r.id for r in first.recordings] == ["live"]
        assert [r.id for r in second.recordings] == ["live", "a"]
        resolved = second.recordings[1]
        assert resolved.cursor_source == CursorSource.EXTERNAL_CV
        assert [(z.time, z.x, z.y) for z in resolved.zoom_points] == [(0.5, 0.4, 0.6)]
        assert len(resolved.cursor_data) == 1
        assert second.to_wire()["recordings"][1]["zoomPoints"][0]["time"] == 0.5
