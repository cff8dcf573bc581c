"""
Cliente assíncrono da API PromoReel.

Consome os streams NDJSON de geração/renderização e os endpoints de
gravações; é o lado "navegador" do fluxo, usado por scripts e testes.
"""

import json
import logging
from pathlib import Path
from typing import AsyncIterator, Iterable, List, Optional

import httpx

from ..models.pipeline import (
    ContinueRequest,
    EditScriptRequest,
    EditScriptResponse,
    GenerationRequest,
    RenderRequest,
)
from ..models.recording import (
    CursorEvent,
    CursorStyle,
    RecordingStatusResponse,
    RecordingUploadResponse,
    ScreenRecording,
    ZoomPoint,
)
from ..models.stream import StreamEvent
from .recording_coordinator import RecordingJobCoordinator, UpdateCallback
from .stream_protocol import (
    CONTINUE_PROGRESS,
    GENERATE_PROGRESS,
    StreamProjection,
    consume_stream,
    read_events,
)

logger = logging.getLogger(__name__)


class PromoReelClient:
    """
    Cliente HTTP da API.

    Example:
        async with PromoReelClient("http://localhost:8000") as client:
            run = await client.generate(GenerationRequest(description="..."))
            print(run.video_script)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 600.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout, connect=30),
            transport=transport,
        )

    async def close(self):
        if not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "PromoReelClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    # ============== STREAMING ==============

    async def stream(self, path: str, payload: dict) -> AsyncIterator[StreamEvent]:
        """Envia a requisição e itera os eventos conforme chegam."""
        async with self._client.stream("POST", path, json=payload) as response:
            if response.is_error:
                await response.aread()
                response.raise_for_status()
            async for event in read_events(response.aiter_bytes()):
                yield event

    async def _consume(self, path: str, payload: dict, projection: StreamProjection) -> StreamProjection:
        async with self._client.stream("POST", path, json=payload) as response:
            if response.is_error:
                await response.aread()
                response.raise_for_status()
            return await consume_stream(response.aiter_bytes(), projection)

    async def generate(
        self,
        request: GenerationRequest,
        projection: Optional[StreamProjection] = None,
    ) -> StreamProjection:
        """Roda a primeira fase (até a revisão do roteiro)."""
        projection = projection or StreamProjection(vocabulary=GENERATE_PROGRESS)
        return await self._consume("/api/creative/generate", request.to_wire(), projection)

    async def continue_generation(
        self,
        request: ContinueRequest,
        projection: Optional[StreamProjection] = None,
    ) -> StreamProjection:
        """Roda a segunda fase (código + renderização)."""
        projection = projection or StreamProjection(vocabulary=CONTINUE_PROGRESS)
        return await self._consume("/api/creative/continue", request.to_wire(), projection)

    async def render(
        self,
        request: RenderRequest,
        projection: Optional[StreamProjection] = None,
    ) -> StreamProjection:
        projection = projection or StreamProjection(vocabulary=CONTINUE_PROGRESS)
        return await self._consume("/api/creative/render", request.to_wire(), projection)

    async def edit_script(self, request: EditScriptRequest) -> EditScriptResponse:
        response = await self._client.post("/api/creative/edit-script", json=request.to_wire())
        return EditScriptResponse.model_validate(response.json())

    # ============== RECORDINGS ==============

    async def upload_recording(
        self,
        video_path: Path,
        project_id: str = "creative-session",
        feature_name: str = "",
        description: str = "",
        duration: int = 0,
        cursor_style: CursorStyle = CursorStyle.HAND_POINTING,
        cursor_data: Optional[List[CursorEvent]] = None,
        zoom_points: Optional[List[ZoomPoint]] = None,
    ) -> RecordingUploadResponse:
        """
        Envia uma gravação. Sem cursor_data o servidor agenda a detecção por CV.
        """
        video_path = Path(video_path)
        form = {
            "projectId": project_id,
            "featureName": feature_name,
            "description": description,
            "duration": str(duration),
            "cursorStyle": CursorStyle(cursor_style).value,
            "cursorData": json.dumps([e.to_wire() for e in cursor_data or []]),
            "zoomPoints": json.dumps([z.to_wire() for z in zoom_points or []]),
        }
        with open(video_path, "rb") as f:
            response = await self._client.post(
                "/api/recordings",
                data=form,
                files={"video": (video_path.name, f, "video/webm")},
            )
        response.raise_for_status()
        return RecordingUploadResponse.model_validate(response.json())

    async def recording_status(self, recording_id: str) -> RecordingStatusResponse:
        response = await self._client.get(f"/api/recordings/{recording_id}/status")
        response.raise_for_status()
        return RecordingStatusResponse.model_validate(response.json())

    async def get_recording(self, recording_id: str) -> ScreenRecording:
        response = await self._client.get(f"/api/recordings/{recording_id}")
        response.raise_for_status()
        return ScreenRecording.model_validate(response.json())

    def coordinator(
        self,
        recordings: Iterable[ScreenRecording] = (),
        interval: float = 3.0,
        on_update: Optional[UpdateCallback] = None,
    ) -> RecordingJobCoordinator:
        """Coordenador que consulta o status das gravações nesta API."""
        return RecordingJobCoordinator(
            self.recording_status,
            recordings=recordings,
            interval=interval,
            on_update=on_update,
        )
