"""
Cliente do worker de renderização.
"""

import logging
import time
from typing import Optional

import httpx

from ..models.config import RenderFormat, RenderWorkerConfig
from ..models.pipeline import RenderResult
from .errors import PipelineError

logger = logging.getLogger(__name__)


class RenderError(PipelineError):
    """Worker inacessível ou resposta HTTP de erro."""
    pass


class RenderClient:
    """
    Envia o código da composição ao worker e aguarda o vídeo.

    Falhas reportadas pelo worker voltam como RenderResult(success=False);
    falhas de transporte ou HTTP levantam RenderError.
    """

    def __init__(
        self,
        config: Optional[RenderWorkerConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or RenderWorkerConfig()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            transport=self._transport,
        )

    async def render(
        self,
        remotion_code: str,
        duration_in_frames: int = 300,
        format: RenderFormat = RenderFormat.MP4,
    ) -> RenderResult:
        """
        Renderiza o vídeo.

        Args:
            remotion_code: Módulo TSX da composição
            duration_in_frames: Duração total
            format: Formato de saída

        Returns:
            RenderResult com a URL do vídeo em caso de sucesso
        """
        payload = {
            "remotionCode": remotion_code,
            "durationInFrames": duration_in_frames,
            "format": RenderFormat(format).value,
        }

        logger.info(f"Requesting render: {duration_in_frames} frames as {payload['format']}")
        started = time.monotonic()

        try:
            async with self._client() as client:
                response = await client.post(self.config.render_path, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise RenderError(
                f"Worker de renderização retornou {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise RenderError(f"Worker de renderização inacessível: {e}") from e

        render_time = data.get("renderTime_ms", data.get("renderTime"))
        if render_time is None:
            render_time = int((time.monotonic() - started) * 1000)

        result = RenderResult(
            success=bool(data.get("success")) and bool(data.get("videoUrl")),
            video_url=data.get("videoUrl"),
            render_time_ms=render_time,
            error=data.get("error"),
        )
        if result.success:
            logger.info(f"Render finished in {render_time}ms: {result.video_url}")
        else:
            result.error = result.error or "Worker não retornou URL do vídeo"
            logger.warning(f"Render failed: {result.error}")
        return result

    async def test_connection(self) -> dict:
        try:
            async with self._client() as client:
                response = await client.get("/health")
                response.raise_for_status()
                return {"connected": True, "details": response.json()}
        except (httpx.HTTPError, ValueError) as e:
            return {"connected": False, "error": str(e)}
