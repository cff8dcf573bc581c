"""
Fila de processamento de cursor por visão computacional.

Gravações sem dados de cursor capturados no navegador são enviadas ao
serviço externo de CV, que devolve as posições do cursor. A partir delas
detectamos os pontos de zoom e persistimos o resultado.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..models.config import CVServiceConfig, ZoomDetectionConfig
from ..models.recording import CursorEvent, ProcessingStatus, ZoomPoint
from ..utils.file_manager import FileManager, safe_name
from ..utils.logger import get_recording_logger
from .errors import PipelineError
from .recording_store import RecordingStore
from .zoom_detector import detect_zoom_points

logger = logging.getLogger(__name__)


class CVProcessingError(PipelineError):
    """Falha reportada pelo serviço de CV ou ao preparar o vídeo."""
    pass


@dataclass
class CVJob:
    recording_id: str
    video_url: str
    project_id: str
    status: ProcessingStatus = ProcessingStatus.PENDING
    progress: float = 0
    cursor_data: List[CursorEvent] = field(default_factory=list)
    zoom_points: List[ZoomPoint] = field(default_factory=list)
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


def parse_positions(positions: List[dict]) -> List[CursorEvent]:
    """Converte posições do serviço de CV em eventos de cursor."""
    events = []
    for pos in positions:
        events.append(CursorEvent(
            type=pos.get("type") or "move",
            x=pos.get("coord_x", pos.get("x", 0)),
            y=pos.get("coord_y", pos.get("y", 0)),
            timestamp=pos.get("timestamp", 0),
        ))
    return events


class CVProcessor:
    """
    Fila em memória de jobs de detecção de cursor.

    Features:
    - No máximo max_concurrent jobs simultâneos (semáforo)
    - Retry com exponential backoff no envio ao serviço de CV
    - Progresso 10 (vídeo local) -> 30 -> 70 (cursor) -> 90 (zoom) -> 100
    - Resultado salvo em <id>_cursor.json e espelhado no repositório
    """

    def __init__(
        self,
        config: Optional[CVServiceConfig] = None,
        zoom_config: Optional[ZoomDetectionConfig] = None,
        file_manager: Optional[FileManager] = None,
        store: Optional[RecordingStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or CVServiceConfig()
        self.zoom_config = zoom_config or ZoomDetectionConfig()
        self.file_manager = file_manager or FileManager()
        self.store = store
        self._transport = transport
        self.retry_wait = wait_exponential(multiplier=1, min=2, max=10)

        self.results_dir = self.file_manager.output_dir / "cursor"
        self.results_dir.mkdir(parents=True, exist_ok=True)

        self._jobs: Dict[str, CVJob] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent)

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=timeout or self.config.timeout,
            transport=self._transport,
        )

    # ============== QUEUE ==============

    async def add_job(self, recording_id: str, video_url: str, project_id: str) -> CVJob:
        """
        Adiciona uma gravação à fila. Jobs já enfileirados não são duplicados.
        """
        existing = self._jobs.get(recording_id)
        if existing:
            logger.info(f"Job {recording_id} already in queue ({existing.status.value})")
            return existing

        if not await self.check_health():
            logger.warning("CV service not healthy, queuing for later processing")

        job = CVJob(recording_id=recording_id, video_url=video_url, project_id=project_id)
        self._jobs[recording_id] = job
        logger.info(f"Added job {recording_id} to queue ({len(self._jobs)} total)")
        self._schedule(job)
        return job

    def _schedule(self, job: CVJob):
        self._tasks[job.recording_id] = asyncio.create_task(self._run(job))

    async def _run(self, job: CVJob):
        async with self._semaphore:
            await self.process_job(job)

    async def wait_idle(self):
        """Aguarda todos os jobs em andamento."""
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def retry_job(self, recording_id: str) -> bool:
        """Recoloca um job com falha na fila. Retorna False se não houver o que reprocessar."""
        job = self._jobs.get(recording_id)
        if job is None or job.status != ProcessingStatus.FAILED:
            return False

        job.status = ProcessingStatus.PENDING
        job.progress = 0
        job.error = None
        job.started_at = None
        job.completed_at = None
        self._sync_store(job, allow_reset=True)
        logger.info(f"Retrying job {recording_id}")
        self._schedule(job)
        return True

    def forget(self, recording_id: str):
        """Remove o job da fila (gravação excluída)."""
        task = self._tasks.pop(recording_id, None)
        if task and not task.done():
            task.cancel()
        self._jobs.pop(recording_id, None)

    # ============== PROCESSING ==============

    async def process_job(self, job: CVJob):
        log = get_recording_logger(__name__, job.recording_id)
        job.status = ProcessingStatus.PROCESSING
        job.started_at = datetime.now()
        job.progress = 10
        self._sync_store(job)

        downloaded: Optional[Path] = None
        try:
            log.info(f"Processing {job.video_url}")
            video_path = self.file_manager.resolve_recording_url(job.video_url)
            if video_path is None:
                downloaded = await self._download(job)
                video_path = downloaded
            job.progress = 30
            self._sync_store(job)

            cursor_data = await self.detect_cursor(video_path)
            job.progress = 70
            self._sync_store(job)

            zoom_points = detect_zoom_points(cursor_data, self.zoom_config)
            job.progress = 90

            self._save_result(job.recording_id, cursor_data, zoom_points)

            job.cursor_data = cursor_data
            job.zoom_points = zoom_points
            job.status = ProcessingStatus.COMPLETE
            job.progress = 100
            job.completed_at = datetime.now()
            log.info(f"Completed: {len(cursor_data)} cursors, {len(zoom_points)} zooms")
        except (PipelineError, httpx.HTTPError, OSError, ValueError) as e:
            job.status = ProcessingStatus.FAILED
            job.error = str(e) or type(e).__name__
            job.completed_at = datetime.now()
            log.error(f"Failed: {job.error}")
        finally:
            if downloaded is not None:
                self.file_manager.cleanup_job_temp(job.recording_id)

        self._sync_store(job)

    async def _download(self, job: CVJob) -> Path:
        if not job.video_url.startswith(("http://", "https://")):
            raise CVProcessingError(f"Vídeo não encontrado: {job.video_url}")

        suffix = Path(job.video_url.split("?")[0]).suffix or ".mp4"
        dest = self.file_manager.get_temp_path(job.recording_id, f"{safe_name(job.recording_id)}{suffix}")
        async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
            response = await client.get(job.video_url)
            if response.is_error:
                raise CVProcessingError(f"Falha ao baixar vídeo: HTTP {response.status_code}")
            dest.write_bytes(response.content)
        return dest

    async def _submit(self, video_path: Path) -> dict:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.submit_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                async with self._client() as client:
                    response = await client.post("/detect", json={"video_path": str(video_path)})
        if response.is_error:
            try:
                detail = response.json().get("detail", response.reason_phrase)
            except ValueError:
                detail = response.reason_phrase
            raise CVProcessingError(f"Serviço de CV retornou {response.status_code}: {detail}")
        return response.json()

    async def detect_cursor(self, video_path: Path) -> List[CursorEvent]:
        """
        Envia o vídeo ao serviço de CV e retorna os eventos de cursor.

        Raises:
            CVProcessingError: serviço reportou erro ou saída ausente
        """
        logger.info(f"Sending detection request for: {video_path}")
        result = await self._submit(video_path)

        if result.get("status") == "error":
            raise CVProcessingError(result.get("error") or "Erro desconhecido no serviço de CV")

        logger.info(
            f"Detection complete: {result.get('cursor_count', 0)} cursors, "
            f"{result.get('click_count', 0)} clicks"
        )

        positions = result.get("positions")
        if positions is None:
            output_path = Path(result.get("output_path") or "")
            if not output_path.is_file():
                raise CVProcessingError(f"Arquivo de saída não encontrado: {output_path}")
            positions = json.loads(output_path.read_text()).get("positions", [])

        return parse_positions(positions)

    async def check_health(self) -> bool:
        """Serviço saudável se status == "ok" e o modelo estiver carregado."""
        try:
            async with self._client(timeout=10) as client:
                response = await client.get("/health")
                data = response.json()
            return data.get("status") == "ok" and data.get("model_loaded") is True
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Health check failed: {e}")
            return False

    # ============== RESULTS ==============

    def _result_path(self, recording_id: str) -> Path:
        return self.results_dir / f"{safe_name(recording_id)}_cursor.json"

    def _save_result(self, recording_id: str, cursor_data: List[CursorEvent], zoom_points: List[ZoomPoint]):
        payload = {
            "recordingId": recording_id,
            "cursorData": [e.to_wire() for e in cursor_data],
            "zoomPoints": [z.to_wire() for z in zoom_points],
            "detectedAt": datetime.now().isoformat(),
            "source": "cv_detection",
        }
        self._result_path(recording_id).write_text(json.dumps(payload, indent=2))

    def load_saved_data(self, recording_id: str) -> Optional[dict]:
        """Carrega o resultado salvo de uma execução anterior."""
        path = self._result_path(recording_id)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text())
            return {
                "cursor_data": [CursorEvent.model_validate(e) for e in data.get("cursorData", [])],
                "zoom_points": [ZoomPoint.model_validate(z) for z in data.get("zoomPoints", [])],
                "source": data.get("source", "cv_detection"),
            }
        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"Failed to load saved data for {recording_id}: {e}")
            return None

    def _sync_store(self, job: CVJob, allow_reset: bool = False):
        if self.store is None:
            return
        done = job.status == ProcessingStatus.COMPLETE
        self.store.update_processing(
            job.recording_id,
            job.status,
            progress=job.progress,
            cursor_data=job.cursor_data if done else None,
            zoom_points=job.zoom_points if done else None,
            error=job.error,
            allow_reset=allow_reset,
        )

    # ============== QUERIES ==============

    def get_job_status(self, recording_id: str) -> Optional[CVJob]:
        return self._jobs.get(recording_id)

    def get_project_jobs(self, project_id: str) -> List[CVJob]:
        return [j for j in self._jobs.values() if j.project_id == project_id]

    def get_completed_data(self, recording_id: str) -> Optional[CVJob]:
        job = self._jobs.get(recording_id)
        if job and job.status == ProcessingStatus.COMPLETE:
            return job
        return None

    def stats(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in ProcessingStatus}
        for job in self._jobs.values():
            counts[job.status.value] += 1
        return {"total": len(self._jobs), **counts}


# Singleton instance
_cv_processor: Optional[CVProcessor] = None


def get_cv_processor() -> CVProcessor:
    """Retorna instância singleton da fila de CV."""
    global _cv_processor
    if _cv_processor is None:
        from ..routers.config import get_config
        from .recording_store import get_recording_store

        config = get_config()
        storage = config.storage
        _cv_processor = CVProcessor(
            config=config.api.cv,
            zoom_config=config.zoom,
            file_manager=FileManager(
                storage.base_path, storage.recordings_dir, storage.outputs_dir, storage.temp_dir
            ),
            store=get_recording_store(),
        )
    return _cv_processor
