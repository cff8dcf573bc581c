"""
Coordenador de jobs de gravação (lado cliente).

Acompanha gravações cujo cursor é derivado pelo serviço de CV, consultando
periodicamente o endpoint de status até cada uma chegar a um estado terminal.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import httpx

from ..models.pipeline import RecordingRef
from ..models.recording import (
    TERMINAL_STATUSES,
    ProcessingStatus,
    RecordingStatusResponse,
    ScreenRecording,
)

logger = logging.getLogger(__name__)


class TickKind(str, Enum):
    RESOLVED = "resolved"
    FAILED = "failed"
    PROGRESS = "progress"
    UNCHANGED = "unchanged"
    TRANSPORT_ERROR = "transport_error"


@dataclass
class TickOutcome:
    kind: TickKind
    recording_id: str
    progress: Optional[float] = None
    error: Optional[str] = None


StatusFetcher = Callable[[str], Awaitable[RecordingStatusResponse]]
UpdateCallback = Callable[[TickOutcome, ScreenRecording], Any]


class RecordingJobCoordinator:
    """
    Dono das gravações acompanhadas. O conjunto pendente é derivado:
    origem external-cv e status pending ou processing.

    A cada tick todas as pendentes são consultadas em paralelo; falhas de
    transporte de uma consulta não afetam as demais e são retentadas no
    próximo tick. O loop termina sozinho quando não sobra pendência.
    """

    def __init__(
        self,
        fetch_status: StatusFetcher,
        recordings: Optional[Iterable[ScreenRecording]] = None,
        interval: float = 3.0,
        on_update: Optional[UpdateCallback] = None,
    ):
        self.fetch_status = fetch_status
        self.interval = interval
        self.on_update = on_update
        self._recordings: Dict[str, ScreenRecording] = {}
        self._task: Optional[asyncio.Task] = None
        for recording in recordings or []:
            self.add(recording)

    def add(self, recording: ScreenRecording):
        self._recordings[recording.id] = recording

    def get(self, recording_id: str) -> Optional[ScreenRecording]:
        return self._recordings.get(recording_id)

    @property
    def recordings(self) -> List[ScreenRecording]:
        return list(self._recordings.values())

    @property
    def pending_ids(self) -> List[str]:
        return [r.id for r in self._recordings.values() if r.needs_processing]

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def request_recordings(self) -> List[RecordingRef]:
        """
        Gravações prontas para a próxima requisição de geração.

        Pendentes e falhas ficam de fora; cursor e zooms entram como estão
        no momento da chamada.
        """
        return [
            RecordingRef.from_recording(r)
            for r in self._recordings.values()
            if r.processing_status == ProcessingStatus.COMPLETE
        ]

    # ============== POLLING ==============

    async def _poll(self, recording_id: str):
        try:
            return await self.fetch_status(recording_id)
        except httpx.HTTPError as e:
            return e
        except Exception as e:
            logger.exception(f"Unexpected error polling {recording_id}")
            return e

    async def tick(self) -> List[TickOutcome]:
        """Consulta todas as gravações pendentes uma vez e aplica as respostas."""
        ids = self.pending_ids
        if not ids:
            return []

        responses = await asyncio.gather(*(self._poll(rid) for rid in ids))

        outcomes = []
        for recording_id, response in zip(ids, responses):
            if isinstance(response, Exception):
                logger.warning(f"Status poll failed for {recording_id}: {response}")
                outcome = TickOutcome(TickKind.TRANSPORT_ERROR, recording_id, error=str(response))
            else:
                outcome = self._apply(self._recordings[recording_id], response)
                if outcome.kind != TickKind.UNCHANGED:
                    await self._notify(outcome)
            outcomes.append(outcome)
        return outcomes

    def _apply(self, recording: ScreenRecording, response: RecordingStatusResponse) -> TickOutcome:
        if recording.processing_status in TERMINAL_STATUSES:
            return TickOutcome(TickKind.UNCHANGED, recording.id)

        status = response.status

        # not_found: gravação desconhecida pela fila, tratada como concluída sem dados
        if status in (ProcessingStatus.COMPLETE.value, "not_found"):
            if response.cursor_data is not None:
                recording.cursor_data = list(response.cursor_data)
            if response.zoom_points is not None:
                recording.zoom_points = list(response.zoom_points)
            recording.processing_status = ProcessingStatus.COMPLETE
            recording.progress = 100
            logger.info(f"Recording {recording.id} resolved ({status})")
            return TickOutcome(TickKind.RESOLVED, recording.id, progress=100)

        if status == ProcessingStatus.FAILED.value:
            recording.processing_status = ProcessingStatus.FAILED
            recording.error = response.error
            logger.warning(f"Recording {recording.id} failed: {response.error}")
            return TickOutcome(TickKind.FAILED, recording.id, error=response.error)

        if status == ProcessingStatus.PROCESSING.value:
            recording.processing_status = ProcessingStatus.PROCESSING
            if response.progress is not None:
                recording.progress = response.progress
            return TickOutcome(TickKind.PROGRESS, recording.id, progress=recording.progress)

        return TickOutcome(TickKind.UNCHANGED, recording.id)

    async def _notify(self, outcome: TickOutcome):
        if self.on_update is None:
            return
        try:
            result = self.on_update(outcome, self._recordings[outcome.recording_id])
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Update callback failed for {outcome.recording_id}")

    # ============== LOOP ==============

    async def run(self):
        """Executa ticks a cada intervalo enquanto houver gravações pendentes."""
        logger.info(f"Polling {len(self.pending_ids)} recordings every {self.interval}s")
        while self.pending_ids:
            await asyncio.sleep(self.interval)
            await self.tick()
        logger.info("No pending recordings, polling stopped")

    def start(self) -> Optional[asyncio.Task]:
        """Inicia o loop em background (se houver pendências e não estiver rodando)."""
        if self.running or not self.pending_ids:
            return self._task if self.running else None
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
