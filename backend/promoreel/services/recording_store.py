"""
Serviço para persistir gravações de tela em arquivo JSON.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from ..models.recording import (
    TERMINAL_STATUSES,
    CursorEvent,
    ProcessingStatus,
    RecordingUpdate,
    ScreenRecording,
    ZoomPoint,
)

logger = logging.getLogger(__name__)


class RecordingStore:
    """
    Gerencia as gravações usando um arquivo JSON.
    """

    def __init__(self, storage_dir: str = "storage"):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.recordings_file = self.storage_dir / "recordings.json"
        if not self.recordings_file.exists():
            self.recordings_file.write_text("[]")

    def _read_json(self) -> List[dict]:
        """Lê as gravações do arquivo."""
        try:
            return json.loads(self.recordings_file.read_text())
        except (json.JSONDecodeError, FileNotFoundError):
            return []

    def _write_json(self, data: List[dict]):
        """Escreve as gravações no arquivo."""
        self.recordings_file.write_text(json.dumps(data, indent=2, default=str))

    def _save(self, recording: ScreenRecording) -> ScreenRecording:
        records = self._read_json()
        payload = recording.model_dump(mode="json")
        for i, rec in enumerate(records):
            if rec["id"] == recording.id:
                records[i] = payload
                break
        else:
            records.append(payload)
        self._write_json(records)
        return recording

    # ============== QUERIES ==============

    def list_recordings(self, project_id: Optional[str] = None) -> List[ScreenRecording]:
        """Lista gravações (de um projeto, se informado), mais recentes primeiro."""
        recordings = [ScreenRecording(**rec) for rec in self._read_json()]
        if project_id:
            recordings = [r for r in recordings if r.project_id == project_id]
        return sorted(recordings, key=lambda r: r.created_at, reverse=True)

    def get(self, recording_id: str) -> Optional[ScreenRecording]:
        for rec in self._read_json():
            if rec["id"] == recording_id:
                return ScreenRecording(**rec)
        return None

    def pending(self) -> List[ScreenRecording]:
        return [r for r in self.list_recordings() if r.needs_processing]

    # ============== MUTATIONS ==============

    def add(self, recording: ScreenRecording) -> ScreenRecording:
        if self.get(recording.id) is not None:
            raise ValueError(f"Gravação já existe: {recording.id}")
        self._save(recording)
        logger.info(
            f"Stored recording {recording.id} ({recording.cursor_source.value}, "
            f"{recording.processing_status.value})"
        )
        return recording

    def update(self, recording_id: str, data: RecordingUpdate) -> Optional[ScreenRecording]:
        """
        Aplica uma edição parcial. Os limites de trim são revalidados.

        Raises:
            ValueError: trim fora dos limites da gravação
        """
        recording = self.get(recording_id)
        if recording is None:
            return None

        changes = data.model_dump(exclude_none=True)
        if "zoom_points" in changes:
            changes["zoom_points"] = sorted(changes["zoom_points"], key=lambda p: p["time"])
        merged = {**recording.model_dump(), **changes}
        updated = ScreenRecording(**merged)
        return self._save(updated)

    def set_zoom_points(self, recording_id: str, zoom_points: List[ZoomPoint]) -> Optional[ScreenRecording]:
        recording = self.get(recording_id)
        if recording is None:
            return None
        recording.zoom_points = list(zoom_points)
        return self._save(recording)

    def update_processing(
        self,
        recording_id: str,
        status: ProcessingStatus,
        progress: Optional[float] = None,
        cursor_data: Optional[List[CursorEvent]] = None,
        zoom_points: Optional[List[ZoomPoint]] = None,
        error: Optional[str] = None,
        allow_reset: bool = False,
    ) -> Optional[ScreenRecording]:
        """
        Atualiza o estado de processamento externo.

        Gravações em estado terminal não mudam, exceto com allow_reset
        (reprocessamento pedido explicitamente).
        """
        recording = self.get(recording_id)
        if recording is None:
            return None
        if recording.processing_status in TERMINAL_STATUSES and not allow_reset:
            logger.debug(f"Ignoring update for terminal recording {recording_id}")
            return recording

        recording.processing_status = status
        if progress is not None:
            recording.progress = progress
        if cursor_data is not None:
            recording.cursor_data = list(cursor_data)
        if zoom_points is not None:
            recording.zoom_points = list(zoom_points)
        recording.error = error
        return self._save(recording)

    def delete(self, recording_id: str) -> Optional[ScreenRecording]:
        records = self._read_json()
        remaining = [rec for rec in records if rec["id"] != recording_id]
        if len(remaining) == len(records):
            return None
        removed = next(rec for rec in records if rec["id"] == recording_id)
        self._write_json(remaining)
        logger.info(f"Deleted recording {recording_id}")
        return ScreenRecording(**removed)


# Singleton instance
_recording_store: Optional[RecordingStore] = None


def get_recording_store() -> RecordingStore:
    """Retorna instância singleton do repositório de gravações."""
    global _recording_store
    if _recording_store is None:
        from ..routers.config import get_config
        _recording_store = RecordingStore(get_config().storage.base_path)
    return _recording_store
