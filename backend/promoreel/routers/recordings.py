"""
Router para gravações de tela.
"""

import json
import logging
import time
import uuid
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import TypeAdapter, ValidationError

from ..models.recording import (
    CursorEvent,
    CursorSource,
    CursorStyle,
    ProcessingStatus,
    RecordingListResponse,
    RecordingStatusResponse,
    RecordingUpdate,
    RecordingUploadResponse,
    ScreenRecording,
    ZoomPoint,
)
from ..services.cv_processor import CVProcessor, get_cv_processor
from ..services.recording_store import RecordingStore, get_recording_store
from ..services.zoom_detector import detect_zoom_points, insert_manual_zoom_point
from ..utils.file_manager import FileManager
from .config import get_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recordings", tags=["recordings"])

ALLOWED_VIDEO_EXTENSIONS = {".webm", ".mp4", ".mov"}

_cursor_events = TypeAdapter(List[CursorEvent])
_zoom_points = TypeAdapter(List[ZoomPoint])


def get_file_manager() -> FileManager:
    storage = get_config().storage
    return FileManager(storage.base_path, storage.recordings_dir, storage.outputs_dir, storage.temp_dir)


def _new_recording_id() -> str:
    return f"rec-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def _parse_json_list(raw: Optional[str], adapter: TypeAdapter, field: str) -> list:
    if not raw or not raw.strip():
        return []
    try:
        return adapter.validate_json(raw)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"{field} inválido: {e.errors()[0].get('msg')}")


def _get_or_404(store: RecordingStore, recording_id: str) -> ScreenRecording:
    recording = store.get(recording_id)
    if recording is None:
        raise HTTPException(status_code=404, detail="Gravação não encontrada")
    return recording


@router.post("", response_model=RecordingUploadResponse)
async def upload_recording(
    video: Optional[UploadFile] = File(None),
    project_id: Optional[str] = Form(None, alias="projectId"),
    cursor_data: Optional[str] = Form(None, alias="cursorData"),
    zoom_points: Optional[str] = Form(None, alias="zoomPoints"),
    feature_name: Optional[str] = Form(None, alias="featureName"),
    description: str = Form(""),
    duration: float = Form(0),
    cursor_style: CursorStyle = Form(CursorStyle.HAND_POINTING, alias="cursorStyle"),
    store: RecordingStore = Depends(get_recording_store),
    processor: CVProcessor = Depends(get_cv_processor),
    file_manager: FileManager = Depends(get_file_manager),
):
    """
    Salva uma nova gravação.

    Sem dados de cursor (cursorData vazio), a gravação é enviada para
    detecção por CV e fica "pending" até o processamento terminar.
    """
    if video is None or not feature_name:
        raise HTTPException(status_code=400, detail="Campos obrigatórios ausentes (video, featureName)")

    ext = Path(video.filename or "").suffix.lower() or ".webm"
    if ext not in ALLOWED_VIDEO_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail="Formato não suportado. Use WEBM, MP4 ou MOV."
        )

    events = _parse_json_list(cursor_data, _cursor_events, "cursorData")
    manual_points = _parse_json_list(zoom_points, _zoom_points, "zoomPoints")

    recording_id = _new_recording_id()
    effective_project = project_id or "creative-session"

    destination = file_manager.recording_path(effective_project, recording_id, ext)
    with open(destination, "wb") as f:
        content = await video.read()
        f.write(content)

    needs_cv = len(events) == 0
    if needs_cv:
        points = sorted(manual_points, key=lambda p: p.time)
    else:
        points = sorted(manual_points, key=lambda p: p.time) or detect_zoom_points(events, get_config().zoom)

    try:
        recording = ScreenRecording(
            id=recording_id,
            project_id=effective_project,
            video_url=file_manager.recording_url(destination),
            video_path=str(destination),
            duration=duration,
            cursor_style=cursor_style,
            cursor_source=CursorSource.EXTERNAL_CV if needs_cv else CursorSource.CLIENT_TRACKED,
            processing_status=ProcessingStatus.PENDING if needs_cv else ProcessingStatus.COMPLETE,
            progress=0 if needs_cv else 100,
            cursor_data=events,
            zoom_points=points,
            feature_name=feature_name,
            description=description,
        )
    except ValidationError as e:
        file_manager.delete_file(str(destination))
        raise HTTPException(status_code=400, detail=str(e))

    store.add(recording)
    logger.info(
        f"Saved recording {recording_id} for project {effective_project} "
        f"({len(events)} cursor events, {len(points)} zoom points)"
    )

    if needs_cv:
        await processor.add_job(recording_id, recording.video_url, effective_project)

    return RecordingUploadResponse(
        success=True,
        recording_id=recording_id,
        video_url=recording.video_url,
        processing_status=recording.processing_status,
    )


@router.get("", response_model=RecordingListResponse)
async def list_recordings(
    project_id: Optional[str] = Query(None, alias="projectId"),
    store: RecordingStore = Depends(get_recording_store),
):
    """
    Lista as gravações de um projeto.
    """
    if not project_id:
        raise HTTPException(status_code=400, detail="projectId é obrigatório")

    recordings = store.list_recordings(project_id)
    return RecordingListResponse(recordings=recordings, total=len(recordings))


@router.get("/{recording_id}", response_model=ScreenRecording)
async def get_recording(
    recording_id: str,
    store: RecordingStore = Depends(get_recording_store),
):
    """
    Retorna uma gravação específica.
    """
    return _get_or_404(store, recording_id)


@router.patch("/{recording_id}", response_model=ScreenRecording)
async def update_recording(
    recording_id: str,
    data: RecordingUpdate,
    store: RecordingStore = Depends(get_recording_store),
):
    """
    Atualiza trim, pontos de zoom, nome, descrição ou estilo do cursor.
    """
    _get_or_404(store, recording_id)
    try:
        return store.update(recording_id, data)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{recording_id}")
async def delete_recording(
    recording_id: str,
    store: RecordingStore = Depends(get_recording_store),
    processor: CVProcessor = Depends(get_cv_processor),
    file_manager: FileManager = Depends(get_file_manager),
):
    """
    Remove uma gravação e seu arquivo de vídeo.
    """
    recording = store.delete(recording_id)
    if recording is None:
        raise HTTPException(status_code=404, detail="Gravação não encontrada")

    processor.forget(recording_id)
    file_manager.delete_file(recording.video_path)
    return {"success": True, "message": "Gravação removida"}


@router.get("/{recording_id}/status", response_model=RecordingStatusResponse)
async def get_recording_status(
    recording_id: str,
    store: RecordingStore = Depends(get_recording_store),
    processor: CVProcessor = Depends(get_cv_processor),
):
    """
    Status do processamento de cursor (fila em memória, resultado salvo ou repositório).
    """
    job = processor.get_job_status(recording_id)
    if job is not None:
        done = job.status == ProcessingStatus.COMPLETE
        return RecordingStatusResponse(
            recording_id=recording_id,
            status=job.status.value,
            progress=job.progress,
            cursor_data=job.cursor_data if done else None,
            zoom_points=job.zoom_points if done else None,
            error=job.error,
        )

    saved = processor.load_saved_data(recording_id)
    if saved is not None:
        return RecordingStatusResponse(
            recording_id=recording_id,
            status=ProcessingStatus.COMPLETE.value,
            progress=100,
            cursor_data=saved["cursor_data"],
            zoom_points=saved["zoom_points"],
        )

    recording = store.get(recording_id)
    if recording is not None:
        done = recording.processing_status == ProcessingStatus.COMPLETE
        return RecordingStatusResponse(
            recording_id=recording_id,
            status=recording.processing_status.value,
            progress=recording.progress,
            cursor_data=recording.cursor_data if done else None,
            zoom_points=recording.zoom_points if done else None,
            error=recording.error,
        )

    return RecordingStatusResponse(recording_id=recording_id, status="not_found")


@router.post("/{recording_id}/zoom-points", response_model=List[ZoomPoint])
async def add_zoom_point(
    recording_id: str,
    point: ZoomPoint,
    store: RecordingStore = Depends(get_recording_store),
):
    """
    Adiciona um ponto de zoom manual (sem passar pela heurística).
    """
    recording = _get_or_404(store, recording_id)
    points = insert_manual_zoom_point(recording.zoom_points, point)
    store.set_zoom_points(recording_id, points)
    return points


@router.post("/{recording_id}/retry")
async def retry_recording(
    recording_id: str,
    store: RecordingStore = Depends(get_recording_store),
    processor: CVProcessor = Depends(get_cv_processor),
):
    """
    Reprocessa uma gravação cuja detecção por CV falhou.
    """
    recording = _get_or_404(store, recording_id)

    if not await processor.retry_job(recording_id):
        # Job fora da fila em memória (ex: após reinício do servidor)
        if (
            recording.cursor_source != CursorSource.EXTERNAL_CV
            or recording.processing_status != ProcessingStatus.FAILED
        ):
            raise HTTPException(status_code=400, detail="Gravação não está em estado de falha")
        store.update_processing(recording_id, ProcessingStatus.PENDING, progress=0, allow_reset=True)
        await processor.add_job(recording_id, recording.video_url, recording.project_id)

    return {"recordingId": recording_id, "status": "retrying", "message": "Reprocessamento iniciado"}
