"""
Router de áudio: mapa de batidas para sincronizar cenas com a música.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from ..models.beat import BeatMap, BeatMapRequest
from ..services.beat_sync import beat_map_from_audio_file, create_beat_map
from ..utils.file_manager import FileManager
from .config import get_config
from .recordings import get_file_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/audio", tags=["audio"])


@router.post("/beat-map", response_model=BeatMap)
async def beat_map(request: BeatMapRequest):
    """
    Gera o mapa de batidas a partir do BPM e da duração (segundos).
    """
    try:
        return create_beat_map(request.bpm, request.duration, request.fps, get_config().beats)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/beat-map/upload", response_model=BeatMap)
async def beat_map_from_upload(
    file: UploadFile = File(...),
    fps: int = Form(30),
    bpm: Optional[int] = Form(None),
    file_manager: FileManager = Depends(get_file_manager),
):
    """
    Gera o mapa de batidas de um arquivo de áudio enviado.

    Sem BPM informado, o andamento é estimado pelo envelope de energia.
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="Arquivo sem nome")

    ext = Path(file.filename).suffix.lower()
    if ext not in [".mp3", ".wav", ".ogg"]:
        raise HTTPException(
            status_code=400,
            detail="Formato não suportado. Use MP3, WAV ou OGG."
        )

    from pydub.exceptions import CouldntDecodeError

    job_id = f"beats-{uuid.uuid4().hex[:8]}"
    destination = file_manager.get_temp_path(job_id, f"audio{ext}")
    try:
        with open(destination, "wb") as f:
            content = await file.read()
            f.write(content)

        result = beat_map_from_audio_file(str(destination), fps, bpm, get_config().beats)
        logger.info(f"Beat map for {file.filename}: {result.bpm} BPM, {len(result.beats)} beats")
        return result
    except (CouldntDecodeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Não foi possível analisar o áudio: {e}")
    finally:
        file_manager.cleanup_job_temp(job_id)
