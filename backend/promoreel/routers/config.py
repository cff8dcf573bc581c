"""
Router para configurações do sistema.
"""

import json
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from fastapi import APIRouter
from pydantic import BaseModel, ValidationError

from ..models.config import (
    ApiConfig,
    BeatConfig,
    FullConfig,
    PipelineConfig,
    ZoomDetectionConfig,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/config", tags=["config"])

# Config file path
CONFIG_FILE = Path(os.environ.get("PROMOREEL_CONFIG", "storage/config.json"))


def get_config() -> FullConfig:
    """Load configuration from file or return defaults."""
    if CONFIG_FILE.exists():
        try:
            with open(CONFIG_FILE) as f:
                data = json.load(f)
                return FullConfig(**data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Invalid config file {CONFIG_FILE}, using defaults: {e}")
    return FullConfig()


def save_config(config: FullConfig):
    """Save configuration to file."""
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    with open(CONFIG_FILE, "w") as f:
        json.dump(config.model_dump(mode="json"), f, indent=2)


@router.get("", response_model=FullConfig)
async def get_configuration():
    """
    Retorna configurações atuais.
    """
    return get_config()


@router.put("", response_model=FullConfig)
async def update_configuration(config: FullConfig):
    """
    Atualiza configurações.
    """
    save_config(config)
    return config


@router.patch("/api", response_model=ApiConfig)
async def update_api_config(api_config: ApiConfig):
    """
    Atualiza apenas configurações de API.
    """
    config = get_config()
    config.api = api_config
    save_config(config)
    return config.api


@router.patch("/pipeline", response_model=PipelineConfig)
async def update_pipeline_config(pipeline_config: PipelineConfig):
    """
    Atualiza apenas configurações do pipeline.
    """
    config = get_config()
    config.pipeline = pipeline_config
    save_config(config)
    return config.pipeline


@router.patch("/zoom", response_model=ZoomDetectionConfig)
async def update_zoom_config(zoom_config: ZoomDetectionConfig):
    """
    Atualiza as constantes da detecção de zoom.
    """
    config = get_config()
    config.zoom = zoom_config
    save_config(config)
    return config.zoom


@router.patch("/beats", response_model=BeatConfig)
async def update_beat_config(beat_config: BeatConfig):
    """
    Atualiza as constantes do mapa de batidas.
    """
    config = get_config()
    config.beats = beat_config
    save_config(config)
    return config.beats


class TestApiRequest(BaseModel):
    api: Literal["gemini", "render", "cv"]


class TestApiResponse(BaseModel):
    connected: bool
    error: Optional[str] = None
    details: Optional[dict] = None


@router.post("/test-api", response_model=TestApiResponse)
async def test_api_connection(request: TestApiRequest):
    """
    Testa conexão com um serviço externo.
    """
    config = get_config()

    if request.api == "gemini":
        if not config.api.gemini.api_key:
            return TestApiResponse(connected=False, error="API key não configurada")

        from ..services.llm_client import GeminiClient
        result = await GeminiClient.from_config(config.api.gemini).test_connection()

    elif request.api == "render":
        from ..services.render_client import RenderClient
        result = await RenderClient(config.api.render).test_connection()

    else:
        from ..services.cv_processor import CVProcessor
        from ..utils.file_manager import FileManager
        storage = config.storage
        file_manager = FileManager(storage.base_path, storage.recordings_dir, storage.outputs_dir, storage.temp_dir)
        healthy = await CVProcessor(config.api.cv, file_manager=file_manager).check_health()
        result = {"connected": healthy}
        if not healthy:
            result["error"] = "Serviço de CV indisponível ou modelo não carregado"

    return TestApiResponse(
        connected=result.get("connected", False),
        error=result.get("error"),
        details=result
    )
