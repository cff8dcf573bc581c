"""
Modelos de configuração do sistema.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum


# ============== ENUMS ==============


class RenderFormat(str, Enum):
    MP4 = "mp4"
    WEBM = "webm"
    GIF = "gif"


class MusicMood(str, Enum):
    ENERGETIC = "energetic"
    CALM = "calm"
    DRAMATIC = "dramatic"
    PLAYFUL = "playful"


# ============== API CONFIGS ==============


class ApiConfigItem(BaseModel):
    api_key: str = ""
    enabled: bool = True


class GeminiConfig(ApiConfigItem):
    model: str = "gemini-2.0-flash"
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_output_tokens: int = 32768


class RenderWorkerConfig(BaseModel):
    """Worker externo que renderiza o código de composição em vídeo."""
    base_url: str = "http://localhost:3001"
    render_path: str = "/render"
    timeout: float = 300.0


class CVServiceConfig(BaseModel):
    """Serviço externo de detecção de cursor por visão computacional."""
    base_url: str = "http://localhost:8001"
    timeout: float = 600.0
    max_concurrent: int = Field(default=2, ge=1, le=8)
    submit_attempts: int = Field(default=3, ge=1, le=10)


class ScraperConfig(BaseModel):
    navigation_timeout_ms: int = 30000
    settle_ms: int = 1500
    capture_screenshots: bool = True
    max_images: int = Field(default=10, ge=0, le=50)
    max_text_chars: int = 8000


class ApiConfig(BaseModel):
    gemini: GeminiConfig = GeminiConfig()
    render: RenderWorkerConfig = RenderWorkerConfig()
    cv: CVServiceConfig = CVServiceConfig()
    scraper: ScraperConfig = ScraperConfig()


# ============== PIPELINE CONFIGS ==============


class PipelineConfig(BaseModel):
    fps: int = Field(default=30, ge=1, le=120)
    width: int = 1920
    height: int = 1080
    default_format: RenderFormat = RenderFormat.MP4
    default_duration_frames: int = 300
    max_render_attempts: int = Field(default=1, ge=1, le=5)
    allow_template_script: bool = True
    seconds_per_scene: float = Field(default=5.0, ge=1.0, le=30.0)


class ZoomDetectionConfig(BaseModel):
    """Parâmetros da heurística de zoom sobre eventos de cursor."""
    cooldown_ms: int = 5000
    lookahead_ms: int = 500
    displacement_px: float = 50.0
    max_points: int = 5
    scale: float = 1.5
    duration_s: float = 2.0
    frame_width: int = 1920
    frame_height: int = 1080


class BeatConfig(BaseModel):
    beats_per_measure: int = Field(default=4, ge=1, le=16)
    drop_interval_measures: int = Field(default=16, ge=1)
    energy_base: float = 0.2
    energy_pulse: float = 0.5
    energy_decay: float = 3.0
    energy_jitter: float = Field(default=0.1, ge=0, le=1)
    hop_ms: int = 10
    min_bpm: int = 60
    max_bpm: int = 200
    default_bpm: int = 120


class PollingConfig(BaseModel):
    interval_seconds: float = Field(default=3.0, gt=0)
    request_timeout: float = 10.0


class StorageConfig(BaseModel):
    base_path: str = "storage"
    recordings_dir: str = "recordings"
    outputs_dir: str = "outputs"
    temp_dir: str = "temp"


# ============== FULL CONFIG ==============


class FullConfig(BaseModel):
    api: ApiConfig = ApiConfig()
    pipeline: PipelineConfig = PipelineConfig()
    zoom: ZoomDetectionConfig = ZoomDetectionConfig()
    beats: BeatConfig = BeatConfig()
    polling: PollingConfig = PollingConfig()
    storage: StorageConfig = StorageConfig()
    allowed_origins: List[str] = ["*"]
    log_level: str = "INFO"
    log_file: Optional[str] = None
