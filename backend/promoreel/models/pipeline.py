"""
Modelos do pipeline de geração: requisição, estado da execução e deltas de etapa.
"""

import uuid
from enum import Enum
from typing import List, Optional

from pydantic import ConfigDict, Field, model_validator

from .base import CamelModel
from .beat import BeatMap
from .config import RenderFormat
from .recording import CursorEvent, CursorSource, CursorStyle, MockupFrame, ScreenRecording, ZoomPoint
from .script import VideoScript


# ============== ENUMS ==============


class PipelineStep(str, Enum):
    IDLE = "idle"
    SCRAPING = "scraping"
    SCRIPTING = "scripting"
    GENERATING = "generating"
    REVIEW = "review"
    COMPLETE = "complete"
    ERROR = "error"


class Tone(str, Enum):
    PROFESSIONAL = "professional"
    PLAYFUL = "playful"
    MINIMAL = "minimal"
    BOLD = "bold"


# ============== PRODUCT ==============


class ProductFeature(CamelModel):
    title: str
    description: str = ""
    icon: Optional[str] = None


class PricingTier(CamelModel):
    tier: str
    price: str
    features: List[str] = []


class Testimonial(CamelModel):
    quote: str
    author: str = ""
    role: str = ""


class BrandColors(CamelModel):
    primary: str = "#3B82F6"
    secondary: str = "#1E40AF"
    accent: str = "#60A5FA"


class ProductData(CamelModel):
    """Perfil do produto extraído do site (ou sintetizado a partir da descrição)."""
    name: str
    tagline: str = ""
    description: str = ""
    features: List[ProductFeature] = []
    pricing: Optional[List[PricingTier]] = None
    testimonials: Optional[List[Testimonial]] = None
    images: List[str] = []
    colors: BrandColors = BrandColors()
    tone: Tone = Tone.PROFESSIONAL
    screenshots: List[str] = []
    logos: List[str] = []
    source_url: Optional[str] = None


# ============== REQUEST ==============


class AudioRef(CamelModel):
    url: str
    bpm: int = Field(default=120, ge=20, le=300)
    duration: float = Field(default=30, gt=0)


class RecordingRef(CamelModel):
    """Gravação anexada a uma requisição de geração."""
    id: str
    video_url: str
    duration: float = 0
    trim_start: float = 0
    trim_end: float = 0
    feature_name: str = ""
    description: str = ""
    cursor_style: CursorStyle = CursorStyle.HAND_POINTING
    cursor_source: CursorSource = CursorSource.CLIENT_TRACKED
    cursor_data: List[CursorEvent] = []
    zoom_points: List[ZoomPoint] = []
    mockup_frame: Optional[MockupFrame] = None

    @classmethod
    def from_recording(cls, recording: ScreenRecording) -> "RecordingRef":
        """Monta a referência com o cursor e os zooms atuais da gravação."""
        return cls(
            id=recording.id,
            video_url=recording.video_url,
            duration=recording.duration,
            trim_start=recording.trim_start,
            trim_end=recording.trim_end,
            feature_name=recording.feature_name,
            description=recording.description,
            cursor_style=recording.cursor_style,
            cursor_source=recording.cursor_source,
            cursor_data=list(recording.cursor_data),
            zoom_points=list(recording.zoom_points),
            mockup_frame=recording.mockup_frame,
        )


class UserPreferences(CamelModel):
    style: str = "professional"
    template_style: Optional[str] = None
    video_type: str = "creative"
    duration: Optional[int] = Field(default=None, ge=5, le=300)
    audio: Optional[AudioRef] = None


class GenerationRequest(CamelModel):
    """Entrada imutável de uma execução. Exige URL ou descrição."""
    model_config = ConfigDict(frozen=True)

    source_url: Optional[str] = Field(default=None, alias="url")
    description: Optional[str] = None
    style: str = "professional"
    template_style: Optional[str] = None
    video_type: str = "creative"
    duration: Optional[int] = Field(default=None, ge=5, le=300)
    audio: Optional[AudioRef] = None
    recordings: List[RecordingRef] = []

    @model_validator(mode="after")
    def _require_source(self):
        has_url = bool(self.source_url and self.source_url.strip())
        has_description = bool(self.description and self.description.strip())
        if not (has_url or has_description):
            raise ValueError("URL ou descrição é obrigatória")
        return self

    @property
    def has_url(self) -> bool:
        return bool(self.source_url and self.source_url.strip())

    def preferences(self) -> UserPreferences:
        return UserPreferences(
            style=self.style,
            template_style=self.template_style,
            video_type=self.video_type,
            duration=self.duration,
            audio=self.audio,
        )


class ContinueRequest(CamelModel):
    video_script: VideoScript
    product_data: Optional[ProductData] = None
    user_preferences: UserPreferences = UserPreferences()
    recordings: List[RecordingRef] = []


class EditScriptRequest(CamelModel):
    message: str
    video_script: VideoScript
    product_data: Optional[ProductData] = None


class EditScriptResponse(CamelModel):
    success: bool
    video_script: Optional[VideoScript] = None
    error: Optional[str] = None


class RenderRequest(CamelModel):
    remotion_code: str
    duration_in_frames: int = Field(default=300, gt=0)
    format: RenderFormat = RenderFormat.MP4


class RenderResult(CamelModel):
    success: bool
    video_url: Optional[str] = None
    render_time_ms: Optional[int] = Field(default=None, alias="renderTime_ms")
    error: Optional[str] = None


# ============== STATE ==============


class StageResult(CamelModel):
    """
    Delta produzido por uma etapa: campos parciais + próxima etapa,
    ou erros + next_step=error.
    """
    next_step: PipelineStep
    product_data: Optional[ProductData] = None
    video_script: Optional[VideoScript] = None
    remotion_code: Optional[str] = None
    video_url: Optional[str] = None
    errors: List[str] = []

    @classmethod
    def failure(cls, *messages: str) -> "StageResult":
        return cls(next_step=PipelineStep.ERROR, errors=list(messages))

    @property
    def failed(self) -> bool:
        return bool(self.errors) or self.next_step == PipelineStep.ERROR


class PipelineState(CamelModel):
    """
    Estado mutável de uma única execução. Pertence exclusivamente ao
    orquestrador; nunca é compartilhado entre execuções.
    """
    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    current_step: PipelineStep = PipelineStep.IDLE
    product_data: Optional[ProductData] = None
    video_script: Optional[VideoScript] = None
    remotion_code: Optional[str] = None
    video_url: Optional[str] = None
    beat_map: Optional[BeatMap] = None
    render_attempts: int = 0
    errors: List[str] = []

    @property
    def is_terminal(self) -> bool:
        return self.current_step in (PipelineStep.COMPLETE, PipelineStep.ERROR)
