"""
Modelos de gravações de tela, eventos de cursor e pontos de zoom.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field, model_validator

from .base import CamelModel


class CursorEventType(str, Enum):
    CLICK = "click"
    MOVE = "move"
    INPUT = "input"


class CursorStyle(str, Enum):
    MAC = "mac"
    WINDOWS = "windows"
    HAND_POINTING = "hand-pointing"
    HAND_PRESSING = "hand-pressing"
    TOUCH_HAND = "touch-hand"
    FINGER_TAP = "finger-tap"
    HAND_CURSOR = "hand-cursor"


class MockupFrame(str, Enum):
    BROWSER = "browser"
    MACBOOK = "macbook"
    MINIMAL = "minimal"


class CursorSource(str, Enum):
    CLIENT_TRACKED = "client-tracked"
    EXTERNAL_CV = "external-cv"


class ProcessingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


TERMINAL_STATUSES = {ProcessingStatus.COMPLETE, ProcessingStatus.FAILED}


class CursorEvent(CamelModel):
    """Evento de ponteiro capturado durante a gravação (timestamp em ms)."""
    type: CursorEventType
    x: float
    y: float
    timestamp: float = Field(ge=0)


class ZoomPoint(CamelModel):
    """Ponto de foco: tempo em segundos, x/y normalizados em [0, 1]."""
    time: float = Field(ge=0)
    x: float = Field(ge=0, le=1)
    y: float = Field(ge=0, le=1)
    scale: float = Field(default=1.5, gt=0)
    duration: float = Field(default=2.0, gt=0)


class ScreenRecording(CamelModel):
    id: str
    project_id: str = "creative-session"
    video_url: str
    video_path: Optional[str] = None
    duration: float = Field(default=0, ge=0)
    trim_start: float = Field(default=0, ge=0)
    trim_end: float = Field(default=0, ge=0)
    cursor_style: CursorStyle = CursorStyle.HAND_POINTING
    cursor_source: CursorSource = CursorSource.CLIENT_TRACKED
    processing_status: ProcessingStatus = ProcessingStatus.COMPLETE
    progress: float = Field(default=0, ge=0, le=100)
    cursor_data: List[CursorEvent] = []
    zoom_points: List[ZoomPoint] = []
    feature_name: str = ""
    description: str = ""
    mockup_frame: Optional[MockupFrame] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def _check_trim(self):
        # trim_end == 0 significa "clipe inteiro"
        if self.trim_end == 0 and self.duration > 0:
            self.trim_end = self.duration
        if self.duration > 0:
            if not (0 <= self.trim_start < self.trim_end <= self.duration):
                raise ValueError(
                    f"Trim inválido: esperado 0 <= {self.trim_start} < {self.trim_end} <= {self.duration}"
                )
        return self

    @property
    def needs_processing(self) -> bool:
        return (
            self.cursor_source == CursorSource.EXTERNAL_CV
            and self.processing_status not in TERMINAL_STATUSES
        )


class RecordingUpdate(CamelModel):
    trim_start: Optional[float] = None
    trim_end: Optional[float] = None
    zoom_points: Optional[List[ZoomPoint]] = None
    feature_name: Optional[str] = None
    description: Optional[str] = None
    cursor_style: Optional[CursorStyle] = None
    mockup_frame: Optional[MockupFrame] = None


class RecordingUploadResponse(CamelModel):
    success: bool
    recording_id: str
    video_url: str
    processing_status: Optional[ProcessingStatus] = None


class RecordingListResponse(CamelModel):
    recordings: List[ScreenRecording]
    total: int


class RecordingStatusResponse(CamelModel):
    """Resposta do endpoint de polling; status pode ser também "not_found"."""
    recording_id: Optional[str] = None
    status: str
    progress: Optional[float] = None
    cursor_data: Optional[List[CursorEvent]] = None
    zoom_points: Optional[List[ZoomPoint]] = None
    error: Optional[str] = None
