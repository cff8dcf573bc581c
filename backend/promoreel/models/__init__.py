"""
Models package for PromoReel.
"""

from .config import (
    ApiConfig,
    GeminiConfig,
    RenderWorkerConfig,
    CVServiceConfig,
    ScraperConfig,
    PipelineConfig,
    ZoomDetectionConfig,
    BeatConfig,
    PollingConfig,
    StorageConfig,
    FullConfig,
    RenderFormat,
    MusicMood,
)
from .recording import (
    CursorEvent,
    CursorEventType,
    CursorSource,
    CursorStyle,
    ProcessingStatus,
    ScreenRecording,
    ZoomPoint,
)
from .script import Scene, SceneType, Transition, MusicSpec, VideoScript
from .beat import BeatMap
from .stream import EventType, StreamEvent
from .pipeline import (
    PipelineStep,
    ProductData,
    GenerationRequest,
    ContinueRequest,
    RecordingRef,
    UserPreferences,
    PipelineState,
    StageResult,
    RenderResult,
)

__all__ = [
    # Config
    "ApiConfig",
    "GeminiConfig",
    "RenderWorkerConfig",
    "CVServiceConfig",
    "ScraperConfig",
    "PipelineConfig",
    "ZoomDetectionConfig",
    "BeatConfig",
    "PollingConfig",
    "StorageConfig",
    "FullConfig",
    "RenderFormat",
    "MusicMood",
    # Recording
    "CursorEvent",
    "CursorEventType",
    "CursorSource",
    "CursorStyle",
    "ProcessingStatus",
    "ScreenRecording",
    "ZoomPoint",
    # Script
    "Scene",
    "SceneType",
    "Transition",
    "MusicSpec",
    "VideoScript",
    # Beat / stream
    "BeatMap",
    "EventType",
    "StreamEvent",
    # Pipeline
    "PipelineStep",
    "ProductData",
    "GenerationRequest",
    "ContinueRequest",
    "RecordingRef",
    "UserPreferences",
    "PipelineState",
    "StageResult",
    "RenderResult",
]
