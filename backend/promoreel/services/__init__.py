"""
Services package for PromoReel.
"""

from .errors import PipelineError, InvalidRequestError
from .beat_sync import create_beat_map, estimate_bpm, bpm_for_mood
from .zoom_detector import detect_zoom_points, insert_manual_zoom_point
from .stream_protocol import NDJSONStreamReader, StreamProjection, read_events, consume_stream
from .llm_client import GeminiClient, LLMResponseError
from .content_extractor import ContentExtractor, ContentExtractionError
from .script_writer import ScriptWriter, ScriptAuthoringError
from .code_generator import CodeGenerator, CodeGenerationError
from .script_editor import ScriptEditor, ScriptEditError
from .render_client import RenderClient, RenderError
from .pipeline_orchestrator import PipelineOrchestrator
from .recording_store import RecordingStore, get_recording_store
from .cv_processor import CVProcessor, CVProcessingError, get_cv_processor
from .recording_coordinator import RecordingJobCoordinator, TickOutcome, TickKind
from .api_client import PromoReelClient

__all__ = [
    "PipelineError",
    "InvalidRequestError",
    "create_beat_map",
    "estimate_bpm",
    "bpm_for_mood",
    "detect_zoom_points",
    "insert_manual_zoom_point",
    "NDJSONStreamReader",
    "StreamProjection",
    "read_events",
    "consume_stream",
    "GeminiClient",
    "LLMResponseError",
    "ContentExtractor",
    "ContentExtractionError",
    "ScriptWriter",
    "ScriptAuthoringError",
    "CodeGenerator",
    "CodeGenerationError",
    "ScriptEditor",
    "ScriptEditError",
    "RenderClient",
    "RenderError",
    "PipelineOrchestrator",
    "RecordingStore",
    "get_recording_store",
    "CVProcessor",
    "CVProcessingError",
    "get_cv_processor",
    "RecordingJobCoordinator",
    "TickOutcome",
    "TickKind",
    "PromoReelClient",
]
