"""
Eventos NDJSON emitidos durante a geração.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel


class EventType(str, Enum):
    STATUS = "status"
    PRODUCT_DATA = "productData"
    VIDEO_SCRIPT = "videoScript"
    REMOTION_CODE = "remotionCode"
    VIDEO_URL = "videoUrl"
    ERROR = "error"
    COMPLETE = "complete"


# Tipos que aparecem no máximo uma vez por execução, nesta ordem
ARTIFACT_ORDER = [
    EventType.PRODUCT_DATA,
    EventType.VIDEO_SCRIPT,
    EventType.REMOTION_CODE,
    EventType.VIDEO_URL,
]

TERMINAL_EVENTS = {EventType.ERROR, EventType.COMPLETE}


class StreamEvent(BaseModel):
    type: EventType
    data: Any = None

    @classmethod
    def status(cls, step: str, message: str, attempts: Optional[int] = None) -> "StreamEvent":
        data = {"step": step, "message": message}
        if attempts is not None:
            data["attempts"] = attempts
        return cls(type=EventType.STATUS, data=data)

    @classmethod
    def error(cls, errors: List[str]) -> "StreamEvent":
        return cls(type=EventType.ERROR, data={"errors": list(errors)})

    @classmethod
    def complete(cls, success: bool = True, message: str = "Video generation complete") -> "StreamEvent":
        return cls(type=EventType.COMPLETE, data={"success": success, "message": message})

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS
