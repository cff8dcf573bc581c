"""
Protocolo de streaming NDJSON entre o pipeline e o cliente.

Cada evento é uma linha JSON {"type": ..., "data": ...}. O leitor é
incremental: guarda a linha parcial entre leituras, descarta linhas
malformadas (com log) e nunca aborta a leitura por causa delas.
"""

import codecs
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, AsyncIterator, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from ..models.pipeline import ProductData
from ..models.script import VideoScript
from ..models.stream import EventType, StreamEvent

logger = logging.getLogger(__name__)


NDJSON_MEDIA_TYPE = "application/x-ndjson"

TRUNCATED_STREAM_ERROR = "A conexão terminou antes do fim da geração"

# Vocabulário (substring -> progresso %) das mensagens de status.
# Heurística de exibição apenas; mensagens desconhecidas não alteram o progresso.
GENERATE_PROGRESS: List[Tuple[Tuple[str, ...], int]] = [
    (("extracting", "scraping"), 25),
    (("analyzing", "processing"), 35),
    (("generating", "creating"), 60),
    (("finalizing", "optimizing"), 85),
]

CONTINUE_PROGRESS: List[Tuple[Tuple[str, ...], int]] = [
    (("generating code", "creating"), 25),
    (("rendering", "processing"), 60),
    (("finalizing", "encoding"), 85),
]


def encode_event(event: StreamEvent) -> bytes:
    """Serializa um evento como uma linha NDJSON."""
    payload = {"type": event.type.value, "data": _jsonable(event.data)}
    return (json.dumps(payload, ensure_ascii=False) + "\n").encode("utf-8")


def _jsonable(data: Any) -> Any:
    if hasattr(data, "to_wire"):
        return data.to_wire()
    if hasattr(data, "model_dump"):
        return data.model_dump(mode="json", by_alias=True)
    return data


def decode_line(line: str) -> Optional[StreamEvent]:
    """
    Converte uma linha em evento.

    Returns:
        StreamEvent, ou None para linha vazia, malformada ou de tipo desconhecido
    """
    text = line.strip()
    if not text:
        return None

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"Skipping malformed stream line ({e}): {text[:120]!r}")
        return None

    if not isinstance(payload, dict) or "type" not in payload:
        logger.warning(f"Skipping stream line without type: {text[:120]!r}")
        return None

    try:
        event_type = EventType(payload["type"])
    except ValueError:
        logger.debug(f"Ignoring unknown event type: {payload['type']}")
        return None

    return StreamEvent(type=event_type, data=payload.get("data"))


class NDJSONStreamReader:
    """
    Leitor incremental de NDJSON.

    Bytes de caracteres multibyte divididos entre leituras são preservados
    pelo decodificador incremental.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.skipped_lines = 0

    def feed(self, chunk: bytes) -> List[StreamEvent]:
        """Adiciona um pedaço do corpo e retorna os eventos de linhas completas."""
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return self._parse_lines(lines)

    def finish(self) -> List[StreamEvent]:
        """Processa a última linha sem quebra no fim do stream."""
        self._buffer += self._decoder.decode(b"", final=True)
        remaining, self._buffer = self._buffer, ""
        return self._parse_lines([remaining])

    def _parse_lines(self, lines: Iterable[str]) -> List[StreamEvent]:
        events = []
        for line in lines:
            event = decode_line(line)
            if event is not None:
                events.append(event)
            elif line.strip():
                self.skipped_lines += 1
        return events


async def read_events(chunks: AsyncIterable[bytes]) -> AsyncIterator[StreamEvent]:
    """Itera (pull) os eventos de um corpo de resposta recebido em pedaços."""
    reader = NDJSONStreamReader()
    async for chunk in chunks:
        for event in reader.feed(chunk):
            yield event
    for event in reader.finish():
        yield event


def progress_for_status(
    message: str,
    vocabulary: List[Tuple[Tuple[str, ...], int]] = GENERATE_PROGRESS,
) -> Optional[int]:
    """Mapeia a mensagem de status para um percentual aproximado, ou None."""
    lowered = (message or "").lower()
    for keywords, progress in vocabulary:
        if any(keyword in lowered for keyword in keywords):
            return progress
    return None


@dataclass
class StreamProjection:
    """
    Visão somente-leitura do estado da execução, montada pelo cliente a
    partir dos eventos recebidos. O estado canônico fica no servidor.
    """
    vocabulary: List[Tuple[Tuple[str, ...], int]] = field(default_factory=lambda: GENERATE_PROGRESS)
    step: Optional[str] = None
    message: str = ""
    progress: int = 0
    product_data: Optional[ProductData] = None
    video_script: Optional[VideoScript] = None
    remotion_code: Optional[str] = None
    video_url: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    finished: bool = False
    succeeded: bool = False
    events_seen: int = 0

    @property
    def failed(self) -> bool:
        return self.finished and not self.succeeded

    def apply(self, event: StreamEvent) -> None:
        self.events_seen += 1
        data = event.data

        if event.type == EventType.STATUS:
            if not isinstance(data, dict):
                logger.warning(f"Ignoring status event with non-object data: {data!r}")
                return
            self.step = data.get("step", self.step)
            self.message = data.get("message", "")
            progress = progress_for_status(self.message, self.vocabulary)
            if progress is not None:
                self.progress = max(self.progress, progress)

        elif event.type == EventType.PRODUCT_DATA:
            self.product_data = self._validate(ProductData, data)

        elif event.type == EventType.VIDEO_SCRIPT:
            self.video_script = self._validate(VideoScript, data)

        elif event.type == EventType.REMOTION_CODE:
            self.remotion_code = data

        elif event.type == EventType.VIDEO_URL:
            self.video_url = data

        elif event.type == EventType.ERROR:
            if isinstance(data, dict):
                errors = data.get("errors") or ["Erro desconhecido"]
            else:
                errors = [str(data)] if data else ["Erro desconhecido"]
            if isinstance(errors, str):
                errors = [errors]
            self.errors.extend(str(e) for e in errors)
            self.finished = True
            self.succeeded = False

        elif event.type == EventType.COMPLETE:
            self.finished = True
            success = data.get("success", True) if isinstance(data, dict) else True
            self.succeeded = bool(success) and not self.errors
            if self.succeeded:
                self.progress = 100

    def end_of_stream(self) -> None:
        """Stream encerrado: sem evento terminal, a execução é tratada como falha."""
        if not self.finished:
            logger.warning("Stream ended without a terminal event")
            self.errors.append(TRUNCATED_STREAM_ERROR)
            self.finished = True
            self.succeeded = False

    @staticmethod
    def _validate(model, data):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Invalid {model.__name__} payload in stream: {e}")
            return None


async def consume_stream(
    chunks: AsyncIterable[bytes],
    projection: Optional[StreamProjection] = None,
) -> StreamProjection:
    """Consome o stream inteiro aplicando cada evento à projeção."""
    projection = projection or StreamProjection()
    async for event in read_events(chunks):
        projection.apply(event)
    projection.end_of_stream()
    return projection
