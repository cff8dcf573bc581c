"""
Detecção heurística de pontos de zoom a partir do log de cursor.
"""

import logging
import math
from typing import Iterable, List, Optional, Tuple

from ..models.config import ZoomDetectionConfig
from ..models.recording import CursorEvent, CursorEventType, ZoomPoint

logger = logging.getLogger(__name__)


TRIGGER_TYPES = {CursorEventType.CLICK, CursorEventType.INPUT}


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _has_significant_move(
    events: List[CursorEvent],
    index: int,
    config: ZoomDetectionConfig,
) -> bool:
    """Verifica se algum move logo após o evento se afasta além do limite."""
    candidate = events[index]
    window_end = candidate.timestamp + config.lookahead_ms

    for event in events[index + 1:]:
        if event.timestamp > window_end:
            break
        if event.type != CursorEventType.MOVE:
            continue
        distance = math.hypot(event.x - candidate.x, event.y - candidate.y)
        if distance > config.displacement_px:
            return True
    return False


def detect_zoom_points(
    events: Iterable[CursorEvent],
    config: Optional[ZoomDetectionConfig] = None,
) -> List[ZoomPoint]:
    """
    Converte eventos de cursor em pontos de zoom.

    Candidatos são cliques e digitação. Um candidato é descartado se vier
    antes do cooldown desde o último aceito, ou se for seguido (dentro da
    janela de lookahead) por um movimento maior que o limite de deslocamento.

    Args:
        events: Eventos ordenados por timestamp (ms)
        config: Constantes da heurística

    Returns:
        Até max_points pontos de zoom em ordem cronológica (pode ser vazia)
    """
    config = config or ZoomDetectionConfig()
    ordered = sorted(events, key=lambda e: e.timestamp)

    points: List[ZoomPoint] = []
    last_accepted: Optional[float] = None

    for i, event in enumerate(ordered):
        if len(points) >= config.max_points:
            break
        if event.type not in TRIGGER_TYPES:
            continue
        if last_accepted is not None and event.timestamp - last_accepted < config.cooldown_ms:
            continue
        if _has_significant_move(ordered, i, config):
            continue

        points.append(ZoomPoint(
            time=event.timestamp / 1000,
            x=_clamp(event.x / config.frame_width),
            y=_clamp(event.y / config.frame_height),
            scale=config.scale,
            duration=config.duration_s,
        ))
        last_accepted = event.timestamp

    logger.debug(f"Detected {len(points)} zoom points from {len(ordered)} cursor events")
    return points


def insert_manual_zoom_point(points: List[ZoomPoint], point: ZoomPoint) -> List[ZoomPoint]:
    """Insere um ponto definido pelo usuário (sem heurística) e reordena por tempo."""
    return sorted([*points, point], key=lambda p: p.time)


def get_zoom_at_time(points: List[ZoomPoint], time_s: float) -> Tuple[float, float, float]:
    """
    Retorna (scale, x, y) do zoom ativo no instante, com easing nas bordas.

    Sem zoom ativo retorna (1.0, 0.5, 0.5).
    """
    active = next(
        (p for p in points if p.time <= time_s <= p.time + p.duration),
        None,
    )
    if active is None:
        return 1.0, 0.5, 0.5

    def ease_in_out(t: float) -> float:
        return 2 * t * t if t < 0.5 else -1 + (4 - 2 * t) * t

    progress = (time_s - active.time) / active.duration
    if progress < 0.2:
        scale = 1 + (active.scale - 1) * ease_in_out(progress / 0.2)
    elif progress > 0.8:
        scale = 1 + (active.scale - 1) * ease_in_out((1 - progress) / 0.2)
    else:
        scale = active.scale
    return scale, active.x, active.y


def get_cursor_at_time(events: List[CursorEvent], time_ms: float) -> Optional[CursorEvent]:
    """Posição do cursor no instante, interpolada linearmente entre eventos."""
    if not events:
        return None

    before = events[0]
    after = events[-1]
    for event in events:
        if event.timestamp <= time_ms:
            before = event
        if event.timestamp >= time_ms:
            after = event
            break

    if before.timestamp == time_ms:
        return before
    if after.timestamp == time_ms:
        return after

    span = after.timestamp - before.timestamp
    if span <= 0:
        return before

    progress = (time_ms - before.timestamp) / span
    return CursorEvent(
        type=before.type,
        x=before.x + (after.x - before.x) * progress,
        y=before.y + (after.y - before.y) * progress,
        timestamp=time_ms,
    )
