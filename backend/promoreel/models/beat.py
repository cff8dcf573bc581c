"""
Modelos do mapa de batidas.
"""

from typing import List

from pydantic import ConfigDict, Field

from .base import CamelModel


class BeatMap(CamelModel):
    """
    Mapa de batidas derivado de (bpm, duração, fps). Todos os tempos em frames.

    Imutável depois de construído.
    """
    model_config = ConfigDict(frozen=True)

    bpm: int
    fps: int
    frames_per_beat: int
    beats: List[int]
    downbeats: List[int]
    measures: List[int]
    energy: List[float]
    drops: List[int]
    total_duration: int


class BeatMapRequest(CamelModel):
    bpm: int = Field(default=120, ge=20, le=300)
    duration: float = Field(default=30, gt=0, le=600)
    fps: int = Field(default=30, ge=1, le=120)
