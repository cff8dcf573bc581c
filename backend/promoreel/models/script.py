"""
Modelos do roteiro de vídeo (cenas, transições e música).

Invariante do roteiro: as cenas são contíguas e sem sobreposição
(scene[i].end_frame == scene[i+1].start_frame, primeira cena em 0) e
total_duration == end_frame da última cena. Toda mutação reempacota os frames.
"""

import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import CamelModel
from .config import MusicMood


class SceneType(str, Enum):
    INTRO = "intro"
    FEATURE = "feature"
    TESTIMONIAL = "testimonial"
    CTA = "cta"
    TRANSITION = "transition"
    STATS = "stats"
    SCREENSHOT = "screenshot"
    TAGLINE = "tagline"
    VALUE_PROP = "value-prop"
    RECORDING = "recording"


def _new_scene_id() -> str:
    return f"scene-{uuid.uuid4().hex[:8]}"


class Scene(CamelModel):
    id: str = Field(default_factory=_new_scene_id)
    start_frame: int = Field(default=0, ge=0)
    end_frame: int = Field(default=0, ge=0)
    type: SceneType = SceneType.FEATURE
    content: Dict[str, Any] = {}
    animation: Dict[str, Any] = {"enter": "fade", "exit": "fade"}
    style: Dict[str, Any] = {}

    @property
    def length(self) -> int:
        return self.end_frame - self.start_frame


class Transition(CamelModel):
    after_scene: str
    type: str = "fade"
    duration: int = Field(default=20, ge=0)
    direction: Optional[str] = None


class MusicSpec(CamelModel):
    tempo: Optional[int] = Field(default=None, ge=20, le=300)
    mood: MusicMood = MusicMood.ENERGETIC


class VideoScript(CamelModel):
    total_duration: int = 0
    scenes: List[Scene] = []
    transitions: List[Transition] = []
    music: MusicSpec = MusicSpec()

    # ============== INVARIANT ==============

    def is_contiguous(self) -> bool:
        frame = 0
        for scene in self.scenes:
            if scene.start_frame != frame or scene.end_frame <= scene.start_frame:
                return False
            frame = scene.end_frame
        return self.total_duration == frame

    def repack(self, min_length: int = 1) -> "VideoScript":
        """
        Reposiciona todas as cenas em sequência a partir do frame 0,
        preservando a duração de cada uma.

        Cenas com duração inválida (<= 0) recebem min_length frames.
        """
        frame = 0
        for scene in self.scenes:
            length = scene.end_frame - scene.start_frame
            if length <= 0:
                length = min_length
            scene.start_frame = frame
            scene.end_frame = frame + length
            frame = scene.end_frame
        self.total_duration = frame
        return self

    def scale_to(self, total_frames: int) -> "VideoScript":
        """
        Redistribui as durações proporcionalmente para somar total_frames.

        A última cena absorve o arredondamento.
        """
        if not self.scenes:
            self.total_duration = 0
            return self
        if total_frames < len(self.scenes):
            raise ValueError(
                f"{total_frames} frames não comportam {len(self.scenes)} cenas"
            )

        self.repack()
        current = self.total_duration
        lengths = [max(1, round(s.length * total_frames / current)) for s in self.scenes]

        # Ajusta o excedente/déficit a partir do fim, sem zerar cenas
        diff = total_frames - sum(lengths)
        idx = len(lengths) - 1
        while diff != 0:
            if diff > 0:
                lengths[idx] += diff
                diff = 0
            else:
                take = min(-diff, lengths[idx] - 1)
                lengths[idx] -= take
                diff += take
                idx -= 1

        frame = 0
        for scene, length in zip(self.scenes, lengths):
            scene.start_frame = frame
            scene.end_frame = frame + length
            frame += length
        self.total_duration = frame
        return self

    # ============== MUTATIONS ==============

    def find_scene(self, scene_id: str) -> Optional[Scene]:
        for scene in self.scenes:
            if scene.id == scene_id:
                return scene
        return None

    def _index_of(self, scene_id: str) -> int:
        for i, scene in enumerate(self.scenes):
            if scene.id == scene_id:
                return i
        raise KeyError(f"Cena não encontrada: {scene_id}")

    def add_scene(self, scene: Scene, index: Optional[int] = None, length: Optional[int] = None) -> Scene:
        """
        Insere uma cena (no fim, por padrão) e reempacota.

        Args:
            scene: Cena a inserir; start/end só definem a duração
            index: Posição de inserção
            length: Duração em frames, sobrescreve a da cena
        """
        if length is not None:
            scene.start_frame = 0
            scene.end_frame = length
        if index is None:
            self.scenes.append(scene)
        else:
            self.scenes.insert(index, scene)
        self.repack()
        return scene

    def remove_scene(self, scene_id: str) -> Scene:
        removed = self.scenes.pop(self._index_of(scene_id))
        self.transitions = [t for t in self.transitions if t.after_scene != scene_id]
        self.repack()
        return removed

    def move_scene(self, scene_id: str, new_index: int) -> None:
        scene = self.scenes.pop(self._index_of(scene_id))
        new_index = max(0, min(new_index, len(self.scenes)))
        self.scenes.insert(new_index, scene)
        self.repack()

    def reorder_scenes(self, scene_ids: List[str]) -> None:
        """Reordena as cenas conforme a lista completa de ids."""
        if sorted(scene_ids) != sorted(s.id for s in self.scenes):
            raise ValueError("A nova ordem deve conter exatamente as cenas atuais")
        by_id = {s.id: s for s in self.scenes}
        self.scenes = [by_id[sid] for sid in scene_ids]
        self.repack()

    def resize_scene(self, scene_id: str, length: int) -> None:
        if length <= 0:
            raise ValueError("Duração da cena deve ser positiva")
        scene = self.scenes[self._index_of(scene_id)]
        scene.end_frame = scene.start_frame + length
        self.repack()
