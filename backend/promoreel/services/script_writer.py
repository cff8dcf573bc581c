"""
Serviço de autoria do roteiro de vídeo.

O Gemini escreve o roteiro a partir do perfil do produto; o resultado é
normalizado (ids, frames contíguos, duração alvo). Sem chave de API, e se
permitido pela configuração, um roteiro de template determinístico é gerado.
"""

import json
import logging
from typing import List, Optional

from pydantic import ValidationError

from ..models.config import PipelineConfig
from ..models.pipeline import ProductData, RecordingRef, UserPreferences
from ..models.script import MusicSpec, Scene, SceneType, Transition, VideoScript
from .beat_sync import bpm_for_mood
from .errors import PipelineError
from .llm_client import GeminiClient, LLMResponseError

logger = logging.getLogger(__name__)


class ScriptAuthoringError(PipelineError):
    """Falha ao produzir um roteiro válido."""
    pass


SCRIPT_SYSTEM_PROMPT = """You are a premium video scriptwriter specializing in motion graphics for product marketing videos.

## VIDEO STRUCTURE
- HOOK: bold statement on a gradient background
- FEATURES: one scene per key feature, or product recordings when provided
- PROOF: stats or testimonials when available
- CTA: bold call-to-action

## OUTPUT JSON SCHEMA
{
  "totalDuration": number (frames),
  "scenes": [{
    "id": "unique-id",
    "startFrame": number,
    "endFrame": number,
    "type": "intro" | "feature" | "testimonial" | "cta" | "stats" | "tagline" | "value-prop" | "screenshot" | "recording",
    "content": {"headline": "short punchy text", "subtext": "supporting text", "icon": "emoji", "recordingId": "for recording scenes"},
    "animation": {"enter": "blur-in-up" | "stagger-words" | "scale" | "slide-up" | "fade", "exit": "fade" | "slide-up"},
    "style": {"background": "gradient or solid from brand colors", "textColor": "#hex", "accentColor": "#hex", "fontSize": "large" | "medium" | "small"}
  }],
  "transitions": [{"afterScene": "scene-id", "type": "fade" | "crossfade" | "scroll-vertical", "duration": 20}],
  "music": {"tempo": BPM number, "mood": "energetic" | "calm" | "dramatic" | "playful"}
}
Use the ACTUAL brand colors. Scenes must be contiguous: each startFrame equals the previous endFrame."""


ENTER_ANIMATION = {
    SceneType.INTRO: "blur-in-up",
    SceneType.FEATURE: "slide-up",
    SceneType.RECORDING: "scale",
    SceneType.TESTIMONIAL: "fade",
    SceneType.VALUE_PROP: "stagger-words",
    SceneType.TAGLINE: "stagger-words",
    SceneType.CTA: "scale",
}


def target_seconds(product: ProductData, preferences: UserPreferences) -> int:
    """
    Duração alvo do vídeo em segundos.

    Com duração pedida: limitada a [10, 120]. Sem ela: 15s de abertura,
    6s por feature (até 4), 5s de CTA, +10s com depoimentos, +8s com preços,
    limitado a [30, 60].
    """
    if preferences.duration:
        return max(10, min(120, preferences.duration))

    seconds = 15 + min(len(product.features), 4) * 6 + 5
    if product.testimonials:
        seconds += 10
    if product.pricing:
        seconds += 8
    return max(30, min(60, seconds))


def expected_scene_count(seconds: float, seconds_per_scene: float = 5.0) -> int:
    return max(3, min(12, round(seconds / seconds_per_scene)))


class ScriptWriter:
    """Escreve e normaliza roteiros de vídeo."""

    def __init__(
        self,
        llm: Optional[GeminiClient] = None,
        config: Optional[PipelineConfig] = None,
    ):
        self.llm = llm
        self.config = config or PipelineConfig()

    async def write(
        self,
        product: ProductData,
        preferences: UserPreferences,
        recordings: Optional[List[RecordingRef]] = None,
    ) -> VideoScript:
        """
        Gera o roteiro para o produto.

        Args:
            product: Perfil do produto
            preferences: Estilo, tipo, duração e áudio pedidos
            recordings: Gravações de tela a incluir como cenas

        Returns:
            VideoScript contíguo com total_duration igual à duração alvo
        """
        recordings = recordings or []
        seconds = target_seconds(product, preferences)
        total_frames = seconds * self.config.fps
        scene_count = expected_scene_count(seconds, self.config.seconds_per_scene)

        if self.llm is not None:
            script = await self._write_with_llm(product, preferences, recordings, total_frames, scene_count)
        elif self.config.allow_template_script:
            logger.info("No language model configured, using template script")
            script = self.build_template(product, recordings, total_frames, scene_count)
        else:
            raise ScriptAuthoringError("Nenhuma chave de API do Gemini configurada")

        script = self.normalize(script, total_frames)
        script.music = self._music_for(script.music, preferences)
        logger.info(
            f"Script ready: {len(script.scenes)} scenes, {script.total_duration} frames "
            f"({seconds}s), {script.music.tempo} BPM"
        )
        return script

    def normalize(self, script: VideoScript, total_frames: int) -> VideoScript:
        """Garante ids únicos, frames contíguos e a duração total pedida."""
        if not script.scenes:
            raise ScriptAuthoringError("Roteiro sem cenas")

        seen = set()
        for i, scene in enumerate(script.scenes):
            if not scene.id or scene.id in seen:
                scene.id = f"scene-{i + 1}"
            seen.add(scene.id)

        default_length = max(1, total_frames // len(script.scenes))
        script.repack(min_length=default_length)
        script.scale_to(total_frames)

        ids = {scene.id for scene in script.scenes}
        script.transitions = [t for t in script.transitions if t.after_scene in ids]
        return script

    async def _write_with_llm(
        self,
        product: ProductData,
        preferences: UserPreferences,
        recordings: List[RecordingRef],
        total_frames: int,
        scene_count: int,
    ) -> VideoScript:
        recordings_payload = [
            {
                "recordingId": r.id,
                "featureName": r.feature_name,
                "description": r.description,
                "durationSeconds": (r.trim_end or r.duration) - r.trim_start,
            }
            for r in recordings
        ]
        prompt = (
            f"Create a {preferences.style} {preferences.video_type} video script.\n"
            f"Total duration: {total_frames} frames at {self.config.fps}fps, about {scene_count} scenes.\n\n"
            f"Product:\n{json.dumps(product.to_wire(), ensure_ascii=False)}\n\n"
            f"Screen recordings (include one 'recording' scene each):\n"
            f"{json.dumps(recordings_payload, ensure_ascii=False)}"
        )
        if preferences.template_style:
            prompt += f"\n\nVisual template style: {preferences.template_style}"

        try:
            data = await self.llm.generate_json(prompt, system_instruction=SCRIPT_SYSTEM_PROMPT)
            return VideoScript.model_validate(data)
        except (LLMResponseError, ValidationError) as e:
            raise ScriptAuthoringError(f"Roteiro inválido retornado pelo modelo: {e}") from e

    def build_template(
        self,
        product: ProductData,
        recordings: List[RecordingRef],
        total_frames: int,
        scene_count: int,
    ) -> VideoScript:
        """Roteiro determinístico: intro, gravações/features, tagline e CTA."""
        scene_count = max(scene_count, len(recordings) + 3)
        middle_slots = scene_count - 3

        style = {
            "background": f"linear-gradient(135deg, {product.colors.primary} 0%, {product.colors.secondary} 100%)",
            "textColor": "#FFFFFF",
            "accentColor": product.colors.accent,
            "fontSize": "large",
        }

        def make(scene_type: SceneType, content: dict) -> Scene:
            return Scene(
                type=scene_type,
                content=content,
                animation={"enter": ENTER_ANIMATION.get(scene_type, "fade"), "exit": "fade"},
                style=dict(style),
            )

        scenes = [make(SceneType.INTRO, {"headline": product.name, "subtext": product.tagline})]

        for recording in recordings:
            scenes.append(make(SceneType.RECORDING, {
                "recordingId": recording.id,
                "recordingVideoUrl": recording.video_url,
                "featureName": recording.feature_name,
                "description": recording.description,
                "mockupFrame": recording.mockup_frame.value if recording.mockup_frame else "browser",
            }))

        for i in range(middle_slots - len(recordings)):
            if product.features:
                feature = product.features[i % len(product.features)]
                scenes.append(make(SceneType.FEATURE, {
                    "headline": feature.title,
                    "subtext": feature.description,
                    "icon": feature.icon,
                }))
            else:
                scenes.append(make(SceneType.VALUE_PROP, {"headline": product.description[:80]}))

        scenes.append(make(SceneType.TAGLINE, {"headline": product.tagline or product.name}))
        scenes.append(make(SceneType.CTA, {
            "headline": f"Get started with {product.name}",
            "subtext": product.source_url or "Try it today",
        }))

        length = max(1, total_frames // len(scenes))
        for scene in scenes:
            scene.end_frame = length

        script = VideoScript(scenes=scenes)
        script.transitions = [
            Transition(after_scene=scene.id, type="fade", duration=15)
            for scene in scenes[:-1]
        ]
        return script.repack()

    def _music_for(self, music: MusicSpec, preferences: UserPreferences) -> MusicSpec:
        if preferences.audio is not None:
            tempo = preferences.audio.bpm
        else:
            tempo = music.tempo or bpm_for_mood(music.mood)
        return MusicSpec(tempo=tempo, mood=music.mood)
