"""
Geração do código de composição (Remotion/TSX) a partir do roteiro aprovado.

O conteúdo visual das cenas fica a cargo do pacote de templates do worker
de renderização; aqui só montamos o módulo que o worker recebe.
"""

import json
import logging
from typing import List, Optional

from ..models.beat import BeatMap
from ..models.config import PipelineConfig
from ..models.pipeline import ProductData, RecordingRef
from ..models.script import VideoScript
from .errors import PipelineError
from .llm_client import GeminiClient, LLMResponseError, strip_code_fences

logger = logging.getLogger(__name__)


class CodeGenerationError(PipelineError):
    """Falha ao gerar ou corrigir o código da composição."""
    pass


CODE_SYSTEM_PROMPT = """You are an expert Remotion developer.
Translate the given video script into a single self-contained TSX module that exports
a React component named PromoVideo. Use only `remotion` primitives (AbsoluteFill, Sequence,
useCurrentFrame, interpolate, spring, Img, OffthreadVideo). Every scene must start at its
startFrame and last (endFrame - startFrame) frames. When a beat map is given, align scale
pulses to its beats and use its energy values for pulse amplitude. Recording scenes play the
recording video and zoom to each zoom point (time in seconds, x/y normalized).
Output ONLY the code, no explanations."""


FIX_SYSTEM_PROMPT = """You are an expert Remotion developer fixing a composition that failed to render.
Return the complete corrected TSX module, keeping the PromoVideo export. Output ONLY the code."""


TEMPLATE_MODULE = """import React from "react";
import {{ AbsoluteFill, Sequence }} from "remotion";
import {{ SceneRenderer }} from "@promoreel/templates";

const SCRIPT = {script};
const BEAT_MAP = {beat_map};
const RECORDINGS = {recordings};

export const PromoVideo: React.FC = () => (
  <AbsoluteFill>
    {{SCRIPT.scenes.map((scene) => (
      <Sequence
        key={{scene.id}}
        from={{scene.startFrame}}
        durationInFrames={{scene.endFrame - scene.startFrame}}
      >
        <SceneRenderer scene={{scene}} beatMap={{BEAT_MAP}} recordings={{RECORDINGS}} />
      </Sequence>
    ))}}
  </AbsoluteFill>
);

export const durationInFrames = {total};
"""


class CodeGenerator:
    """Gera o módulo TSX da composição."""

    def __init__(
        self,
        llm: Optional[GeminiClient] = None,
        config: Optional[PipelineConfig] = None,
    ):
        self.llm = llm
        self.config = config or PipelineConfig()

    async def generate(
        self,
        script: VideoScript,
        product: Optional[ProductData] = None,
        beat_map: Optional[BeatMap] = None,
        recordings: Optional[List[RecordingRef]] = None,
    ) -> str:
        """
        Gera o código da composição.

        Args:
            script: Roteiro aprovado
            product: Perfil do produto (cores, imagens)
            beat_map: Mapa de batidas para sincronizar os pulsos
            recordings: Gravações referenciadas por cenas "recording"

        Returns:
            Código TSX
        """
        recordings = recordings or []
        if not script.scenes:
            raise CodeGenerationError("Roteiro sem cenas para gerar código")

        if self.llm is None:
            if not self.config.allow_template_script:
                raise CodeGenerationError("Nenhuma chave de API do Gemini configurada")
            return self.render_template(script, beat_map, recordings)

        payload = {
            "fps": self.config.fps,
            "width": self.config.width,
            "height": self.config.height,
            "videoScript": script.to_wire(),
            "productData": product.to_wire() if product else None,
            "beatMap": self._beat_summary(beat_map),
            "recordings": [r.to_wire() for r in recordings],
        }
        prompt = f"Video definition:\n{json.dumps(payload, ensure_ascii=False)}"

        try:
            code = await self.llm.generate_text(prompt, system_instruction=CODE_SYSTEM_PROMPT)
        except LLMResponseError as e:
            raise CodeGenerationError(f"Geração de código falhou: {e}") from e

        return self._validated(strip_code_fences(code))

    async def fix(self, code: str, error: str) -> str:
        """Pede ao modelo uma versão corrigida do código após erro de renderização."""
        if self.llm is None:
            raise CodeGenerationError("Correção automática exige o Gemini configurado")

        prompt = f"Render error:\n{error}\n\nCurrent code:\n{code}"
        try:
            fixed = await self.llm.generate_text(prompt, system_instruction=FIX_SYSTEM_PROMPT)
        except LLMResponseError as e:
            raise CodeGenerationError(f"Correção de código falhou: {e}") from e
        return self._validated(strip_code_fences(fixed))

    def render_template(
        self,
        script: VideoScript,
        beat_map: Optional[BeatMap],
        recordings: List[RecordingRef],
    ) -> str:
        return TEMPLATE_MODULE.format(
            script=json.dumps(script.to_wire(), indent=2, ensure_ascii=False),
            beat_map=json.dumps(self._beat_summary(beat_map)),
            recordings=json.dumps([r.to_wire() for r in recordings], ensure_ascii=False),
            total=script.total_duration,
        )

    @staticmethod
    def _beat_summary(beat_map: Optional[BeatMap]) -> Optional[dict]:
        # A curva de energia por frame fica de fora do prompt (muito longa)
        if beat_map is None:
            return None
        return beat_map.model_dump(mode="json", by_alias=True, exclude={"energy"})

    @staticmethod
    def _validated(code: str) -> str:
        if "export" not in code:
            raise CodeGenerationError("Código gerado não exporta nenhuma composição")
        return code
