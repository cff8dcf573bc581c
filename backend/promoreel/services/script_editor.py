"""
Edição conversacional do roteiro: o usuário descreve a mudança e o modelo
devolve o roteiro completo, que substitui o atual.
"""

import json
import logging
from typing import Optional

from pydantic import ValidationError

from ..models.pipeline import ProductData
from ..models.script import VideoScript
from .errors import PipelineError
from .llm_client import GeminiClient, LLMResponseError

logger = logging.getLogger(__name__)


class ScriptEditError(PipelineError):
    pass


EDIT_SYSTEM_PROMPT = """You are a video script editor. You receive a video script (JSON) and a user's edit instruction.
Apply the requested changes and return the COMPLETE updated script as valid JSON.

Rules:
- Preserve the exact JSON structure: { totalDuration, scenes[], transitions[], music }
- Each scene has: id, startFrame, endFrame, type, content, animation, style
- Scene durations are in frames at 30fps (e.g., 90 frames = 3 seconds)
- Valid scene types: "intro", "feature", "tagline", "value-prop", "screenshot", "testimonial", "recording", "cta", "stats"
- Keep scene IDs stable when modifying existing scenes
- When the user says to make something shorter/longer, adjust endFrame - startFrame for those scenes
- Preserve all fields you don't need to change

Return ONLY the updated JSON."""


class ScriptEditor:

    def __init__(self, llm: GeminiClient, temperature: float = 0.3):
        self.llm = llm
        self.temperature = temperature

    async def edit(
        self,
        message: str,
        script: VideoScript,
        product: Optional[ProductData] = None,
    ) -> VideoScript:
        """
        Aplica a instrução do usuário e retorna o novo roteiro, reempacotado.

        Raises:
            ScriptEditError: instrução vazia ou resposta inutilizável
        """
        if not message.strip():
            raise ScriptEditError("Mensagem de edição vazia")

        product_context = ""
        if product is not None:
            titles = ", ".join(f.title for f in product.features) or "N/A"
            product_context = f"\nProduct: {product.name} - {product.tagline}\nFeatures: {titles}"

        prompt = (
            f"Current script:\n{json.dumps(script.to_wire(), indent=2, ensure_ascii=False)}\n"
            f"{product_context}\n\n"
            f'User\'s edit request: "{message}"\n\n'
            "Apply the changes and return the complete updated script as JSON."
        )

        logger.info(f"Editing script: {message[:80]!r}")
        try:
            data = await self.llm.generate_json(
                prompt,
                system_instruction=EDIT_SYSTEM_PROMPT,
                temperature=self.temperature,
            )
            updated = VideoScript.model_validate(data)
        except (LLMResponseError, ValidationError) as e:
            raise ScriptEditError(f"Falha ao interpretar o roteiro editado: {e}") from e

        if not updated.scenes:
            raise ScriptEditError("Roteiro editado ficou sem cenas")

        updated.repack(min_length=30)
        logger.info(f"Edit applied: {len(updated.scenes)} scenes, {updated.total_duration} frames")
        return updated
