"""
Cliente do Google Gemini usado pelas etapas de conteúdo, roteiro e código.

Respostas JSON passam por limpeza (cercas markdown, texto ao redor) e por
um reparo simples antes do parse.
"""

import json
import logging
import re
from typing import Optional

import google.generativeai as genai

from ..models.config import GeminiConfig
from .errors import PipelineError

logger = logging.getLogger(__name__)


class LLMResponseError(PipelineError):
    """Resposta do modelo vazia ou impossível de interpretar."""
    pass


class GeminiClient:
    """
    Wrapper fino sobre google.generativeai.

    Todos os métodos são assíncronos; erros de API propagam como estão,
    erros de formato viram LLMResponseError.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        temperature: float = 0.7,
        max_output_tokens: int = 32768,
    ):
        genai.configure(api_key=api_key)
        self._model_name = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    @classmethod
    def from_config(cls, config: GeminiConfig) -> "GeminiClient":
        return cls(
            api_key=config.api_key,
            model=config.model,
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
        )

    def _model(
        self,
        system_instruction: Optional[str] = None,
        json_mode: bool = False,
        response_schema: Optional[dict] = None,
        temperature: Optional[float] = None,
    ):
        generation_config = genai.GenerationConfig(
            temperature=self.temperature if temperature is None else temperature,
            max_output_tokens=self.max_output_tokens,
            response_mime_type="application/json" if json_mode else None,
            response_schema=response_schema,
        )
        return genai.GenerativeModel(
            self._model_name,
            generation_config=generation_config,
            system_instruction=system_instruction,
        )

    async def generate_text(self, prompt: str, system_instruction: Optional[str] = None) -> str:
        """Gera texto livre."""
        model = self._model(system_instruction=system_instruction)
        response = await model.generate_content_async(prompt)
        text = (response.text or "").strip()
        if not text:
            raise LLMResponseError("Modelo retornou resposta vazia")
        return text

    async def generate_json(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        response_schema: Optional[dict] = None,
        temperature: Optional[float] = None,
    ) -> dict:
        """
        Gera e interpreta um objeto JSON.

        Args:
            prompt: Prompt do usuário
            system_instruction: Instruções de sistema
            response_schema: Schema opcional imposto pelo Gemini

        Returns:
            Objeto JSON como dict
        """
        model = self._model(
            system_instruction=system_instruction,
            json_mode=True,
            response_schema=response_schema,
            temperature=temperature,
        )
        response = await model.generate_content_async(prompt)
        return parse_json_response(response.text or "")

    async def test_connection(self) -> dict:
        """Testa conexão com a API."""
        try:
            test_model = genai.GenerativeModel(self._model_name)
            response = await test_model.generate_content_async("Say 'OK'")
            return {"connected": True, "response": response.text[:50]}
        except Exception as e:
            return {"connected": False, "error": str(e)}


# ============== PARSING ==============


def strip_code_fences(text: str) -> str:
    """Remove cercas ```lang ... ``` ao redor da resposta."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")[1:]
        if lines and lines[-1].strip().startswith("```"):
            lines = lines[:-1]
        cleaned = "\n".join(lines)
    return cleaned.strip()


def extract_json_object(text: str) -> str:
    """Extrai o primeiro objeto JSON completo do texto."""
    start = text.find('{')
    if start == -1:
        return text

    depth = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(text[start:], start):
        if escape_next:
            escape_next = False
            continue
        if char == '\\':
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    return text[start:]


def repair_json(json_str: str) -> str:
    """Tenta reparar JSON malformado (vírgulas finais, chaves sem aspas)."""
    repaired = re.sub(r',(\s*[}\]])', r'\1', json_str)
    repaired = re.sub(r'}\s*{', '},{', repaired)
    repaired = re.sub(r'(\{|\,)\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*:', r'\1"\2":', repaired)
    repaired = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f]', '', repaired)
    return repaired


def parse_json_response(text: str) -> dict:
    cleaned = extract_json_object(strip_code_fences(text))
    parse_errors = []

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        parse_errors.append(f"Direct parse: {e}")
        try:
            data = json.loads(repair_json(cleaned))
        except json.JSONDecodeError as e2:
            parse_errors.append(f"After repair: {e2}")
            logger.error(f"JSON parse failed: {parse_errors}")
            raise LLMResponseError(f"JSON inválido retornado pelo modelo: {parse_errors}")

    if not isinstance(data, dict):
        raise LLMResponseError("Modelo não retornou um objeto JSON")
    return data
