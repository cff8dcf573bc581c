"""
Router do fluxo criativo: geração, revisão, edição e renderização.

As rotas de geração respondem com um stream NDJSON (um evento por linha).
"""

import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse

from ..models.pipeline import (
    ContinueRequest,
    EditScriptRequest,
    EditScriptResponse,
    GenerationRequest,
    RenderRequest,
)
from ..models.stream import StreamEvent
from ..services.errors import InvalidRequestError, PipelineError
from ..services.llm_client import GeminiClient
from ..services.pipeline_orchestrator import PipelineOrchestrator, parse_request
from ..services.script_editor import ScriptEditor
from ..services.stream_protocol import NDJSON_MEDIA_TYPE, encode_event
from .config import get_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/creative", tags=["creative"])


def get_orchestrator() -> PipelineOrchestrator:
    """Cria o orquestrador com a configuração atual."""
    return PipelineOrchestrator.from_config(get_config())


def get_script_editor() -> Optional[ScriptEditor]:
    """Editor de roteiro, ou None sem API key do Gemini."""
    gemini = get_config().api.gemini
    if not (gemini.enabled and gemini.api_key):
        return None
    return ScriptEditor(GeminiClient.from_config(gemini))


async def _ndjson(events: AsyncIterator[StreamEvent]) -> AsyncIterator[bytes]:
    try:
        async for event in events:
            yield encode_event(event)
    except Exception as e:
        logger.exception("Pipeline stream aborted")
        yield encode_event(StreamEvent.error([f"Erro interno: {e}"]))


def _stream(events: AsyncIterator[StreamEvent]) -> StreamingResponse:
    return StreamingResponse(
        _ndjson(events),
        media_type=NDJSON_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/generate")
async def generate(
    body: dict = Body(...),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """
    Inicia uma execução: extração (ou produto genérico) e roteiro.

    Para em "review"; o roteiro é aprovado/editado antes de /continue.
    """
    try:
        request = parse_request(GenerationRequest, body)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Generate request: url={request.source_url!r}, duration={request.duration}")
    return _stream(orchestrator.generate(request))


@router.post("/continue")
async def continue_generation(
    body: dict = Body(...),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """
    Continua após a revisão: gera o código e renderiza o vídeo.
    """
    if not body.get("videoScript"):
        raise HTTPException(status_code=400, detail="videoScript é obrigatório")

    try:
        request = parse_request(ContinueRequest, body)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _stream(orchestrator.continue_generation(request))


@router.post("/render")
async def render(
    body: dict = Body(...),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """
    Renderiza um código de composição já existente.
    """
    if not body.get("remotionCode"):
        raise HTTPException(status_code=400, detail="remotionCode é obrigatório")

    try:
        request = parse_request(RenderRequest, body)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _stream(orchestrator.render_only(request))


@router.post("/edit-script")
async def edit_script(
    body: dict = Body(...),
    editor: Optional[ScriptEditor] = Depends(get_script_editor),
):
    """
    Edita o roteiro a partir de uma instrução em linguagem natural.
    """
    if not body.get("message") or not body.get("videoScript"):
        raise HTTPException(status_code=400, detail="message e videoScript são obrigatórios")

    try:
        request = parse_request(EditScriptRequest, body)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if editor is None:
        response = EditScriptResponse(success=False, error="Gemini API key não configurada")
        return JSONResponse(status_code=500, content=response.to_wire())

    try:
        script = await editor.edit(request.message, request.video_script, request.product_data)
    except PipelineError as e:
        logger.error(f"Script edit failed: {e}")
        response = EditScriptResponse(success=False, error=str(e))
        return JSONResponse(status_code=500, content=response.to_wire())

    return EditScriptResponse(success=True, video_script=script).to_wire()
