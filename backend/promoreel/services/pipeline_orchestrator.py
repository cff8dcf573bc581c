"""
Orquestrador do pipeline de geração de vídeo.

Máquina de estados por execução:

    idle -> scraping -> scripting -> review      (primeira chamada)
    review -> generating -> complete             (chamada de continuação)

com "error" alcançável de qualquer estado e terminal para a execução.
Cada etapa é uma função independente (estado, contexto) -> StageResult; o
orquestrador mescla o delta e decide a transição pelos campos preenchidos.
Nenhuma etapa propaga exceções: toda falha vira StageResult com erros.
"""

import functools
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..models.config import FullConfig, RenderFormat
from ..models.pipeline import (
    ContinueRequest,
    GenerationRequest,
    PipelineState,
    PipelineStep,
    RecordingRef,
    RenderRequest,
    StageResult,
    UserPreferences,
)
from ..models.script import VideoScript
from ..models.stream import EventType, StreamEvent
from ..utils.logger import get_run_logger
from .beat_sync import bpm_for_mood, create_beat_map
from .code_generator import CodeGenerator
from .content_extractor import ContentExtractor, placeholder_product
from .errors import InvalidRequestError, PipelineError
from .llm_client import GeminiClient
from .render_client import RenderClient
from .script_writer import ScriptWriter

logger = logging.getLogger(__name__)

RequestModel = TypeVar("RequestModel", bound=BaseModel)


def validation_message(error: ValidationError) -> str:
    """Mensagens do pydantic sem o prefixo "Value error, ", uma por campo."""
    messages = []
    for item in error.errors():
        msg = item.get("msg", "")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        loc = ".".join(str(part) for part in item.get("loc", ()))
        messages.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(messages)


def parse_request(model: Type[RequestModel], data: dict) -> RequestModel:
    """
    Valida o corpo de uma requisição antes de qualquer etapa rodar.

    Raises:
        InvalidRequestError: corpo inválido (ex: sem URL nem descrição)
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidRequestError(validation_message(e)) from e


@dataclass
class StageContext:
    """Entradas externas e serviços disponíveis para as etapas."""
    extractor: ContentExtractor
    writer: ScriptWriter
    generator: CodeGenerator
    renderer: RenderClient
    config: FullConfig
    source_url: Optional[str] = None
    description: Optional[str] = None
    preferences: UserPreferences = field(default_factory=UserPreferences)
    recordings: List[RecordingRef] = field(default_factory=list)
    render_format: RenderFormat = RenderFormat.MP4
    last_render_error: Optional[str] = None


Stage = Callable[[PipelineState, StageContext], Awaitable[StageResult]]


def stage(name: str):
    """Fronteira da etapa: converte qualquer exceção em StageResult de erro."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(state: PipelineState, ctx: StageContext) -> StageResult:
            run_logger = get_run_logger(__name__, state.run_id)
            run_logger.info(f"Stage {name} started")
            try:
                result = await func(state, ctx)
            except PipelineError as e:
                run_logger.error(f"Stage {name} failed: {e}")
                return StageResult.failure(str(e))
            except Exception as e:
                run_logger.error(f"Stage {name} crashed: {e}", exc_info=True)
                return StageResult.failure(f"Etapa '{name}' falhou: {e}")
            run_logger.info(f"Stage {name} finished -> {result.next_step.value}")
            return result
        return wrapper
    return decorator


# ============== STAGES ==============


@stage("extract")
async def extract_stage(state: PipelineState, ctx: StageContext) -> StageResult:
    product = await ctx.extractor.extract(ctx.source_url)
    return StageResult(next_step=PipelineStep.SCRIPTING, product_data=product)


@stage("synthesize")
async def synthesize_stage(state: PipelineState, ctx: StageContext) -> StageResult:
    return StageResult(
        next_step=PipelineStep.SCRIPTING,
        product_data=placeholder_product(ctx.description or ""),
    )


@stage("script")
async def script_stage(state: PipelineState, ctx: StageContext) -> StageResult:
    script = await ctx.writer.write(state.product_data, ctx.preferences, ctx.recordings)
    return StageResult(next_step=PipelineStep.REVIEW, video_script=script)


@stage("code")
async def code_stage(state: PipelineState, ctx: StageContext) -> StageResult:
    code = await ctx.generator.generate(
        state.video_script,
        product=state.product_data,
        beat_map=state.beat_map,
        recordings=ctx.recordings,
    )
    return StageResult(next_step=PipelineStep.GENERATING, remotion_code=code)


@stage("fix")
async def fix_stage(state: PipelineState, ctx: StageContext) -> StageResult:
    code = await ctx.generator.fix(state.remotion_code, ctx.last_render_error or "unknown error")
    return StageResult(next_step=PipelineStep.GENERATING, remotion_code=code)


@stage("render")
async def render_stage(state: PipelineState, ctx: StageContext) -> StageResult:
    duration = (
        state.video_script.total_duration
        if state.video_script is not None
        else ctx.config.pipeline.default_duration_frames
    )
    result = await ctx.renderer.render(state.remotion_code, duration, ctx.render_format)
    if not result.success:
        ctx.last_render_error = result.error
        return StageResult.failure(f"Renderização falhou: {result.error}")
    return StageResult(next_step=PipelineStep.COMPLETE, video_url=result.video_url)


# ============== TRANSITIONS ==============


REQUIRED_FIELD = {
    PipelineStep.SCRIPTING: "product_data",
    PipelineStep.REVIEW: "video_script",
    PipelineStep.GENERATING: "remotion_code",
    PipelineStep.COMPLETE: "video_url",
}


def apply_stage_result(state: PipelineState, result: StageResult) -> PipelineStep:
    """
    Mescla o delta no estado e decide a próxima etapa.

    Uma transição só é aceita se o campo exigido pela etapa de destino
    estiver preenchido; caso contrário o estado vai para error.
    """
    if result.failed:
        state.errors.extend(result.errors or ["Etapa falhou sem mensagem"])
        state.current_step = PipelineStep.ERROR
        return state.current_step

    for name in ("product_data", "video_script", "remotion_code", "video_url"):
        value = getattr(result, name)
        if value is not None:
            setattr(state, name, value)

    required = REQUIRED_FIELD.get(result.next_step)
    if required and getattr(state, required) is None:
        state.errors.append(f"Etapa terminou sem produzir {required}")
        state.current_step = PipelineStep.ERROR
    else:
        state.current_step = result.next_step
    return state.current_step


def _error_event(state: PipelineState) -> StreamEvent:
    return StreamEvent.error(state.errors)


# ============== ORCHESTRATOR ==============


class PipelineOrchestrator:
    """
    Executa o pipeline emitindo eventos de stream.

    Cada chamada cria (ou recebe) seu próprio PipelineState; execuções
    concorrentes não compartilham estado.
    """

    def __init__(
        self,
        config: FullConfig,
        extractor: ContentExtractor,
        writer: ScriptWriter,
        generator: CodeGenerator,
        renderer: RenderClient,
    ):
        self.config = config
        self.extractor = extractor
        self.writer = writer
        self.generator = generator
        self.renderer = renderer

    @classmethod
    def from_config(cls, config: FullConfig) -> "PipelineOrchestrator":
        gemini = config.api.gemini
        llm = GeminiClient.from_config(gemini) if gemini.enabled and gemini.api_key else None
        screenshots_dir = f"{config.storage.base_path}/{config.storage.outputs_dir}/screenshots"
        return cls(
            config=config,
            extractor=ContentExtractor(llm, config.api.scraper, screenshots_dir),
            writer=ScriptWriter(llm, config.pipeline),
            generator=CodeGenerator(llm, config.pipeline),
            renderer=RenderClient(config.api.render),
        )

    def _context(self, **kwargs) -> StageContext:
        return StageContext(
            extractor=self.extractor,
            writer=self.writer,
            generator=self.generator,
            renderer=self.renderer,
            config=self.config,
            **kwargs,
        )

    async def _run(self, stage_fn: Stage, state: PipelineState, ctx: StageContext) -> PipelineStep:
        result = await stage_fn(state, ctx)
        return apply_stage_result(state, result)

    def _attach_beat_map(self, state: PipelineState, preferences: UserPreferences) -> None:
        script = state.video_script
        if script is None or script.total_duration <= 0:
            return
        if preferences.audio is not None:
            bpm = preferences.audio.bpm
        else:
            bpm = script.music.tempo or bpm_for_mood(script.music.mood, self.config.beats.default_bpm)
        fps = self.config.pipeline.fps
        state.beat_map = create_beat_map(bpm, script.total_duration / fps, fps, self.config.beats)

    # ----- fase 1: extração + roteiro -----

    async def generate(
        self,
        request: GenerationRequest,
        state: Optional[PipelineState] = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Primeira fase: idle -> (scraping) -> scripting -> review.

        Args:
            request: Requisição validada
            state: Estado da execução (um novo é criado se omitido)

        Yields:
            Eventos status/productData/videoScript e um evento terminal
        """
        state = state if state is not None else PipelineState()
        run_logger = get_run_logger(__name__, state.run_id)
        ctx = self._context(
            source_url=request.source_url,
            description=request.description,
            preferences=request.preferences(),
            recordings=list(request.recordings),
        )

        if request.has_url:
            state.current_step = PipelineStep.SCRAPING
            run_logger.info(f"Extracting content from {request.source_url}")
            yield StreamEvent.status("scraping", f"Extracting product content from {request.source_url}...")
            step = await self._run(extract_stage, state, ctx)
        else:
            run_logger.info("No URL given, synthesizing placeholder product")
            yield StreamEvent.status("scripting", "Analyzing product description...")
            step = await self._run(synthesize_stage, state, ctx)

        if step == PipelineStep.ERROR:
            yield _error_event(state)
            return
        yield StreamEvent(type=EventType.PRODUCT_DATA, data=state.product_data)

        yield StreamEvent.status("scripting", "Creating video script...")
        step = await self._run(script_stage, state, ctx)
        if step == PipelineStep.ERROR:
            yield _error_event(state)
            return

        self._attach_beat_map(state, ctx.preferences)
        yield StreamEvent(type=EventType.VIDEO_SCRIPT, data=state.video_script)
        yield StreamEvent.status("review", "Finalizing script for review...")
        run_logger.info(f"Run paused for review with {len(state.video_script.scenes)} scenes")
        yield StreamEvent.complete(True, "Script ready for review")

    # ----- fase 2: código + renderização -----

    async def continue_generation(
        self,
        request: ContinueRequest,
        state: Optional[PipelineState] = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Segunda fase, após aprovação do roteiro: review -> generating -> complete.

        Yields:
            Eventos status/remotionCode/videoUrl e um evento terminal
        """
        state = state if state is not None else PipelineState()
        run_logger = get_run_logger(__name__, state.run_id)
        script = request.video_script.model_copy(deep=True).repack()

        state.video_script = script
        state.product_data = request.product_data
        state.current_step = PipelineStep.REVIEW
        self._attach_beat_map(state, request.user_preferences)

        ctx = self._context(
            preferences=request.user_preferences,
            recordings=list(request.recordings),
            render_format=self.config.pipeline.default_format,
        )

        state.current_step = PipelineStep.GENERATING
        yield StreamEvent.status("generating", "Generating code...")
        step = await self._run(code_stage, state, ctx)
        if step == PipelineStep.ERROR:
            yield _error_event(state)
            return

        async for event in self._render_loop(state, ctx, emit_code=True):
            yield event
        run_logger.info(f"Run finished in state {state.current_step.value}")

    async def render_only(
        self,
        request: RenderRequest,
        state: Optional[PipelineState] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Renderiza um código já pronto (sem geração)."""
        state = state if state is not None else PipelineState()
        state.remotion_code = request.remotion_code
        state.current_step = PipelineStep.GENERATING
        state.video_script = VideoScript(total_duration=request.duration_in_frames)
        ctx = self._context(render_format=request.format)

        async for event in self._render_loop(state, ctx):
            yield event

    async def _render_loop(
        self,
        state: PipelineState,
        ctx: StageContext,
        emit_code: bool = False,
    ) -> AsyncIterator[StreamEvent]:
        """
        Renderiza, corrigindo o código entre tentativas quando permitido.

        O evento remotionCode sai uma única vez, com o código final, logo
        antes do resultado (videoUrl ou error).
        """
        max_attempts = self.config.pipeline.max_render_attempts

        def code_event():
            return StreamEvent(type=EventType.REMOTION_CODE, data=state.remotion_code)

        while True:
            state.render_attempts += 1
            attempt = state.render_attempts
            yield StreamEvent.status("rendering", f"Rendering video (attempt {attempt})...", attempts=attempt)

            result = await render_stage(state, ctx)
            if not result.failed:
                apply_stage_result(state, result)
                if emit_code:
                    yield code_event()
                if state.current_step == PipelineStep.ERROR:
                    yield _error_event(state)
                    return
                yield StreamEvent(type=EventType.VIDEO_URL, data=state.video_url)
                yield StreamEvent.status("complete", "Video rendered successfully!", attempts=attempt)
                yield StreamEvent.complete(True, "Video generation complete")
                return

            if attempt >= max_attempts or self.generator.llm is None:
                apply_stage_result(state, result)
                if emit_code:
                    yield code_event()
                yield _error_event(state)
                return

            yield StreamEvent.status("fixing", f"Fixing render errors (attempt {attempt})...", attempts=attempt)
            step = await self._run(fix_stage, state, ctx)
            if step == PipelineStep.ERROR:
                if emit_code:
                    yield code_event()
                yield _error_event(state)
                return
