"""
Exceções base do pipeline.

Cada serviço define sua própria subclasse (ex: RenderError em render_client).
"""


class PipelineError(Exception):
    """Falha de uma etapa do pipeline, com mensagem legível para o usuário."""
    pass


class InvalidRequestError(PipelineError):
    """Requisição rejeitada antes de qualquer etapa rodar."""
    pass
