"""
Configuracao de logging estruturado para o Aegis.
Usa structlog com output JSON + integracao com Celery signals.
"""

import logging
import sys

import structlog
from celery.signals import task_failure, task_postrun, task_prerun

from aegis.config import config


def configurar_logging() -> None:
    """Inicializa o structlog com processadores padrao e output JSON."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.LOG_LEVEL.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def obter_logger(nome: str) -> structlog.BoundLogger:
    """Retorna um logger nomeado para o modulo."""
    return structlog.get_logger(modulo=nome)


def prefixo_seguro(credencial: str | None, tamanho: int = 10) -> str:
    """Trecho inicial de uma credencial, seguro para ir ao log."""
    if not credencial:
        return ""
    return credencial[:tamanho] + "..."


# ---------------------------------------------------------------------------
# Integracao com Celery signals
# ---------------------------------------------------------------------------

_log = obter_logger("celery_signals")

# Argumentos posicionais da entrega que vao para o contexto dos logs
_CAMPOS_ENTREGA = ("webhook_id", "evento")
_CAMPOS_CONTEXTO = ("tarefa", "task_id") + _CAMPOS_ENTREGA


def contexto_da_tarefa(sender, task_id, args=None, kwargs=None) -> dict:
    """Campos de log de uma tarefa. Entregas de webhook levam o webhook e o evento."""
    nome = sender.name if sender else "desconhecida"
    contexto = {"tarefa": nome, "task_id": task_id}
    if nome.endswith("tarefa_entregar_webhook"):
        contexto.update(zip(_CAMPOS_ENTREGA, args or ()))
        contexto.update({k: v for k, v in (kwargs or {}).items() if k in _CAMPOS_ENTREGA})
    return contexto


@task_prerun.connect
def _ao_iniciar_tarefa(sender=None, task_id=None, task=None, args=None, kwargs=None, **_):
    structlog.contextvars.bind_contextvars(**contexto_da_tarefa(sender, task_id, args, kwargs))
    _log.info("tarefa_iniciada")


@task_postrun.connect
def _ao_finalizar_tarefa(sender=None, task_id=None, retval=None, state=None, **_):
    _log.info("tarefa_finalizada", estado=state)
    # Em modo eager a tarefa roda na thread da requisicao
    structlog.contextvars.unbind_contextvars(*_CAMPOS_CONTEXTO)


@task_failure.connect
def _ao_falhar_tarefa(sender=None, task_id=None, exception=None, traceback=None, **_):
    _log.error("tarefa_falhou", erro=str(exception))
