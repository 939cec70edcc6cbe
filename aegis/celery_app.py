"""
Configuracao da aplicacao Celery com Redis como broker.
Entrega de webhooks fora da requisicao e varredura periodica de tokens.
"""

from celery import Celery
from celery.schedules import crontab

from aegis.config import config
from aegis.utils.logging_config import configurar_logging

configurar_logging()

app = Celery(
    "aegis",
    broker=config.CELERY_BROKER_URL,
    backend=config.CELERY_RESULT_BACKEND,
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_queue="aegis",
    worker_max_tasks_per_child=500,
    result_expires=3600,
    broker_connection_retry_on_startup=True,
    task_always_eager=config.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=False,
)

app.conf.beat_schedule = {
    "desativar-tokens-expirados-5min": {
        "task": "aegis.tarefas.tarefa_desativar_tokens_expirados",
        "schedule": crontab(minute="*/5"),
        "args": (),
    },
}

# Import explicito para garantir registro das tasks
import aegis.tarefas  # noqa: F401, E402
