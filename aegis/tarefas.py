"""
Tarefas Celery do Aegis.

  - tarefa_entregar_webhook: uma entrega por webhook inscrito, fora da requisicao
  - tarefa_desativar_tokens_expirados: varredura periodica (beat, a cada 5 min)
"""

import uuid

from aegis.acesso.tokens import desativar_tokens_expirados
from aegis.celery_app import app
from aegis.webhooks.entrega import entregar


@app.task(name="aegis.tarefas.tarefa_entregar_webhook", ignore_result=True)
def tarefa_entregar_webhook(webhook_id: str, evento: str, timestamp: str, dados: dict):
    """Falhas viram contador no proprio webhook; a tarefa nao faz retry."""
    return entregar(uuid.UUID(webhook_id), evento, timestamp, dados)


@app.task(name="aegis.tarefas.tarefa_desativar_tokens_expirados")
def tarefa_desativar_tokens_expirados():
    return {"desativados": desativar_tokens_expirados()}
