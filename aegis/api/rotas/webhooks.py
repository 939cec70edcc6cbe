"""
Rotas de webhooks (dono autenticado por JWT).
  GET    /v1/webhooks              : lista
  POST   /v1/webhooks              : cria inscricao
  DELETE /v1/webhooks/{id}         : exclui
  POST   /v1/webhooks/{id}/enable  : reativa (zera falhas)
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field, HttpUrl

from aegis.api.auth import dependencia_usuario
from aegis.modelos.usuarios import Usuario
from aegis.modelos.webhooks import Webhook
from aegis.webhooks import disparo

router = APIRouter()


class RequestCriarWebhook(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    url: HttpUrl
    secret: str | None = Field(default=None, max_length=64)
    events: list[str] = Field(default_factory=lambda: ["ToxicContent"])


class ResponseWebhook(BaseModel):
    id: uuid.UUID
    name: str
    url: str
    is_active: bool
    events: list[str]
    created_at: datetime
    last_triggered_at: datetime | None
    failure_count: int

    @classmethod
    def de_modelo(cls, webhook: Webhook) -> "ResponseWebhook":
        return cls(
            id=webhook.id,
            name=webhook.nome,
            url=webhook.url,
            is_active=webhook.ativo,
            events=webhook.inscricao.nomes(),
            created_at=webhook.criado_em,
            last_triggered_at=webhook.ultimo_disparo_em,
            failure_count=webhook.contagem_falhas,
        )


@router.get("", response_model=list[ResponseWebhook])
def listar(usuario: Usuario = Depends(dependencia_usuario)):
    return [ResponseWebhook.de_modelo(w) for w in disparo.listar_webhooks(usuario.id)]


@router.post("", response_model=ResponseWebhook, status_code=201)
def criar(body: RequestCriarWebhook, usuario: Usuario = Depends(dependencia_usuario)):
    webhook = disparo.criar_webhook(
        usuario.id, body.name, str(body.url), body.events, body.secret
    )
    return ResponseWebhook.de_modelo(webhook)


@router.delete("/{webhook_id}", status_code=204)
def excluir(webhook_id: uuid.UUID, usuario: Usuario = Depends(dependencia_usuario)):
    disparo.excluir_webhook(usuario.id, webhook_id)
    return Response(status_code=204)


@router.post("/{webhook_id}/enable", response_model=ResponseWebhook)
def reativar(webhook_id: uuid.UUID, usuario: Usuario = Depends(dependencia_usuario)):
    return ResponseWebhook.de_modelo(disparo.reativar_webhook(usuario.id, webhook_id))
