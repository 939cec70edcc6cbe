"""
Rotas de gerenciamento de API keys (dono autenticado por JWT).
  GET    /v1/keys             : lista keys mascaradas, mais novas primeiro
  POST   /v1/keys             : cria key (exibida uma unica vez)
  POST   /v1/keys/{id}/revoke : revoga (mantem o registro)
  DELETE /v1/keys/{id}        : exclui junto com os logs
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from aegis.acesso import chaves
from aegis.api.auth import dependencia_usuario
from aegis.modelos.usuarios import Usuario

router = APIRouter()


class RequestCriarChave(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    expires_at: datetime | None = None


class ResponseChaveCriada(BaseModel):
    id: uuid.UUID
    key: str
    name: str
    created_at: datetime
    expires_at: datetime | None
    warning: str


class ResponseChave(BaseModel):
    id: uuid.UUID
    key: str
    name: str
    is_active: bool
    created_at: datetime
    expires_at: datetime | None
    last_used_at: datetime | None
    requests_today: int
    requests_reset_at: datetime


@router.get("", response_model=list[ResponseChave])
def listar(usuario: Usuario = Depends(dependencia_usuario)):
    return [
        ResponseChave(
            id=c.id,
            key=c.chave_mascarada,
            name=c.nome,
            is_active=c.ativa,
            created_at=c.criado_em,
            expires_at=c.expira_em,
            last_used_at=c.ultimo_uso_em,
            requests_today=c.requisicoes_hoje,
            requests_reset_at=c.requisicoes_reset_em,
        )
        for c in chaves.listar_chaves(usuario.id)
    ]


@router.post("", response_model=ResponseChaveCriada, status_code=201)
def criar(body: RequestCriarChave, usuario: Usuario = Depends(dependencia_usuario)):
    """Cria uma nova API key. A key completa so aparece nesta resposta."""
    chaves.verificar_limite_chaves(usuario)
    criada = chaves.criar_chave(usuario.id, body.name, body.expires_at)
    return ResponseChaveCriada(
        id=criada.id,
        key=criada.chave,
        name=criada.nome,
        created_at=criada.criado_em,
        expires_at=criada.expira_em,
        warning=criada.aviso,
    )


@router.post("/{chave_id}/revoke")
def revogar(chave_id: uuid.UUID, usuario: Usuario = Depends(dependencia_usuario)):
    chaves.revogar_chave(usuario.id, chave_id)
    return {"message": "API key revogada"}


@router.delete("/{chave_id}", status_code=204)
def excluir(chave_id: uuid.UUID, usuario: Usuario = Depends(dependencia_usuario)):
    chaves.excluir_chave(usuario.id, chave_id)
    return Response(status_code=204)
