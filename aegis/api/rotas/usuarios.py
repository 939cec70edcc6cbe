"""
Rotas de conta.
  POST   /v1/auth/register      : cadastro (devolve JWT)
  POST   /v1/auth/login         : login (devolve JWT)
  GET    /v1/users/me           : perfil
  PATCH  /v1/users/me           : atualiza nome/email
  DELETE /v1/users/me           : exclui conta e tudo que ela possui
  GET    /v1/users/me/stats     : uso dos ultimos 30 dias
  GET    /v1/users/me/logs      : ultimos logs de requisicao
  POST   /v1/users/me/password  : troca de senha
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, EmailStr, Field

from aegis.acesso.planos import limite_diario
from aegis.api.auth import dependencia_usuario
from aegis.contas import logs, usuarios
from aegis.contas.usuarios import Sessao
from aegis.modelos.usuarios import Usuario

router_auth = APIRouter()
router_usuarios = APIRouter()


class RequestCadastro(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8)


class RequestLogin(BaseModel):
    email: EmailStr
    password: str


class RequestAtualizarPerfil(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    email: EmailStr | None = None


class RequestTrocarSenha(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8)


class ResponseUsuario(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    plan: str
    daily_limit: int
    requests_today: int
    created_at: datetime


class ResponseAuth(BaseModel):
    token: str
    expires_at: datetime
    user: ResponseUsuario


class ResponseLog(BaseModel):
    id: uuid.UUID
    api_key_id: uuid.UUID
    endpoint: str
    method: str
    status_code: int
    response_time_ms: int
    ip_address: str | None
    toxicity_score: float | None
    is_toxic: bool | None
    created_at: datetime


def _resposta_usuario(usuario: Usuario, requisicoes_hoje: int = 0) -> ResponseUsuario:
    return ResponseUsuario(
        id=usuario.id,
        name=usuario.nome,
        email=usuario.email,
        plan=usuario.plano_tipo.rotulo,
        daily_limit=limite_diario(usuario.plano),
        requests_today=requisicoes_hoje,
        created_at=usuario.criado_em,
    )


def _resposta_auth(sessao: Sessao) -> ResponseAuth:
    return ResponseAuth(
        token=sessao.token,
        expires_at=sessao.expira_em,
        user=_resposta_usuario(sessao.usuario),
    )


@router_auth.post("/register", response_model=ResponseAuth, status_code=201)
def cadastrar(body: RequestCadastro):
    return _resposta_auth(usuarios.registrar_usuario(body.name, body.email, body.password))


@router_auth.post("/login", response_model=ResponseAuth)
def login(body: RequestLogin):
    return _resposta_auth(usuarios.autenticar(body.email, body.password))


@router_usuarios.get("/me", response_model=ResponseUsuario)
def perfil(usuario: Usuario = Depends(dependencia_usuario)):
    estatisticas = logs.estatisticas_uso(usuario.id)
    return _resposta_usuario(usuario, estatisticas["requests_today"])


@router_usuarios.patch("/me", response_model=ResponseUsuario)
def atualizar_perfil(
    body: RequestAtualizarPerfil, usuario: Usuario = Depends(dependencia_usuario)
):
    atualizado = usuarios.atualizar_perfil(usuario.id, nome=body.name, email=body.email)
    estatisticas = logs.estatisticas_uso(usuario.id)
    return _resposta_usuario(atualizado, estatisticas["requests_today"])


@router_usuarios.delete("/me", status_code=204)
def excluir_conta(usuario: Usuario = Depends(dependencia_usuario)):
    usuarios.excluir_conta(usuario.id)
    return Response(status_code=204)


@router_usuarios.get("/me/stats")
def estatisticas(usuario: Usuario = Depends(dependencia_usuario)):
    return logs.estatisticas_uso(usuario.id)


@router_usuarios.get("/me/logs", response_model=list[ResponseLog])
def logs_recentes(
    limit: int = Query(50, ge=1, le=500),
    usuario: Usuario = Depends(dependencia_usuario),
):
    return [
        ResponseLog(
            id=r.id,
            api_key_id=r.chave_api_id,
            endpoint=r.endpoint,
            method=r.metodo,
            status_code=r.status_code,
            response_time_ms=r.tempo_resposta_ms,
            ip_address=r.ip,
            toxicity_score=r.score_toxicidade,
            is_toxic=r.toxico,
            created_at=r.criado_em,
        )
        for r in logs.logs_recentes(usuario.id, limit)
    ]


@router_usuarios.post("/me/password")
def trocar_senha(body: RequestTrocarSenha, usuario: Usuario = Depends(dependencia_usuario)):
    usuarios.alterar_senha(usuario.id, body.current_password, body.new_password)
    return {"message": "Senha alterada com sucesso"}
