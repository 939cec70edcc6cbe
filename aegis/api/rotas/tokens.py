"""
Rotas de tokens anonimos.
  POST /v1/tokens/generate: emite token para o IP (429 acima de 2 ativos)
  GET  /v1/tokens/status  : validade e uso do token em X-Access-Token
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from aegis.acesso.principal import PrincipalToken
from aegis.acesso.relogio import minutos_restantes
from aegis.acesso.tokens import emitir_token
from aegis.api.auth import dependencia_token, obter_ip_cliente
from aegis.config import config
from aegis.modelos.base import agora_utc

router = APIRouter()


class ResponseToken(BaseModel):
    token: str
    expires_at: datetime
    expires_in_minutes: int
    usage: str


class ResponseStatusToken(BaseModel):
    is_active: bool
    expires_at: datetime
    remaining_minutes: float
    request_count: int
    created_at: datetime


@router.post("/generate", response_model=ResponseToken)
def gerar_token(request: Request):
    emitido = emitir_token(obter_ip_cliente(request))
    return ResponseToken(
        token=emitido.token,
        expires_at=emitido.registro.expira_em,
        expires_in_minutes=config.TOKEN_TTL_MINUTES,
        usage="Inclua o token no header 'X-Access-Token' para usar a API de moderacao",
    )


@router.get("/status", response_model=ResponseStatusToken)
def status_token(principal: PrincipalToken = Depends(dependencia_token)):
    token = principal.token
    return ResponseStatusToken(
        is_active=token.ativo,
        expires_at=token.expira_em,
        remaining_minutes=minutos_restantes(token.expira_em, agora_utc()),
        request_count=token.contagem_requisicoes,
        created_at=token.criado_em,
    )
