"""
Dependencias FastAPI de autenticacao.

  - dependencia_principal: API key (X-Api-Key) ou token anonimo
    (X-Access-Token), conforme os esquemas habilitados em AEGIS_AUTH_SCHEMES.
    Com os dois headers presentes, vale o primeiro esquema configurado.
  - dependencia_token: so o token anonimo (status do token).
  - dependencia_usuario: JWT Bearer do dono da conta (keys, webhooks, perfil).

Nenhuma delas aplica cota: isso e papel da moderacao.
"""

import structlog
from fastapi import Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from aegis.acesso.principal import (
    Principal,
    PrincipalToken,
    ResolvedorToken,
    resolvedores_ativos,
)
from aegis.config import config
from aegis.contas.seguranca import decodificar_jwt
from aegis.contas.usuarios import obter_usuario
from aegis.erros import CredencialInvalida, NaoEncontrado
from aegis.modelos.usuarios import Usuario
from aegis.utils.logging_config import obter_logger

log = obter_logger("auth")

_bearer = HTTPBearer(auto_error=False)


def obter_ip_cliente(request: Request) -> str:
    """IP real do cliente, considerando proxies e load balancers."""
    encaminhado = request.headers.get("X-Forwarded-For")
    if encaminhado:
        return encaminhado.split(",")[0].strip()

    ip_real = request.headers.get("X-Real-IP")
    if ip_real:
        return ip_real.strip()

    return request.client.host if request.client else "unknown"


# As dependencias sao async: o bind no structlog feito aqui e herdado pelo
# endpoint sync. Numa dependencia sync ele ficaria na copia do contexto da
# thread e se perderia. A parte que toca o banco roda no threadpool.


def _vincular_principal(request: Request, principal: Principal) -> None:
    request.state.principal = principal
    structlog.contextvars.bind_contextvars(
        principal=principal.tipo, principal_id=str(principal.id)
    )


def _resolver_principal(request: Request) -> Principal:
    resolvedores = resolvedores_ativos(config.ESQUEMAS_AUTH)
    for resolvedor in resolvedores:
        credencial = request.headers.get(resolvedor.cabecalho)
        if credencial:
            return resolvedor.resolver(credencial)

    cabecalhos = " ou ".join(r.cabecalho for r in resolvedores)
    raise CredencialInvalida(
        f"Inclua a credencial no header {cabecalhos}",
        erro="Credencial nao fornecida",
    )


async def dependencia_principal(request: Request) -> Principal:
    """
    Resolve o principal da requisicao.
    Usar nas rotas de moderacao: Depends(dependencia_principal)
    """
    principal = await run_in_threadpool(_resolver_principal, request)
    _vincular_principal(request, principal)
    return principal


async def dependencia_token(request: Request) -> PrincipalToken:
    credencial = request.headers.get(ResolvedorToken.cabecalho)
    if not credencial:
        raise CredencialInvalida(
            f"Inclua o token no header '{ResolvedorToken.cabecalho}'",
            erro="Token nao fornecido",
        )
    principal = await run_in_threadpool(ResolvedorToken().resolver, credencial)
    _vincular_principal(request, principal)
    return principal


def _carregar_usuario(token_sessao: str) -> Usuario:
    usuario_id = decodificar_jwt(token_sessao)
    if usuario_id is None:
        raise CredencialInvalida(erro="Token de sessao invalido ou expirado")

    try:
        usuario = obter_usuario(usuario_id)
    except NaoEncontrado:
        raise CredencialInvalida(erro="Token de sessao invalido ou expirado") from None

    if not usuario.ativo:
        log.warning("usuario_inativo", usuario_id=str(usuario.id))
        raise CredencialInvalida(erro="Conta desativada")
    return usuario


async def dependencia_usuario(
    credenciais: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Usuario:
    """Dono da conta autenticado por JWT. Conta inexistente ou inativa = 401."""
    if credenciais is None:
        raise CredencialInvalida(
            "Inclua o header Authorization: Bearer <token>",
            erro="Autenticacao obrigatoria",
        )

    usuario = await run_in_threadpool(_carregar_usuario, credenciais.credentials)
    structlog.contextvars.bind_contextvars(usuario_id=str(usuario.id))
    return usuario
