"""
Principais e resolvedores de credencial.

Os dois esquemas de autenticacao (API key por usuario e token anonimo por
IP) seguem o mesmo contrato: um resolvedor le o header, valida a
credencial e devolve um Principal. A moderacao so conhece a interface do
Principal: tokens respondem "sem cota diaria", keys respondem com o limite
do plano do dono.
"""

import uuid

from aegis.acesso import chaves, tokens
from aegis.acesso.planos import limite_diario
from aegis.modelos.api_keys import ChaveAPI
from aegis.modelos.tokens import TokenAcesso
from aegis.modelos.usuarios import Usuario


class Principal:
    """Identidade resolvida de quem chamou."""

    tipo: str = "desconhecido"
    # Gera LogRequisicao e dispara webhooks (precisa de um usuario dono)
    auditavel: bool = False

    @property
    def id(self) -> uuid.UUID:
        raise NotImplementedError

    @property
    def usuario_id(self) -> uuid.UUID | None:
        return None

    def cota_permitida(self) -> bool:
        return True

    def limite_diario(self) -> int | None:
        return None

    def registrar_uso(self, quantidade: int = 1) -> None:
        raise NotImplementedError

    def dados_limite(self) -> dict:
        """Payload do evento RateLimitReached."""
        return {}


class PrincipalChave(Principal):
    tipo = "api_key"
    auditavel = True

    def __init__(self, chave: ChaveAPI, usuario: Usuario):
        self.chave = chave
        self.usuario = usuario

    @property
    def id(self) -> uuid.UUID:
        return self.chave.id

    @property
    def usuario_id(self) -> uuid.UUID:
        return self.usuario.id

    def cota_permitida(self) -> bool:
        return chaves.verificar_cota(self.chave, self.usuario)

    def limite_diario(self) -> int:
        return limite_diario(self.usuario.plano)

    def registrar_uso(self, quantidade: int = 1) -> None:
        chaves.incrementar_uso(self.chave.id, quantidade)

    def dados_limite(self) -> dict:
        return {"api_key_id": str(self.chave.id), "api_key_name": self.chave.nome}


class PrincipalToken(Principal):
    tipo = "token"

    def __init__(self, token: TokenAcesso):
        self.token = token

    @property
    def id(self) -> uuid.UUID:
        return self.token.id

    def registrar_uso(self, quantidade: int = 1) -> None:
        tokens.registrar_uso_token(self.token.id, quantidade)


class ResolvedorPrincipal:
    esquema: str
    cabecalho: str

    def resolver(self, credencial: str) -> Principal:
        raise NotImplementedError


class ResolvedorChaveAPI(ResolvedorPrincipal):
    esquema = "api_key"
    cabecalho = "X-Api-Key"

    def resolver(self, credencial: str) -> PrincipalChave:
        chave = chaves.validar_chave(credencial)
        return PrincipalChave(chave, chave.usuario)


class ResolvedorToken(ResolvedorPrincipal):
    esquema = "token"
    cabecalho = "X-Access-Token"

    def resolver(self, credencial: str) -> PrincipalToken:
        return PrincipalToken(tokens.validar_token(credencial))


RESOLVEDORES: dict[str, ResolvedorPrincipal] = {
    ResolvedorChaveAPI.esquema: ResolvedorChaveAPI(),
    ResolvedorToken.esquema: ResolvedorToken(),
}


def resolvedores_ativos(esquemas: list[str]) -> list[ResolvedorPrincipal]:
    """Resolvedores na ordem configurada; esquemas desconhecidos sao ignorados."""
    return [RESOLVEDORES[e] for e in esquemas if e in RESOLVEDORES]
