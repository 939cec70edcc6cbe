"""
Tokens de acesso anonimos, vinculados ao IP.

  - validade de 30 minutos, sem renovacao
  - no maximo 2 tokens ativos por IP
  - sem cota diaria: o limite e o tempo de vida e o teto de emissao por IP

Mesmo formato e armazenamento das API keys (aegis_ + 40 chars, hash SHA256).
"""

import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import func, select, update

from aegis.acesso.chaves import gerar_chave, hash_chave
from aegis.acesso.relogio import expirado
from aegis.config import config
from aegis.erros import CotaExcedida, CredencialInvalida
from aegis.modelos.base import agora_utc, obter_sessao
from aegis.modelos.tokens import TokenAcesso
from aegis.utils.logging_config import obter_logger, prefixo_seguro

log = obter_logger("tokens")


@dataclass
class TokenEmitido:
    token: str
    registro: TokenAcesso


def desativar_tokens_expirados() -> int:
    """Marca como inativos todos os tokens vencidos. Retorna quantos mudaram."""
    agora = agora_utc()
    sessao = obter_sessao()
    try:
        resultado = sessao.execute(
            update(TokenAcesso)
            .where(TokenAcesso.ativo.is_(True), TokenAcesso.expira_em <= agora)
            .values(ativo=False)
        )
        sessao.commit()
        total = resultado.rowcount or 0
        if total:
            log.info("tokens_expirados_desativados", total=total)
        return total
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()


def contar_tokens_ativos(ip: str) -> int:
    agora = agora_utc()
    sessao = obter_sessao()
    try:
        return sessao.execute(
            select(func.count(TokenAcesso.id)).where(
                TokenAcesso.ip == ip,
                TokenAcesso.ativo.is_(True),
                TokenAcesso.expira_em > agora,
            )
        ).scalar_one()
    finally:
        sessao.close()


def emitir_token(ip: str) -> TokenEmitido:
    """
    Emite um token novo para o IP.
    Levanta CotaExcedida se o IP ja tem o maximo de tokens ativos.
    """
    desativar_tokens_expirados()

    limite = config.TOKEN_MAX_PER_IP
    if contar_tokens_ativos(ip) >= limite:
        log.warning("limite_tokens_ip", ip=ip, limite=limite)
        raise CotaExcedida(
            limite,
            f"Voce ja possui {limite} tokens ativos. Aguarde a expiracao ou use um token existente.",
            erro="Limite de tokens atingido",
        )

    token_texto = gerar_chave()
    agora = agora_utc()

    sessao = obter_sessao()
    try:
        registro = TokenAcesso(
            hash_token=hash_chave(token_texto),
            ip=ip,
            criado_em=agora,
            expira_em=agora + timedelta(minutes=config.TOKEN_TTL_MINUTES),
        )
        sessao.add(registro)
        sessao.commit()
        log.info("token_emitido", ip=ip, token_id=str(registro.id))
        return TokenEmitido(token=token_texto, registro=registro)
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()


def validar_token(token: str) -> TokenAcesso:
    """Token ativo e dentro da validade. Vencido vira inativo e nao volta."""
    sessao = obter_sessao()
    try:
        registro = sessao.execute(
            select(TokenAcesso).where(
                TokenAcesso.hash_token == hash_chave(token),
                TokenAcesso.ativo.is_(True),
            )
        ).scalar_one_or_none()

        if registro is None:
            log.warning("token_invalido", token=prefixo_seguro(token))
            raise CredencialInvalida(
                "O token fornecido e invalido ou expirou. Gere um novo em POST /v1/tokens/generate",
                erro="Token invalido ou expirado",
            )

        if expirado(registro.expira_em, agora_utc()):
            registro.ativo = False
            sessao.commit()
            log.info("token_expirado", token_id=str(registro.id))
            raise CredencialInvalida(
                "O token fornecido e invalido ou expirou. Gere um novo em POST /v1/tokens/generate",
                erro="Token invalido ou expirado",
            )

        return registro
    finally:
        sessao.close()


def registrar_uso_token(token_id: uuid.UUID, quantidade: int = 1) -> None:
    sessao = obter_sessao()
    try:
        sessao.execute(
            update(TokenAcesso)
            .where(TokenAcesso.id == token_id)
            .values(
                contagem_requisicoes=TokenAcesso.contagem_requisicoes + quantidade,
                ultimo_uso_em=agora_utc(),
            )
        )
        sessao.commit()
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()
