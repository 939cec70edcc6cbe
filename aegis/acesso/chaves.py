"""
Gerenciamento de API keys do Aegis.

Formato da key: aegis_XXXXXXXX... (40 caracteres alfanumericos)
Armazenamento: hash SHA256 no banco (nunca em texto plano), mais os 8
primeiros e 4 ultimos caracteres para exibicao mascarada.

A key completa so e devolvida uma vez, na criacao.
"""

import base64
import hashlib
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import joinedload

from aegis.acesso.planos import max_chaves
from aegis.acesso.relogio import cota_disponivel, expirado, precisa_reset, proximo_reset
from aegis.erros import CredencialInvalida, NaoEncontrado, RequisicaoInvalida
from aegis.modelos.api_keys import ChaveAPI
from aegis.modelos.base import agora_utc, obter_sessao
from aegis.modelos.usuarios import Usuario
from aegis.utils.logging_config import obter_logger, prefixo_seguro

log = obter_logger("chaves")

PREFIXO_CHAVE = "aegis_"
_TAMANHO_CORPO = 40


def gerar_chave() -> str:
    """
    Gera um segredo no formato aegis_ + 40 alfanumericos.
    A fonte sao 384 bits de secrets.token_bytes, codificados em base64 sem +/=.
    """
    while True:
        bruto = base64.b64encode(secrets.token_bytes(48)).decode("ascii")
        corpo = bruto.replace("+", "").replace("/", "").replace("=", "")
        if len(corpo) >= _TAMANHO_CORPO:
            return PREFIXO_CHAVE + corpo[:_TAMANHO_CORPO]


def hash_chave(chave: str) -> str:
    """Hash SHA256 da credencial para armazenamento seguro."""
    return hashlib.sha256(chave.encode("utf-8")).hexdigest()


def mascarar_chave(chave: str) -> str:
    """Primeiros 8 + '...' + ultimos 4. Keys curtas voltam intactas."""
    if len(chave) <= 12:
        return chave
    return f"{chave[:8]}...{chave[-4:]}"


@dataclass
class ChaveCriada:
    id: uuid.UUID
    chave: str
    nome: str
    criado_em: datetime
    expira_em: datetime | None
    aviso: str = field(
        default="Guarde esta key em local seguro. Ela nao sera exibida novamente."
    )


def contar_chaves(usuario_id: uuid.UUID) -> int:
    """Keys ativas e revogadas contam para o limite do plano."""
    sessao = obter_sessao()
    try:
        return sessao.execute(
            select(func.count(ChaveAPI.id)).where(ChaveAPI.usuario_id == usuario_id)
        ).scalar_one()
    finally:
        sessao.close()


def verificar_limite_chaves(usuario: Usuario) -> None:
    """Levanta RequisicaoInvalida se o usuario ja atingiu o maximo do plano."""
    maximo = max_chaves(usuario.plano)
    if contar_chaves(usuario.id) >= maximo:
        raise RequisicaoInvalida(
            f"Maximo de {maximo} API keys permitido para o seu plano",
            limit=maximo,
        )


def criar_chave(
    usuario_id: uuid.UUID, nome: str, expira_em: datetime | None = None
) -> ChaveCriada:
    """Cria e persiste uma nova key. O limite por plano e checado pelo chamador."""
    chave_texto = gerar_chave()

    sessao = obter_sessao()
    try:
        registro = ChaveAPI(
            hash_chave=hash_chave(chave_texto),
            prefixo=chave_texto[:8],
            sufixo=chave_texto[-4:],
            nome=nome,
            usuario_id=usuario_id,
            expira_em=expira_em,
        )
        sessao.add(registro)
        sessao.commit()

        log.info("chave_criada", usuario_id=str(usuario_id), nome=nome)

        return ChaveCriada(
            id=registro.id,
            chave=chave_texto,
            nome=registro.nome,
            criado_em=registro.criado_em,
            expira_em=registro.expira_em,
        )
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()


def listar_chaves(usuario_id: uuid.UUID) -> list[ChaveAPI]:
    sessao = obter_sessao()
    try:
        return list(
            sessao.execute(
                select(ChaveAPI)
                .where(ChaveAPI.usuario_id == usuario_id)
                .order_by(ChaveAPI.criado_em.desc())
            ).scalars()
        )
    finally:
        sessao.close()


def validar_chave(chave: str) -> ChaveAPI:
    """
    Valida uma API key e retorna o registro com o usuario carregado.

    Zera o contador diario quando o reset venceu. O reset e um UPDATE
    condicional (WHERE reset_em <= agora): duas validacoes concorrentes nao
    zeram o contador duas vezes depois que outra requisicao ja incrementou.
    """
    agora = agora_utc()
    sessao = obter_sessao()
    try:
        registro = sessao.execute(
            select(ChaveAPI)
            .options(joinedload(ChaveAPI.usuario))
            .where(ChaveAPI.hash_chave == hash_chave(chave), ChaveAPI.ativa.is_(True))
        ).scalar_one_or_none()

        if registro is None or not registro.usuario.ativo:
            log.warning("chave_invalida", chave=prefixo_seguro(chave))
            raise CredencialInvalida(
                "A API key informada e invalida, expirou ou foi revogada",
                erro="API key invalida",
            )

        if expirado(registro.expira_em, agora):
            log.info("chave_expirada", chave_id=str(registro.id))
            raise CredencialInvalida(
                "A API key informada e invalida, expirou ou foi revogada",
                erro="API key invalida",
            )

        if precisa_reset(registro.requisicoes_reset_em, agora):
            sessao.execute(
                update(ChaveAPI)
                .where(
                    ChaveAPI.id == registro.id,
                    ChaveAPI.requisicoes_reset_em <= agora,
                )
                .values(requisicoes_hoje=0, requisicoes_reset_em=proximo_reset(agora))
            )
            sessao.commit()
            sessao.refresh(registro, ["requisicoes_hoje", "requisicoes_reset_em"])
            log.info(
                "contador_diario_zerado",
                chave_id=str(registro.id),
                proximo_reset=registro.requisicoes_reset_em.isoformat(),
            )

        return registro
    finally:
        sessao.close()


def verificar_cota(chave: ChaveAPI, usuario: Usuario) -> bool:
    """Rele o contador no banco e compara com o limite do plano. Nao altera nada."""
    sessao = obter_sessao()
    try:
        atual = sessao.execute(
            select(ChaveAPI.requisicoes_hoje).where(ChaveAPI.id == chave.id)
        ).scalar_one_or_none()
    finally:
        sessao.close()

    if atual is None:
        return False
    return cota_disponivel(atual, usuario.plano)


def incrementar_uso(chave_id: uuid.UUID, quantidade: int = 1) -> None:
    """Soma `quantidade` ao contador do dia num unico UPDATE e marca o ultimo uso."""
    sessao = obter_sessao()
    try:
        sessao.execute(
            update(ChaveAPI)
            .where(ChaveAPI.id == chave_id)
            .values(
                requisicoes_hoje=ChaveAPI.requisicoes_hoje + quantidade,
                ultimo_uso_em=agora_utc(),
            )
        )
        sessao.commit()
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()


def _chave_do_usuario(sessao, usuario_id: uuid.UUID, chave_id: uuid.UUID) -> ChaveAPI:
    registro = sessao.execute(
        select(ChaveAPI).where(ChaveAPI.id == chave_id, ChaveAPI.usuario_id == usuario_id)
    ).scalar_one_or_none()
    # Inexistente e "de outro usuario" sao indistinguiveis para o chamador
    if registro is None:
        raise NaoEncontrado(erro="API key nao encontrada")
    return registro


def revogar_chave(usuario_id: uuid.UUID, chave_id: uuid.UUID) -> None:
    sessao = obter_sessao()
    try:
        registro = _chave_do_usuario(sessao, usuario_id, chave_id)
        registro.ativa = False
        sessao.commit()
        log.info("chave_revogada", chave_id=str(chave_id))
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()


def excluir_chave(usuario_id: uuid.UUID, chave_id: uuid.UUID) -> None:
    """Remove a key de vez, junto com os logs de requisicao dela."""
    sessao = obter_sessao()
    try:
        registro = _chave_do_usuario(sessao, usuario_id, chave_id)
        sessao.delete(registro)
        sessao.commit()
        log.info("chave_excluida", chave_id=str(chave_id))
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()
