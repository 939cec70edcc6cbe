"""
Contas de usuario: cadastro, login, perfil, senha e exclusao.

Email sempre em minusculo, entao a unicidade e case-insensitive.
Excluir a conta remove em cascata API keys, logs e webhooks.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from aegis.contas.seguranca import criar_jwt, hash_senha, verificar_senha
from aegis.erros import Conflito, CredencialInvalida, NaoEncontrado, RequisicaoInvalida
from aegis.modelos.base import agora_utc, obter_sessao
from aegis.modelos.usuarios import Usuario
from aegis.utils.logging_config import obter_logger

log = obter_logger("usuarios")


@dataclass
class Sessao:
    token: str
    expira_em: datetime
    usuario: Usuario


def _buscar_por_email(sessao, email: str) -> Usuario | None:
    return sessao.execute(
        select(Usuario).where(Usuario.email == email.strip().lower())
    ).scalar_one_or_none()


def _emitir_sessao(usuario: Usuario) -> Sessao:
    token, expira_em = criar_jwt(usuario.id, usuario.email, usuario.plano_tipo.rotulo)
    return Sessao(token=token, expira_em=expira_em, usuario=usuario)


def registrar_usuario(nome: str, email: str, senha: str) -> Sessao:
    """Cria a conta no plano free e ja devolve um JWT."""
    email = email.strip().lower()
    sessao = obter_sessao()
    try:
        if _buscar_por_email(sessao, email) is not None:
            raise Conflito("Ja existe uma conta com este email", erro="Email ja cadastrado")

        usuario = Usuario(nome=nome, email=email, hash_senha=hash_senha(senha))
        sessao.add(usuario)
        sessao.commit()
    except IntegrityError as e:
        sessao.rollback()
        raise Conflito("Ja existe uma conta com este email", erro="Email ja cadastrado") from e
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()

    log.info("usuario_registrado", usuario_id=str(usuario.id))
    return _emitir_sessao(usuario)


def autenticar(email: str, senha: str) -> Sessao:
    sessao = obter_sessao()
    try:
        usuario = _buscar_por_email(sessao, email)
    finally:
        sessao.close()

    if usuario is None or not usuario.ativo or not verificar_senha(senha, usuario.hash_senha):
        log.warning("login_falhou")
        raise CredencialInvalida("Email ou senha incorretos", erro="Credenciais invalidas")

    return _emitir_sessao(usuario)


def obter_usuario(usuario_id: uuid.UUID) -> Usuario:
    sessao = obter_sessao()
    try:
        usuario = sessao.get(Usuario, usuario_id)
    finally:
        sessao.close()
    if usuario is None:
        raise NaoEncontrado(erro="Usuario nao encontrado")
    return usuario


def atualizar_perfil(
    usuario_id: uuid.UUID, nome: str | None = None, email: str | None = None
) -> Usuario:
    sessao = obter_sessao()
    try:
        usuario = sessao.get(Usuario, usuario_id)
        if usuario is None:
            raise NaoEncontrado(erro="Usuario nao encontrado")

        if nome:
            usuario.nome = nome
        if email:
            email = email.strip().lower()
            outro = _buscar_por_email(sessao, email)
            if outro is not None and outro.id != usuario.id:
                raise Conflito(erro="Email ja cadastrado")
            usuario.email = email

        usuario.atualizado_em = agora_utc()
        sessao.commit()
        log.info("perfil_atualizado", usuario_id=str(usuario_id))
        return usuario
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()


def alterar_senha(usuario_id: uuid.UUID, senha_atual: str, nova_senha: str) -> None:
    sessao = obter_sessao()
    try:
        usuario = sessao.get(Usuario, usuario_id)
        if usuario is None:
            raise NaoEncontrado(erro="Usuario nao encontrado")
        if not verificar_senha(senha_atual, usuario.hash_senha):
            raise RequisicaoInvalida(erro="Senha atual incorreta")

        usuario.hash_senha = hash_senha(nova_senha)
        usuario.atualizado_em = agora_utc()
        sessao.commit()
        log.info("senha_alterada", usuario_id=str(usuario_id))
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()


def excluir_conta(usuario_id: uuid.UUID) -> None:
    sessao = obter_sessao()
    try:
        usuario = sessao.get(Usuario, usuario_id)
        if usuario is None:
            raise NaoEncontrado(erro="Usuario nao encontrado")
        sessao.delete(usuario)
        sessao.commit()
        log.info("conta_excluida", usuario_id=str(usuario_id))
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()
