"""Hash de senha (bcrypt) e JWT de sessao do dono da conta (PyJWT)."""

import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from jwt.exceptions import PyJWTError

from aegis.config import config


def hash_senha(senha: str) -> str:
    return bcrypt.hashpw(senha.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verificar_senha(senha: str, hash_armazenado: str) -> bool:
    return bcrypt.checkpw(senha.encode("utf-8"), hash_armazenado.encode("utf-8"))


def criar_jwt(usuario_id: uuid.UUID, email: str, plano: str) -> tuple[str, datetime]:
    """JWT HS256 com sub = id do usuario. Retorna (token, expira_em)."""
    expira_em = datetime.now(timezone.utc) + timedelta(days=config.JWT_EXPIRE_DAYS)
    payload = {
        "sub": str(usuario_id),
        "email": email,
        "plan": plano,
        "exp": expira_em,
    }
    token = jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)
    return token, expira_em


def decodificar_jwt(token: str) -> uuid.UUID | None:
    """Id do usuario do token, ou None se assinatura, validade ou formato falharem."""
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
        return uuid.UUID(payload["sub"])
    except (PyJWTError, KeyError, ValueError):
        return None
