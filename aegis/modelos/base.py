"""
Base declarativa, fabrica de sessoes e tipos de coluna compartilhados.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from aegis.config import config

_engine = None
_SessionLocal = None


class Base(DeclarativeBase):
    pass


class DataHoraUTC(TypeDecorator):
    """DateTime sempre aware em UTC, mesmo em bancos que devolvem naive (SQLite)."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def agora_utc() -> datetime:
    return datetime.now(timezone.utc)


def obter_engine():
    """Retorna engine singleton. Cria na primeira chamada."""
    global _engine
    if _engine is None:
        if config.DATABASE_URL.startswith("sqlite"):
            _engine = create_engine(
                config.DATABASE_URL,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=False,
            )
        else:
            _engine = create_engine(
                config.DATABASE_URL,
                pool_size=10,
                max_overflow=20,
                pool_pre_ping=True,
                echo=False,
            )
    return _engine


def obter_sessao() -> Session:
    """Retorna uma nova sessao do banco."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=obter_engine(), expire_on_commit=False)
    return _SessionLocal()
