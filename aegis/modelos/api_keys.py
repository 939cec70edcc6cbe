"""
Modelos: ChaveAPI e LogRequisicao.
Autenticacao por API key com cota diaria por plano e trilha de auditoria.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from aegis.acesso.relogio import proximo_reset
from aegis.modelos.base import Base, DataHoraUTC, agora_utc


def _proximo_reset_padrao() -> datetime:
    return proximo_reset(agora_utc())


class ChaveAPI(Base):
    __tablename__ = "chaves_api"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    hash_chave: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    prefixo: Mapped[str] = mapped_column(String(8), nullable=False)
    sufixo: Mapped[str] = mapped_column(String(4), nullable=False)
    nome: Mapped[str] = mapped_column(String(100), nullable=False)
    usuario_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False
    )
    ativa: Mapped[bool] = mapped_column(Boolean, default=True)
    criado_em: Mapped[datetime] = mapped_column(DataHoraUTC, default=agora_utc)
    expira_em: Mapped[datetime | None] = mapped_column(DataHoraUTC, nullable=True)
    ultimo_uso_em: Mapped[datetime | None] = mapped_column(DataHoraUTC, nullable=True)
    requisicoes_hoje: Mapped[int] = mapped_column(Integer, default=0)
    requisicoes_reset_em: Mapped[datetime] = mapped_column(
        DataHoraUTC, default=_proximo_reset_padrao
    )

    usuario: Mapped["Usuario"] = relationship(back_populates="chaves")  # noqa: F821
    logs: Mapped[list["LogRequisicao"]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (Index("ix_chaves_api_usuario", "usuario_id"),)

    @property
    def chave_mascarada(self) -> str:
        return f"{self.prefixo}...{self.sufixo}"

    def __repr__(self) -> str:
        return f"<ChaveAPI nome={self.nome} chave={self.chave_mascarada}>"


class LogRequisicao(Base):
    __tablename__ = "logs_requisicao"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    chave_api_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("chaves_api.id", ondelete="CASCADE"), nullable=False
    )
    usuario_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False
    )
    endpoint: Mapped[str] = mapped_column(String(50), nullable=False)
    metodo: Mapped[str] = mapped_column(String(10), default="POST")
    status_code: Mapped[int] = mapped_column(Integer, nullable=False)
    tempo_resposta_ms: Mapped[int] = mapped_column(Integer, default=0)
    ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    score_toxicidade: Mapped[float | None] = mapped_column(Float, nullable=True)
    toxico: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    criado_em: Mapped[datetime] = mapped_column(DataHoraUTC, default=agora_utc)

    __table_args__ = (
        Index("ix_logs_requisicao_usuario_criado", "usuario_id", "criado_em"),
    )

    def __repr__(self) -> str:
        return f"<LogRequisicao chave={self.chave_api_id} endpoint={self.endpoint}>"
