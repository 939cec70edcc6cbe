"""
Modelo: TokenAcesso.
Token anonimo de curta duracao, vinculado ao IP que o solicitou.
Nunca e apagado: expira (ativo=False) de forma preguicosa ou pela varredura.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from aegis.modelos.base import Base, DataHoraUTC, agora_utc


class TokenAcesso(Base):
    __tablename__ = "tokens_acesso"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    hash_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    ip: Mapped[str] = mapped_column(String(45), nullable=False)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True)
    criado_em: Mapped[datetime] = mapped_column(DataHoraUTC, default=agora_utc)
    expira_em: Mapped[datetime] = mapped_column(DataHoraUTC, nullable=False)
    ultimo_uso_em: Mapped[datetime | None] = mapped_column(DataHoraUTC, nullable=True)
    contagem_requisicoes: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (Index("ix_tokens_acesso_ip_ativo", "ip", "ativo"),)

    def __repr__(self) -> str:
        return f"<TokenAcesso ip={self.ip} ativo={self.ativo}>"
