"""
Modelo: Usuario.
Dono das API keys, logs de requisicao e webhooks (delete em cascata).
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from aegis.acesso.planos import Plano
from aegis.modelos.base import Base, DataHoraUTC, agora_utc


class Usuario(Base):
    __tablename__ = "usuarios"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    nome: Mapped[str] = mapped_column(String(100), nullable=False)
    # Sempre minusculo: unicidade case-insensitive
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    hash_senha: Mapped[str] = mapped_column(String(255), nullable=False)
    plano: Mapped[int] = mapped_column(Integer, nullable=False, default=int(Plano.FREE))
    ativo: Mapped[bool] = mapped_column(Boolean, default=True)
    criado_em: Mapped[datetime] = mapped_column(DataHoraUTC, default=agora_utc)
    atualizado_em: Mapped[datetime | None] = mapped_column(DataHoraUTC, nullable=True)

    chaves: Mapped[list["ChaveAPI"]] = relationship(  # noqa: F821
        back_populates="usuario", cascade="all, delete-orphan"
    )
    logs: Mapped[list["LogRequisicao"]] = relationship(  # noqa: F821
        cascade="all, delete-orphan"
    )
    webhooks: Mapped[list["Webhook"]] = relationship(  # noqa: F821
        cascade="all, delete-orphan"
    )

    @property
    def plano_tipo(self) -> Plano:
        return Plano(self.plano)

    def __repr__(self) -> str:
        return f"<Usuario email={self.email} plano={self.plano_tipo.rotulo}>"
