"""
Modelo: Webhook.
Endpoint externo inscrito em eventos de moderacao de um usuario.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from aegis.modelos.base import Base, DataHoraUTC, agora_utc


class EventoWebhook(enum.IntFlag):
    """
    Eventos como bits. `evento in inscricao` testa se a inscricao contem
    todos os bits do evento (subconjunto), nao apenas sobreposicao.
    """

    NONE = 0
    TOXIC_CONTENT = 1
    HIGH_TOXICITY = 2
    RATE_LIMIT_REACHED = 4
    ALL = 7

    @property
    def nome_evento(self) -> str:
        return _NOMES_EVENTOS.get(self, "None")

    @classmethod
    def de_nomes(cls, nomes: list[str]) -> "EventoWebhook":
        reverso = {v: k for k, v in _NOMES_EVENTOS.items()}
        mascara = cls.NONE
        for nome in nomes:
            if nome not in reverso:
                raise ValueError(f"Evento desconhecido: {nome}")
            mascara |= reverso[nome]
        return mascara

    def nomes(self) -> list[str]:
        return [nome for evento, nome in _NOMES_EVENTOS.items() if evento in self]


# Nomes usados no header X-Aegis-Event e no campo "event" do payload
_NOMES_EVENTOS = {
    EventoWebhook.TOXIC_CONTENT: "ToxicContent",
    EventoWebhook.HIGH_TOXICITY: "HighToxicity",
    EventoWebhook.RATE_LIMIT_REACHED: "RateLimitReached",
}


class Webhook(Base):
    __tablename__ = "webhooks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    usuario_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False
    )
    nome: Mapped[str] = mapped_column(String(100), nullable=False)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    segredo: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True)
    eventos: Mapped[int] = mapped_column(
        Integer, nullable=False, default=int(EventoWebhook.TOXIC_CONTENT)
    )
    criado_em: Mapped[datetime] = mapped_column(DataHoraUTC, default=agora_utc)
    ultimo_disparo_em: Mapped[datetime | None] = mapped_column(DataHoraUTC, nullable=True)
    contagem_falhas: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (Index("ix_webhooks_usuario_ativo", "usuario_id", "ativo"),)

    @property
    def inscricao(self) -> EventoWebhook:
        return EventoWebhook(self.eventos)

    def __repr__(self) -> str:
        return f"<Webhook nome={self.nome} ativo={self.ativo}>"
