"""
Modelos SQLAlchemy do Aegis.
"""

from aegis.modelos.base import Base, obter_engine, obter_sessao
from aegis.acesso.planos import Plano
from aegis.modelos.usuarios import Usuario
from aegis.modelos.api_keys import ChaveAPI, LogRequisicao
from aegis.modelos.tokens import TokenAcesso
from aegis.modelos.webhooks import EventoWebhook, Webhook

__all__ = [
    "Base",
    "obter_engine",
    "obter_sessao",
    "Plano",
    "Usuario",
    "ChaveAPI",
    "LogRequisicao",
    "TokenAcesso",
    "EventoWebhook",
    "Webhook",
]
