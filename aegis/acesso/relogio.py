"""
Relogio de cotas: funcoes puras sobre timestamps UTC.

O contador diario das API keys e zerado de forma preguicosa: quando
`agora >= reset_em`, o contador volta a 0 e o proximo reset passa a ser o
inicio do dia UTC seguinte a `agora`. Um unico passo, nao importa quantos
dias se passaram.
"""

from datetime import datetime, time, timedelta, timezone

from aegis.acesso.planos import limite_diario


def _utc(momento: datetime) -> datetime:
    if momento.tzinfo is None:
        return momento.replace(tzinfo=timezone.utc)
    return momento.astimezone(timezone.utc)


def proximo_reset(agora: datetime) -> datetime:
    """Meia-noite UTC do dia seguinte a `agora`."""
    dia_seguinte = _utc(agora).date() + timedelta(days=1)
    return datetime.combine(dia_seguinte, time.min, tzinfo=timezone.utc)


def precisa_reset(reset_em: datetime, agora: datetime) -> bool:
    return _utc(agora) >= _utc(reset_em)


def normalizar_contador(
    requisicoes: int, reset_em: datetime, agora: datetime
) -> tuple[int, datetime]:
    """Contador e proximo reset vigentes em `agora`."""
    if precisa_reset(reset_em, agora):
        return 0, proximo_reset(agora)
    return requisicoes, _utc(reset_em)


def cota_disponivel(requisicoes_hoje: int, plano: int) -> bool:
    """Permite enquanto requisicoes_hoje < limite do plano."""
    return requisicoes_hoje < limite_diario(plano)


def expirado(expira_em: datetime | None, agora: datetime) -> bool:
    return expira_em is not None and _utc(agora) >= _utc(expira_em)


def minutos_restantes(expira_em: datetime, agora: datetime) -> float:
    restante = (_utc(expira_em) - _utc(agora)).total_seconds() / 60
    return max(0.0, round(restante, 1))
