"""
Log de auditoria das requisicoes feitas com API key e estatisticas de uso.
"""

import uuid
from datetime import datetime, time, timedelta, timezone

from sqlalchemy import case, func, select

from aegis.acesso.planos import limite_diario
from aegis.modelos.api_keys import LogRequisicao
from aegis.modelos.base import agora_utc, obter_sessao
from aegis.modelos.usuarios import Usuario
from aegis.utils.logging_config import obter_logger

log = obter_logger("logs_requisicao")

JANELA_DIAS = 30


def registrar_log(
    chave_api_id: uuid.UUID,
    usuario_id: uuid.UUID,
    endpoint: str,
    status_code: int,
    tempo_resposta_ms: int = 0,
    metodo: str = "POST",
    ip: str | None = None,
    user_agent: str | None = None,
    score_toxicidade: float | None = None,
    toxico: bool | None = None,
) -> None:
    sessao = obter_sessao()
    try:
        sessao.add(
            LogRequisicao(
                chave_api_id=chave_api_id,
                usuario_id=usuario_id,
                endpoint=endpoint,
                metodo=metodo,
                status_code=status_code,
                tempo_resposta_ms=tempo_resposta_ms,
                ip=ip,
                user_agent=(user_agent or "")[:500] or None,
                score_toxicidade=score_toxicidade,
                toxico=toxico,
            )
        )
        sessao.commit()
        log.debug("log_registrado", endpoint=endpoint, status=status_code)
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()


def estatisticas_uso(usuario_id: uuid.UUID) -> dict:
    """
    Uso dos ultimos 30 dias a partir do log de auditoria:
    requisicoes de hoje, do periodo, limite do plano, percentual do limite
    usado hoje e a serie diaria (requisicoes e toxicos detectados).
    A contagem por dia e feita no banco (GROUP BY data).
    """
    hoje = agora_utc().date()
    inicio = datetime.combine(hoje - timedelta(days=JANELA_DIAS), time.min, tzinfo=timezone.utc)
    dia = func.date(LogRequisicao.criado_em)

    sessao = obter_sessao()
    try:
        usuario = sessao.get(Usuario, usuario_id)
        por_dia_raw = sessao.execute(
            select(
                dia.label("dia"),
                func.count(LogRequisicao.id).label("total"),
                func.sum(case((LogRequisicao.toxico.is_(True), 1), else_=0)).label("toxicos"),
            )
            .where(
                LogRequisicao.usuario_id == usuario_id,
                LogRequisicao.criado_em >= inicio,
            )
            .group_by(dia)
        ).all()
    finally:
        sessao.close()

    limite = limite_diario(usuario.plano) if usuario else limite_diario(0)

    # SQLite devolve a data como texto, PostgreSQL como date
    por_dia = {str(row.dia): (row.total or 0, row.toxicos or 0) for row in por_dia_raw}

    requisicoes_hoje = por_dia.get(hoje.isoformat(), (0, 0))[0]
    percentual = round(requisicoes_hoje / limite * 100, 2) if limite > 0 else 0.0

    ultimos_dias = []
    for i in range(JANELA_DIAS - 1, -1, -1):
        data = (hoje - timedelta(days=i)).isoformat()
        total, toxicos = por_dia.get(data, (0, 0))
        ultimos_dias.append({"date": data, "requests": total, "toxic_detected": toxicos})

    return {
        "requests_today": requisicoes_hoje,
        "requests_this_month": sum(total for total, _ in por_dia.values()),
        "daily_limit": limite,
        "usage_percentage": percentual,
        "last_30_days": ultimos_dias,
    }


def logs_recentes(usuario_id: uuid.UUID, quantidade: int = 50) -> list[LogRequisicao]:
    sessao = obter_sessao()
    try:
        return list(
            sessao.execute(
                select(LogRequisicao)
                .where(LogRequisicao.usuario_id == usuario_id)
                .order_by(LogRequisicao.criado_em.desc())
                .limit(quantidade)
            ).scalars()
        )
    finally:
        sessao.close()
