"""
Orquestrador de moderacao.

Fluxo de uma analise:
  1. texto vazio -> RequisicaoInvalida
  2. cota do principal negada -> evento RateLimitReached + CotaExcedida
     (o classificador nao e chamado)
  3. classificacao; is_toxic = score >= limiar (inclusivo)
  4. log de auditoria (so principais auditaveis, isto e, API keys)
  5. uso incrementado
  6. toxico -> evento HighToxicity (score >= 0.9) ou ToxicContent

O lote valida tamanho antes de qualquer efeito, checa a cota uma vez,
analisa em sequencia e incrementa o uso por texto. Lote nao gera log
nem eventos por item.
"""

import time
from dataclasses import dataclass

from aegis.acesso.principal import Principal
from aegis.config import config
from aegis.contas.logs import registrar_log
from aegis.erros import CotaExcedida, RequisicaoInvalida
from aegis.modelos.base import agora_utc
from aegis.modelos.webhooks import EventoWebhook
from aegis.moderacao.classificador import obter_classificador
from aegis.utils.logging_config import obter_logger
from aegis.webhooks.disparo import disparar

log = obter_logger("moderacao")

_TAMANHO_TEXTO_ECO = 100


@dataclass
class ContextoRequisicao:
    endpoint: str = "/v1/moderation/analyze"
    metodo: str = "POST"
    ip: str | None = None
    user_agent: str | None = None


def texto_analisado(texto: str) -> str:
    if len(texto) <= _TAMANHO_TEXTO_ECO:
        return texto
    return texto[:_TAMANHO_TEXTO_ECO] + "..."


def _disparar_evento(principal: Principal, evento: EventoWebhook, dados: dict) -> None:
    # Falha no disparo nunca muda a resposta da moderacao
    if principal.usuario_id is None:
        return
    try:
        disparar(principal.usuario_id, evento, dados)
    except Exception as e:
        log.error("disparo_evento_falhou", evento=evento.nome_evento, erro=str(e))


def _exigir_cota(principal: Principal) -> None:
    if principal.cota_permitida():
        return

    limite = principal.limite_diario()
    log.warning("cota_excedida", principal=principal.tipo, limite=limite)
    _disparar_evento(principal, EventoWebhook.RATE_LIMIT_REACHED, principal.dados_limite())
    raise CotaExcedida(
        limite,
        "Voce atingiu o limite diario de requisicoes do seu plano",
        erro="Limite diario excedido",
    )


def analisar_texto(
    principal: Principal,
    texto: str,
    idioma: str | None = None,
    todas_pontuacoes: bool = False,
    limiar: float | None = None,
    contexto: ContextoRequisicao | None = None,
) -> dict:
    if not texto or not texto.strip():
        raise RequisicaoInvalida(erro="Texto e obrigatorio")

    inicio = time.perf_counter()
    _exigir_cota(principal)

    limiar_efetivo = config.LIMIAR_TOXICIDADE if limiar is None else limiar
    resultado = obter_classificador().analisar(
        texto, idioma or config.IDIOMA_PADRAO, todas_pontuacoes
    )
    toxico = resultado.score >= limiar_efetivo
    analisado_em = agora_utc()

    if principal.auditavel:
        ctx = contexto or ContextoRequisicao()
        registrar_log(
            chave_api_id=principal.id,
            usuario_id=principal.usuario_id,
            endpoint=ctx.endpoint,
            metodo=ctx.metodo,
            status_code=200,
            tempo_resposta_ms=int((time.perf_counter() - inicio) * 1000),
            ip=ctx.ip,
            user_agent=ctx.user_agent,
            score_toxicidade=resultado.score,
            toxico=toxico,
        )

    principal.registrar_uso(1)

    if toxico:
        evento = (
            EventoWebhook.HIGH_TOXICITY
            if resultado.score >= config.LIMIAR_ALTA_TOXICIDADE
            else EventoWebhook.TOXIC_CONTENT
        )
        _disparar_evento(
            principal,
            evento,
            {
                "text": texto,
                "toxicity_score": resultado.score,
                "analyzed_at": analisado_em.isoformat(),
            },
        )

    log.info(
        "texto_analisado",
        principal=principal.tipo,
        score=resultado.score,
        toxico=toxico,
        fonte=resultado.fonte,
    )

    return {
        "is_toxic": toxico,
        "toxicity_score": round(resultado.score, 4),
        "all_scores": resultado.scores,
        "analyzed_text": texto_analisado(texto),
        "timestamp": analisado_em,
        "threshold": limiar_efetivo,
    }


def analisar_lote(
    principal: Principal,
    textos: list[str],
    idioma: str | None = None,
    limiar: float | None = None,
) -> dict:
    if not textos:
        raise RequisicaoInvalida(erro="Lista de textos e obrigatoria")
    if len(textos) > config.LOTE_MAX_TEXTOS:
        raise RequisicaoInvalida(
            f"Maximo de {config.LOTE_MAX_TEXTOS} textos por lote",
            erro="Lote muito grande",
            limit=config.LOTE_MAX_TEXTOS,
        )

    _exigir_cota(principal)

    limiar_efetivo = config.LIMIAR_TOXICIDADE if limiar is None else limiar
    classificador = obter_classificador()
    idioma = idioma or config.IDIOMA_PADRAO

    resultados = []
    for texto in textos:
        resultado = classificador.analisar(texto, idioma)
        resultados.append(
            {
                "text": texto_analisado(texto),
                "is_toxic": resultado.score >= limiar_efetivo,
                "toxicity_score": round(resultado.score, 4),
            }
        )

    principal.registrar_uso(len(textos))

    toxicos = sum(1 for r in resultados if r["is_toxic"])
    log.info("lote_analisado", principal=principal.tipo, total=len(textos), toxicos=toxicos)

    return {
        "results": resultados,
        "total_analyzed": len(resultados),
        "toxic_count": toxicos,
        "timestamp": agora_utc(),
        "threshold": limiar_efetivo,
    }
