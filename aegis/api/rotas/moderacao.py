"""
Rotas de moderacao.
  POST /v1/moderation/analyze       : analisa um texto
  POST /v1/moderation/analyze/batch : analisa ate 100 textos
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from aegis.acesso.principal import Principal
from aegis.api.auth import dependencia_principal, obter_ip_cliente
from aegis.moderacao.orquestrador import (
    ContextoRequisicao,
    analisar_lote,
    analisar_texto,
)

router = APIRouter()


class RequestAnalise(BaseModel):
    text: str
    language: str | None = None
    include_all_scores: bool = False
    toxicity_threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class ResponseAnalise(BaseModel):
    is_toxic: bool
    toxicity_score: float
    all_scores: dict[str, float] | None = None
    analyzed_text: str
    timestamp: datetime
    threshold: float


class RequestLote(BaseModel):
    texts: list[str]
    language: str | None = None
    toxicity_threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class ResultadoItem(BaseModel):
    text: str
    is_toxic: bool
    toxicity_score: float


class ResponseLote(BaseModel):
    results: list[ResultadoItem]
    total_analyzed: int
    toxic_count: int
    timestamp: datetime
    threshold: float


@router.post("/analyze", response_model=ResponseAnalise)
def analisar(
    body: RequestAnalise,
    request: Request,
    principal: Principal = Depends(dependencia_principal),
):
    contexto = ContextoRequisicao(
        endpoint=request.url.path,
        metodo=request.method,
        ip=obter_ip_cliente(request),
        user_agent=request.headers.get("User-Agent"),
    )
    return analisar_texto(
        principal,
        body.text,
        idioma=body.language,
        todas_pontuacoes=body.include_all_scores,
        limiar=body.toxicity_threshold,
        contexto=contexto,
    )


@router.post("/analyze/batch", response_model=ResponseLote)
def analisar_em_lote(
    body: RequestLote,
    principal: Principal = Depends(dependencia_principal),
):
    return analisar_lote(
        principal,
        body.texts,
        idioma=body.language,
        limiar=body.toxicity_threshold,
    )
