"""
Rotas publicas de planos.
  GET /v1/plans         : catalogo
  GET /v1/plans/limits  : limites diarios e de keys por plano
"""

from fastapi import APIRouter

from aegis.acesso.planos import CATALOGO_PLANOS, Plano, limite_diario, max_chaves

router = APIRouter()


@router.get("")
def listar_planos():
    return CATALOGO_PLANOS


@router.get("/limits")
def limites():
    limites = {
        plano.name.lower(): {
            "daily_requests": limite_diario(plano),
            "api_keys": max_chaves(plano),
        }
        for plano in Plano
    }
    limites["enterprise"]["daily_requests"] = "unlimited"
    return limites
