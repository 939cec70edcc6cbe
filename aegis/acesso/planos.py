"""
Planos do Aegis e seus limites.

  free      : 100 req/dia, 5 API keys
  starter   : 1.000 req/dia, 10 API keys
  pro       : 10.000 req/dia, 10 API keys
  enterprise: ilimitado (maior valor da coluna inteira), 10 API keys
"""

import enum

# Maior inteiro da coluna requisicoes_hoje; "ilimitado" na pratica
LIMITE_ILIMITADO = 2_147_483_647


class Plano(enum.IntEnum):
    FREE = 0
    STARTER = 1
    PRO = 2
    ENTERPRISE = 3

    @property
    def rotulo(self) -> str:
        return self.name.capitalize()


_LIMITES_DIARIOS = {
    Plano.FREE: 100,
    Plano.STARTER: 1_000,
    Plano.PRO: 10_000,
    Plano.ENTERPRISE: LIMITE_ILIMITADO,
}

_MAX_CHAVES_FREE = 5
_MAX_CHAVES_PAGO = 10


def limite_diario(plano: int) -> int:
    """Requisicoes por dia permitidas para o plano (desconhecido = free)."""
    try:
        return _LIMITES_DIARIOS[Plano(plano)]
    except ValueError:
        return _LIMITES_DIARIOS[Plano.FREE]


def max_chaves(plano: int) -> int:
    return _MAX_CHAVES_FREE if plano == Plano.FREE else _MAX_CHAVES_PAGO


CATALOGO_PLANOS = [
    {
        "name": "Free",
        "description": "Para testes e projetos pequenos",
        "daily_limit": _LIMITES_DIARIOS[Plano.FREE],
        "price_monthly": 0,
        "features": [
            "100 requisicoes/dia",
            "5 API keys",
            "Deteccao basica de toxicidade",
            "Suporte da comunidade",
        ],
    },
    {
        "name": "Starter",
        "description": "Para aplicacoes em crescimento",
        "daily_limit": _LIMITES_DIARIOS[Plano.STARTER],
        "price_monthly": 9.99,
        "features": [
            "1.000 requisicoes/dia",
            "10 API keys",
            "Analise completa de toxicidade",
            "Notificacoes por webhook",
            "Suporte por email",
        ],
    },
    {
        "name": "Pro",
        "description": "Para aplicacoes profissionais",
        "daily_limit": _LIMITES_DIARIOS[Plano.PRO],
        "price_monthly": 49.99,
        "features": [
            "10.000 requisicoes/dia",
            "10 API keys",
            "Analise completa de toxicidade",
            "Notificacoes por webhook",
            "Suporte prioritario",
            "Analytics de uso",
            "Processamento em lote",
        ],
    },
    {
        "name": "Enterprise",
        "description": "Solucoes sob medida para grandes organizacoes",
        "daily_limit": _LIMITES_DIARIOS[Plano.ENTERPRISE],
        "price_monthly": -1,  # sob consulta
        "features": [
            "Requisicoes ilimitadas",
            "Webhooks customizados",
            "Suporte dedicado",
            "SLA garantido",
            "Opcao on-premise",
        ],
    },
]
