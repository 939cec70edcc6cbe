"""
Cliente HTTP do classificador de toxicidade (Google Perspective API).

Endpoint: POST {PERSPECTIVE_API_URL}?key={PERSPECTIVE_API_KEY}
Corpo:    {"comment": {"text"}, "languages": [idioma], "requestedAttributes": {...}}

Retry: backoff exponencial via tenacity, so para erros de transporte.
Fallback: sem API key, ou com qualquer falha (transporte, status != 2xx,
JSON inesperado), o score vem do matcher lexical deterministico:
0.85 se alguma palavra da lista aparece no texto, senao 0.15.
"""

from dataclasses import dataclass

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from aegis.config import config
from aegis.erros import ClassificadorIndisponivel
from aegis.utils.logging_config import obter_logger

log = obter_logger("classificador")

ATRIBUTO_TOXICIDADE = "TOXICITY"
ATRIBUTOS_EXTRAS = ("SEVERE_TOXICITY", "IDENTITY_ATTACK", "INSULT", "PROFANITY", "THREAT")

PALAVRAS_TOXICAS = ("hate", "kill", "stupid", "idiot", "ódio", "matar", "idiota")
SCORE_LEXICAL_TOXICO = 0.85
SCORE_LEXICAL_LIMPO = 0.15

# Sub-scores derivados do score lexical quando todos os atributos sao pedidos
_PESOS_LEXICAIS = {
    "TOXICITY": 1.0,
    "SEVERE_TOXICITY": 0.5,
    "IDENTITY_ATTACK": 0.3,
    "INSULT": 0.8,
    "PROFANITY": 0.6,
    "THREAT": 0.2,
}


@dataclass
class ResultadoClassificacao:
    score: float
    scores: dict[str, float] | None
    fonte: str


def score_lexical(texto: str, todas_pontuacoes: bool = False) -> ResultadoClassificacao:
    """Scorer substituto, identico com ou sem falha da chamada remota."""
    texto_lower = texto.lower()
    toxico = any(palavra in texto_lower for palavra in PALAVRAS_TOXICAS)
    score = SCORE_LEXICAL_TOXICO if toxico else SCORE_LEXICAL_LIMPO

    scores = None
    if todas_pontuacoes:
        scores = {attr: round(score * peso, 4) for attr, peso in _PESOS_LEXICAIS.items()}

    return ResultadoClassificacao(score=score, scores=scores, fonte="lexical")


def _montar_corpo(texto: str, idioma: str, todas_pontuacoes: bool) -> dict:
    atributos = {ATRIBUTO_TOXICIDADE: {}}
    if todas_pontuacoes:
        atributos.update({attr: {} for attr in ATRIBUTOS_EXTRAS})
    return {
        "comment": {"text": texto},
        "languages": [idioma],
        "requestedAttributes": atributos,
    }


def _valor_summary(atributos: dict, nome: str) -> float:
    valor = float(atributos[nome]["summaryScore"]["value"])
    if not 0.0 <= valor <= 1.0:
        raise ValueError(f"score fora de [0,1]: {valor}")
    return round(valor, 4)


def _parsear_resposta(dados: dict, todas_pontuacoes: bool) -> ResultadoClassificacao:
    atributos = dados["attributeScores"]
    score = _valor_summary(atributos, ATRIBUTO_TOXICIDADE)

    scores = None
    if todas_pontuacoes:
        scores = {
            nome: _valor_summary(atributos, nome)
            for nome in (ATRIBUTO_TOXICIDADE, *ATRIBUTOS_EXTRAS)
            if nome in atributos
        }

    return ResultadoClassificacao(score=score, scores=scores, fonte="perspective")


class ClienteClassificador:
    """
    Cliente para a Perspective API com connection pooling,
    retry em falhas de transporte e fallback lexical.
    """

    def __init__(
        self,
        api_key: str | None = None,
        url: str | None = None,
        client: httpx.Client | None = None,
    ):
        self._api_key = api_key
        self._url = url or config.PERSPECTIVE_API_URL
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(config.CLASSIFIER_TIMEOUT, connect=5.0),
            headers={"Accept": "application/json"},
        )
        if not self._api_key:
            log.warning("classificador_sem_api_key", fallback="lexical")

    def fechar(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.fechar()

    def analisar(
        self, texto: str, idioma: str = "pt", todas_pontuacoes: bool = False
    ) -> ResultadoClassificacao:
        if not self._api_key:
            log.debug("classificador_lexical", motivo="sem_api_key")
            return score_lexical(texto, todas_pontuacoes)

        try:
            resultado = self._chamar_perspective(texto, idioma, todas_pontuacoes)
        except ClassificadorIndisponivel as e:
            log.error("classificador_indisponivel", erro=str(e))
            return score_lexical(texto, todas_pontuacoes)

        log.debug("classificador_resposta", score=resultado.score, idioma=idioma)
        return resultado

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        stop=stop_after_attempt(config.CLASSIFIER_ATTEMPTS),
        reraise=True,
        before_sleep=lambda info: obter_logger("classificador").warning(
            "retry_perspective",
            tentativa=info.attempt_number,
            espera=round(info.idle_for, 1),
        ),
    )
    def _post(self, corpo: dict) -> httpx.Response:
        return self._client.post(self._url, params={"key": self._api_key}, json=corpo)

    def _chamar_perspective(
        self, texto: str, idioma: str, todas_pontuacoes: bool
    ) -> ResultadoClassificacao:
        corpo = _montar_corpo(texto, idioma, todas_pontuacoes)
        try:
            resposta = self._post(corpo)
        except httpx.HTTPError as e:
            raise ClassificadorIndisponivel(f"erro de transporte: {e}") from e

        if not resposta.is_success:
            raise ClassificadorIndisponivel(
                f"status {resposta.status_code}: {resposta.text[:200]}"
            )

        try:
            return _parsear_resposta(resposta.json(), todas_pontuacoes)
        except (ValueError, KeyError, TypeError) as e:
            raise ClassificadorIndisponivel(f"resposta inesperada: {e}") from e


_cliente: ClienteClassificador | None = None


def obter_classificador() -> ClienteClassificador:
    """Cliente singleton, criado com a configuracao atual na primeira chamada."""
    global _cliente
    if _cliente is None:
        _cliente = ClienteClassificador(api_key=config.PERSPECTIVE_API_KEY)
    return _cliente
