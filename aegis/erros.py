"""
Taxonomia de erros do Aegis.

Cada erro carrega o status HTTP e o corpo que a API devolve. O handler
registrado em aegis.api.main transforma qualquer ErroAegis em JSON plano:
  {"error": ..., "message": ..., **extras}

ClassificadorIndisponivel e FalhaEntrega sao internos: o primeiro e
absorvido pelo scorer lexical, o segundo vira contador de falhas do webhook.
"""


class ErroAegis(Exception):
    status_code: int = 500
    erro: str = "Erro interno"

    def __init__(self, mensagem: str | None = None, erro: str | None = None, **extras):
        self.mensagem = mensagem
        if erro:
            self.erro = erro
        self.extras = extras
        super().__init__(mensagem or self.erro)

    def corpo(self) -> dict:
        corpo = {"error": self.erro}
        if self.mensagem:
            corpo["message"] = self.mensagem
        corpo.update(self.extras)
        return corpo


class CredencialInvalida(ErroAegis):
    status_code = 401
    erro = "Credencial invalida"


class CotaExcedida(ErroAegis):
    status_code = 429
    erro = "Limite excedido"

    def __init__(self, limite: int, mensagem: str | None = None, erro: str | None = None):
        self.limite = limite
        super().__init__(mensagem, erro, limit=limite)


class NaoEncontrado(ErroAegis):
    status_code = 404
    erro = "Recurso nao encontrado"


class RequisicaoInvalida(ErroAegis):
    status_code = 400
    erro = "Requisicao invalida"


class Conflito(ErroAegis):
    status_code = 409
    erro = "Conflito"


class ClassificadorIndisponivel(ErroAegis):
    status_code = 503
    erro = "Classificador indisponivel"


class FalhaEntrega(ErroAegis):
    status_code = 502
    erro = "Falha na entrega do webhook"
