"""
Fixtures compartilhadas.

O ambiente e configurado antes de qualquer import do aegis: SQLite em
memoria, Celery em modo eager (entregas de webhook rodam inline) e sem
API key do Perspective (classificador cai no scorer lexical).
"""

import itertools
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["PERSPECTIVE_API_KEY"] = ""
os.environ["JWT_SECRET"] = "segredo-de-teste"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from aegis.acesso.chaves import criar_chave  # noqa: E402
from aegis.acesso.planos import Plano  # noqa: E402
from aegis.api.main import app  # noqa: E402
from aegis.contas.seguranca import criar_jwt, hash_senha  # noqa: E402
from aegis.modelos import Base, Usuario, obter_engine, obter_sessao  # noqa: E402

SENHA_PADRAO = "senha-forte-123"
_HASH_SENHA_PADRAO = hash_senha(SENHA_PADRAO)


@pytest.fixture(autouse=True)
def banco():
    engine = obter_engine()
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def criar_usuario():
    contador = itertools.count(1)

    def _criar(plano: Plano = Plano.FREE, ativo: bool = True) -> Usuario:
        n = next(contador)
        sessao = obter_sessao()
        try:
            usuario = Usuario(
                nome=f"Usuario {n}",
                email=f"usuario{n}@exemplo.com",
                hash_senha=_HASH_SENHA_PADRAO,
                plano=int(plano),
                ativo=ativo,
            )
            sessao.add(usuario)
            sessao.commit()
            return usuario
        finally:
            sessao.close()

    return _criar


@pytest.fixture
def usuario(criar_usuario):
    return criar_usuario()


@pytest.fixture
def cabecalho_jwt():
    def _cabecalho(usuario: Usuario) -> dict:
        token, _ = criar_jwt(usuario.id, usuario.email, usuario.plano_tipo.rotulo)
        return {"Authorization": f"Bearer {token}"}

    return _cabecalho


@pytest.fixture
def chave(usuario):
    return criar_chave(usuario.id, "Chave de teste")


@pytest.fixture
def alterar_registro():
    """Altera colunas de um registro direto no banco (datas, contadores, flags)."""

    def _alterar(modelo, registro_id, **valores):
        sessao = obter_sessao()
        try:
            registro = sessao.get(modelo, registro_id)
            for campo, valor in valores.items():
                setattr(registro, campo, valor)
            sessao.commit()
        finally:
            sessao.close()

    return _alterar


@pytest.fixture
def ler_registro():
    def _ler(modelo, registro_id):
        sessao = obter_sessao()
        try:
            return sessao.get(modelo, registro_id)
        finally:
            sessao.close()

    return _ler
