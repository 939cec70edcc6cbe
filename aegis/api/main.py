"""
API REST principal do Aegis: FastAPI.

Endpoints (todos sob /v1):
  /moderation  analise de texto e lote (API key ou token anonimo)
  /tokens      emissao e status de tokens anonimos por IP
  /keys        API keys do usuario
  /webhooks    inscricoes de webhook do usuario
  /plans       catalogo e limites
  /auth        cadastro e login
  /users       perfil, estatisticas, logs e senha
  /health      status da API
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from aegis.api.rotas.keys import router as keys_router
from aegis.api.rotas.moderacao import router as moderacao_router
from aegis.api.rotas.planos import router as planos_router
from aegis.api.rotas.tokens import router as tokens_router
from aegis.api.rotas.usuarios import router_auth, router_usuarios
from aegis.api.rotas.webhooks import router as webhooks_router
from aegis.config import config
from aegis.erros import ErroAegis
from aegis.modelos import Base, obter_engine
from aegis.modelos.base import agora_utc
from aegis.utils.logging_config import configurar_logging, obter_logger

log = obter_logger("api")

VERSAO_API = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    configurar_logging()
    if config.AUTO_CREATE_TABLES:
        Base.metadata.create_all(obter_engine())
    log.info("api_iniciada", versao=VERSAO_API, esquemas_auth=config.ESQUEMAS_AUTH)
    yield


app = FastAPI(
    title="Aegis API",
    description="Gateway de moderacao de conteudo com cotas, tokens e webhooks",
    version=VERSAO_API,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def contexto_de_log(request: Request, call_next):
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(metodo=request.method, rota=request.url.path)
    return await call_next(request)


@app.exception_handler(ErroAegis)
async def tratar_erro_aegis(request: Request, exc: ErroAegis):
    if exc.status_code >= 500:
        log.error("erro_interno", erro=exc.erro, mensagem=exc.mensagem)
    return JSONResponse(status_code=exc.status_code, content=exc.corpo())


@app.exception_handler(RequestValidationError)
async def tratar_erro_validacao(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "error": "Requisicao invalida",
            "message": "Corpo ou parametros da requisicao invalidos",
            "details": jsonable_encoder(exc.errors()),
        },
    )


app.include_router(moderacao_router, prefix="/v1/moderation", tags=["moderacao"])
app.include_router(tokens_router, prefix="/v1/tokens", tags=["tokens"])
app.include_router(keys_router, prefix="/v1/keys", tags=["keys"])
app.include_router(webhooks_router, prefix="/v1/webhooks", tags=["webhooks"])
app.include_router(planos_router, prefix="/v1/plans", tags=["planos"])
app.include_router(router_auth, prefix="/v1/auth", tags=["auth"])
app.include_router(router_usuarios, prefix="/v1/users", tags=["usuarios"])


@app.get("/")
async def root():
    """Rota raiz: aponta para docs e health."""
    return {"service": "aegis-api", "docs": "/docs", "health": "/v1/health"}


@app.get("/v1/health")
async def health():
    return {
        "status": "healthy",
        "version": VERSAO_API,
        "timestamp": agora_utc().isoformat(),
    }
