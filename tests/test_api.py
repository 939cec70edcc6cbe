"""
Testes da API FastAPI do Aegis, ponta a ponta sobre SQLite em memoria.
"""

import json
import uuid
from unittest.mock import MagicMock, patch

import httpx
import structlog

from aegis.modelos import ChaveAPI, LogRequisicao, Usuario, Webhook, obter_sessao
from aegis.webhooks.disparo import criar_webhook

ALVO_POST = "aegis.webhooks.entrega.httpx.post"


def _registrar(client, email="ana@exemplo.com", senha="senha-forte-123"):
    resp = client.post(
        "/v1/auth/register", json={"name": "Ana", "email": email, "password": senha}
    )
    assert resp.status_code == 201
    return {"Authorization": f"Bearer {resp.json()['token']}"}


class TestHealth:

    def test_health_retorna_200(self, client):
        resp = client.get("/v1/health")
        assert resp.status_code == 200
        dados = resp.json()
        assert dados["status"] == "healthy"
        assert "version" in dados
        assert "timestamp" in dados


class TestGate:

    def test_sem_credencial_retorna_401(self, client):
        resp = client.post("/v1/moderation/analyze", json={"text": "oi"})
        assert resp.status_code == 401
        corpo = resp.json()
        assert corpo["error"]
        assert "X-Api-Key" in corpo["message"]

    def test_key_invalida_retorna_401(self, client):
        resp = client.post(
            "/v1/moderation/analyze",
            json={"text": "oi"},
            headers={"X-Api-Key": "aegis_" + "0" * 40},
        )
        assert resp.status_code == 401
        assert resp.json()["error"] == "API key invalida"

    def test_token_invalido_retorna_401(self, client):
        resp = client.post(
            "/v1/moderation/analyze",
            json={"text": "oi"},
            headers={"X-Access-Token": "aegis_nada"},
        )
        assert resp.status_code == 401

    def test_api_key_vence_quando_ha_dois_headers(self, client, chave, ler_registro):
        resp = client.post(
            "/v1/moderation/analyze",
            json={"text": "oi"},
            headers={"X-Api-Key": chave.chave, "X-Access-Token": "aegis_qualquer"},
        )
        assert resp.status_code == 200
        assert ler_registro(ChaveAPI, chave.id).requisicoes_hoje == 1

    def test_principal_chega_ao_contexto_do_log_da_moderacao(self, client, chave):
        contextos = []
        log_falso = MagicMock()
        log_falso.info.side_effect = lambda *a, **k: contextos.append(
            structlog.contextvars.get_contextvars()
        )

        with patch("aegis.moderacao.orquestrador.log", log_falso):
            resp = client.post(
                "/v1/moderation/analyze",
                json={"text": "bom dia"},
                headers={"X-Api-Key": chave.chave},
            )

        assert resp.status_code == 200
        assert contextos[-1]["principal"] == "api_key"
        assert contextos[-1]["principal_id"] == str(chave.id)
        assert contextos[-1]["rota"] == "/v1/moderation/analyze"

    def test_token_chega_ao_contexto_do_log(self, client):
        token = client.post("/v1/tokens/generate").json()["token"]
        contextos = []
        log_falso = MagicMock()
        log_falso.info.side_effect = lambda *a, **k: contextos.append(
            structlog.contextvars.get_contextvars()
        )

        with patch("aegis.moderacao.orquestrador.log", log_falso):
            client.post(
                "/v1/moderation/analyze", json={"text": "oi"}, headers={"X-Access-Token": token}
            )

        assert contextos[-1]["principal"] == "token"

    def test_usuario_chega_ao_contexto_do_log_das_keys(
        self, client, chave, usuario, cabecalho_jwt
    ):
        contextos = []
        log_falso = MagicMock()
        log_falso.info.side_effect = lambda *a, **k: contextos.append(
            structlog.contextvars.get_contextvars()
        )

        with patch("aegis.acesso.chaves.log", log_falso):
            resp = client.post(f"/v1/keys/{chave.id}/revoke", headers=cabecalho_jwt(usuario))

        assert resp.status_code == 200
        assert contextos[-1]["usuario_id"] == str(usuario.id)


class TestModeracao:

    def test_analise_com_api_key(self, client, chave):
        resp = client.post(
            "/v1/moderation/analyze",
            json={"text": "you are an idiot", "include_all_scores": True},
            headers={"X-Api-Key": chave.chave},
        )
        assert resp.status_code == 200
        dados = resp.json()
        assert dados["is_toxic"] is True
        assert dados["toxicity_score"] == 0.85
        assert dados["all_scores"]["TOXICITY"] == 0.85
        assert dados["analyzed_text"] == "you are an idiot"

    def test_texto_vazio_retorna_400(self, client, chave):
        resp = client.post(
            "/v1/moderation/analyze", json={"text": "  "}, headers={"X-Api-Key": chave.chave}
        )
        assert resp.status_code == 400

    def test_corpo_invalido_retorna_400(self, client, chave):
        resp = client.post(
            "/v1/moderation/analyze", json={}, headers={"X-Api-Key": chave.chave}
        )
        assert resp.status_code == 400
        assert resp.json()["details"]

    def test_limiar_fora_do_intervalo_retorna_400(self, client, chave):
        resp = client.post(
            "/v1/moderation/analyze",
            json={"text": "oi", "toxicity_threshold": 1.5},
            headers={"X-Api-Key": chave.chave},
        )
        assert resp.status_code == 400

    def test_cem_chamadas_e_a_centesima_primeira_bloqueia(self, client, chave, usuario):
        criar_webhook(usuario.id, "limite", "https://hooks.exemplo.com/limite", ["RateLimitReached"])
        cabecalho = {"X-Api-Key": chave.chave}

        with patch(ALVO_POST, return_value=httpx.Response(200)) as post:
            for _ in range(100):
                resp = client.post(
                    "/v1/moderation/analyze", json={"text": "bom dia"}, headers=cabecalho
                )
                assert resp.status_code == 200
            post.assert_not_called()

            resp = client.post(
                "/v1/moderation/analyze", json={"text": "bom dia"}, headers=cabecalho
            )

        assert resp.status_code == 429
        assert resp.json()["limit"] == 100

        post.assert_called_once()
        kwargs = post.call_args.kwargs
        assert kwargs["headers"]["X-Aegis-Event"] == "RateLimitReached"
        corpo = json.loads(kwargs["content"])
        assert corpo["data"] == {"api_key_id": str(chave.id), "api_key_name": "Chave de teste"}

    def test_lote_de_101_nao_tem_efeito(self, client, chave, ler_registro):
        resp = client.post(
            "/v1/moderation/analyze/batch",
            json={"texts": ["texto"] * 101},
            headers={"X-Api-Key": chave.chave},
        )
        assert resp.status_code == 400
        assert ler_registro(ChaveAPI, chave.id).requisicoes_hoje == 0

    def test_lote(self, client, chave, ler_registro):
        resp = client.post(
            "/v1/moderation/analyze/batch",
            json={"texts": ["bom dia", "stupid"]},
            headers={"X-Api-Key": chave.chave},
        )
        assert resp.status_code == 200
        dados = resp.json()
        assert dados["total_analyzed"] == 2
        assert dados["toxic_count"] == 1
        assert ler_registro(ChaveAPI, chave.id).requisicoes_hoje == 2

    def test_evento_de_conteudo_toxico(self, client, chave, usuario):
        criar_webhook(usuario.id, "toxico", "https://hooks.exemplo.com/t", ["ToxicContent"], "abc")
        with patch(ALVO_POST, return_value=httpx.Response(204)) as post:
            resp = client.post(
                "/v1/moderation/analyze",
                json={"text": "kill them"},
                headers={"X-Api-Key": chave.chave},
            )
        assert resp.status_code == 200
        kwargs = post.call_args.kwargs
        assert kwargs["headers"]["X-Aegis-Event"] == "ToxicContent"
        assert kwargs["headers"]["X-Aegis-Signature"].startswith("sha256=")


class TestTokens:

    def test_fluxo_de_token(self, client):
        ip = {"X-Forwarded-For": "198.51.100.7, 10.0.0.1"}
        primeiro = client.post("/v1/tokens/generate", headers=ip)
        segundo = client.post("/v1/tokens/generate", headers=ip)
        terceiro = client.post("/v1/tokens/generate", headers=ip)

        assert primeiro.status_code == 200
        assert segundo.status_code == 200
        assert primeiro.json()["expires_in_minutes"] == 30
        assert terceiro.status_code == 429
        assert terceiro.json()["limit"] == 2

        token = primeiro.json()["token"]
        resp = client.post(
            "/v1/moderation/analyze",
            json={"text": "hello"},
            headers={"X-Access-Token": token},
        )
        assert resp.status_code == 200

        status = client.get("/v1/tokens/status", headers={"X-Access-Token": token})
        assert status.status_code == 200
        assert status.json()["request_count"] == 1
        assert 0 < status.json()["remaining_minutes"] <= 30

    def test_ip_real_por_header(self, client):
        for _ in range(2):
            client.post("/v1/tokens/generate", headers={"X-Real-IP": "192.0.2.1"})
        outro_ip = client.post("/v1/tokens/generate", headers={"X-Real-IP": "192.0.2.2"})
        assert outro_ip.status_code == 200

    def test_status_sem_token(self, client):
        resp = client.get("/v1/tokens/status")
        assert resp.status_code == 401
        assert resp.json()["error"] == "Token nao fornecido"


class TestKeys:

    def test_sem_jwt_retorna_401(self, client):
        assert client.get("/v1/keys").status_code == 401

    def test_criar_listar_revogar_excluir(self, client):
        cabecalho = _registrar(client)

        criada = client.post("/v1/keys", json={"name": "producao"}, headers=cabecalho)
        assert criada.status_code == 201
        chave = criada.json()
        assert chave["key"].startswith("aegis_")
        assert chave["warning"]

        lista = client.get("/v1/keys", headers=cabecalho).json()
        assert len(lista) == 1
        assert lista[0]["key"] == f"{chave['key'][:8]}...{chave['key'][-4:]}"

        revogada = client.post(f"/v1/keys/{chave['id']}/revoke", headers=cabecalho)
        assert revogada.status_code == 200
        resp = client.post(
            "/v1/moderation/analyze", json={"text": "oi"}, headers={"X-Api-Key": chave["key"]}
        )
        assert resp.status_code == 401

        assert client.delete(f"/v1/keys/{chave['id']}", headers=cabecalho).status_code == 204
        assert client.get("/v1/keys", headers=cabecalho).json() == []

    def test_chave_de_outro_usuario_retorna_404(self, client, chave):
        intruso = _registrar(client, email="intruso@exemplo.com")
        assert client.delete(f"/v1/keys/{chave.id}", headers=intruso).status_code == 404
        assert client.post(f"/v1/keys/{chave.id}/revoke", headers=intruso).status_code == 404

    def test_limite_de_chaves_do_plano(self, client):
        cabecalho = _registrar(client)
        for i in range(5):
            assert client.post("/v1/keys", json={"name": f"k{i}"}, headers=cabecalho).status_code == 201
        resp = client.post("/v1/keys", json={"name": "k5"}, headers=cabecalho)
        assert resp.status_code == 400
        assert resp.json()["limit"] == 5


class TestWebhooksApi:

    def test_ciclo_de_vida(self, client, alterar_registro):
        cabecalho = _registrar(client)
        criado = client.post(
            "/v1/webhooks",
            json={
                "name": "alertas",
                "url": "https://hooks.exemplo.com/aegis",
                "secret": "s3gredo",
                "events": ["HighToxicity", "RateLimitReached"],
            },
            headers=cabecalho,
        )
        assert criado.status_code == 201
        webhook = criado.json()
        assert webhook["events"] == ["HighToxicity", "RateLimitReached"]
        assert webhook["is_active"] is True
        assert "secret" not in webhook

        alterar_registro(Webhook, uuid.UUID(webhook["id"]), ativo=False, contagem_falhas=10)
        reativado = client.post(f"/v1/webhooks/{webhook['id']}/enable", headers=cabecalho)
        assert reativado.json()["is_active"] is True
        assert reativado.json()["failure_count"] == 0

        assert len(client.get("/v1/webhooks", headers=cabecalho).json()) == 1
        assert client.delete(f"/v1/webhooks/{webhook['id']}", headers=cabecalho).status_code == 204
        assert client.get("/v1/webhooks", headers=cabecalho).json() == []

    def test_evento_invalido_retorna_400(self, client):
        cabecalho = _registrar(client)
        resp = client.post(
            "/v1/webhooks",
            json={"name": "x", "url": "https://a.exemplo.com", "events": ["Spam"]},
            headers=cabecalho,
        )
        assert resp.status_code == 400

    def test_url_invalida_retorna_400(self, client):
        cabecalho = _registrar(client)
        resp = client.post(
            "/v1/webhooks", json={"name": "x", "url": "nao-e-url"}, headers=cabecalho
        )
        assert resp.status_code == 400


class TestPlanos:

    def test_catalogo(self, client):
        planos = client.get("/v1/plans").json()
        assert [p["name"] for p in planos] == ["Free", "Starter", "Pro", "Enterprise"]
        assert planos[0]["daily_limit"] == 100

    def test_limites(self, client):
        limites = client.get("/v1/plans/limits").json()
        assert limites["free"] == {"daily_requests": 100, "api_keys": 5}
        assert limites["pro"]["daily_requests"] == 10000
        assert limites["enterprise"]["daily_requests"] == "unlimited"


class TestContas:

    def test_cadastro_duplicado_retorna_409(self, client):
        _registrar(client, email="ana@exemplo.com")
        resp = client.post(
            "/v1/auth/register",
            json={"name": "Outra", "email": "ANA@exemplo.com", "password": "senha-forte-123"},
        )
        assert resp.status_code == 409

    def test_login(self, client):
        _registrar(client)
        ok = client.post(
            "/v1/auth/login", json={"email": "Ana@Exemplo.com", "password": "senha-forte-123"}
        )
        assert ok.status_code == 200
        assert ok.json()["user"]["plan"] == "Free"
        assert ok.json()["user"]["daily_limit"] == 100

        errado = client.post(
            "/v1/auth/login", json={"email": "ana@exemplo.com", "password": "errada-123"}
        )
        assert errado.status_code == 401

    def test_senha_curta_retorna_400(self, client):
        resp = client.post(
            "/v1/auth/register", json={"name": "Ana", "email": "a@exemplo.com", "password": "123"}
        )
        assert resp.status_code == 400

    def test_perfil_e_atualizacao(self, client):
        cabecalho = _registrar(client)
        assert client.get("/v1/users/me", headers=cabecalho).json()["email"] == "ana@exemplo.com"

        resp = client.patch(
            "/v1/users/me", json={"name": "Ana Maria", "email": "AnaM@exemplo.com"}, headers=cabecalho
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Ana Maria"
        assert resp.json()["email"] == "anam@exemplo.com"

    def test_email_em_uso_retorna_409(self, client):
        _registrar(client, email="ocupado@exemplo.com")
        cabecalho = _registrar(client, email="ana@exemplo.com")
        resp = client.patch(
            "/v1/users/me", json={"email": "ocupado@exemplo.com"}, headers=cabecalho
        )
        assert resp.status_code == 409

    def test_estatisticas_e_logs(self, client, chave, usuario, cabecalho_jwt):
        for texto in ("bom dia", "you idiot", "boa noite"):
            client.post(
                "/v1/moderation/analyze", json={"text": texto}, headers={"X-Api-Key": chave.chave}
            )

        stats = client.get("/v1/users/me/stats", headers=cabecalho_jwt(usuario)).json()
        assert stats["requests_today"] == 3
        assert stats["requests_this_month"] == 3
        assert stats["daily_limit"] == 100
        assert stats["usage_percentage"] == 3.0
        assert len(stats["last_30_days"]) == 30
        assert stats["last_30_days"][-1]["toxic_detected"] == 1

        logs = client.get("/v1/users/me/logs?limit=2", headers=cabecalho_jwt(usuario)).json()
        assert len(logs) == 2
        assert logs[0]["endpoint"] == "/v1/moderation/analyze"

    def test_troca_de_senha(self, client):
        cabecalho = _registrar(client)
        errada = client.post(
            "/v1/users/me/password",
            json={"current_password": "nao-e-essa", "new_password": "nova-senha-456"},
            headers=cabecalho,
        )
        assert errada.status_code == 400

        ok = client.post(
            "/v1/users/me/password",
            json={"current_password": "senha-forte-123", "new_password": "nova-senha-456"},
            headers=cabecalho,
        )
        assert ok.status_code == 200
        login = client.post(
            "/v1/auth/login", json={"email": "ana@exemplo.com", "password": "nova-senha-456"}
        )
        assert login.status_code == 200

    def test_excluir_conta_em_cascata(self, client, chave, usuario, cabecalho_jwt):
        criar_webhook(usuario.id, "w", "https://a.exemplo.com", ["ToxicContent"])
        client.post(
            "/v1/moderation/analyze", json={"text": "oi"}, headers={"X-Api-Key": chave.chave}
        )

        resp = client.delete("/v1/users/me", headers=cabecalho_jwt(usuario))
        assert resp.status_code == 204

        sessao = obter_sessao()
        try:
            for modelo in (Usuario, ChaveAPI, LogRequisicao, Webhook):
                assert sessao.query(modelo).count() == 0
        finally:
            sessao.close()

        assert client.get("/v1/users/me", headers=cabecalho_jwt(usuario)).status_code == 401
