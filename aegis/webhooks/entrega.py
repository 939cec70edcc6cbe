"""
Entrega de um evento para um webhook.

Corpo: JSON compacto {"event", "timestamp", "data"}.
Headers:
  Content-Type: application/json
  X-Aegis-Event: nome do evento
  X-Aegis-Signature: sha256=<hex do HMAC-SHA256 do corpo com o segredo>
                     (so quando o webhook tem segredo)

Resultado alimenta o contador de falhas: qualquer resposta fora de 2xx ou
erro de transporte soma 1. Ao chegar em WEBHOOK_MAX_FAILURES o webhook e
desativado e so volta por reativacao explicita. Entrega com sucesso zera
o contador e marca o ultimo disparo.
"""

import hashlib
import hmac
import json
import uuid

import httpx
from sqlalchemy import func, select, update

from aegis.config import config
from aegis.erros import FalhaEntrega
from aegis.modelos.base import agora_utc, obter_sessao
from aegis.modelos.webhooks import Webhook
from aegis.utils.logging_config import obter_logger

log = obter_logger("webhooks_entrega")


def montar_corpo(evento: str, timestamp: str, dados: dict) -> bytes:
    return json.dumps(
        {"event": evento, "timestamp": timestamp, "data": dados},
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def assinar(corpo: bytes, segredo: str) -> str:
    digest = hmac.new(segredo.encode("utf-8"), corpo, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def montar_headers(evento: str, corpo: bytes, segredo: str | None) -> dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "X-Aegis-Event": evento,
    }
    if segredo:
        headers["X-Aegis-Signature"] = assinar(corpo, segredo)
    return headers


def _enviar(url: str, corpo: bytes, headers: dict[str, str]) -> None:
    try:
        resposta = httpx.post(
            url, content=corpo, headers=headers, timeout=config.WEBHOOK_TIMEOUT
        )
    except httpx.HTTPError as e:
        raise FalhaEntrega(f"erro de transporte: {e}") from e

    if not resposta.is_success:
        raise FalhaEntrega(f"status {resposta.status_code}")


def _carregar_destino(webhook_id: uuid.UUID) -> tuple[str, str | None] | None:
    """URL e segredo do webhook, ou None se ele sumiu ou esta inativo."""
    sessao = obter_sessao()
    try:
        webhook = sessao.get(Webhook, webhook_id)
        if webhook is None or not webhook.ativo:
            return None
        return webhook.url, webhook.segredo
    finally:
        sessao.close()


def _registrar_falha(webhook_id: uuid.UUID) -> tuple[int, bool]:
    """Soma 1 as falhas num unico UPDATE e desativa ao chegar no maximo."""
    sessao = obter_sessao()
    try:
        sessao.execute(
            update(Webhook)
            .where(Webhook.id == webhook_id)
            .values(contagem_falhas=func.coalesce(Webhook.contagem_falhas, 0) + 1)
        )
        desativados = sessao.execute(
            update(Webhook)
            .where(
                Webhook.id == webhook_id,
                Webhook.ativo.is_(True),
                Webhook.contagem_falhas >= config.WEBHOOK_MAX_FAILURES,
            )
            .values(ativo=False)
        ).rowcount
        falhas = sessao.execute(
            select(Webhook.contagem_falhas).where(Webhook.id == webhook_id)
        ).scalar_one_or_none()
        sessao.commit()
        return falhas or 0, bool(desativados)
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()


def _registrar_sucesso(webhook_id: uuid.UUID) -> None:
    sessao = obter_sessao()
    try:
        sessao.execute(
            update(Webhook)
            .where(Webhook.id == webhook_id)
            .values(contagem_falhas=0, ultimo_disparo_em=agora_utc())
        )
        sessao.commit()
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()


def entregar(webhook_id: uuid.UUID, evento: str, timestamp: str, dados: dict) -> bool:
    """
    Envia um evento para o webhook e atualiza o estado dele.
    Retorna True se o destino respondeu 2xx. Webhook ausente ou inativo nao e chamado.
    Nenhuma sessao fica aberta durante o POST.
    """
    destino = _carregar_destino(webhook_id)
    if destino is None:
        log.info("webhook_ignorado", webhook_id=str(webhook_id), evento=evento)
        return False

    url, segredo = destino
    corpo = montar_corpo(evento, timestamp, dados)
    headers = montar_headers(evento, corpo, segredo)

    try:
        _enviar(url, corpo, headers)
    except FalhaEntrega as e:
        falhas, desativado = _registrar_falha(webhook_id)
        if desativado:
            log.warning("webhook_desativado", webhook_id=str(webhook_id), falhas=falhas)
        log.error(
            "webhook_falhou",
            webhook_id=str(webhook_id),
            evento=evento,
            falhas=falhas,
            erro=str(e),
        )
        return False

    _registrar_sucesso(webhook_id)
    log.info("webhook_entregue", webhook_id=str(webhook_id), evento=evento)
    return True
