"""
Inscricoes de webhook e disparo de eventos.

O disparo seleciona os webhooks ativos do usuario cuja inscricao contem o
evento e agenda uma entrega Celery para cada um. Quem chama (a moderacao)
nunca espera a entrega nem ve erro dela.
"""

import uuid

from sqlalchemy import select

from aegis.erros import NaoEncontrado, RequisicaoInvalida
from aegis.modelos.base import agora_utc, obter_sessao
from aegis.modelos.webhooks import EventoWebhook, Webhook
from aegis.tarefas import tarefa_entregar_webhook
from aegis.utils.logging_config import obter_logger

log = obter_logger("webhooks")


def disparar(usuario_id: uuid.UUID, evento: EventoWebhook, dados: dict) -> int:
    """Agenda a entrega do evento. Retorna quantos webhooks foram acionados."""
    bit = int(evento)
    sessao = obter_sessao()
    try:
        ids = list(
            sessao.execute(
                select(Webhook.id).where(
                    Webhook.usuario_id == usuario_id,
                    Webhook.ativo.is_(True),
                    Webhook.eventos.op("&")(bit) == bit,
                )
            ).scalars()
        )
    finally:
        sessao.close()

    if not ids:
        return 0

    timestamp = agora_utc().isoformat()
    agendados = 0
    for webhook_id in ids:
        try:
            tarefa_entregar_webhook.delay(str(webhook_id), evento.nome_evento, timestamp, dados)
            agendados += 1
        except Exception as e:
            log.error(
                "webhook_agendamento_falhou",
                webhook_id=str(webhook_id),
                evento=evento.nome_evento,
                erro=str(e),
            )

    log.info("evento_disparado", evento=evento.nome_evento, webhooks=agendados)
    return agendados


def criar_webhook(
    usuario_id: uuid.UUID,
    nome: str,
    url: str,
    eventos: list[str],
    segredo: str | None = None,
) -> Webhook:
    try:
        mascara = EventoWebhook.de_nomes(eventos)
    except ValueError as e:
        raise RequisicaoInvalida(str(e)) from e
    if mascara == EventoWebhook.NONE:
        raise RequisicaoInvalida("Informe ao menos um evento")

    sessao = obter_sessao()
    try:
        webhook = Webhook(
            usuario_id=usuario_id,
            nome=nome,
            url=url,
            segredo=segredo or None,
            eventos=int(mascara),
        )
        sessao.add(webhook)
        sessao.commit()
        log.info("webhook_criado", webhook_id=str(webhook.id), eventos=mascara.nomes())
        return webhook
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()


def listar_webhooks(usuario_id: uuid.UUID) -> list[Webhook]:
    sessao = obter_sessao()
    try:
        return list(
            sessao.execute(
                select(Webhook)
                .where(Webhook.usuario_id == usuario_id)
                .order_by(Webhook.criado_em.desc())
            ).scalars()
        )
    finally:
        sessao.close()


def _webhook_do_usuario(sessao, usuario_id: uuid.UUID, webhook_id: uuid.UUID) -> Webhook:
    webhook = sessao.execute(
        select(Webhook).where(Webhook.id == webhook_id, Webhook.usuario_id == usuario_id)
    ).scalar_one_or_none()
    if webhook is None:
        raise NaoEncontrado(erro="Webhook nao encontrado")
    return webhook


def excluir_webhook(usuario_id: uuid.UUID, webhook_id: uuid.UUID) -> None:
    sessao = obter_sessao()
    try:
        sessao.delete(_webhook_do_usuario(sessao, usuario_id, webhook_id))
        sessao.commit()
        log.info("webhook_excluido", webhook_id=str(webhook_id))
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()


def reativar_webhook(usuario_id: uuid.UUID, webhook_id: uuid.UUID) -> Webhook:
    """Volta a entregar um webhook desativado por falhas, com o contador zerado."""
    sessao = obter_sessao()
    try:
        webhook = _webhook_do_usuario(sessao, usuario_id, webhook_id)
        webhook.ativo = True
        webhook.contagem_falhas = 0
        sessao.commit()
        log.info("webhook_reativado", webhook_id=str(webhook_id))
        return webhook
    except Exception:
        sessao.rollback()
        raise
    finally:
        sessao.close()
