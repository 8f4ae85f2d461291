from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

import messenger_crm.config.config as configs
from messenger_crm.db.models import Conversation
from messenger_crm.service.status import ConversationStatus, StatusVocabulary, get_vocabulary
from messenger_crm.service.sync.roles import SenderRole, resolve_sender_role, thread_counterparty
from messenger_crm.service.sync.upsert import upsert_conversation, upsert_message
from messenger_crm.utils.clock import as_utc, parse_graph_time, utcnow

logger = logging.getLogger(__name__)


@dataclass
class ReconciledThread:
    conversation_id: str
    psid: str
    customer_name: str
    last_message_by: str | None
    messages_upserted: int


def _thread_messages(thread: dict[str, Any]) -> list[dict[str, Any]]:
    block = thread.get("messages")
    if isinstance(block, dict):
        block = block.get("data")
    if not isinstance(block, list):
        return []
    return [m for m in block if isinstance(m, dict)]


def sort_newest_first(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Newest first; messages without a parseable time sort last."""
    def key(message: dict[str, Any]) -> tuple[int, float]:
        created = parse_graph_time(message.get("created_time"))
        if created is None:
            return (1, 0.0)
        return (0, -created.timestamp())

    return sorted(messages, key=key)


def _sender(message: dict[str, Any]) -> dict[str, Any]:
    sender = message.get("from")
    return sender if isinstance(sender, dict) else {}


def message_text(message: dict[str, Any]) -> str:
    text = message.get("message")
    if isinstance(text, str) and text.strip():
        return text
    return configs.ATTACHMENT_PLACEHOLDER


def resolve_customer_name(
    participant: dict[str, Any],
    ordered: list[dict[str, Any]],
    psid: str,
    page_id: str | None,
) -> str:
    """
    Participant-list names are often generic, so the name attached to the
    newest counterparty message wins when it is present.
    """
    for message in ordered:
        sender = _sender(message)
        if resolve_sender_role(sender.get("id"), psid, page_id) is SenderRole.COUNTERPARTY:
            name = sender.get("name")
            if isinstance(name, str) and name.strip():
                return name.strip()
            break
    name = participant.get("name")
    if isinstance(name, str) and name.strip():
        return name.strip()
    return configs.UNKNOWN_CUSTOMER


def reconcile_thread(
    db: Session,
    thread: dict[str, Any],
    page_id: str | None = None,
    message_limit: int = 5,
    vocabulary: StatusVocabulary | None = None,
) -> ReconciledThread | None:
    """
    Merge one remote thread into storage.

    Returns None when the thread has no counterparty to key on. Storage errors
    propagate so the caller can roll back this thread alone.
    """
    vocabulary = vocabulary or get_vocabulary()

    participant = thread_counterparty(thread, page_id)
    if participant is None:
        logger.info("skipping thread %s: no counterparty", thread.get("id"))
        return None
    psid = str(participant["id"])

    ordered = sort_newest_first(_thread_messages(thread))
    customer_name = resolve_customer_name(participant, ordered, psid, page_id)

    newest = ordered[0] if ordered else None
    newest_time = parse_graph_time(newest.get("created_time")) if newest else None
    last_interaction_at = newest_time or parse_graph_time(thread.get("updated_time"))

    last_message_by: str | None = None
    preview: str | None = None
    status = ConversationStatus.ACTIVE
    if newest is not None:
        role = resolve_sender_role(_sender(newest).get("id"), psid, page_id)
        last_message_by = role.value
        preview = message_text(newest)
        if role is SenderRole.COUNTERPARTY:
            status = ConversationStatus.NEEDS_FOLLOW_UP

    existing = db.execute(select(Conversation).where(Conversation.psid == psid)).scalar_one_or_none()

    update_values: dict[str, Any] = {"customer_name": customer_name, "unread_count": 0}
    stored_at = as_utc(existing.last_interaction_at) if existing is not None else None
    advances = last_interaction_at is not None and (stored_at is None or last_interaction_at >= stored_at)
    if advances:
        update_values["last_interaction_at"] = last_interaction_at
    if advances and newest is not None:
        stored_status = status
        if existing is not None and vocabulary.is_archived(existing.status):
            stored_status = ConversationStatus.ARCHIVED
        update_values.update(
            status=vocabulary.to_stored(stored_status),
            last_message_by=last_message_by,
            last_message_preview=preview,
        )
    if stored_at is None or (last_interaction_at is not None and last_interaction_at > stored_at):
        # a message newer than anything stored re-arms the follow-up pipeline
        update_values["auto_reply_sent"] = False

    insert_values = {
        "customer_name": customer_name,
        "status": vocabulary.to_stored(status),
        "last_interaction_at": last_interaction_at or utcnow(),
        "last_message_by": last_message_by,
        "last_message_preview": preview,
        "unread_count": 0,
        "auto_reply_sent": False,
    }
    conversation_id = upsert_conversation(db, psid, insert_values, update_values)

    upserted = 0
    # oldest first, within the newest ``message_limit``
    for message in reversed(ordered[:message_limit]):
        remote_id = message.get("id")
        if not remote_id:
            continue
        created_at = parse_graph_time(message.get("created_time")) or last_interaction_at or utcnow()
        upsert_message(
            db,
            conversation_id=conversation_id,
            content=message_text(message),
            sender_type=resolve_sender_role(_sender(message).get("id"), psid, page_id).value,
            created_at=created_at,
            meta_message_id=str(remote_id),
        )
        upserted += 1

    return ReconciledThread(
        conversation_id=conversation_id,
        psid=psid,
        customer_name=customer_name,
        last_message_by=last_message_by,
        messages_upserted=upserted,
    )

