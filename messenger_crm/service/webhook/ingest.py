from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from messenger_crm.db.models import Conversation, Message
from messenger_crm.service.status import ConversationStatus, StatusVocabulary, get_vocabulary
from messenger_crm.service.sync.roles import SenderRole
from messenger_crm.service.sync.upsert import upsert_conversation, upsert_message
from messenger_crm.utils.clock import as_utc


@dataclass(frozen=True)
class MessagingEvent:
    psid: str
    text: str
    role: SenderRole
    mid: str | None
    sent_at: datetime


def _already_stored(db: Session, mid: str | None) -> bool:
    if not mid:
        return False
    found = db.execute(select(Message.id).where(Message.meta_message_id == mid)).first()
    return found is not None


def ingest_event(db: Session, event: MessagingEvent, vocabulary: StatusVocabulary | None = None) -> str:
    """
    Apply one webhook message: upsert the conversation by psid, then the
    message by mid. Returns the conversation id. Storage errors propagate.

    Derived fields only move forward. Follow-up is re-armed and the unread
    counter bumped only for a strictly newer message with an unseen mid.
    """
    vocabulary = vocabulary or get_vocabulary()
    table = Conversation.__table__
    inbound = event.role is SenderRole.COUNTERPARTY
    status = ConversationStatus.NEEDS_FOLLOW_UP if inbound else ConversationStatus.ACTIVE
    sent_at = as_utc(event.sent_at)

    existing = db.execute(select(Conversation).where(Conversation.psid == event.psid)).scalar_one_or_none()
    replayed = _already_stored(db, event.mid)
    stored_at = as_utc(existing.last_interaction_at) if existing is not None else None

    update_values: dict[str, Any] = {}
    if stored_at is None or sent_at >= stored_at:
        stored_status = status
        if existing is not None and vocabulary.is_archived(existing.status):
            stored_status = ConversationStatus.ARCHIVED
        update_values.update(
            status=vocabulary.to_stored(stored_status),
            last_interaction_at=sent_at,
            last_message_by=event.role.value,
            last_message_preview=event.text,
        )
    fresh = not replayed and (stored_at is None or sent_at > stored_at)
    if fresh:
        update_values["auto_reply_sent"] = False
        update_values["unread_count"] = table.c.unread_count + 1 if inbound else 0

    insert_values = {
        "status": vocabulary.to_stored(status),
        "last_interaction_at": sent_at,
        "last_message_by": event.role.value,
        "last_message_preview": event.text,
        "unread_count": 1 if inbound else 0,
        "auto_reply_sent": False,
    }
    conversation_id = upsert_conversation(db, event.psid, insert_values, update_values)
    upsert_message(
        db,
        conversation_id=conversation_id,
        content=event.text,
        sender_type=event.role.value,
        created_at=sent_at,
        meta_message_id=event.mid,
    )
    return conversation_id
