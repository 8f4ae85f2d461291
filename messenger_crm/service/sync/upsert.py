"""Keyed upserts for conversations and messages.

Every write here is ``INSERT ... ON CONFLICT DO UPDATE`` against the unique
keys (``conversations.psid``, ``messages.meta_message_id``), so repeated or
concurrent deliveries of the same remote data converge on one row.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from messenger_crm.client.db.psql import upsert_statement
from messenger_crm.db.models import Conversation, Message


def upsert_conversation(
    db: Session,
    psid: str,
    insert_values: dict[str, Any],
    update_values: dict[str, Any],
) -> str:
    """
    Insert a conversation for ``psid`` or update the existing one.
    ``update_values`` may hold SQL expressions over the existing row.
    Returns the local conversation id.
    """
    table = Conversation.__table__
    stmt = upsert_statement(db, table).values(id=str(uuid.uuid4()), psid=psid, **insert_values)
    if update_values:
        stmt = stmt.on_conflict_do_update(index_elements=[table.c.psid], set_=update_values)
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=[table.c.psid])
    db.execute(stmt)
    return db.execute(select(Conversation.id).where(Conversation.psid == psid)).scalar_one()


def upsert_message(
    db: Session,
    conversation_id: str,
    content: str,
    sender_type: str,
    created_at: datetime,
    meta_message_id: str | None,
) -> str:
    """Insert a message, merging on ``meta_message_id`` when one is given."""
    if meta_message_id is None:
        message = Message(
            conversation_id=conversation_id,
            content=content,
            sender_type=sender_type,
            created_at=created_at,
        )
        db.add(message)
        db.flush()
        return message.id

    table = Message.__table__
    stmt = upsert_statement(db, table).values(
        id=str(uuid.uuid4()),
        conversation_id=conversation_id,
        content=content,
        sender_type=sender_type,
        meta_message_id=meta_message_id,
        created_at=created_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.meta_message_id],
        set_={
            "conversation_id": stmt.excluded.conversation_id,
            "content": stmt.excluded.content,
            "sender_type": stmt.excluded.sender_type,
            "created_at": stmt.excluded.created_at,
        },
    )
    db.execute(stmt)
    return db.execute(
        select(Message.id).where(Message.meta_message_id == meta_message_id)
    ).scalar_one()
