from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select, update

from messenger_crm.client.db.psql import SessionFactory, session_scope
from messenger_crm.client.meta.graph import GraphClient
from messenger_crm.db.models import Conversation
from messenger_crm.errors import ConversationNotFoundError
from messenger_crm.service.status import ConversationStatus, StatusVocabulary, get_vocabulary
from messenger_crm.service.sync.roles import SenderRole
from messenger_crm.service.sync.upsert import upsert_message
from messenger_crm.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    message_id: str
    meta_message_id: str


async def send_operator_message(
    session_factory: SessionFactory,
    graph: GraphClient,
    conversation_id: str,
    text: str,
    vocabulary: StatusVocabulary | None = None,
) -> SendResult:
    """
    Send ``text`` to the conversation's counterparty. Nothing is stored unless
    Meta acknowledges the send; rejections raise MetaApiError to the caller.
    """
    vocabulary = vocabulary or get_vocabulary()

    with session_scope(session_factory) as db:
        psid = db.execute(
            select(Conversation.psid).where(Conversation.id == conversation_id)
        ).scalar_one_or_none()
    if psid is None:
        raise ConversationNotFoundError(conversation_id)

    meta_message_id = await graph.send_message(psid, text)

    now = utcnow()
    with session_scope(session_factory) as db:
        message_id = upsert_message(
            db,
            conversation_id=conversation_id,
            content=text,
            sender_type=SenderRole.SELF.value,
            created_at=now,
            meta_message_id=meta_message_id,
        )
        db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(
                last_interaction_at=now,
                last_message_by=SenderRole.SELF.value,
                last_message_preview=text,
                status=vocabulary.to_stored(ConversationStatus.ACTIVE),
                auto_reply_sent=False,
            )
            .execution_options(synchronize_session=False)
        )

    logger.info("sent message conversation=%s meta_message_id=%s", conversation_id, meta_message_id)
    return SendResult(message_id=message_id, meta_message_id=meta_message_id)
