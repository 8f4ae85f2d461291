from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import messenger_crm.config.config as configs
from messenger_crm.client.db.psql import SessionFactory, session_scope
from messenger_crm.db.models import Conversation, Message
from messenger_crm.service.followup.eligibility import FollowUpCandidate, find_follow_up_candidates
from messenger_crm.service.status import ConversationStatus, StatusVocabulary, get_vocabulary
from messenger_crm.service.sync.roles import SenderRole
from messenger_crm.utils.clock import utcnow

logger = logging.getLogger(__name__)

TextGenerator = Callable[[str], Awaitable["str | None"]]

ROLE_LABELS = {
    SenderRole.SELF.value: "Agent",
    SenderRole.COUNTERPARTY.value: "Client",
}


class AlreadyDrafted(Exception):
    """Another run recorded a follow-up for this conversation first."""


@dataclass
class DraftedFollowUp:
    conversation_id: str
    message_id: str
    response: str


@dataclass
class FollowUpRunResult:
    candidates: int = 0
    processed: list[DraftedFollowUp] = field(default_factory=list)
    failed: int = 0
    skipped: int = 0


def load_history(db: Session, conversation_id: str, limit: int) -> list[Message]:
    """The ``limit`` newest messages, returned oldest first."""
    newest_first = db.execute(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.desc())
        .limit(limit)
    ).scalars().all()
    return list(reversed(newest_first))


def render_prompt(customer_name: str, history: list[Message], locale: str | None = None) -> str:
    locale = locale or configs.FOLLOW_UP_LOCALE
    transcript = "\n".join(
        f"{ROLE_LABELS.get(m.sender_type, 'Agent')}: {m.content}" for m in history
    )
    return (
        f"Context: follow up with the client {customer_name}, who has not answered for almost a day.\n"
        f"Conversation so far (oldest first):\n{transcript}\n"
        f"Task: write exactly one short, casual, friendly follow-up sentence in {locale} "
        "that picks up where the conversation stopped and asks if they still have questions. "
        'Avoid generic filler such as "just checking in" or "hope you are well". '
        "Reply with the sentence only."
    )


def record_draft(
    db: Session,
    conversation_id: str,
    text: str,
    now: datetime,
    vocabulary: StatusVocabulary,
) -> str:
    """
    Store the drafted message and suppress re-drafting in the same transaction.
    The conversation update only matches while ``auto_reply_sent`` is false.
    """
    updated = db.execute(
        update(Conversation)
        .where(Conversation.id == conversation_id)
        .where(Conversation.auto_reply_sent.is_(False))
        .values(
            auto_reply_sent=True,
            status=vocabulary.to_stored(ConversationStatus.ACTIVE),
            last_interaction_at=now,
            last_message_by=SenderRole.SELF.value,
            last_message_preview=text,
        )
        .execution_options(synchronize_session=False)
    )
    if updated.rowcount != 1:
        raise AlreadyDrafted(conversation_id)

    message = Message(
        conversation_id=conversation_id,
        content=text,
        sender_type=SenderRole.SELF.value,
        created_at=now,
    )
    db.add(message)
    db.flush()
    return message.id


async def draft_follow_up(
    session_factory: SessionFactory,
    generate: TextGenerator,
    candidate: FollowUpCandidate,
    now: datetime | None = None,
    vocabulary: StatusVocabulary | None = None,
) -> DraftedFollowUp | None:
    """None when generation fails; raises AlreadyDrafted if another run won."""
    vocabulary = vocabulary or get_vocabulary()

    with session_scope(session_factory) as db:
        history = load_history(db, candidate.conversation_id, configs.FOLLOW_UP_HISTORY_LIMIT)
        prompt = render_prompt(candidate.customer_name, history)

    try:
        raw = await generate(prompt)
    except Exception:
        logger.exception("generator failed for conversation %s", candidate.conversation_id)
        return None
    text = raw.strip() if isinstance(raw, str) else ""
    if not text:
        logger.warning("empty follow-up for conversation %s", candidate.conversation_id)
        return None

    with session_scope(session_factory) as db:
        message_id = record_draft(db, candidate.conversation_id, text, now or utcnow(), vocabulary)

    return DraftedFollowUp(conversation_id=candidate.conversation_id, message_id=message_id, response=text)


async def run_follow_ups(
    session_factory: SessionFactory,
    generate: TextGenerator,
    now: datetime | None = None,
    vocabulary: StatusVocabulary | None = None,
) -> FollowUpRunResult:
    now = now or utcnow()
    vocabulary = vocabulary or get_vocabulary()

    with session_scope(session_factory) as db:
        candidates = find_follow_up_candidates(db, now, vocabulary)

    result = FollowUpRunResult(candidates=len(candidates))
    for candidate in candidates:
        try:
            drafted = await draft_follow_up(session_factory, generate, candidate, now, vocabulary)
        except AlreadyDrafted:
            logger.info("conversation %s already drafted by another run", candidate.conversation_id)
            result.skipped += 1
            continue
        except SQLAlchemyError:
            logger.exception("failed to store follow-up for conversation %s", candidate.conversation_id)
            drafted = None
        if drafted is None:
            result.failed += 1
            continue
        result.processed.append(drafted)

    logger.info(
        "follow-up run candidates=%s drafted=%s failed=%s skipped=%s",
        result.candidates,
        len(result.processed),
        result.failed,
        result.skipped,
    )
    return result
