from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

import messenger_crm.config.config as configs
from messenger_crm.db.models import Conversation
from messenger_crm.service.status import ConversationStatus, StatusVocabulary, get_vocabulary
from messenger_crm.service.sync.roles import SenderRole
from messenger_crm.utils.clock import as_utc, hours_between


@dataclass(frozen=True)
class FollowUpCandidate:
    conversation_id: str
    customer_name: str


def is_within_follow_up_window(
    last_interaction_at: datetime | None,
    now: datetime,
    min_hours: float | None = None,
    max_hours: float | None = None,
) -> bool:
    """Both bounds are inclusive."""
    if last_interaction_at is None:
        return False
    min_hours = configs.FOLLOW_UP_MIN_HOURS if min_hours is None else min_hours
    max_hours = configs.FOLLOW_UP_MAX_HOURS if max_hours is None else max_hours
    elapsed = hours_between(last_interaction_at, now)
    return min_hours <= elapsed <= max_hours


def find_follow_up_candidates(
    db: Session,
    now: datetime,
    vocabulary: StatusVocabulary | None = None,
) -> list[FollowUpCandidate]:
    vocabulary = vocabulary or get_vocabulary()
    archived = vocabulary.stored_values(ConversationStatus.ARCHIVED)

    rows = db.execute(
        select(Conversation)
        .where(Conversation.last_message_by == SenderRole.COUNTERPARTY.value)
        .where(Conversation.auto_reply_sent.is_(False))
        .where(Conversation.status.not_in(archived))
        .order_by(Conversation.last_interaction_at.asc())
    ).scalars()

    return [
        FollowUpCandidate(
            conversation_id=row.id,
            customer_name=row.customer_name or configs.UNKNOWN_CUSTOMER,
        )
        for row in rows
        if is_within_follow_up_window(as_utc(row.last_interaction_at), now)
    ]
