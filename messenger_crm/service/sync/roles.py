"""Sender role resolution for Graph API messages.

Stored roles follow the schema vocabulary: ``user`` is the counterparty
(customer), ``page`` is self (the operator's page).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable


class SenderRole(str, Enum):
    COUNTERPARTY = "user"
    SELF = "page"


def resolve_sender_role(sender_id: Any, psid: str, page_id: str | None = None) -> SenderRole:
    """
    Classify a message sender. Pure and total.

    The thread's counterparty id is the primary signal because it is always
    known from the participant list. The page id, when available, only
    confirms the self side. Any sender that matches neither is treated as
    SELF: an unidentified sender must not make a thread look like it is
    waiting on the operator, which would make it eligible for follow-up.
    """
    if sender_id is not None and str(sender_id) == str(psid):
        return SenderRole.COUNTERPARTY
    if page_id is not None and sender_id is not None and str(sender_id) == str(page_id):
        return SenderRole.SELF
    return SenderRole.SELF


def _participant_list(thread: dict[str, Any]) -> list[dict[str, Any]]:
    for key in ("participants", "senders"):
        block = thread.get(key)
        if isinstance(block, dict):
            block = block.get("data")
        if isinstance(block, list):
            return [p for p in block if isinstance(p, dict)]
    return []


def pick_counterparty(
    participants: Iterable[dict[str, Any]], page_id: str | None = None
) -> dict[str, Any] | None:
    """
    The participant that is not the page. Without a page id only a
    single-participant list is unambiguous; anything else yields None.
    """
    candidates = [p for p in participants if p.get("id")]
    if page_id is None:
        return candidates[0] if len(candidates) == 1 else None
    for participant in candidates:
        if str(participant["id"]) != str(page_id):
            return participant
    return None


def thread_counterparty(thread: dict[str, Any], page_id: str | None = None) -> dict[str, Any] | None:
    return pick_counterparty(_participant_list(thread), page_id)
