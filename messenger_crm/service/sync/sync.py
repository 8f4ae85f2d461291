from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

import messenger_crm.config.config as configs
from messenger_crm.client.db.psql import SessionFactory, session_scope
from messenger_crm.client.meta.graph import GraphClient
from messenger_crm.errors import MetaApiError
from messenger_crm.service.status import StatusVocabulary, get_vocabulary
from messenger_crm.service.sync.pagination import STOP_REMOTE_ERROR, walk_conversation_pages
from messenger_crm.service.sync.reconcile import reconcile_thread

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    pages: int = 0
    stop_reason: str = ""
    page_id: str | None = None
    logs: list[str] = field(default_factory=list)


async def resolve_page_id(graph: GraphClient) -> str | None:
    try:
        me = await graph.me()
    except MetaApiError as exc:
        logger.warning("could not resolve page id: %s", exc.message)
        return None
    page_id = me.get("id")
    return str(page_id) if page_id else None


async def sync_conversations(
    session_factory: SessionFactory,
    graph: GraphClient,
    max_pages: int | None = None,
    page_size: int | None = None,
    message_limit: int | None = None,
    deadline_sec: float | None = None,
    vocabulary: StatusVocabulary | None = None,
) -> SyncResult:
    """
    Pull recent threads and reconcile them into storage.

    Each thread commits in its own transaction, so one bad thread never costs
    the others. The result is a summary, never an exception, for per-thread
    and per-page failures.
    """
    max_pages = max_pages if max_pages is not None else configs.SYNC_MAX_PAGES
    page_size = page_size if page_size is not None else configs.SYNC_PAGE_SIZE
    message_limit = message_limit if message_limit is not None else configs.SYNC_MESSAGES_PER_THREAD
    deadline_sec = deadline_sec if deadline_sec is not None else configs.SYNC_DEADLINE_SEC
    vocabulary = vocabulary or get_vocabulary()

    result = SyncResult()
    result.page_id = await resolve_page_id(graph)
    if result.page_id is None:
        # without the page id a thread's customer cannot be told apart from the page
        result.stop_reason = STOP_REMOTE_ERROR
        result.logs.append("sync aborted: page id unavailable")
        return result

    deadline = time.monotonic() + deadline_sec if deadline_sec and deadline_sec > 0 else None
    walk = await walk_conversation_pages(
        graph,
        max_pages=max_pages,
        page_size=page_size,
        message_limit=message_limit,
        deadline=deadline,
    )
    result.pages = walk.pages_fetched
    result.stop_reason = walk.stop_reason
    if walk.error:
        result.logs.append(f"pagination stopped: {walk.error}")

    for thread in walk.threads:
        thread_id = thread.get("id")
        try:
            with session_scope(session_factory) as db:
                outcome = reconcile_thread(
                    db,
                    thread,
                    page_id=result.page_id,
                    message_limit=message_limit,
                    vocabulary=vocabulary,
                )
        except SQLAlchemyError:
            logger.exception("failed to reconcile thread %s", thread_id)
            result.failed += 1
            result.logs.append(f"thread {thread_id}: storage error")
            continue

        if outcome is None:
            result.skipped += 1
            result.logs.append(f"thread {thread_id}: skipped, no counterparty")
            continue
        result.processed += 1
        result.logs.append(
            f"thread {thread_id}: {outcome.customer_name} ({outcome.messages_upserted} messages)"
        )

    logger.info(
        "sync finished processed=%s skipped=%s failed=%s pages=%s stop=%s",
        result.processed,
        result.skipped,
        result.failed,
        result.pages,
        result.stop_reason,
    )
    return result
