from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from messenger_crm.client.meta.graph import GraphClient
from messenger_crm.errors import MetaApiError

logger = logging.getLogger(__name__)

STOP_EXHAUSTED = "exhausted"
STOP_MAX_PAGES = "max_pages"
STOP_REMOTE_ERROR = "remote_error"
STOP_DEADLINE = "deadline"


@dataclass
class PageWalk:
    threads: list[dict[str, Any]] = field(default_factory=list)
    pages_fetched: int = 0
    stop_reason: str = STOP_EXHAUSTED
    error: str | None = None


async def walk_conversation_pages(
    graph: GraphClient,
    max_pages: int,
    page_size: int,
    message_limit: int = 5,
    deadline: float | None = None,
) -> PageWalk:
    """
    Follow the conversations cursor for at most ``max_pages`` requests.

    A remote error or an elapsed ``deadline`` (a ``time.monotonic()`` value)
    ends the walk early; pages already fetched are kept. Nothing is raised,
    since each sync is incremental and a partial result is still useful.
    """
    walk = PageWalk()
    url, params = graph.conversations_request(page_size, message_limit)

    while True:
        if walk.pages_fetched >= max_pages:
            walk.stop_reason = STOP_MAX_PAGES
            break
        if deadline is not None and time.monotonic() >= deadline:
            walk.stop_reason = STOP_DEADLINE
            break

        try:
            page = await graph.get_json(url, params)
        except MetaApiError as exc:
            logger.warning("conversation page %s failed: %s", walk.pages_fetched + 1, exc.message)
            walk.stop_reason = STOP_REMOTE_ERROR
            walk.error = exc.message
            break

        walk.pages_fetched += 1
        data = page.get("data")
        if isinstance(data, list):
            walk.threads.extend(t for t in data if isinstance(t, dict))
        count = len(data) if isinstance(data, list) else 0
        logger.info("fetched conversation page %s (%s threads)", walk.pages_fetched, count)

        paging = page.get("paging")
        next_url = paging.get("next") if isinstance(paging, dict) else None
        if not next_url:
            walk.stop_reason = STOP_EXHAUSTED
            break
        # the cursor URL already carries every query parameter
        url, params = next_url, None

    return walk
