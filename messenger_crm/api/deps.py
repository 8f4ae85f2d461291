from typing import AsyncIterator

from fastapi import Depends, Header

import messenger_crm.config.config as configs
from messenger_crm.client.db.psql import SessionFactory, session_scope
from messenger_crm.client.llm.chatgpt import ChatGPTDrafter, build_client
from messenger_crm.client.meta.graph import GraphClient, build_http_client
from messenger_crm.db.session import SessionLocal
from messenger_crm.service.settings.credentials import get_access_token


def get_session_factory() -> SessionFactory:
    return SessionLocal


def get_account_id(x_account_id: str = Header(default="")) -> str:
    return x_account_id or configs.DEFAULT_ACCOUNT_ID


async def get_graph_client(
    account_id: str = Depends(get_account_id),
    session_factory: SessionFactory = Depends(get_session_factory),
) -> AsyncIterator[GraphClient]:
    # raises MissingAccessTokenError before any remote call is made
    with session_scope(session_factory) as db:
        token = get_access_token(db, account_id)
    http = build_http_client()
    try:
        yield GraphClient(token, http)
    finally:
        await http.aclose()


def get_drafter() -> ChatGPTDrafter:
    return ChatGPTDrafter(build_client())
