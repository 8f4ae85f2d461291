import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy import select, update

import messenger_crm.config.config as configs
from messenger_crm.api.deps import get_account_id, get_drafter, get_graph_client, get_session_factory
from messenger_crm.client.db.psql import SessionFactory, session_scope
from messenger_crm.client.meta.graph import GraphClient
from messenger_crm.db.models import Conversation, Message
from messenger_crm.errors import ConversationNotFoundError, MissingSecretError
from messenger_crm.model.conversation.conversation_request import SendMessageRequest, UpdateStatusRequest
from messenger_crm.model.conversation.conversation_response import (
    ConversationItem,
    ConversationListResponse,
    MessageItem,
    MessageListResponse,
    SendMessageResponse,
)
from messenger_crm.model.followup.followup_response import FollowUpResponse, ProcessedFollowUp
from messenger_crm.model.settings.settings_request import SettingsRequest, SettingsResponse
from messenger_crm.model.sync.sync_response import SyncResponse
from messenger_crm.service.followup.drafting import TextGenerator, run_follow_ups
from messenger_crm.service.outbound.send import send_operator_message
from messenger_crm.service.settings.credentials import has_access_token, save_access_token
from messenger_crm.service.status import ConversationStatus, get_vocabulary
from messenger_crm.service.sync.sync import sync_conversations

api_router = APIRouter()


@api_router.get("/conversations", response_model=ConversationListResponse)
def list_conversations(
    status: Optional[ConversationStatus] = Query(default=None),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    stmt = select(Conversation).order_by(Conversation.last_interaction_at.desc())
    if status is not None:
        stmt = stmt.where(Conversation.status.in_(get_vocabulary().stored_values(status)))
    with session_scope(session_factory) as db:
        rows = db.execute(stmt).scalars().all()
        items = [ConversationItem.model_validate(row) for row in rows]
    return ConversationListResponse(conversations=items)


@api_router.get("/conversations/{conversation_id}/messages", response_model=MessageListResponse)
def list_messages(
    conversation_id: str,
    session_factory: SessionFactory = Depends(get_session_factory),
):
    with session_scope(session_factory) as db:
        if db.get(Conversation, conversation_id) is None:
            raise ConversationNotFoundError(conversation_id)
        rows = db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc())
        ).scalars().all()
        items = [MessageItem.model_validate(row) for row in rows]
    return MessageListResponse(conversation_id=conversation_id, messages=items)


@api_router.patch("/conversations/{conversation_id}", response_model=ConversationItem)
def update_conversation_status(
    conversation_id: str,
    req: UpdateStatusRequest,
    session_factory: SessionFactory = Depends(get_session_factory),
):
    with session_scope(session_factory) as db:
        updated = db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(status=get_vocabulary().to_stored(req.status))
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount != 1:
            raise ConversationNotFoundError(conversation_id)
        row = db.get(Conversation, conversation_id)
        db.refresh(row)
        return ConversationItem.model_validate(row)


@api_router.post("/conversations/{conversation_id}/messages", response_model=SendMessageResponse)
async def send_message(
    conversation_id: str,
    req: SendMessageRequest,
    session_factory: SessionFactory = Depends(get_session_factory),
    graph: GraphClient = Depends(get_graph_client),
):
    result = await send_operator_message(session_factory, graph, conversation_id, req.text)
    return SendMessageResponse(message_id=result.message_id, meta_message_id=result.meta_message_id)


@api_router.post("/sync", response_model=SyncResponse)
async def sync(
    diagnostics: bool = Query(default=False),
    session_factory: SessionFactory = Depends(get_session_factory),
    graph: GraphClient = Depends(get_graph_client),
):
    result = await sync_conversations(session_factory, graph)
    return SyncResponse(
        count=result.processed,
        skipped=result.skipped,
        failed=result.failed,
        pages=result.pages,
        stop_reason=result.stop_reason,
        message=f"Synced {result.processed} conversations.",
        logs=result.logs if diagnostics else None,
    )


def require_cron_secret(authorization: str = Header(default="")) -> None:
    secret = configs.CRON_SECRET
    if not secret:
        raise MissingSecretError("CRON_SECRET")
    if not hmac.compare_digest(authorization, f"Bearer {secret}"):
        raise HTTPException(status_code=401, detail="Unauthorized")


@api_router.post("/cron/follow-up", response_model=FollowUpResponse, dependencies=[Depends(require_cron_secret)])
async def follow_up(
    session_factory: SessionFactory = Depends(get_session_factory),
    generate: TextGenerator = Depends(get_drafter),
):
    result = await run_follow_ups(session_factory, generate)
    return FollowUpResponse(
        candidates=result.candidates,
        failed=result.failed,
        skipped=result.skipped,
        processed=[ProcessedFollowUp(id=d.conversation_id, response=d.response) for d in result.processed],
    )


@api_router.get("/settings", response_model=SettingsResponse)
def read_settings(
    account_id: str = Depends(get_account_id),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    with session_scope(session_factory) as db:
        configured = has_access_token(db, account_id)
    return SettingsResponse(user_id=account_id, has_access_token=configured)


@api_router.put("/settings", response_model=SettingsResponse)
def write_settings(
    req: SettingsRequest,
    account_id: str = Depends(get_account_id),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    with session_scope(session_factory) as db:
        save_access_token(db, account_id, req.meta_page_access_token)
    return SettingsResponse(user_id=account_id, has_access_token=bool(req.meta_page_access_token and req.meta_page_access_token.strip()))
