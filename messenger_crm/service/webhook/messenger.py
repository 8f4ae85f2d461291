import hashlib
import hmac
import logging
from typing import Any, List

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError

import messenger_crm.config.config as configs
from messenger_crm.api.deps import get_session_factory
from messenger_crm.client.db.psql import SessionFactory, session_scope
from messenger_crm.service.sync.roles import SenderRole
from messenger_crm.service.webhook.ingest import MessagingEvent, ingest_event
from messenger_crm.utils.clock import from_epoch_millis, utcnow

logger = logging.getLogger(__name__)
router = APIRouter()

ACKNOWLEDGEMENT = "EVENT_RECEIVED"


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    expected = "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.strip())


def extract_messaging_events(payload: dict) -> List[MessagingEvent]:
    events: List[MessagingEvent] = []
    entries = payload.get("entry")
    if not isinstance(entries, list):
        return events
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        messaging = entry.get("messaging")
        if not isinstance(messaging, list):
            continue
        for item in messaging:
            event = _parse_event(item)
            if event is not None:
                events.append(event)
    return events


def _party_id(item: dict, key: str) -> Any:
    party = item.get(key)
    if not isinstance(party, dict):
        return None
    return party.get("id")


def _parse_event(item: Any) -> MessagingEvent | None:
    if not isinstance(item, dict):
        return None
    message = item.get("message")
    if not isinstance(message, dict):
        return None
    text = message.get("text")
    if not text:
        return None

    if message.get("is_echo"):
        # sent by the page; the counterparty is the recipient
        psid = _party_id(item, "recipient")
        role = SenderRole.SELF
    else:
        psid = _party_id(item, "sender")
        role = SenderRole.COUNTERPARTY
    if not psid:
        return None

    return MessagingEvent(
        psid=str(psid),
        text=text,
        role=role,
        mid=message.get("mid") or None,
        sent_at=from_epoch_millis(item.get("timestamp")) or utcnow(),
    )


@router.get("/webhook/messenger", response_class=PlainTextResponse)
async def messenger_verify(
    hub_mode: str = Query(default="", alias="hub.mode"),
    hub_verify_token: str = Query(default="", alias="hub.verify_token"),
    hub_challenge: str = Query(default="", alias="hub.challenge"),
):
    verify_token = configs.META_VERIFY_TOKEN
    if hub_mode == "subscribe" and verify_token and hmac.compare_digest(hub_verify_token, verify_token):
        logger.info("messenger webhook verified")
        return hub_challenge
    raise HTTPException(status_code=403, detail="invalid verify token")


@router.post("/webhook/messenger", response_class=PlainTextResponse)
async def messenger_webhook(
    request: Request,
    x_hub_signature_256: str = Header(default=""),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    body = await request.body()

    app_secret = configs.META_APP_SECRET
    if app_secret and not verify_signature(body, x_hub_signature_256, app_secret):
        raise HTTPException(status_code=401, detail="invalid signature")

    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="invalid payload")
    if not isinstance(payload, dict) or payload.get("object") != "page":
        raise HTTPException(status_code=404, detail="not a page event")

    events = extract_messaging_events(payload)
    try:
        for event in events:
            with session_scope(session_factory) as db:
                ingest_event(db, event)
    except SQLAlchemyError:
        logger.exception("failed to store webhook message")
        raise HTTPException(status_code=500, detail="storage error")

    return ACKNOWLEDGEMENT
