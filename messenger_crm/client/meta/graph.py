from __future__ import annotations

import logging
from typing import Any

import httpx

import messenger_crm.config.config as configs
from messenger_crm.errors import MetaApiError

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.facebook.com"


def _error_message(payload: Any, default: str) -> str:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return default


class GraphClient:
    """Thin async wrapper over the Graph API calls the CRM needs."""

    def __init__(
        self,
        access_token: str,
        http: httpx.AsyncClient,
        api_version: str | None = None,
    ) -> None:
        self.access_token = access_token
        self.http = http
        self.api_version = api_version or configs.META_GRAPH_API_VERSION

    def url(self, path: str) -> str:
        return f"{GRAPH_BASE_URL}/{self.api_version}/{path.lstrip('/')}"

    def conversations_request(self, page_size: int, message_limit: int) -> tuple[str, dict[str, Any]]:
        fields = (
            "id,updated_time,participants,"
            f"messages.limit({message_limit}){{id,message,from,created_time}}"
        )
        params = {
            "platform": "messenger",
            "fields": fields,
            "limit": page_size,
            "access_token": self.access_token,
        }
        return self.url("me/conversations"), params

    async def get_json(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        GET a Graph resource. Raises MetaApiError on transport errors, HTTP
        errors, non-JSON bodies and Graph error payloads.
        """
        try:
            response = await self.http.get(url, params=params)
        except httpx.RequestError as exc:
            raise MetaApiError(f"graph request failed: {exc.__class__.__name__}") from exc
        try:
            payload = response.json()
        except ValueError:
            raise MetaApiError("graph returned a non-JSON body", status_code=response.status_code) from None
        if not isinstance(payload, dict):
            raise MetaApiError("graph returned an unexpected body", status_code=response.status_code)
        if response.status_code >= 400 or "error" in payload:
            raise MetaApiError(
                _error_message(payload, f"graph status {response.status_code}"),
                status_code=response.status_code,
                payload=payload,
            )
        return payload

    async def me(self) -> dict[str, Any]:
        return await self.get_json(self.url("me"), {"access_token": self.access_token})

    async def send_message(self, recipient_id: str, text: str) -> str:
        """Send a text reply. Returns the remote message id."""
        try:
            response = await self.http.post(
                self.url("me/messages"),
                params={"access_token": self.access_token},
                json={
                    "recipient": {"id": recipient_id},
                    "message": {"text": text},
                    "messaging_type": "RESPONSE",
                },
            )
        except httpx.RequestError as exc:
            logger.exception("messenger send failed")
            raise MetaApiError(f"send failed: {exc.__class__.__name__}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.status_code >= 400 or not isinstance(payload, dict) or "error" in payload:
            logger.warning("messenger send rejected status=%s", response.status_code)
            raise MetaApiError(
                _error_message(payload, f"send rejected with status {response.status_code}"),
                status_code=response.status_code,
                payload=payload if isinstance(payload, dict) else None,
            )
        message_id = payload.get("message_id")
        if not message_id:
            raise MetaApiError("send acknowledged without a message id", status_code=response.status_code, payload=payload)
        return str(message_id)


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=configs.HTTP_TIMEOUT_SEC)
