"""Error taxonomy shared by the services and the HTTP layer.

Every error carries a machine-checkable ``code`` so callers can tell a
configuration problem (fix settings, do not retry) from a remote failure.
"""

from __future__ import annotations

from typing import Any


class CrmError(Exception):
    code = "CRM_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(CrmError):
    code = "CONFIGURATION_ERROR"


class MissingAccessTokenError(ConfigurationError):
    code = "MISSING_TOKEN"

    def __init__(self, account_id: str) -> None:
        super().__init__("Missing Meta access token. Please configure it in Settings.")
        self.account_id = account_id


class MissingSecretError(ConfigurationError):
    code = "MISSING_SECRET"

    def __init__(self, name: str) -> None:
        super().__init__(f"Missing {name}. Please configure it.")
        self.name = name


class MetaApiError(CrmError):
    code = "META_API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


class ConversationNotFoundError(CrmError):
    code = "NOT_FOUND"

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"conversation {conversation_id} not found")
        self.conversation_id = conversation_id
