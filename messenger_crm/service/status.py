"""Conversation status vocabulary.

Status is a closed set of three meanings. The strings stored for them differ
between schema generations, so every read and write goes through a mapping
table selected by ``STATUS_SCHEMA``.
"""

from __future__ import annotations

from enum import Enum

import messenger_crm.config.config as configs


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    NEEDS_FOLLOW_UP = "needs_follow_up"


STATUS_TABLES: dict[str, dict[ConversationStatus, str]] = {
    "current": {
        ConversationStatus.ACTIVE: "active",
        ConversationStatus.ARCHIVED: "archived",
        ConversationStatus.NEEDS_FOLLOW_UP: "needs_follow_up",
    },
    "legacy": {
        ConversationStatus.ACTIVE: "unsold",
        ConversationStatus.ARCHIVED: "sold",
        ConversationStatus.NEEDS_FOLLOW_UP: "follow-up",
    },
}

# Extra stored values accepted on read only
READ_ALIASES: dict[str, dict[str, ConversationStatus]] = {
    "current": {},
    "legacy": {"new": ConversationStatus.ACTIVE},
}


class StatusVocabulary:
    def __init__(self, schema: str) -> None:
        if schema not in STATUS_TABLES:
            raise ValueError(f"unknown status schema: {schema}")
        self.schema = schema
        self._to_stored = STATUS_TABLES[schema]
        self._from_stored = {value: key for key, value in self._to_stored.items()}
        self._from_stored.update(READ_ALIASES.get(schema, {}))

    def to_stored(self, status: ConversationStatus) -> str:
        return self._to_stored[ConversationStatus(status)]

    def from_stored(self, value: str) -> ConversationStatus:
        try:
            return self._from_stored[value]
        except KeyError:
            raise ValueError(f"unknown stored status {value!r} for schema {self.schema}") from None

    def is_archived(self, value: str) -> bool:
        return self._from_stored.get(value) is ConversationStatus.ARCHIVED

    def stored_values(self, status: ConversationStatus) -> list[str]:
        return [stored for stored, meaning in self._from_stored.items() if meaning == status]


def get_vocabulary() -> StatusVocabulary:
    return StatusVocabulary(configs.STATUS_SCHEMA)
