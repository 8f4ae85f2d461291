import pytest

from messenger_crm.service.status import ConversationStatus, StatusVocabulary


def test_current_schema_maps_to_itself():
    vocabulary = StatusVocabulary("current")

    assert vocabulary.to_stored(ConversationStatus.NEEDS_FOLLOW_UP) == "needs_follow_up"
    assert vocabulary.from_stored("archived") is ConversationStatus.ARCHIVED


def test_legacy_schema_uses_mapping_table():
    vocabulary = StatusVocabulary("legacy")

    assert vocabulary.to_stored(ConversationStatus.ACTIVE) == "unsold"
    assert vocabulary.to_stored(ConversationStatus.ARCHIVED) == "sold"
    assert vocabulary.from_stored("follow-up") is ConversationStatus.NEEDS_FOLLOW_UP
    assert vocabulary.from_stored("new") is ConversationStatus.ACTIVE
    assert sorted(vocabulary.stored_values(ConversationStatus.ACTIVE)) == ["new", "unsold"]


def test_unknown_values_are_rejected():
    with pytest.raises(ValueError):
        StatusVocabulary("current").from_stored("sold")
    with pytest.raises(ValueError):
        StatusVocabulary("v3")
