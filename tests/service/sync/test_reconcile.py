from datetime import datetime, timezone

from sqlalchemy import func, select

from messenger_crm.client.db.psql import session_scope
from messenger_crm.db.models import Conversation, Message
from messenger_crm.service.status import StatusVocabulary
from messenger_crm.service.sync.reconcile import reconcile_thread
from messenger_crm.utils.clock import as_utc

T = "2024-05-01T10:00:00+0000"
T_DT = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def _msg(mid: str, sender_id: str, text: str | None, created: str, name: str | None = None) -> dict:
    sender = {"id": sender_id}
    if name is not None:
        sender["name"] = name
    message = {"id": mid, "from": sender, "created_time": created}
    if text is not None:
        message["message"] = text
    return message


def _thread(messages: list[dict], participant_name: str = "Unknown", updated: str = T) -> dict:
    return {
        "id": "t_1",
        "updated_time": updated,
        "participants": {"data": [{"id": "P1", "name": participant_name}, {"id": "PAGE", "name": "Shop"}]},
        "messages": {"data": messages},
    }


def _reconcile(session_factory, thread: dict, **kwargs):
    with session_scope(session_factory) as db:
        return reconcile_thread(db, thread, page_id="PAGE", **kwargs)


def _conversation(session_factory) -> Conversation:
    with session_scope(session_factory) as db:
        row = db.execute(select(Conversation).where(Conversation.psid == "P1")).scalar_one()
        db.expunge(row)
        return row


def _messages(session_factory) -> list[Message]:
    with session_scope(session_factory) as db:
        rows = db.execute(select(Message).order_by(Message.created_at.asc())).scalars().all()
        for row in rows:
            db.expunge(row)
        return rows


def _count(session_factory, model) -> int:
    with session_scope(session_factory) as db:
        return db.execute(select(func.count()).select_from(model)).scalar_one()


def test_example_thread_end_to_end(session_factory):
    thread = {
        "participants": [{"id": "P1", "name": "Unknown"}],
        "updated_time": T,
        "messages": [{"id": "M9", "from": {"id": "P1", "name": "Ana"}, "message": "Hi", "created_time": T}],
    }

    with session_scope(session_factory) as db:
        outcome = reconcile_thread(db, thread)

    assert outcome is not None
    conversation = _conversation(session_factory)
    assert conversation.customer_name == "Ana"
    assert conversation.last_message_by == "user"
    assert conversation.last_message_preview == "Hi"
    assert as_utc(conversation.last_interaction_at) == T_DT
    assert conversation.status == "needs_follow_up"
    assert conversation.unread_count == 0

    messages = _messages(session_factory)
    assert len(messages) == 1
    assert messages[0].meta_message_id == "M9"
    assert messages[0].content == "Hi"
    assert messages[0].sender_type == "user"
    assert messages[0].conversation_id == conversation.id


def test_reconcile_twice_is_idempotent(session_factory):
    thread = _thread(
        [
            _msg("M1", "P1", "Buna ziua", "2024-05-01T09:00:00+0000", name="Ana"),
            _msg("M2", "PAGE", "Salut!", "2024-05-01T09:30:00+0000"),
        ]
    )

    first = _reconcile(session_factory, thread)
    second = _reconcile(session_factory, thread)

    assert first.conversation_id == second.conversation_id
    assert _count(session_factory, Conversation) == 1
    assert _count(session_factory, Message) == 2


def test_same_remote_id_updates_instead_of_duplicating(session_factory):
    _reconcile(session_factory, _thread([_msg("M1", "P1", "first body", T)]))
    _reconcile(session_factory, _thread([_msg("M1", "P1", "edited body", T)]))

    messages = _messages(session_factory)
    assert len(messages) == 1
    assert messages[0].content == "edited body"


def test_thread_without_counterparty_is_skipped(session_factory):
    thread = {"id": "t_2", "participants": {"data": [{"id": "PAGE"}]}, "messages": {"data": []}}

    assert _reconcile(session_factory, thread) is None
    assert _count(session_factory, Conversation) == 0


def test_message_name_overrides_participant_name(session_factory):
    thread = _thread(
        [
            _msg("M1", "P1", "old", "2024-05-01T08:00:00+0000", name="Old Name"),
            _msg("M2", "P1", "new", "2024-05-01T09:00:00+0000", name="Ana"),
        ],
        participant_name="Unknown",
    )

    outcome = _reconcile(session_factory, thread)

    assert outcome.customer_name == "Ana"


def test_participant_name_kept_when_message_has_no_name(session_factory):
    outcome = _reconcile(session_factory, _thread([_msg("M1", "P1", "hey", T)], participant_name="Elena"))

    assert outcome.customer_name == "Elena"


def test_newest_message_wins_regardless_of_source_order(session_factory):
    # oldest first on purpose; the page replied last
    thread = _thread(
        [
            _msg("M1", "P1", "Cat costa?", "2024-05-01T08:00:00+0000"),
            _msg("M2", "PAGE", None, "2024-05-01T09:00:00+0000"),
        ]
    )

    _reconcile(session_factory, thread)

    conversation = _conversation(session_factory)
    assert conversation.last_message_by == "page"
    assert conversation.last_message_preview == "[Attachment]"
    assert conversation.status == "active"
    assert as_utc(conversation.last_interaction_at) == datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def test_only_newest_messages_are_stored(session_factory):
    thread = _thread([_msg(f"M{i}", "P1", f"text {i}", f"2024-05-01T0{i}:00:00+0000") for i in range(1, 8)])

    outcome = _reconcile(session_factory, thread, message_limit=5)

    assert outcome.messages_upserted == 5
    assert [m.meta_message_id for m in _messages(session_factory)] == ["M3", "M4", "M5", "M6", "M7"]


def test_messages_without_remote_id_are_skipped(session_factory):
    thread = _thread([{"from": {"id": "P1"}, "message": "no id", "created_time": T}])

    outcome = _reconcile(session_factory, thread)

    assert outcome.messages_upserted == 0
    assert _count(session_factory, Message) == 0


def test_repeat_sync_keeps_follow_up_suppression(session_factory):
    thread = _thread([_msg("M1", "P1", "hello", T)])
    _reconcile(session_factory, thread)
    with session_scope(session_factory) as db:
        row = db.execute(select(Conversation).where(Conversation.psid == "P1")).scalar_one()
        row.auto_reply_sent = True

    _reconcile(session_factory, thread)
    assert _conversation(session_factory).auto_reply_sent is True

    newer = _thread([_msg("M1", "P1", "hello", T), _msg("M2", "P1", "still there?", "2024-05-01T11:00:00+0000")])
    _reconcile(session_factory, newer)
    assert _conversation(session_factory).auto_reply_sent is False


def test_stale_sync_does_not_regress_local_state(session_factory):
    _reconcile(session_factory, _thread([_msg("M1", "P1", "hello", T)]))
    later = datetime(2024, 5, 2, 8, 0, tzinfo=timezone.utc)
    with session_scope(session_factory) as db:
        row = db.execute(select(Conversation).where(Conversation.psid == "P1")).scalar_one()
        row.last_interaction_at = later
        row.last_message_by = "page"
        row.last_message_preview = "draft"
        row.status = "active"
        row.unread_count = 3

    _reconcile(session_factory, _thread([_msg("M1", "P1", "hello", T)]))

    conversation = _conversation(session_factory)
    assert as_utc(conversation.last_interaction_at) == later
    assert conversation.last_message_by == "page"
    assert conversation.last_message_preview == "draft"
    assert conversation.unread_count == 0


def test_archived_status_survives_sync(session_factory):
    _reconcile(session_factory, _thread([_msg("M1", "P1", "hello", T)]))
    with session_scope(session_factory) as db:
        db.execute(select(Conversation)).scalar_one().status = "archived"

    _reconcile(session_factory, _thread([_msg("M2", "P1", "again", "2024-05-01T12:00:00+0000")]))

    assert _conversation(session_factory).status == "archived"


def test_legacy_vocabulary_stores_legacy_values(session_factory):
    _reconcile(session_factory, _thread([_msg("M1", "P1", "hello", T)]), vocabulary=StatusVocabulary("legacy"))

    assert _conversation(session_factory).status == "follow-up"


def test_threads_listing_page_first_are_not_merged_without_page_id(session_factory):
    threads = [
        {
            "id": f"t_{psid}",
            "updated_time": T,
            "participants": {"data": [{"id": "PAGE", "name": "Shop"}, {"id": psid, "name": "Client"}]},
            "messages": {"data": [_msg(mid, psid, "hello", T)]},
        }
        for psid, mid in (("A", "m1"), ("B", "m2"))
    ]

    with session_scope(session_factory) as db:
        outcomes = [reconcile_thread(db, thread) for thread in threads]

    assert outcomes == [None, None]
    assert _count(session_factory, Conversation) == 0
