from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from messenger_crm.client.db.psql import upsert_statement
from messenger_crm.db.models import Setting
from messenger_crm.errors import MissingAccessTokenError


def get_access_token(db: Session, account_id: str) -> str:
    """Stored page token for ``account_id``; a missing one is a configuration error."""
    token = db.execute(
        select(Setting.meta_page_access_token).where(Setting.user_id == account_id)
    ).scalar_one_or_none()
    if not token or not token.strip():
        raise MissingAccessTokenError(account_id)
    return token.strip()


def has_access_token(db: Session, account_id: str) -> bool:
    try:
        get_access_token(db, account_id)
    except MissingAccessTokenError:
        return False
    return True


def save_access_token(db: Session, account_id: str, token: str | None) -> None:
    table = Setting.__table__
    value = token.strip() if token and token.strip() else None
    stmt = upsert_statement(db, table).values(user_id=account_id, meta_page_access_token=value)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.user_id],
        set_={"meta_page_access_token": value, "updated_at": func.now()},
    )
    db.execute(stmt)
