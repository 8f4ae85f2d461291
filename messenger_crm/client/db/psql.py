from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from messenger_crm.db.session import SessionLocal

SessionFactory = Callable[[], Session]


@contextmanager
def session_scope(factory: SessionFactory | None = None) -> Iterator[Session]:
    db = (factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def upsert_statement(db: Session, table):
    """
    Dialect-native INSERT that supports ``on_conflict_do_update``.
    PostgreSQL and SQLite share the same construct.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"upsert is not supported for dialect {dialect}")
