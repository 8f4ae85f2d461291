import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from messenger_crm.api.deps import get_session_factory
from messenger_crm.client.meta.graph import GraphClient
from messenger_crm.db import models  # noqa: F401
from messenger_crm.db.session import Base, build_engine
from messenger_crm.main import app


@pytest.fixture(scope="function")
def session_factory():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    engine.dispose()


#scope : function < class < module < package < session
@pytest.fixture(scope="function")
def client(session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def make_graph():
    def _make(handler, token: str = "token-123") -> GraphClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return GraphClient(token, http, api_version="v19.0")

    return _make
