from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from llama_index.core import Document
from llama_index.core.embeddings import MockEmbedding
from llama_index.core.llms import MockLLM
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from simbank.api.deps import db
from simbank.core.security import create_access_token
from simbank.db.base import Base
from simbank.main import app
from simbank.models.account import Account  # noqa: F401
from simbank.models.audit_log import AuditLog  # noqa: F401
from simbank.models.transaction import Transaction  # noqa: F401
from simbank.models.user import User
from simbank.services.chat import ChatEngine, ChatSettings, get_chat_engine


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture()
def session(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


def _mk_user(session, role: str = "viewer") -> User:
    u = User(username=f"user-{uuid4().hex[:10]}", password_hash="!", role=role)
    session.add(u)
    session.commit()
    session.refresh(u)
    return u


def _headers(u: User) -> dict:
    token = create_access_token(sub=u.username, uid=u.id, role=u.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def user(session):
    return _mk_user(session)


@pytest.fixture()
def admin(session):
    return _mk_user(session, role="admin")


@pytest.fixture()
def auth_headers(user):
    return _headers(user)


@pytest.fixture()
def other_headers(session):
    return _headers(_mk_user(session))


@pytest.fixture()
def admin_headers(admin):
    return _headers(admin)


CHAT_DOCS = [
    Document(
        text="Savings accounts earn simple daily interest on the running balance.",
        metadata={"file_name": "savings.md"},
    ),
]


@pytest.fixture()
def chat_engine():
    return ChatEngine(
        ChatSettings(model="test-model", top_k=1),
        llm=MockLLM(),
        embed_model=MockEmbedding(embed_dim=8),
        documents=CHAT_DOCS,
    )


@pytest.fixture()
def client(session_factory, chat_engine):
    def _db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[db] = _db
    app.dependency_overrides[get_chat_engine] = lambda: chat_engine
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
