"""Shared fixtures: in-memory database, users, services and an API client."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STORE_RETRY_BACKOFF_SECONDS", "0")

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.config import settings
from app.core.presence import presence
from app.db.session import Base, get_db
from app.models.message import Message, MessageType
from app.models.user import User
from app.services.conversation_service import ConversationService
from app.services.message_service import MessageService
from app.utils.clock import utcnow


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    """Factory for users owned by the identity service."""

    def _make(username, display_name=None, **kwargs):
        user = User(
            username=username,
            display_name=display_name if display_name is not None else username.title(),
            email=f"{username}@example.com",
            **kwargs,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol")


@pytest.fixture
def dave(make_user):
    return make_user("dave")


@pytest.fixture
def conversations(db):
    return ConversationService(db)


@pytest.fixture
def messages(db):
    return MessageService(db)


@pytest.fixture
def group(conversations, alice, bob, carol):
    """Group with alice as admin, bob and carol as members."""
    return conversations.create_conversation(alice.id, [bob.id, carol.id], name="Weekend plans", is_group=True)


@pytest.fixture
def direct(conversations, alice, bob):
    return conversations.create_conversation(alice.id, [bob.id])


@pytest.fixture
def seed_messages(db):
    """Insert text messages with explicit, strictly increasing timestamps.

    Timestamps start an hour in the past so anything sent afterwards through
    the service sorts after them.
    """

    def _seed(conversation, sender, count, start=None):
        start = start or utcnow() - timedelta(hours=1)
        rows = []
        for i in range(count):
            message = Message(
                conversation_id=conversation.id,
                sender_id=sender.id,
                message_type=MessageType.text,
                content=f"message {i}",
                created_at=start + timedelta(seconds=i),
            )
            db.add(message)
            rows.append(message)
        db.commit()
        return rows

    return _seed


@pytest.fixture(autouse=True)
def clear_presence():
    presence.reset()
    yield
    presence.reset()


def make_token(user_id) -> str:
    return jwt.encode({"sub": str(user_id)}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {make_token(user.id)}"}

    return _headers


@pytest.fixture
def client(db):
    """API client sharing the test session; lifespan is not started."""
    from main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
