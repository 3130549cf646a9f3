# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-chat-relay")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from chat_relay.core.security import create_access_token, hash_password
from chat_relay.db.session import Base, SessionLocal
from chat_relay.db.session import get_db as app_get_session
from chat_relay.main import app as fastapi_app
from chat_relay.main import install_realtime
from chat_relay.models import Message, User
from chat_relay.realtime.delivery import DeliveryEngine
from chat_relay.realtime.presence import PresenceRegistry
from chat_relay.realtime.store import SessionRunner

TEST_PASSWORD = "correct-horse"
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest.fixture()
def engine(tmp_path) -> Generator[Engine, None, None]:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'chat.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(
    app: FastAPI, session_factory: sessionmaker[Session]
) -> Iterator[None]:
    """Point the HTTP dependency and the real-time core at the test database."""

    def _get_session_override() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[app_get_session] = _get_session_override
    install_realtime(app, session_factory)
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        install_realtime(app, SessionLocal)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[[str, str], User]:
    """Return a factory that persists users with the shared test password."""

    def _make(name: str, phone: str) -> User:
        user = User(name=name, phone=phone, password_hash=_PASSWORD_HASH)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def alice(make_user) -> User:
    return make_user("Alice", "555-1")


@pytest.fixture()
def bob(make_user) -> User:
    return make_user("Bob", "555-2")


@pytest.fixture()
def carol(make_user) -> User:
    return make_user("Carol", "555-3")


@pytest.fixture()
def make_message(db_session: Session) -> Callable[..., Message]:
    def _make(sender: User, receiver: User, text: str, **flags: bool) -> Message:
        message = Message(
            sender_id=sender.id,
            receiver_id=receiver.id,
            text=text,
            delivered=flags.get("delivered", False),
            seen=flags.get("seen", False),
        )
        db_session.add(message)
        db_session.commit()
        db_session.refresh(message)
        return message

    return _make


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest.fixture()
def presence() -> PresenceRegistry:
    return PresenceRegistry()


@pytest.fixture()
def delivery(presence: PresenceRegistry, session_factory: sessionmaker[Session]) -> DeliveryEngine:
    return DeliveryEngine(presence, SessionRunner(session_factory))
