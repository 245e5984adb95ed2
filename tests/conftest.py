# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")

from duet_chat.api.v1 import dependencies
from duet_chat.core.security import create_access_token
from duet_chat.db.session import Base, build_engine
from duet_chat.db.session import get_db as app_get_session
from duet_chat.main import app as fastapi_app
from duet_chat.models import Chat, Message, User
from duet_chat.services.auth import LoginThrottle, clear_login_failures
from duet_chat.services.chats import ParticipantSnapshot, create_chat
from duet_chat.services.imagekit import ImageKitClient, ImageKitConfig
from duet_chat.services.realtime import SnapshotHub
from duet_chat.services.users import create_user

TEST_DB_URL = "sqlite://"

TEST_IMAGEKIT_CONFIG = ImageKitConfig(
    public_key="public_test",
    private_key="private_test",
    url_endpoint="https://ik.imagekit.io/duet",
    upload_url="https://upload.imagekit.test/api/v1/files/upload",
    api_url="https://api.imagekit.test/v1",
    timeout_seconds=5.0,
    auth_ttl_seconds=1800,
)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = build_engine(TEST_DB_URL, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess: Session, trans) -> None:  # pragma: no cover - SQLAlchemy internals
        if trans.nested and not getattr(trans._parent, "nested", False):
            session.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture(autouse=True)
def reset_login_failures() -> Iterator[None]:
    clear_login_failures()
    yield
    clear_login_failures()


@pytest.fixture()
def hub(app: FastAPI, db_session: Session) -> Iterator[SnapshotHub]:
    """A fresh snapshot hub wired into the app."""
    test_hub = SnapshotHub(session_factory=lambda: db_session)
    app.dependency_overrides[dependencies.get_hub] = lambda: test_hub
    try:
        yield test_hub
    finally:
        app.dependency_overrides.pop(dependencies.get_hub, None)


@pytest.fixture(autouse=True)
def throttle(app: FastAPI) -> Iterator[LoginThrottle]:
    test_throttle = LoginThrottle(max_attempts=3, lockout_seconds=60, redis_url="")
    app.dependency_overrides[dependencies.get_throttle] = lambda: test_throttle
    try:
        yield test_throttle
    finally:
        app.dependency_overrides.pop(dependencies.get_throttle, None)


class FakeImageKit:
    """Records ImageKit calls and answers them like the real API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.uploads: list[dict[str, Any]] = []
        self.deleted: list[str] = []
        self.fail_uploads = False
        self.fail_deletes: set[str] = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            if self.fail_uploads:
                return httpx.Response(400, json={"message": "Your request is missing file"})
            fields = _multipart_fields(request)
            self.uploads.append(fields)
            file_id = f"file_{len(self.uploads)}"
            path = f"/{fields['folder']}/{fields['fileName']}"
            return httpx.Response(
                200,
                json={
                    "fileId": file_id,
                    "name": fields["fileName"],
                    "size": 1024,
                    "filePath": path,
                    "url": f"{TEST_IMAGEKIT_CONFIG.url_endpoint}{path}",
                    "height": 64,
                    "width": 48,
                },
            )
        if request.method == "DELETE":
            file_id = request.url.path.rsplit("/", 1)[-1]
            if file_id in self.fail_deletes:
                return httpx.Response(404, json={"message": "The requested file does not exist."})
            self.deleted.append(file_id)
            return httpx.Response(204)
        return httpx.Response(405)


def _multipart_fields(request: httpx.Request) -> dict[str, Any]:
    body = request.content.decode()
    boundary = request.headers["content-type"].split("boundary=")[1]
    fields: dict[str, Any] = {}
    for part in body.split(f"--{boundary}"):
        if 'name="' not in part:
            continue
        header, _, value = part.partition("\r\n\r\n")
        name = header.split('name="', 1)[1].split('"', 1)[0]
        fields[name] = value.rstrip("\r\n")
    return fields


@pytest.fixture()
def fake_imagekit() -> FakeImageKit:
    return FakeImageKit()


@pytest.fixture()
def images(app: FastAPI, fake_imagekit: FakeImageKit) -> Iterator[ImageKitClient]:
    """ImageKit client backed by ``fake_imagekit`` and wired into the app."""
    client = ImageKitClient(TEST_IMAGEKIT_CONFIG, transport=httpx.MockTransport(fake_imagekit))
    app.dependency_overrides[dependencies.get_images] = lambda: client
    try:
        yield client
    finally:
        app.dependency_overrides.pop(dependencies.get_images, None)


@pytest.fixture()
def client(app: FastAPI, hub: SnapshotHub) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    def _make_user(name: str, email: str | None = None, image: str | None = None) -> User:
        email = email or f"{name.lower().replace(' ', '.')}@example.com"
        return create_user(db_session, email=email, name=name, image=image)

    return _make_user


@pytest.fixture()
def alice(make_user: Callable[..., User]) -> User:
    return make_user("Alice", image="https://img.example.com/alice.png")


@pytest.fixture()
def bob(make_user: Callable[..., User]) -> User:
    return make_user("Bob")


@pytest.fixture()
def carol(make_user: Callable[..., User]) -> User:
    return make_user("Carol")


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def alice_headers(alice: User) -> dict[str, str]:
    return auth_headers(alice)


@pytest.fixture()
def bob_headers(bob: User) -> dict[str, str]:
    return auth_headers(bob)


@pytest.fixture()
def carol_headers(carol: User) -> dict[str, str]:
    return auth_headers(carol)


@pytest.fixture()
def chat(db_session: Session, alice: User, bob: User) -> Chat:
    """A chat between Alice and Bob."""
    return create_chat(
        db_session,
        [alice.id, bob.id],
        {alice.id: ParticipantSnapshot.of(alice), bob.id: ParticipantSnapshot.of(bob)},
    )


@pytest.fixture()
def add_message(db_session: Session) -> Callable[..., Message]:
    """Insert a message row directly, bypassing the send path."""

    def _add(chat: Chat, sender: User, content: str = "hello", **fields: Any) -> Message:
        message = Message(chat_id=chat.id, sender_id=sender.id, content=content, **fields)
        db_session.add(message)
        db_session.commit()
        db_session.refresh(message)
        return message

    return _add
