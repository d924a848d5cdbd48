# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime, timedelta
from itertools import count
from typing import Any
from unittest.mock import AsyncMock

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("VIEWS_SYNC_ENABLED", "false")

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from medpost.api.v1.dependencies import get_analytics, get_audit_sink
from medpost.core.security import create_access_token
from medpost.db.session import Base, enable_case_sensitive_like
from medpost.db.session import get_db as app_get_session
from medpost.main import app as fastapi_app
from medpost.models import (
    Author,
    Direction,
    Origin,
    Post,
    PostStatus,
    PostType,
    Role,
    RolePermission,
    Tag,
    User,
)
from medpost.services.analytics import AnalyticsClient
from medpost.services.audit import LogEvent
from medpost.services.authorization import Principal
from medpost.services.post_service import PostService

TEST_DB_URL = "sqlite://"
BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

_CLOCK = count(1)

ADMIN_PERMISSIONS = [permission.value for permission in RolePermission]
DOCTOR_PERMISSIONS = [
    RolePermission.SAVE_OWN_PUBLICATION.value,
    RolePermission.UPDATE_OWN_POST.value,
    RolePermission.DELETE_OWN_POST.value,
]


class RecordingAuditSink:
    """Audit sink that keeps events in memory."""

    def __init__(self) -> None:
        self.events: list[LogEvent] = []

    def record(self, event: LogEvent) -> None:
        self.events.append(event)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_case_sensitive_like(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db_session(engine: Engine, session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Services commit for real, so every test starts from empty tables.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture()
def analytics() -> AsyncMock:
    client = AsyncMock(spec=AnalyticsClient)
    client.enabled = True
    client.get_post_view_count.return_value = 0
    client.get_all_posts_view_count.return_value = {}
    return client


@pytest.fixture()
def service(db_session: Session, audit_sink: RecordingAuditSink, analytics: AsyncMock) -> PostService:
    return PostService(db_session, audit=audit_sink, analytics=analytics)


# ----------------------------------------------------------------------
# Reference data


@pytest.fixture()
def roles(db_session: Session) -> dict[str, Role]:
    created = {
        "admin": Role(name="ADMIN", permissions=ADMIN_PERMISSIONS),
        "doctor": Role(name="DOCTOR", permissions=DOCTOR_PERMISSIONS),
        "reader": Role(name="READER", permissions=[]),
    }
    db_session.add_all(created.values())
    db_session.commit()
    return created


def _make_user(db: Session, email: str, first: str, last: str, role: Role) -> User:
    user = User(email=email, first_name=first, last_name=last, role=role)
    user.author = Author(published_posts=0)
    db.add(user)
    db.commit()
    return user


@pytest.fixture()
def admin_user(db_session: Session, roles: dict[str, Role]) -> User:
    return _make_user(db_session, "admin@example.com", "Olena", "Adminenko", roles["admin"])


@pytest.fixture()
def doctor_user(db_session: Session, roles: dict[str, Role]) -> User:
    return _make_user(db_session, "doctor@example.com", "Ivan", "Petrenko", roles["doctor"])


@pytest.fixture()
def other_doctor_user(db_session: Session, roles: dict[str, Role]) -> User:
    return _make_user(db_session, "other@example.com", "Maria", "Shevchenko", roles["doctor"])


@pytest.fixture()
def reader_user(db_session: Session, roles: dict[str, Role]) -> User:
    user = User(email="reader@example.com", first_name="Taras", last_name="Readerko", role=roles["reader"])
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture()
def admin(admin_user: User) -> Principal:
    return Principal.from_user(admin_user)


@pytest.fixture()
def doctor(doctor_user: User) -> Principal:
    return Principal.from_user(doctor_user)


@pytest.fixture()
def other_doctor(other_doctor_user: User) -> Principal:
    return Principal.from_user(other_doctor_user)


@pytest.fixture()
def reader(reader_user: User) -> Principal:
    return Principal.from_user(reader_user)


@pytest.fixture()
def directions(db_session: Session) -> list[Direction]:
    created = [Direction(name=name) for name in ("Cardiology", "Neurology", "Pediatrics")]
    db_session.add_all(created)
    db_session.commit()
    return created


@pytest.fixture()
def tags(db_session: Session) -> list[Tag]:
    created = [Tag(tag=name) for name in ("covid", "vaccines")]
    db_session.add_all(created)
    db_session.commit()
    return created


@pytest.fixture()
def post_types(db_session: Session) -> dict[str, PostType]:
    created = {
        slug: PostType(slug=slug, name=name)
        for slug, name in (
            ("expert-opinion", "Expert opinion"),
            ("translation", "Translation"),
            ("media", "Media"),
        )
    }
    db_session.add_all(created.values())
    db_session.commit()
    return created


@pytest.fixture()
def origins(db_session: Session) -> dict[str, Origin]:
    created = {
        slug: Origin(slug=slug, name=name)
        for slug, name in (("video", "Video"), ("podcast", "Podcast"))
    }
    db_session.add_all(created.values())
    db_session.commit()
    return created


@pytest.fixture()
def make_post(db_session: Session) -> Callable[..., Post]:
    """Return a factory persisting posts with strictly increasing timestamps."""

    def _make(
        author_user: User,
        *,
        title: str | None = None,
        status: PostStatus = PostStatus.PUBLISHED,
        directions: tuple[Direction, ...] = (),
        tags: tuple[Tag, ...] = (),
        post_type: PostType | None = None,
        origin: Origin | None = None,
        created_at: datetime | None = None,
        **fields: Any,
    ) -> Post:
        tick = next(_CLOCK)
        stamp = created_at or BASE_TIME + timedelta(minutes=tick)
        author = author_user.author
        post = Post(
            title=title or f"Post {tick}",
            content="Body",
            status=status,
            author=author,
            type=post_type,
            origin=origin,
            created_at=stamp,
            modified_at=stamp,
            **fields,
        )
        post.directions = set(directions)
        post.tags = set(tags)
        author.published_posts += 1
        db_session.add(post)
        db_session.commit()
        return post

    return _make


# ----------------------------------------------------------------------
# HTTP


@pytest.fixture()
def app(
    db_session: Session,
    audit_sink: RecordingAuditSink,
    analytics: AsyncMock,
) -> Iterator[FastAPI]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    fastapi_app.dependency_overrides[app_get_session] = _get_session_override
    fastapi_app.dependency_overrides[get_audit_sink] = lambda: audit_sink
    fastapi_app.dependency_overrides[get_analytics] = lambda: analytics
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Return a helper building authorization headers for a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
