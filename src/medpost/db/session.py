"""Engine, session factory and declarative base."""

from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from medpost.core.settings import settings


class Base(DeclarativeBase):
    pass


def enable_case_sensitive_like(bind: Engine) -> None:
    """Turn on case-sensitive LIKE for SQLite connections.

    Title and author-name filters are substring matches that must respect
    case on every backend. Other dialects are left untouched.
    """
    if bind.dialect.name != "sqlite":
        return

    @event.listens_for(bind, "connect")
    def _pragma(dbapi_connection, _record) -> None:  # pragma: no cover - driver hook
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA case_sensitive_like = ON")
        finally:
            cursor.close()


def _make_engine(url: str) -> Engine:
    bind = create_engine(url, echo=settings.sql_debug, pool_pre_ping=True)
    enable_case_sensitive_like(bind)
    return bind


engine = _make_engine(settings.effective_database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=True)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; closed once the response is sent."""
    with SessionLocal() as session:
        yield session


# Register every mapped class on Base.metadata.
import medpost.models  # noqa: E402,F401
