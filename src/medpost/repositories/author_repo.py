"""Data access helpers for authors and users."""
from __future__ import annotations

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from medpost.models import Author

__all__ = ["AuthorRepository"]


class AuthorRepository:
    """Thin wrapper around database access for author and user entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_by_id(self, author_id: int, *, for_update: bool = False) -> Author | None:
        """Return an author by identifier, optionally locking and re-reading its row."""
        stmt = select(Author).where(Author.id == author_id)
        if for_update:
            stmt = stmt.with_for_update(of=Author).execution_options(populate_existing=True)
        return self.session.execute(stmt).scalars().first()

    def get_by_profile_id(self, user_id: int) -> Author | None:
        """Return the author profile owned by a user."""
        return self.session.execute(
            select(Author).where(Author.profile_id == user_id)
        ).scalars().first()

    def adjust_published_posts(self, author_id: int, delta: int) -> None:
        """Add ``delta`` to an author's published-post counter, never below zero.

        The arithmetic runs in SQL so concurrent writers cannot overwrite each
        other's change with a stale value read earlier.
        """
        adjusted = Author.published_posts + delta
        self.session.execute(
            update(Author)
            .where(Author.id == author_id)
            .values(published_posts=case((adjusted < 0, 0), else_=adjusted))
            .execution_options(synchronize_session="fetch")
        )
