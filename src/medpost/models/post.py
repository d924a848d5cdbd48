"""SQLAlchemy models for posts and their moderation status."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medpost.core.exceptions import StatusNotFoundError
from medpost.db.session import Base
from medpost.db.time import utcnow
from medpost.models.taxonomy import Direction, Origin, PostType, Tag, post_direction, post_tag
from medpost.models.user import Author


class PostStatus(enum.IntEnum):
    """Moderation status of a post; the ordinal is part of the public API."""

    DRAFT = 0
    MODERATION_FIRST_SIGN = 1
    MODERATION_SECOND_SIGN = 2
    NEEDS_EDITING = 3
    PLANNED = 4
    PUBLISHED = 5
    ARCHIVED = 6

    @classmethod
    def from_ordinal(cls, ordinal: int) -> PostStatus:
        """Return the status with the given ordinal.

        Raises:
            StatusNotFoundError: If no status has that ordinal.
        """
        try:
            return cls(ordinal)
        except ValueError as err:
            raise StatusNotFoundError(f"Status with ordinal {ordinal} not found") from err


class Post(Base):
    """Primary content entity written by authors and moderated by editors."""

    __tablename__ = "post"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    preview: Mapped[str | None] = mapped_column(Text, nullable=True)
    preview_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    important_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[PostStatus] = mapped_column(
        Enum(PostStatus, name="post_status", native_enum=False, length=32),
        nullable=False,
        default=PostStatus.DRAFT,
    )

    author_id: Mapped[int] = mapped_column(Integer, ForeignKey("author.id"), nullable=False)
    type_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("post_type.id"), nullable=True)
    origin_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("origin.id"), nullable=True)

    # importance_order is set iff important; important posts hold 1..N.
    important: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    importance_order: Mapped[int | None] = mapped_column(Integer, nullable=True)

    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Real views are overwritten by the analytics sweep; fake views are set by operators.
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fake_views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    author: Mapped[Author] = relationship("Author", back_populates="posts", lazy="joined")
    type: Mapped[PostType | None] = relationship("PostType")
    origin: Mapped[Origin | None] = relationship("Origin")
    directions: Mapped[set[Direction]] = relationship(
        "Direction",
        secondary=post_direction,
        collection_class=set,
    )
    tags: Mapped[set[Tag]] = relationship(
        "Tag",
        secondary=post_tag,
        collection_class=set,
    )
