"""SQLAlchemy models for the classification vocabularies attached to posts."""
from sqlalchemy import Column, ForeignKey, Integer, Table, Text
from sqlalchemy.orm import Mapped, mapped_column

from medpost.db.session import Base

# Many-to-many link tables; presence implies membership.
post_direction = Table(
    "post_direction",
    Base.metadata,
    Column("post_id", Integer, ForeignKey("post.id", ondelete="CASCADE"), primary_key=True),
    Column("direction_id", Integer, ForeignKey("direction.id", ondelete="CASCADE"), primary_key=True),
)

post_tag = Table(
    "post_tag",
    Base.metadata,
    Column("post_id", Integer, ForeignKey("post.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tag.id", ondelete="CASCADE"), primary_key=True),
)


class Direction(Base):
    """Topic category (medical direction) a post belongs to."""

    __tablename__ = "direction"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)


class Tag(Base):
    """Free-form tag."""

    __tablename__ = "tag"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tag: Mapped[str] = mapped_column(Text, unique=True, nullable=False)


class Origin(Base):
    """Content source classification (e.g. video, podcast, debunking)."""

    __tablename__ = "origin"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)


class PostType(Base):
    """Media kind of a post (expert opinion, translation, media, ...)."""

    __tablename__ = "post_type"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
