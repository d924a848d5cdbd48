"""SQLAlchemy models for users, roles and authors."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

from sqlalchemy import JSON, BigInteger, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medpost.db.session import Base

if TYPE_CHECKING:
    from medpost.models.post import Post


class RolePermission(str, enum.Enum):
    """Fixed vocabulary of capabilities a role can grant.

    Mutating operations come in pairs: the plain permission applies to any
    post, the ``*_OWN_*`` permission only to posts the principal authored.
    """

    SAVE_PUBLICATION = "SAVE_PUBLICATION"
    SAVE_OWN_PUBLICATION = "SAVE_OWN_PUBLICATION"
    UPDATE_POST = "UPDATE_POST"
    UPDATE_OWN_POST = "UPDATE_OWN_POST"
    DELETE_POST = "DELETE_POST"
    DELETE_OWN_POST = "DELETE_OWN_POST"
    SET_IMPORTANCE = "SET_IMPORTANCE"


class Role(Base):
    """Named role granting a set of permissions."""

    __tablename__ = "role"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    # Stored as a list of RolePermission names.
    permissions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    @property
    def permission_set(self) -> frozenset[RolePermission]:
        """Return granted permissions, ignoring names outside the vocabulary."""
        known = {member.value for member in RolePermission}
        return frozenset(RolePermission(name) for name in self.permissions or [] if name in known)


class User(Base):
    """Registered account; every principal is backed by one user row."""

    __tablename__ = "user_account"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    last_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    role_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("role.id"), nullable=True)

    role: Mapped[Role | None] = relationship("Role", lazy="joined")
    author: Mapped[Author | None] = relationship(
        "Author",
        back_populates="profile",
        uselist=False,
    )

    @property
    def display_name(self) -> str:
        """Return the name shown in audit entries ("last first")."""
        return f"{self.last_name} {self.first_name}".strip()


class Author(Base):
    """Author profile owning posts; linked to exactly one user."""

    __tablename__ = "author"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    # Number of posts currently attributed to this author; maintained incrementally.
    published_posts: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    profile: Mapped[User] = relationship("User", back_populates="author", lazy="joined")
    posts: Mapped[list[Post]] = relationship("Post", back_populates="author")
