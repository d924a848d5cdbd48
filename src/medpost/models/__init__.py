"""SQLAlchemy models for the medpost application."""

from .log import LogEntry
from .post import Post, PostStatus
from .taxonomy import Direction, Origin, PostType, Tag
from .user import Author, Role, RolePermission, User

__all__ = [
    "Author", "Role", "RolePermission", "User",
    "Direction", "Origin", "PostType", "Tag",
    "LogEntry",
    "Post", "PostStatus",
]
