# src/medpost/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .common import ApiResponseMessage, ViewCountResponse
from .post import (
    AuthorAssign,
    AuthorSummary,
    ImportantOrder,
    MainPageResponse,
    PostPage,
    PostResponse,
    PostSave,
    PostTypeResponse,
    PostUpdate,
    PublishedAtUpdate,
    StatusUpdate,
    ViewsUpdate,
)

__all__ = [
    "ApiResponseMessage", "ViewCountResponse",
    "AuthorAssign", "AuthorSummary", "ImportantOrder", "MainPageResponse",
    "PostPage", "PostResponse", "PostSave", "PostTypeResponse", "PostUpdate",
    "PublishedAtUpdate", "StatusUpdate", "ViewsUpdate",
]
