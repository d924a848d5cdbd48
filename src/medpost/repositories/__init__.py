"""Persistence collaborators for the post lifecycle services."""

from .author_repo import AuthorRepository
from .pagination import Page, PageRequest
from .post_repo import PostRepository

__all__ = ["AuthorRepository", "Page", "PageRequest", "PostRepository"]
