"""Business logic for the post lifecycle."""

from .authorization import AuthorizationGuard, Operation, Principal
from .filter_dispatch import FilterQueryDispatcher, ListingScope, PostFilter
from .post_service import DeleteResult, PostService

__all__ = [
    "AuthorizationGuard", "Operation", "Principal",
    "FilterQueryDispatcher", "ListingScope", "PostFilter",
    "DeleteResult", "PostService",
]
