"""Status changes for posts moving through moderation."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from types import MappingProxyType

from medpost.db.time import utcnow
from medpost.models import Post, PostStatus

logger = logging.getLogger(__name__)

CHANGE_CREATED = "Post created"
CHANGE_UPDATED = "Post updated"
CHANGE_DELETED = "Post deleted"
CHANGE_UNMAPPED = "N/A"

# Audit description for a move into the given status.
CHANGE_DESCRIPTIONS = MappingProxyType(
    {
        PostStatus.ARCHIVED: "Archived",
        PostStatus.MODERATION_FIRST_SIGN: "Sent to moderation",
        PostStatus.NEEDS_EDITING: "Returned to author for editing",
        PostStatus.PLANNED: "Publication scheduled",
        PostStatus.PUBLISHED: "Published",
    }
)


def describe_change(old_status: PostStatus, new_status: PostStatus) -> str:
    """Return the audit description for moving from ``old_status`` to ``new_status``."""
    if old_status == new_status:
        return CHANGE_UPDATED
    return CHANGE_DESCRIPTIONS.get(new_status, CHANGE_UNMAPPED)


class StatusTransitionEngine:
    """Apply status changes and keep the publication timestamp consistent.

    Any status may move to any other; which principal may trigger a change is
    decided by the authorization guard, not here.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self.clock = clock

    def apply(self, post: Post, new_status: PostStatus) -> tuple[Post, str]:
        """Move ``post`` to ``new_status`` and return it with the change description.

        Entering PUBLISHED stamps ``published_at`` unless a date was already set;
        no transition clears it.
        """
        old_status = PostStatus(post.status) if post.status is not None else PostStatus.DRAFT
        change = describe_change(old_status, new_status)
        post.status = new_status
        if new_status == PostStatus.PUBLISHED and post.published_at is None:
            post.published_at = self.clock()
        if old_status != new_status:
            logger.info(
                "Post %s moved from %s to %s",
                post.id,
                old_status.name,
                new_status.name,
            )
        return post, change

    def archive(self, post: Post) -> bool:
        """Soft-delete ``post`` by moving it to ARCHIVED.

        Returns:
            False if the post was already archived, True otherwise.
        """
        if post.status == PostStatus.ARCHIVED:
            return False
        self.apply(post, PostStatus.ARCHIVED)
        return True

    @staticmethod
    def set_published_at(post: Post, published_at: datetime) -> Post:
        """Set an explicit publication date; a later publish keeps it."""
        post.published_at = published_at
        return post
