"""Manual ranking of the posts featured as important."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from medpost.core.exceptions import EntityNotFoundError
from medpost.repositories.post_repo import PostRepository

logger = logging.getLogger(__name__)


class ImportanceRanker:
    """Replace the featured ranking with a new ordered list of posts.

    The ranker only stages changes on the repository's session. The caller
    commits once so readers see either the old ranking or the new one.
    """

    def __init__(self, repo: PostRepository) -> None:
        self.repo = repo

    def set_important_order(self, post_ids: Iterable[int] | None) -> bool:
        """Mark ``post_ids`` important in the given order and unmark everything else.

        Duplicate ids keep their first position.

        Returns:
            False, without touching anything, when no ids are given.

        Raises:
            EntityNotFoundError: If any id does not refer to an existing post.
        """
        if post_ids is None:
            return False
        ordered = list(dict.fromkeys(post_ids))
        if not ordered:
            return False

        posts = {post.id: post for post in self.repo.get_by_ids(ordered, for_update=True)}
        missing = [post_id for post_id in ordered if post_id not in posts]
        if missing:
            raise EntityNotFoundError(f"Posts not found: {missing}")

        cleared = self.repo.clear_importance_except(ordered)
        for position, post_id in enumerate(ordered, start=1):
            self.repo.set_importance(post_id, position)

        logger.info("Ranked %d important posts, cleared %d", len(ordered), cleared)
        return True
