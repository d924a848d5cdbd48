"""Moving posts between authors while keeping published-post counters in step."""

from __future__ import annotations

import logging

from medpost.core.exceptions import EntityNotFoundError
from medpost.models import Author, Post
from medpost.repositories.author_repo import AuthorRepository
from medpost.repositories.post_repo import PostRepository

logger = logging.getLogger(__name__)


class AuthorReassigner:
    """Sole writer of ``Author.published_posts``.

    Counter changes and the post's author change are staged on one session;
    the caller commits them together. Counters move with SQL-side increments,
    and the post row is locked and re-read before its current author is
    trusted.
    """

    def __init__(self, posts: PostRepository, authors: AuthorRepository) -> None:
        self.posts = posts
        self.authors = authors

    def attach(self, post: Post, author: Author) -> Post:
        """Persist a newly created post under ``author`` and count it."""
        post.author = author
        post.author_id = author.id
        self.posts.add(post)
        self.authors.adjust_published_posts(author.id, 1)
        return post

    def reassign(self, post_id: int, new_author_id: int) -> Post:
        """Attribute an existing post to another author.

        Raises:
            EntityNotFoundError: If the post or the new author does not exist.
        """
        post = self.posts.get_by_id(post_id, for_update=True)
        if post is None:
            raise EntityNotFoundError(f"Post {post_id} not found")
        new_author = self.authors.get_by_id(new_author_id, for_update=True)
        if new_author is None:
            raise EntityNotFoundError(f"Author {new_author_id} not found")

        previous_id = post.author_id
        if previous_id == new_author.id:
            return post

        if previous_id is not None:
            self.authors.adjust_published_posts(previous_id, -1)
        self.authors.adjust_published_posts(new_author.id, 1)
        post.author = new_author
        post.author_id = new_author.id
        self.posts.session.flush()

        logger.info("Post %s moved from author %s to author %s", post.id, previous_id, new_author.id)
        return post
