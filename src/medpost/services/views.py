"""View counts: operator-set fake views plus real views from analytics.

Displayed views are ``fake_views + real views``. Real views live in the
analytics provider and are copied onto ``Post.views`` by a periodic sweep that
overwrites each row rather than accumulating.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medpost.core.exceptions import EntityNotFoundError
from medpost.core.settings import settings
from medpost.db.session import SessionLocal
from medpost.models import Post
from medpost.repositories.post_repo import PostRepository
from medpost.services.analytics import (
    AnalyticsClient,
    AnalyticsDisabledError,
    AnalyticsError,
    get_analytics_client,
)

logger = logging.getLogger(__name__)

_TRAILING_ID = re.compile(r"(\d+)/?$")


def post_id_from_url(url: str) -> int:
    """Return the post identifier from the last path segment of a post URL.

    Raises:
        EntityNotFoundError: If the URL does not end with a numeric segment.
    """
    path = url.split("?", 1)[0].split("#", 1)[0]
    match = _TRAILING_ID.search(path)
    if match is None:
        raise EntityNotFoundError(f"No post identifier in url {url!r}")
    return int(match.group(1))


def normalise_view_counts(raw: Mapping[str, int]) -> dict[int, int]:
    """Keep the entries whose key is a post identifier."""
    counts: dict[int, int] = {}
    for key, value in raw.items():
        try:
            counts[int(key)] = int(value)
        except (TypeError, ValueError):
            logger.debug("Ignoring analytics entry %r", key)
    return counts


class ViewCountReconciler:
    """Combine stored and analytics view counts and refresh stored real views."""

    def __init__(self, repo: PostRepository, analytics: AnalyticsClient) -> None:
        self.repo = repo
        self.analytics = analytics

    async def get_real_views(self, url: str) -> int:
        return await self.analytics.get_post_view_count(url)

    async def get_displayed_views(self, url: str) -> int:
        """Return fake views plus real views for the post the URL points at.

        Raises:
            EntityNotFoundError: If the URL names no existing post.
        """
        post_id = post_id_from_url(url)
        fake_views = self.repo.get_fake_views(post_id)
        if fake_views is None:
            raise EntityNotFoundError(f"Post {post_id} not found")
        return fake_views + await self.get_real_views(url)

    def set_fake_views(self, post: Post, views: int) -> Post:
        """Stage an operator override of the fake view count."""
        if views < 0:
            raise ValueError("views must be non-negative")
        self.repo.set_fake_views(post.id, views)
        return post

    async def reconcile(self) -> int:
        """Overwrite stored real views with the analytics counts and commit.

        Identifiers without a matching post are skipped.

        Returns:
            Number of posts updated.
        """
        counts = normalise_view_counts(await self.analytics.get_all_posts_view_count())
        updated = 0
        try:
            for post_id, views in counts.items():
                if self.repo.update_real_views(post_id, views):
                    updated += 1
                else:
                    logger.debug("Skipping views for unknown post %s", post_id)
            self.repo.session.commit()
        except Exception:
            self.repo.session.rollback()
            raise
        logger.info("Reconciled real views for %d of %d posts", updated, len(counts))
        return updated


class ViewsSyncWorker:
    """Periodically copies real view counts from analytics onto posts."""

    def __init__(
        self,
        client: AnalyticsClient | None = None,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_seconds: float | None = None,
    ) -> None:
        self.client = client or get_analytics_client()
        self.session_factory = session_factory
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.views_sync_interval_seconds
        )
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if not self.client.enabled:
            return

        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background sweep loop."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def sweep_once(self) -> int:
        """Run one reconciliation in a fresh session."""
        with self.session_factory() as db:
            return await ViewCountReconciler(PostRepository(db), self.client).reconcile()

    async def _run(self) -> None:
        interval = max(0.1, float(self.interval_seconds))

        while not self._stopping.is_set():
            try:
                await self.sweep_once()
            except AnalyticsDisabledError:
                return
            except AnalyticsError as e:
                logger.warning("ViewsSyncWorker encountered AnalyticsError: %s", e)
            except (OSError, ConnectionError, TimeoutError) as e:
                logger.warning("ViewsSyncWorker encountered network error: %s", e)
            except SQLAlchemyError:
                logger.exception("ViewsSyncWorker could not write view counts; retrying next tick")

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except TimeoutError:
                continue
