"""Service layer for the post lifecycle.

``PostService`` is the single entry point the API uses. Each mutating method
authorizes the principal, stages its changes through the lifecycle components,
commits once and only then hands an audit event to the configured sink.
"""
from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime

from sqlalchemy.orm import Session

from medpost.core.exceptions import EntityNotFoundError
from medpost.models import Direction, Post, PostStatus, PostType, Tag
from medpost.repositories.author_repo import AuthorRepository
from medpost.repositories.pagination import Page, PageRequest
from medpost.repositories.post_repo import PostRepository
from medpost.schemas.post import (
    AuthorSummary,
    DirectionResponse,
    OriginResponse,
    PostPage,
    PostResponse,
    PostSave,
    PostTypeResponse,
    PostUpdate,
    TagResponse,
)
from medpost.services.analytics import AnalyticsClient, get_analytics_client
from medpost.services.audit import AuditSink, LogEvent
from medpost.services.author_reassign import AuthorReassigner
from medpost.services.authorization import AuthorizationGuard, Operation, Principal
from medpost.services.filter_dispatch import FilterQueryDispatcher, ListingScope, PostFilter
from medpost.services.importance import ImportanceRanker
from medpost.services.status_transition import (
    CHANGE_CREATED,
    CHANGE_DELETED,
    CHANGE_UPDATED,
    StatusTransitionEngine,
)
from medpost.services.views import ViewCountReconciler

logger = logging.getLogger(__name__)

MAIN_PAGE_TYPE_SLUGS = ("expert-opinion", "translation", "media")
MAIN_PAGE_ORIGIN_SLUGS = ("video",)

_EDITABLE_FIELDS = (
    "title",
    "content",
    "preview",
    "preview_image_url",
    "important_image_url",
    "video_url",
    "type_id",
    "origin_id",
)


@dataclass(frozen=True)
class PostSnapshot:
    """State of a post captured before a mutation."""

    id: int
    title: str
    status: PostStatus
    author_id: int | None

    @classmethod
    def of(cls, post: Post) -> PostSnapshot:
        return cls(id=post.id, title=post.title, status=PostStatus(post.status), author_id=post.author_id)


@dataclass(frozen=True)
class DeleteResult:
    """Outcome of a delete; ``snapshot`` is the post as it was before archiving."""

    success: bool
    snapshot: PostSnapshot | None = None


class PostService:
    """Permission-gated mutations and listings of posts."""

    def __init__(
        self,
        db: Session,
        audit: AuditSink | None = None,
        analytics: AnalyticsClient | None = None,
        guard: AuthorizationGuard | None = None,
        transitions: StatusTransitionEngine | None = None,
    ) -> None:
        self.db = db
        self.posts = PostRepository(db)
        self.authors = AuthorRepository(db)
        self.audit = audit
        self.guard = guard or AuthorizationGuard()
        self.transitions = transitions or StatusTransitionEngine()
        self.ranker = ImportanceRanker(self.posts)
        self.reassigner = AuthorReassigner(self.posts, self.authors)
        self.dispatcher = FilterQueryDispatcher(self.posts)
        self.views = ViewCountReconciler(self.posts, analytics or get_analytics_client())

    # ------------------------------------------------------------------
    # Plumbing

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _emit(self, event: LogEvent) -> None:
        """Hand ``event`` to the audit sink; sink failures never reach the caller."""
        if self.audit is None:
            return
        try:
            self.audit.record(event)
        except Exception:
            logger.exception("Audit sink failed to record %r for post %s", event.change_description, event.post_id)

    def _get_post(self, post_id: int, *, for_update: bool = False) -> Post:
        post = self.posts.get_by_id(post_id, for_update=for_update)
        if post is None:
            raise EntityNotFoundError(f"Post {post_id} not found")
        return post

    def _load_directions(self, ids: Iterable[int]) -> set[Direction]:
        wanted = set(ids)
        found = self.posts.get_directions(wanted)
        missing = wanted - {direction.id for direction in found}
        if missing:
            raise EntityNotFoundError(f"Directions not found: {sorted(missing)}")
        return found

    def _load_tags(self, ids: Iterable[int]) -> set[Tag]:
        wanted = set(ids)
        found = self.posts.get_tags(wanted)
        missing = wanted - {tag.id for tag in found}
        if missing:
            raise EntityNotFoundError(f"Tags not found: {sorted(missing)}")
        return found

    def _check_classification(self, type_id: int | None, origin_id: int | None) -> None:
        if type_id is not None and self.posts.get_post_type(type_id) is None:
            raise EntityNotFoundError(f"Post type {type_id} not found")
        if origin_id is not None and self.posts.get_origin(origin_id) is None:
            raise EntityNotFoundError(f"Origin {origin_id} not found")

    # ------------------------------------------------------------------
    # Mutations

    def save(self, principal: Principal, data: PostSave) -> Post:
        """Create a post in DRAFT, optionally moving it straight to ``data.status``.

        Raises:
            ForbiddenPermissionsError: If the principal may not create posts.
            EntityNotFoundError: If the author or a referenced vocabulary entry is missing.
            StatusNotFoundError: If ``data.status`` is not a known ordinal.
        """
        target_status = PostStatus.from_ordinal(data.status) if data.status is not None else None

        own_author = self.authors.get_by_profile_id(principal.id)
        requested_author = None
        if data.author_id is not None and (own_author is None or data.author_id != own_author.id):
            requested_author = self.authors.get_by_id(data.author_id, for_update=True)
        author = self.guard.resolve_save_author(principal, data.author_id, requested_author, own_author)

        directions = self._load_directions(data.directions)
        tags = self._load_tags(data.tags)
        self._check_classification(data.type_id, data.origin_id)

        with self._transaction():
            post = Post(
                title=data.title,
                content=data.content,
                preview=data.preview,
                preview_image_url=data.preview_image_url,
                important_image_url=data.important_image_url,
                video_url=data.video_url,
                type_id=data.type_id,
                origin_id=data.origin_id,
                status=PostStatus.DRAFT,
                important=False,
            )
            post.directions = directions
            post.tags = tags
            self.reassigner.attach(post, author)
            if target_status is not None:
                self.transitions.apply(post, target_status)

        logger.info("Post %s created by principal %s for author %s", post.id, principal.id, author.id)
        self._emit(LogEvent(post.title, CHANGE_CREATED, post.id, principal.display_name))
        return post

    def update(self, principal: Principal, data: PostUpdate) -> Post:
        """Change the fields sent in ``data`` and apply its status, if any.

        Raises:
            EntityNotFoundError: If the post or a referenced vocabulary entry is missing.
            ForbiddenPermissionsError: If the principal may not update this post.
            StatusNotFoundError: If ``data.status`` is not a known ordinal.
        """
        post = self._get_post(data.id)
        self.guard.authorize(principal, Operation.UPDATE, post)
        target_status = PostStatus.from_ordinal(data.status) if data.status is not None else None

        sent = data.model_fields_set
        changes = {name: getattr(data, name) for name in _EDITABLE_FIELDS if name in sent}
        for required in ("title", "content"):
            if changes.get(required) is None:
                changes.pop(required, None)
        self._check_classification(changes.get("type_id"), changes.get("origin_id"))
        directions = self._load_directions(data.directions or ()) if "directions" in sent else None
        tags = self._load_tags(data.tags or ()) if "tags" in sent else None

        change_description = CHANGE_UPDATED
        with self._transaction():
            for name, value in changes.items():
                setattr(post, name, value)
            if directions is not None:
                post.directions = directions
            if tags is not None:
                post.tags = tags
            if target_status is not None:
                _, change_description = self.transitions.apply(post, target_status)

        self._emit(LogEvent(post.title, change_description, post.id, principal.display_name))
        return post

    def delete(self, principal: Principal, post_id: int) -> DeleteResult:
        """Archive a post.

        Returns:
            A result whose ``success`` is False when the post was already archived.

        Raises:
            EntityNotFoundError: If the post does not exist.
            ForbiddenPermissionsError: If the principal may not delete this post.
        """
        post = self._get_post(post_id)
        self.guard.authorize(principal, Operation.DELETE, post)
        snapshot = PostSnapshot.of(post)

        with self._transaction():
            archived = self.transitions.archive(post)
        if not archived:
            logger.info("Post %s already archived", post_id)
            return DeleteResult(success=False, snapshot=snapshot)

        self._emit(LogEvent(snapshot.title, CHANGE_DELETED, snapshot.id, principal.display_name))
        return DeleteResult(success=True, snapshot=snapshot)

    def set_status(self, principal: Principal, post_id: int, status: int) -> Post:
        post = self._get_post(post_id)
        self.guard.authorize(principal, Operation.SET_STATUS, post)
        new_status = PostStatus.from_ordinal(status)
        with self._transaction():
            self.transitions.apply(post, new_status)
        return post

    def set_published_at(self, principal: Principal, post_id: int, published_at: datetime) -> Post:
        post = self._get_post(post_id)
        self.guard.authorize(principal, Operation.SET_PUBLISHED_AT, post)
        with self._transaction():
            self.transitions.set_published_at(post, published_at)
        return post

    def set_author(self, principal: Principal, post_id: int, author_id: int) -> Post:
        """Attribute a post to another author, moving the published-post counters."""
        post = self._get_post(post_id)
        self.guard.authorize(principal, Operation.SET_AUTHOR, post)
        with self._transaction():
            post = self.reassigner.reassign(post_id, author_id)
        return post

    def set_views(self, principal: Principal, post_id: int, views: int) -> Post:
        """Set the fake view count shown on top of real views."""
        post = self._get_post(post_id)
        self.guard.authorize(principal, Operation.SET_VIEWS, post)
        with self._transaction():
            self.views.set_fake_views(post, views)
        logger.info("Post %s fake views set to %d by principal %s", post_id, views, principal.id)
        return post

    def set_important_order(self, principal: Principal, post_ids: Collection[int] | None) -> bool:
        """Replace the featured ranking; see :class:`ImportanceRanker`."""
        self.guard.authorize(principal, Operation.SET_IMPORTANCE)
        with self._transaction():
            return self.ranker.set_important_order(post_ids)

    # ------------------------------------------------------------------
    # Reads

    def find_post_by_id(self, post_id: int) -> Post:
        return self._get_post(post_id)

    def find_all(
        self,
        post_filter: PostFilter,
        page: PageRequest,
        scope: ListingScope = ListingScope.UNRESTRICTED,
    ) -> Page[Post]:
        """Return posts matching ``post_filter``; see :mod:`medpost.services.filter_dispatch`."""
        return self.dispatcher.dispatch(post_filter, page, scope)

    def find_all_by_user(self, user_id: int, post_filter: PostFilter, page: PageRequest) -> Page[Post]:
        """Return posts of the author profile owned by ``user_id`` matching ``post_filter``.

        Raises:
            EntityNotFoundError: If the user has no author profile.
        """
        author = self.authors.get_by_profile_id(user_id)
        if author is None:
            raise EntityNotFoundError(f"User {user_id} has no author profile")
        scoped = replace(post_filter, author_id=author.id)
        return self.dispatcher.dispatch(scoped, page, ListingScope.UNRESTRICTED)

    def find_latest_published(self, page: PageRequest) -> Page[Post]:
        return self.dispatcher.dispatch(PostFilter(), page, ListingScope.PUBLIC)

    def find_important(self, page: PageRequest) -> Page[Post]:
        return self.posts.find_important(page)

    def find_latest_by_direction(
        self,
        direction_id: int,
        types: Collection[int] | None,
        tags: Collection[int] | None,
        page: PageRequest,
    ) -> Page[Post]:
        post_filter = PostFilter.build(directions=[direction_id], types=types, tags=tags)
        return self.dispatcher.dispatch(post_filter, page, ListingScope.PUBLIC)

    def find_latest_by_expert(
        self,
        author_id: int,
        types: Collection[int] | None,
        directions: Collection[int] | None,
        page: PageRequest,
    ) -> Page[Post]:
        post_filter = PostFilter.build(author_id=author_id, types=types, directions=directions)
        return self.dispatcher.dispatch(post_filter, page, ListingScope.PUBLIC)

    def find_latest_by_expert_and_status(
        self,
        author_id: int,
        types: Collection[int] | None,
        status: int,
        page: PageRequest,
    ) -> Page[Post]:
        post_filter = PostFilter.build(
            author_id=author_id,
            types=types,
            statuses=[PostStatus.from_ordinal(status)],
        )
        return self.dispatcher.dispatch(post_filter, page, ListingScope.UNRESTRICTED)

    def find_main_page(self, page: PageRequest) -> dict[str, Page[Post]]:
        """Return the latest published posts for each main-page section."""
        sections = {slug: self.posts.find_latest_by_type_slug(slug, page) for slug in MAIN_PAGE_TYPE_SLUGS}
        for slug in MAIN_PAGE_ORIGIN_SLUGS:
            sections[slug] = self.posts.find_latest_by_origin_slug(slug, page)
        return sections

    def find_by_important_image(
        self,
        principal: Principal,
        directions: Collection[int] | None,
        types: Collection[int] | None,
        origins: Collection[int] | None,
        page: PageRequest,
    ) -> Page[Post]:
        """Candidates for the featured ranking, visible only to callers who may set it."""
        self.guard.authorize(principal, Operation.SET_IMPORTANCE)
        return self.posts.find_published_not_important_by_image_presence(directions, types, origins, page)

    def list_post_types(self) -> list[PostType]:
        return self.posts.list_post_types()

    async def get_real_views(self, url: str) -> int:
        return await self.views.get_real_views(url)

    async def get_displayed_views(self, url: str) -> int:
        return await self.views.get_displayed_views(url)


def to_post_response(post: Post) -> PostResponse:
    """Convert a Post ORM instance to an API schema."""
    author = None
    if post.author is not None:
        author = AuthorSummary(
            id=post.author.id,
            profile_id=post.author.profile_id,
            display_name=post.author.profile.display_name if post.author.profile else "",
            published_posts=post.author.published_posts,
        )
    status = PostStatus(post.status)
    return PostResponse(
        id=post.id,
        title=post.title,
        content=post.content,
        preview=post.preview,
        preview_image_url=post.preview_image_url,
        important_image_url=post.important_image_url,
        video_url=post.video_url,
        status=int(status),
        status_name=status.name,
        author=author,
        directions=[DirectionResponse.model_validate(d) for d in sorted(post.directions, key=lambda d: d.id)],
        tags=[TagResponse.model_validate(t) for t in sorted(post.tags, key=lambda t: t.id)],
        type=PostTypeResponse.model_validate(post.type) if post.type is not None else None,
        origin=OriginResponse.model_validate(post.origin) if post.origin is not None else None,
        important=post.important,
        importance_order=post.importance_order,
        published_at=post.published_at,
        views=post.views,
        fake_views=post.fake_views,
        created_at=post.created_at,
        modified_at=post.modified_at,
    )


def to_post_page(page: Page[Post]) -> PostPage:
    return PostPage(
        items=[to_post_response(post) for post in page.items],
        total=page.total,
        page=page.page,
        size=page.size,
        total_pages=page.total_pages,
    )
