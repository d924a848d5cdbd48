"""Data access helpers for working with posts.

The listing queries form a specificity ladder: each ``find_*`` method serves
one exact combination of filters, and ``find_filtered`` / ``find_filtered_by_author``
accept every optional field. Callers pick the method; this module only
translates arguments into SQL.
"""
from __future__ import annotations

from collections.abc import Collection, Iterable
from datetime import datetime

from sqlalchemy import Select, and_, case, func, or_, select, update
from sqlalchemy.orm import Session

from medpost.models import Author, Direction, Origin, Post, PostStatus, PostType, Tag, User
from medpost.repositories.pagination import SORT_DESC, Page, PageRequest

__all__ = ["PostRepository", "SORTABLE_FIELDS"]

SORTABLE_FIELDS = {
    "id": Post.id,
    "title": Post.title,
    "created_at": Post.created_at,
    "modified_at": Post.modified_at,
    "published_at": Post.published_at,
    "views": Post.views,
    "importance_order": Post.importance_order,
}


def _statuses(statuses: Collection[PostStatus] | None) -> list:
    if not statuses:
        return []
    return [Post.status.in_(list(statuses))]


def _directions(directions: Collection[int]) -> list:
    return [Post.directions.any(Direction.id.in_(list(directions)))]


def _tags(tags: Collection[int]) -> list:
    return [Post.tags.any(Tag.id.in_(list(tags)))]


def _types(types: Collection[int]) -> list:
    return [Post.type_id.in_(list(types))]


def _author_name(name: str) -> list:
    last_first = User.last_name + " " + User.first_name
    first_last = User.first_name + " " + User.last_name
    return [
        Post.author.has(
            Author.profile.has(
                or_(
                    last_first.contains(name, autoescape=True),
                    first_last.contains(name, autoescape=True),
                )
            )
        )
    ]


class PostRepository:
    """Thin wrapper around database access for post entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    # ------------------------------------------------------------------
    # Lookups and single-row writes

    def get_by_id(self, post_id: int, *, for_update: bool = False) -> Post | None:
        """Return a post by identifier, optionally locking its row.

        A locked lookup re-reads the row even when the post is already in the
        session, so callers never decide on a value committed before the lock.
        """
        stmt = select(Post).where(Post.id == post_id)
        if for_update:
            stmt = stmt.with_for_update(of=Post).execution_options(populate_existing=True)
        return self.session.execute(stmt).scalars().first()

    def get_by_ids(self, post_ids: Iterable[int], *, for_update: bool = False) -> list[Post]:
        """Return the posts whose identifiers are listed (unordered)."""
        ids = list(post_ids)
        if not ids:
            return []
        stmt = select(Post).where(Post.id.in_(ids))
        if for_update:
            stmt = stmt.with_for_update(of=Post).execution_options(populate_existing=True)
        return list(self.session.execute(stmt).scalars().unique())

    def add(self, post: Post) -> Post:
        """Stage a new post and flush it so it receives an identifier."""
        self.session.add(post)
        self.session.flush()
        return post

    def get_directions(self, ids: Iterable[int]) -> set[Direction]:
        ids = list(ids)
        if not ids:
            return set()
        return set(self.session.execute(select(Direction).where(Direction.id.in_(ids))).scalars())

    def get_tags(self, ids: Iterable[int]) -> set[Tag]:
        ids = list(ids)
        if not ids:
            return set()
        return set(self.session.execute(select(Tag).where(Tag.id.in_(ids))).scalars())

    def get_post_type(self, type_id: int) -> PostType | None:
        return self.session.get(PostType, type_id)

    def get_origin(self, origin_id: int) -> Origin | None:
        return self.session.get(Origin, origin_id)

    def list_post_types(self) -> list[PostType]:
        """Return every post type ordered by identifier."""
        return list(self.session.execute(select(PostType).order_by(PostType.id)).scalars())

    def get_fake_views(self, post_id: int) -> int | None:
        """Return the manually set view count of a post, or None if it does not exist."""
        return self.session.execute(
            select(Post.fake_views).where(Post.id == post_id)
        ).scalar_one_or_none()

    def _update_bookkeeping(self, *criteria, **values) -> int:
        """Bulk UPDATE of counters and ranking columns.

        These are not content edits, so ``modified_at`` is written back as is
        instead of letting its ``onupdate`` hook re-stamp it.
        """
        result = self.session.execute(
            update(Post)
            .where(*criteria)
            .values(modified_at=Post.modified_at, **values)
            .execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)

    def update_real_views(self, post_id: int, views: int) -> bool:
        """Overwrite the persisted real view count of one post.

        Returns:
            True if a row was updated.
        """
        return bool(self._update_bookkeeping(Post.id == post_id, views=views))

    def set_fake_views(self, post_id: int, views: int) -> bool:
        return bool(self._update_bookkeeping(Post.id == post_id, fake_views=views))

    def set_importance(self, post_id: int, position: int) -> bool:
        """Mark one post important at ``position`` (1-based)."""
        return bool(
            self._update_bookkeeping(Post.id == post_id, important=True, importance_order=position)
        )

    def clear_importance_except(self, keep_ids: Collection[int]) -> int:
        """Drop the important flag from every important post not listed.

        Returns:
            Number of posts that lost the flag.
        """
        criteria = [Post.important.is_(True)]
        if keep_ids:
            criteria.append(Post.id.not_in(list(keep_ids)))
        return self._update_bookkeeping(*criteria, important=False, importance_order=None)

    # ------------------------------------------------------------------
    # Global query family

    def find_all(
        self,
        statuses: Collection[PostStatus] | None,
        page: PageRequest,
    ) -> Page[Post]:
        return self._paginate(select(Post).where(*_statuses(statuses)), page)

    def find_by_directions(
        self,
        directions: Collection[int],
        statuses: Collection[PostStatus] | None,
        page: PageRequest,
    ) -> Page[Post]:
        stmt = select(Post).where(*_directions(directions), *_statuses(statuses))
        return self._paginate(stmt, page)

    def find_by_directions_and_types(
        self,
        directions: Collection[int],
        types: Collection[int],
        statuses: Collection[PostStatus] | None,
        page: PageRequest,
    ) -> Page[Post]:
        stmt = select(Post).where(
            *_directions(directions),
            *_types(types),
            *_statuses(statuses),
        )
        return self._paginate(stmt, page)

    def find_by_directions_and_tags(
        self,
        directions: Collection[int],
        tags: Collection[int],
        statuses: Collection[PostStatus] | None,
        page: PageRequest,
    ) -> Page[Post]:
        stmt = select(Post).where(
            *_directions(directions),
            *_tags(tags),
            *_statuses(statuses),
        )
        return self._paginate(stmt, page)

    def find_by_directions_types_and_tags(
        self,
        directions: Collection[int],
        types: Collection[int],
        tags: Collection[int],
        statuses: Collection[PostStatus] | None,
        page: PageRequest,
    ) -> Page[Post]:
        stmt = select(Post).where(
            *_directions(directions),
            *_types(types),
            *_tags(tags),
            *_statuses(statuses),
        )
        return self._paginate(stmt, page)

    def find_filtered(
        self,
        *,
        directions: Collection[int] | None,
        types: Collection[int] | None,
        tags: Collection[int] | None,
        origins: Collection[int] | None,
        statuses: Collection[PostStatus] | None,
        title: str,
        author_name: str,
        start: datetime,
        end: datetime,
        page: PageRequest,
    ) -> Page[Post]:
        """Global filter; empty collections and empty strings match everything."""
        clauses = self._optional_clauses(directions, types, tags, origins, statuses, title, start, end)
        if author_name:
            clauses.extend(_author_name(author_name))
        return self._paginate(select(Post).where(*clauses), page)

    # ------------------------------------------------------------------
    # Author-scoped query family

    def find_by_author(
        self,
        author_id: int,
        statuses: Collection[PostStatus] | None,
        page: PageRequest,
    ) -> Page[Post]:
        stmt = select(Post).where(Post.author_id == author_id, *_statuses(statuses))
        return self._paginate(stmt, page)

    def find_by_author_and_directions(
        self,
        author_id: int,
        directions: Collection[int],
        statuses: Collection[PostStatus] | None,
        page: PageRequest,
    ) -> Page[Post]:
        stmt = select(Post).where(
            Post.author_id == author_id,
            *_directions(directions),
            *_statuses(statuses),
        )
        return self._paginate(stmt, page)

    def find_by_author_and_types(
        self,
        author_id: int,
        types: Collection[int],
        statuses: Collection[PostStatus] | None,
        page: PageRequest,
    ) -> Page[Post]:
        stmt = select(Post).where(
            Post.author_id == author_id,
            *_types(types),
            *_statuses(statuses),
        )
        return self._paginate(stmt, page)

    def find_by_author_types_and_directions(
        self,
        author_id: int,
        types: Collection[int],
        directions: Collection[int],
        statuses: Collection[PostStatus] | None,
        page: PageRequest,
    ) -> Page[Post]:
        stmt = select(Post).where(
            Post.author_id == author_id,
            *_types(types),
            *_directions(directions),
            *_statuses(statuses),
        )
        return self._paginate(stmt, page)

    def find_filtered_by_author(
        self,
        author_id: int,
        *,
        directions: Collection[int] | None,
        types: Collection[int] | None,
        tags: Collection[int] | None,
        origins: Collection[int] | None,
        statuses: Collection[PostStatus] | None,
        title: str,
        start: datetime,
        end: datetime,
        page: PageRequest,
    ) -> Page[Post]:
        """Author-scoped variant of :meth:`find_filtered` (no author-name filter)."""
        clauses = self._optional_clauses(directions, types, tags, origins, statuses, title, start, end)
        stmt = select(Post).where(Post.author_id == author_id, *clauses)
        return self._paginate(stmt, page)

    # ------------------------------------------------------------------
    # Curated listings

    def find_important(self, page: PageRequest) -> Page[Post]:
        """Return published important posts in ranking order."""
        stmt = select(Post).where(
            Post.important.is_(True),
            Post.status == PostStatus.PUBLISHED,
        )
        return self._paginate(stmt, page.with_sort(("importance_order", "asc")))

    def find_latest_by_type_slug(self, slug: str, page: PageRequest) -> Page[Post]:
        stmt = select(Post).where(
            Post.type.has(PostType.slug == slug),
            Post.status == PostStatus.PUBLISHED,
        )
        return self._paginate(stmt, page)

    def find_latest_by_origin_slug(self, slug: str, page: PageRequest) -> Page[Post]:
        stmt = select(Post).where(
            Post.origin.has(Origin.slug == slug),
            Post.status == PostStatus.PUBLISHED,
        )
        return self._paginate(stmt, page)

    def find_published_not_important_by_image_presence(
        self,
        directions: Collection[int] | None,
        types: Collection[int] | None,
        origins: Collection[int] | None,
        page: PageRequest,
    ) -> Page[Post]:
        """Return published, non-important posts; those with an important image first."""
        clauses = [Post.status == PostStatus.PUBLISHED, Post.important.is_(False)]
        if directions:
            clauses.extend(_directions(directions))
        if types:
            clauses.extend(_types(types))
        if origins:
            clauses.append(Post.origin_id.in_(list(origins)))
        stmt = select(Post).where(*clauses)
        has_image = case(
            (and_(Post.important_image_url.is_not(None), Post.important_image_url != ""), 0),
            else_=1,
        )
        total = self._count(stmt)
        rows = self.session.execute(
            stmt.order_by(has_image.asc(), Post.created_at.desc(), Post.id.desc())
            .offset(page.offset)
            .limit(page.size)
        ).scalars()
        return Page(items=list(rows.unique()), total=total, page=page.page, size=page.size)

    # ------------------------------------------------------------------
    # Helpers

    @staticmethod
    def _optional_clauses(
        directions: Collection[int] | None,
        types: Collection[int] | None,
        tags: Collection[int] | None,
        origins: Collection[int] | None,
        statuses: Collection[PostStatus] | None,
        title: str,
        start: datetime,
        end: datetime,
    ) -> list:
        clauses: list = [Post.created_at >= start, Post.created_at <= end]
        if directions:
            clauses.extend(_directions(directions))
        if types:
            clauses.extend(_types(types))
        if tags:
            clauses.extend(_tags(tags))
        if origins:
            clauses.append(Post.origin_id.in_(list(origins)))
        clauses.extend(_statuses(statuses))
        if title:
            clauses.append(Post.title.contains(title, autoescape=True))
        return clauses

    def _count(self, stmt: Select) -> int:
        count_stmt = stmt.with_only_columns(func.count(Post.id)).order_by(None)
        return int(self.session.execute(count_stmt).scalar_one())

    def _paginate(self, stmt: Select, page: PageRequest) -> Page[Post]:
        total = self._count(stmt)
        order_by = []
        for name, direction in page.sort:
            column = SORTABLE_FIELDS.get(name)
            if column is None:
                raise ValueError(f"Unsupported sort field: {name}")
            order_by.append(column.desc() if direction == SORT_DESC else column.asc())
        # Stable tie-break so pages never overlap.
        order_by.append(Post.id.desc())
        rows = self.session.execute(
            stmt.order_by(*order_by).offset(page.offset).limit(page.size)
        ).scalars()
        return Page(items=list(rows.unique()), total=total, page=page.page, size=page.size)

