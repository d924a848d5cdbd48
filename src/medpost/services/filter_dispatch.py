"""Selection of the listing query that serves a filter request.

Listings are served by a ladder of repository queries, each tuned for one
exact combination of filters. A filter is reduced to a :class:`Feature`
bitmask and looked up in a dispatch table; combinations without a dedicated
query fall back to the general filtered query.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from types import MappingProxyType

from medpost.db.time import utc_today
from medpost.models import Post, PostStatus
from medpost.repositories.pagination import Page, PageRequest
from medpost.repositories.post_repo import PostRepository

logger = logging.getLogger(__name__)

EPOCH = date(1970, 1, 1)


class Feature(enum.IntFlag):
    """Filter fields present on a request."""

    NONE = 0
    DIRECTIONS = enum.auto()
    TYPES = enum.auto()
    TAGS = enum.auto()
    ORIGINS = enum.auto()
    TITLE = enum.auto()
    AUTHOR_NAME = enum.auto()
    DATE_RANGE = enum.auto()


class QueryKind(str, enum.Enum):
    """Repository queries the dispatcher can select."""

    ALL = "all"
    BY_DIRECTIONS = "by_directions"
    BY_DIRECTIONS_AND_TYPES = "by_directions_and_types"
    BY_DIRECTIONS_AND_TAGS = "by_directions_and_tags"
    BY_DIRECTIONS_TYPES_AND_TAGS = "by_directions_types_and_tags"
    FILTERED = "filtered"
    BY_AUTHOR = "by_author"
    BY_AUTHOR_AND_DIRECTIONS = "by_author_and_directions"
    BY_AUTHOR_AND_TYPES = "by_author_and_types"
    BY_AUTHOR_TYPES_AND_DIRECTIONS = "by_author_types_and_directions"
    AUTHOR_FILTERED = "author_filtered"


class ListingScope(str, enum.Enum):
    """Which statuses a listing shows when the request names none."""

    PUBLIC = "public"
    UNRESTRICTED = "unrestricted"


GLOBAL_QUERIES: Mapping[Feature, QueryKind] = MappingProxyType(
    {
        Feature.NONE: QueryKind.ALL,
        Feature.DIRECTIONS: QueryKind.BY_DIRECTIONS,
        Feature.DIRECTIONS | Feature.TYPES: QueryKind.BY_DIRECTIONS_AND_TYPES,
        Feature.DIRECTIONS | Feature.TAGS: QueryKind.BY_DIRECTIONS_AND_TAGS,
        Feature.DIRECTIONS | Feature.TYPES | Feature.TAGS: QueryKind.BY_DIRECTIONS_TYPES_AND_TAGS,
    }
)

AUTHOR_QUERIES: Mapping[Feature, QueryKind] = MappingProxyType(
    {
        Feature.NONE: QueryKind.BY_AUTHOR,
        Feature.DIRECTIONS: QueryKind.BY_AUTHOR_AND_DIRECTIONS,
        Feature.TYPES: QueryKind.BY_AUTHOR_AND_TYPES,
        Feature.DIRECTIONS | Feature.TYPES: QueryKind.BY_AUTHOR_TYPES_AND_DIRECTIONS,
    }
)


@dataclass(frozen=True)
class PostFilter:
    """Listing criteria; empty collections and empty strings mean "not filtered"."""

    directions: frozenset[int] = field(default_factory=frozenset)
    types: frozenset[int] = field(default_factory=frozenset)
    tags: frozenset[int] = field(default_factory=frozenset)
    origins: frozenset[int] = field(default_factory=frozenset)
    statuses: frozenset[PostStatus] = field(default_factory=frozenset)
    title: str = ""
    author_name: str = ""
    start_date: date | None = None
    end_date: date | None = None
    author_id: int | None = None

    @classmethod
    def build(
        cls,
        *,
        directions: Collection[int] | None = None,
        types: Collection[int] | None = None,
        tags: Collection[int] | None = None,
        origins: Collection[int] | None = None,
        statuses: Collection[PostStatus] | None = None,
        title: str | None = None,
        author_name: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        author_id: int | None = None,
    ) -> PostFilter:
        """Normalise optional request values into a filter."""
        return cls(
            directions=frozenset(directions or ()),
            types=frozenset(types or ()),
            tags=frozenset(tags or ()),
            origins=frozenset(origins or ()),
            statuses=frozenset(statuses or ()),
            title=title or "",
            author_name=author_name or "",
            start_date=start_date,
            end_date=end_date,
            author_id=author_id,
        )

    @property
    def author_scoped(self) -> bool:
        return self.author_id is not None

    def features(self) -> Feature:
        """Return the bitmask of filter fields that are present."""
        mask = Feature.NONE
        if self.directions:
            mask |= Feature.DIRECTIONS
        if self.types:
            mask |= Feature.TYPES
        if self.tags:
            mask |= Feature.TAGS
        if self.origins:
            mask |= Feature.ORIGINS
        if self.title:
            mask |= Feature.TITLE
        if self.author_name and not self.author_scoped:
            mask |= Feature.AUTHOR_NAME
        if self.start_date is not None or self.end_date is not None:
            mask |= Feature.DATE_RANGE
        return mask


def select_query(post_filter: PostFilter) -> QueryKind:
    """Return the query serving ``post_filter``; does not touch the database."""
    mask = post_filter.features()
    if post_filter.author_scoped:
        return AUTHOR_QUERIES.get(mask, QueryKind.AUTHOR_FILTERED)
    return GLOBAL_QUERIES.get(mask, QueryKind.FILTERED)


def resolve_statuses(post_filter: PostFilter, scope: ListingScope) -> frozenset[PostStatus]:
    """Return the statuses to filter on; an empty set means every status."""
    if post_filter.statuses:
        return post_filter.statuses
    if scope is ListingScope.PUBLIC:
        return frozenset({PostStatus.PUBLISHED})
    return frozenset()


def resolve_date_bounds(
    start_date: date | None,
    end_date: date | None,
    today: date | None = None,
) -> tuple[datetime, datetime]:
    """Turn inclusive calendar dates into UTC instants.

    A missing start means the epoch and a missing end means today. The start
    is taken at the beginning of its day and the end at the end of its day.
    """
    today = today or utc_today()
    start = datetime.combine(start_date or EPOCH, time.min, tzinfo=UTC)
    end = datetime.combine(end_date or today, time.max, tzinfo=UTC)
    return start, end


class FilterQueryDispatcher:
    """Run the repository query selected for a filter."""

    def __init__(self, repo: PostRepository, today: Callable[[], date] | None = None) -> None:
        self.repo = repo
        self.today = today or utc_today

    def dispatch(
        self,
        post_filter: PostFilter,
        page: PageRequest,
        scope: ListingScope = ListingScope.PUBLIC,
    ) -> Page[Post]:
        kind = select_query(post_filter)
        statuses = resolve_statuses(post_filter, scope)
        logger.debug("Dispatching %s listing with %s", kind.value, post_filter)

        f = post_filter
        repo = self.repo
        if kind is QueryKind.ALL:
            return repo.find_all(statuses, page)
        if kind is QueryKind.BY_DIRECTIONS:
            return repo.find_by_directions(f.directions, statuses, page)
        if kind is QueryKind.BY_DIRECTIONS_AND_TYPES:
            return repo.find_by_directions_and_types(f.directions, f.types, statuses, page)
        if kind is QueryKind.BY_DIRECTIONS_AND_TAGS:
            return repo.find_by_directions_and_tags(f.directions, f.tags, statuses, page)
        if kind is QueryKind.BY_DIRECTIONS_TYPES_AND_TAGS:
            return repo.find_by_directions_types_and_tags(
                f.directions, f.types, f.tags, statuses, page
            )
        if kind is QueryKind.BY_AUTHOR:
            return repo.find_by_author(f.author_id, statuses, page)
        if kind is QueryKind.BY_AUTHOR_AND_DIRECTIONS:
            return repo.find_by_author_and_directions(f.author_id, f.directions, statuses, page)
        if kind is QueryKind.BY_AUTHOR_AND_TYPES:
            return repo.find_by_author_and_types(f.author_id, f.types, statuses, page)
        if kind is QueryKind.BY_AUTHOR_TYPES_AND_DIRECTIONS:
            return repo.find_by_author_types_and_directions(
                f.author_id, f.types, f.directions, statuses, page
            )

        start, end = resolve_date_bounds(f.start_date, f.end_date, self.today())
        if kind is QueryKind.AUTHOR_FILTERED:
            return repo.find_filtered_by_author(
                f.author_id,
                directions=f.directions,
                types=f.types,
                tags=f.tags,
                origins=f.origins,
                statuses=statuses,
                title=f.title,
                start=start,
                end=end,
                page=page,
            )
        return repo.find_filtered(
            directions=f.directions,
            types=f.types,
            tags=f.tags,
            origins=f.origins,
            statuses=statuses,
            title=f.title,
            author_name=f.author_name,
            start=start,
            end=end,
            page=page,
        )
