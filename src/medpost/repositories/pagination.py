"""Page request and page result containers shared by repositories and services."""
from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")

SORT_ASC = "asc"
SORT_DESC = "desc"


@dataclass(frozen=True)
class PageRequest:
    """Zero-based page index, page size and ordered sort keys."""

    page: int = 0
    size: int = 10
    sort: tuple[tuple[str, str], ...] = field(default=(("modified_at", SORT_DESC),))

    def __post_init__(self) -> None:
        if self.page < 0:
            raise ValueError("page must be non-negative")
        if self.size < 1:
            raise ValueError("size must be positive")
        for _, direction in self.sort:
            if direction not in (SORT_ASC, SORT_DESC):
                raise ValueError(f"Unknown sort direction: {direction}")

    @property
    def offset(self) -> int:
        return self.page * self.size

    def with_sort(self, *sort: tuple[str, str]) -> PageRequest:
        """Return a copy of this request with a different ordering."""
        return PageRequest(page=self.page, size=self.size, sort=tuple(sort))

    @classmethod
    def parse_sort(cls, values: Sequence[str] | None) -> tuple[tuple[str, str], ...] | None:
        """Parse ``field,direction`` strings into sort keys.

        A value without a direction sorts ascending. Returns None when nothing was given.
        """
        if not values:
            return None
        keys: list[tuple[str, str]] = []
        for value in values:
            name, _, direction = value.partition(",")
            keys.append((name.strip(), (direction.strip() or SORT_ASC).lower()))
        return tuple(keys)


@dataclass
class Page(Generic[T]):
    """A slice of a result set together with its total size."""

    items: list[T]
    total: int
    page: int
    size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0

