# tests/test_status_transition.py
from __future__ import annotations

from datetime import UTC, datetime

import pytest

from medpost.core.exceptions import EntityNotFoundError, StatusNotFoundError
from medpost.models import Post, PostStatus
from medpost.services.status_transition import StatusTransitionEngine, describe_change

NOW = datetime(2024, 5, 1, 8, 30, tzinfo=UTC)


@pytest.fixture()
def transitions() -> StatusTransitionEngine:
    return StatusTransitionEngine(clock=lambda: NOW)


def _post(status: PostStatus, published_at: datetime | None = None) -> Post:
    return Post(id=1, title="Title", status=status, published_at=published_at)


def test_ordinals_are_stable() -> None:
    assert [status.value for status in PostStatus] == [0, 1, 2, 3, 4, 5, 6]
    assert PostStatus.from_ordinal(5) is PostStatus.PUBLISHED


def test_unknown_ordinal_is_not_found() -> None:
    with pytest.raises(StatusNotFoundError):
        PostStatus.from_ordinal(42)
    assert issubclass(StatusNotFoundError, EntityNotFoundError)


@pytest.mark.parametrize(
    ("new_status", "expected"),
    [
        (PostStatus.ARCHIVED, "Archived"),
        (PostStatus.MODERATION_FIRST_SIGN, "Sent to moderation"),
        (PostStatus.NEEDS_EDITING, "Returned to author for editing"),
        (PostStatus.PLANNED, "Publication scheduled"),
        (PostStatus.PUBLISHED, "Published"),
        (PostStatus.MODERATION_SECOND_SIGN, "N/A"),
    ],
)
def test_change_descriptions(transitions: StatusTransitionEngine, new_status: PostStatus, expected: str) -> None:
    post, change = transitions.apply(_post(PostStatus.DRAFT), new_status)

    assert change == expected
    assert post.status == new_status


def test_same_status_is_a_generic_update(transitions: StatusTransitionEngine) -> None:
    _, change = transitions.apply(_post(PostStatus.PLANNED), PostStatus.PLANNED)
    assert change == "Post updated"
    assert describe_change(PostStatus.DRAFT, PostStatus.DRAFT) == "Post updated"


def test_any_status_may_move_to_any_other(transitions: StatusTransitionEngine) -> None:
    for source in PostStatus:
        for target in PostStatus:
            post, _ = transitions.apply(_post(source), target)
            assert post.status == target


def test_publishing_sets_published_at_once(transitions: StatusTransitionEngine) -> None:
    post, _ = transitions.apply(_post(PostStatus.PLANNED), PostStatus.PUBLISHED)
    assert post.published_at == NOW

    transitions.apply(post, PostStatus.NEEDS_EDITING)
    assert post.published_at == NOW

    later = StatusTransitionEngine(clock=lambda: datetime(2030, 1, 1, tzinfo=UTC))
    later.apply(post, PostStatus.PUBLISHED)
    assert post.published_at == NOW


def test_explicit_publish_date_is_kept(transitions: StatusTransitionEngine) -> None:
    scheduled = datetime(2024, 6, 1, tzinfo=UTC)
    post = transitions.set_published_at(_post(PostStatus.PLANNED), scheduled)

    transitions.apply(post, PostStatus.PUBLISHED)

    assert post.published_at == scheduled


def test_other_transitions_leave_published_at_unset(transitions: StatusTransitionEngine) -> None:
    post, _ = transitions.apply(_post(PostStatus.DRAFT), PostStatus.MODERATION_FIRST_SIGN)
    assert post.published_at is None


def test_archive(transitions: StatusTransitionEngine) -> None:
    post = _post(PostStatus.PUBLISHED)

    assert transitions.archive(post) is True
    assert post.status == PostStatus.ARCHIVED
    assert transitions.archive(post) is False
