# tests/test_post_service.py
from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from medpost.core.exceptions import (
    EntityNotFoundError,
    ForbiddenPermissionsError,
    StatusNotFoundError,
)
from medpost.models import Direction, LogEntry, Origin, Post, PostStatus, PostType, Tag, User
from medpost.repositories.pagination import PageRequest
from medpost.schemas.post import PostSave, PostUpdate
from medpost.services.audit import DatabaseAuditSink, LogEvent
from medpost.services.authorization import Principal
from medpost.services.post_service import PostService, to_post_response

LATEST = PageRequest(sort=(("created_at", "desc"),))


def test_save_creates_draft_for_own_author(
    service: PostService,
    doctor: Principal,
    doctor_user: User,
    directions: list[Direction],
    tags: list[Tag],
    audit_sink,
) -> None:
    data = PostSave(title="Heart health", content="Body", directions=[directions[0].id], tags=[tags[0].id])

    post = service.save(doctor, data)

    assert post.id is not None
    assert post.status == PostStatus.DRAFT
    assert post.author_id == doctor_user.author.id
    assert post.important is False
    assert {d.id for d in post.directions} == {directions[0].id}
    assert doctor_user.author.published_posts == 1
    assert audit_sink.events == [LogEvent("Heart health", "Post created", post.id, "Petrenko Ivan")]


def test_save_applies_requested_status(service: PostService, admin: Principal) -> None:
    post = service.save(admin, PostSave(title="Ready", status=PostStatus.PUBLISHED.value))

    assert post.status == PostStatus.PUBLISHED
    assert post.published_at is not None


def test_save_for_another_author_with_any_permission(
    service: PostService,
    admin: Principal,
    admin_user: User,
    doctor_user: User,
) -> None:
    post = service.save(admin, PostSave(title="Ghostwritten", author_id=doctor_user.author.id))

    assert post.author_id == doctor_user.author.id
    assert doctor_user.author.published_posts == 1
    assert admin_user.author.published_posts == 0


def test_save_own_only_is_forced_onto_own_author(
    service: PostService,
    doctor: Principal,
    doctor_user: User,
    other_doctor_user: User,
) -> None:
    post = service.save(doctor, PostSave(title="Mine", author_id=other_doctor_user.author.id))

    assert post.author_id == doctor_user.author.id
    assert other_doctor_user.author.published_posts == 0


def test_save_rejections(
    service: PostService,
    admin: Principal,
    reader: Principal,
    audit_sink,
    db_session: Session,
) -> None:
    with pytest.raises(ForbiddenPermissionsError):
        service.save(reader, PostSave(title="Nope"))
    with pytest.raises(EntityNotFoundError):
        service.save(admin, PostSave(title="Nope", author_id=999_999))
    with pytest.raises(EntityNotFoundError):
        service.save(admin, PostSave(title="Nope", directions=[999_999]))
    with pytest.raises(StatusNotFoundError):
        service.save(admin, PostSave(title="Nope", status=42))

    assert audit_sink.events == []
    assert db_session.scalars(select(Post)).all() == []


def test_update_changes_only_sent_fields(
    service: PostService,
    doctor: Principal,
    doctor_user: User,
    make_post: Callable[..., Post],
    directions: list[Direction],
    audit_sink,
) -> None:
    post = make_post(doctor_user, title="Old", directions=(directions[0],), preview="Teaser")

    updated = service.update(doctor, PostUpdate(id=post.id, title="New", directions=[directions[1].id]))

    assert updated.title == "New"
    assert updated.preview == "Teaser"
    assert updated.content == "Body"
    assert {d.id for d in updated.directions} == {directions[1].id}
    assert audit_sink.events[-1].change_description == "Post updated"


def test_update_ignores_null_for_required_fields(
    service: PostService,
    admin: Principal,
    admin_user: User,
    make_post: Callable[..., Post],
) -> None:
    post = make_post(admin_user, title="Kept", preview="Teaser")

    updated = service.update(admin, PostUpdate(id=post.id, title=None, content=None, preview=None))

    assert updated.title == "Kept"
    assert updated.content == "Body"
    assert updated.preview is None


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (PostStatus.MODERATION_FIRST_SIGN, "Sent to moderation"),
        (PostStatus.PUBLISHED, "Published"),
        (PostStatus.DRAFT, "Post updated"),
    ],
)
def test_update_audit_describes_status_change(
    service: PostService,
    admin: Principal,
    admin_user: User,
    make_post: Callable[..., Post],
    audit_sink,
    status: PostStatus,
    expected: str,
) -> None:
    post = make_post(admin_user, status=PostStatus.DRAFT)

    service.update(admin, PostUpdate(id=post.id, status=status.value))

    assert audit_sink.events[-1].change_description == expected


def test_update_foreign_post_is_forbidden(
    service: PostService,
    doctor: Principal,
    other_doctor_user: User,
    make_post: Callable[..., Post],
    audit_sink,
    db_session: Session,
) -> None:
    post = make_post(other_doctor_user, title="Theirs")

    with pytest.raises(ForbiddenPermissionsError):
        service.update(doctor, PostUpdate(id=post.id, title="Mine now"))

    db_session.refresh(post)
    assert post.title == "Theirs"
    assert audit_sink.events == []


def test_update_unknown_post(service: PostService, admin: Principal) -> None:
    with pytest.raises(EntityNotFoundError):
        service.update(admin, PostUpdate(id=999_999, title="x"))


def test_delete_archives_and_audits_once(
    service: PostService,
    doctor: Principal,
    doctor_user: User,
    make_post: Callable[..., Post],
    audit_sink,
) -> None:
    post = make_post(doctor_user, title="Gone soon")

    result = service.delete(doctor, post.id)

    assert result.success is True
    assert result.snapshot.status == PostStatus.PUBLISHED
    assert post.status == PostStatus.ARCHIVED
    assert audit_sink.events == [LogEvent("Gone soon", "Post deleted", post.id, "Petrenko Ivan")]

    again = service.delete(doctor, post.id)

    assert again.success is False
    assert len(audit_sink.events) == 1


def test_delete_own_permission_on_foreign_post(
    service: PostService,
    doctor: Principal,
    other_doctor_user: User,
    make_post: Callable[..., Post],
    audit_sink,
    db_session: Session,
) -> None:
    post = make_post(other_doctor_user)

    with pytest.raises(ForbiddenPermissionsError):
        service.delete(doctor, post.id)

    db_session.refresh(post)
    assert post.status == PostStatus.PUBLISHED
    assert audit_sink.events == []


def test_failing_audit_sink_keeps_the_mutation(
    db_session: Session,
    analytics: AsyncMock,
    admin: Principal,
    mocker,
) -> None:
    sink = mocker.Mock()
    sink.record.side_effect = RuntimeError("audit store down")
    service = PostService(db_session, audit=sink, analytics=analytics)

    post = service.save(admin, PostSave(title="Survives"))

    sink.record.assert_called_once()
    assert db_session.get(Post, post.id) is not None


def test_database_audit_sink_writes_log_entries(session_factory: sessionmaker, db_session: Session) -> None:
    sink = DatabaseAuditSink(session_factory)

    sink.record(LogEvent("Title", "Published", 7, "Petrenko Ivan"))

    entry = db_session.scalars(select(LogEntry)).one()
    assert (entry.title, entry.changes, entry.id_of_changed_post, entry.name_of_changer) == (
        "Title",
        "Published",
        7,
        "Petrenko Ivan",
    )


def test_set_status(
    service: PostService,
    admin: Principal,
    doctor: Principal,
    doctor_user: User,
    make_post: Callable[..., Post],
    audit_sink,
) -> None:
    post = make_post(doctor_user, status=PostStatus.PLANNED)

    updated = service.set_status(admin, post.id, PostStatus.PUBLISHED.value)

    assert updated.status == PostStatus.PUBLISHED
    assert updated.published_at is not None
    assert audit_sink.events == []
    with pytest.raises(StatusNotFoundError):
        service.set_status(admin, post.id, 99)
    with pytest.raises(ForbiddenPermissionsError):
        service.set_status(doctor, post.id, PostStatus.DRAFT.value)


def test_set_published_at_keeps_explicit_date(
    service: PostService,
    admin: Principal,
    admin_user: User,
    make_post: Callable[..., Post],
) -> None:
    post = make_post(admin_user, status=PostStatus.PLANNED)
    scheduled = datetime(2024, 9, 1, 9, 0, tzinfo=UTC)

    service.set_published_at(admin, post.id, scheduled)
    service.set_status(admin, post.id, PostStatus.PUBLISHED.value)

    assert post.published_at == scheduled


def test_find_post_by_id(service: PostService, admin_user: User, make_post: Callable[..., Post]) -> None:
    post = make_post(admin_user)

    assert service.find_post_by_id(post.id) is post
    with pytest.raises(EntityNotFoundError):
        service.find_post_by_id(999_999)


def test_latest_by_direction_and_expert(
    service: PostService,
    doctor_user: User,
    other_doctor_user: User,
    make_post: Callable[..., Post],
    directions: list[Direction],
    post_types: dict[str, PostType],
) -> None:
    cardiology = directions[0]
    media = post_types["media"]
    mine = make_post(doctor_user, directions=(cardiology,), post_type=media)
    make_post(doctor_user, directions=(cardiology,), status=PostStatus.DRAFT)
    theirs = make_post(other_doctor_user, directions=(cardiology,))

    by_direction = service.find_latest_by_direction(cardiology.id, None, None, LATEST)
    by_expert = service.find_latest_by_expert(doctor_user.author.id, [media.id], None, LATEST)
    drafts = service.find_latest_by_expert_and_status(
        doctor_user.author.id, None, PostStatus.DRAFT.value, LATEST
    )

    assert [post.id for post in by_direction.items] == [theirs.id, mine.id]
    assert [post.id for post in by_expert.items] == [mine.id]
    assert [post.status for post in drafts.items] == [PostStatus.DRAFT]


def test_main_page_sections(
    service: PostService,
    admin_user: User,
    make_post: Callable[..., Post],
    post_types: dict[str, PostType],
    origins: dict[str, Origin],
) -> None:
    opinion = make_post(admin_user, post_type=post_types["expert-opinion"])
    make_post(admin_user, post_type=post_types["expert-opinion"], status=PostStatus.DRAFT)
    video = make_post(admin_user, origin=origins["video"])
    make_post(admin_user, origin=origins["podcast"])

    sections = service.find_main_page(PageRequest(size=16, sort=(("created_at", "desc"),)))

    assert list(sections) == ["expert-opinion", "translation", "media", "video"]
    assert [post.id for post in sections["expert-opinion"].items] == [opinion.id]
    assert sections["translation"].total == 0
    assert [post.id for post in sections["video"].items] == [video.id]


def test_important_image_posts_come_first(
    service: PostService,
    admin: Principal,
    admin_user: User,
    make_post: Callable[..., Post],
) -> None:
    pictured = make_post(admin_user, important_image_url="https://cdn.example/a.png")
    plain = make_post(admin_user)
    blank = make_post(admin_user, important_image_url="")
    featured = make_post(admin_user, important_image_url="https://cdn.example/b.png")
    service.set_important_order(admin, [featured.id])

    page = service.find_by_important_image(admin, None, None, None, PageRequest())

    assert [post.id for post in page.items] == [pictured.id, blank.id, plain.id]


def test_post_types_and_response_mapping(
    service: PostService,
    doctor_user: User,
    make_post: Callable[..., Post],
    directions: list[Direction],
    post_types: dict[str, PostType],
) -> None:
    post = make_post(doctor_user, directions=(directions[1], directions[0]), post_type=post_types["media"])

    response = to_post_response(post)

    assert [t.slug for t in service.list_post_types()] == ["expert-opinion", "translation", "media"]
    assert response.status == 5
    assert response.status_name == "PUBLISHED"
    assert response.author.display_name == "Petrenko Ivan"
    assert [d.id for d in response.directions] == sorted(d.id for d in directions[:2])
    assert response.type.slug == "media"


def test_important_image_candidates_are_editor_only(service: PostService, doctor: Principal) -> None:
    with pytest.raises(ForbiddenPermissionsError):
        service.find_by_important_image(doctor, None, None, None, PageRequest())
