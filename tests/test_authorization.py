# tests/test_authorization.py
from __future__ import annotations

import pytest

from medpost.core.exceptions import EntityNotFoundError, ForbiddenPermissionsError
from medpost.models import Author, Post, RolePermission
from medpost.services.authorization import (
    PERMISSION_RULES,
    AuthorizationGuard,
    Operation,
    Principal,
    owns,
)


def _principal(principal_id: int, *permissions: RolePermission) -> Principal:
    return Principal(
        id=principal_id,
        email=f"user{principal_id}@example.com",
        display_name=f"User {principal_id}",
        permissions=frozenset(permissions),
    )


def _post_owned_by(profile_id: int, author_id: int = 1) -> Post:
    post = Post(id=10, title="Owned")
    post.author = Author(id=author_id, profile_id=profile_id, published_posts=1)
    return post


@pytest.fixture()
def guard() -> AuthorizationGuard:
    return AuthorizationGuard()


def test_every_operation_has_a_rule() -> None:
    assert set(PERMISSION_RULES) == set(Operation)


@pytest.mark.parametrize(
    ("operation", "any_permission", "own_permission"),
    [
        (Operation.UPDATE, RolePermission.UPDATE_POST, RolePermission.UPDATE_OWN_POST),
        (Operation.DELETE, RolePermission.DELETE_POST, RolePermission.DELETE_OWN_POST),
    ],
)
def test_any_or_own_with_ownership(
    guard: AuthorizationGuard,
    operation: Operation,
    any_permission: RolePermission,
    own_permission: RolePermission,
) -> None:
    mine = _post_owned_by(profile_id=1)
    theirs = _post_owned_by(profile_id=2)

    editor = _principal(1, any_permission)
    assert guard.is_allowed(editor, operation, mine)
    assert guard.is_allowed(editor, operation, theirs)

    author = _principal(1, own_permission)
    assert guard.is_allowed(author, operation, mine)
    assert not guard.is_allowed(author, operation, theirs)

    nobody = _principal(1)
    assert not guard.is_allowed(nobody, operation, mine)


def test_delete_own_on_foreign_post_is_forbidden(guard: AuthorizationGuard) -> None:
    principal = _principal(1, RolePermission.DELETE_OWN_POST)

    with pytest.raises(ForbiddenPermissionsError):
        guard.authorize(principal, Operation.DELETE, _post_owned_by(profile_id=2))


def test_editor_only_operations_ignore_ownership(guard: AuthorizationGuard) -> None:
    owner = _principal(1, RolePermission.UPDATE_OWN_POST)
    post = _post_owned_by(profile_id=1)

    for operation in (Operation.SET_STATUS, Operation.SET_AUTHOR, Operation.SET_VIEWS, Operation.SET_PUBLISHED_AT):
        with pytest.raises(ForbiddenPermissionsError):
            guard.authorize(owner, operation, post)

    guard.authorize(_principal(3, RolePermission.UPDATE_POST), Operation.SET_STATUS, post)


def test_set_importance_needs_its_own_permission(guard: AuthorizationGuard) -> None:
    with pytest.raises(ForbiddenPermissionsError):
        guard.authorize(_principal(1, RolePermission.UPDATE_POST), Operation.SET_IMPORTANCE)

    guard.authorize(_principal(1, RolePermission.SET_IMPORTANCE), Operation.SET_IMPORTANCE)


def test_owns_handles_missing_author() -> None:
    principal = _principal(1)
    assert not owns(principal, None)
    assert not owns(principal, Post(id=1, title="Orphan"))


def test_resolve_save_author_with_any_permission(guard: AuthorizationGuard) -> None:
    principal = _principal(1, RolePermission.SAVE_PUBLICATION)
    own = Author(id=1, profile_id=1)
    other = Author(id=2, profile_id=2)

    assert guard.resolve_save_author(principal, None, None, own) is own
    assert guard.resolve_save_author(principal, 1, None, own) is own
    assert guard.resolve_save_author(principal, 2, other, own) is other

    with pytest.raises(EntityNotFoundError):
        guard.resolve_save_author(principal, 99, None, own)


def test_resolve_save_author_own_only_is_forced_to_self(guard: AuthorizationGuard) -> None:
    principal = _principal(1, RolePermission.SAVE_OWN_PUBLICATION)
    own = Author(id=1, profile_id=1)
    other = Author(id=2, profile_id=2)

    assert guard.resolve_save_author(principal, 2, other, own) is own
    assert guard.resolve_save_author(principal, None, None, own) is own

    with pytest.raises(EntityNotFoundError):
        guard.resolve_save_author(principal, None, None, None)


def test_resolve_save_author_without_permissions(guard: AuthorizationGuard) -> None:
    with pytest.raises(ForbiddenPermissionsError):
        guard.resolve_save_author(_principal(1), None, None, Author(id=1, profile_id=1))
