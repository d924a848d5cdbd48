"""Permission checks for post mutations.

Every mutating operation maps to a rule in :data:`PERMISSION_RULES`. A rule
names the permission that allows the operation on any post and, for the
operations authors perform on their own work, the permission that allows it
only on posts the principal owns.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from medpost.core.exceptions import EntityNotFoundError, ForbiddenPermissionsError
from medpost.models import Author, Post, RolePermission, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """Authenticated actor as supplied by the identity layer."""

    id: int
    email: str
    display_name: str
    permissions: frozenset[RolePermission]

    @classmethod
    def from_user(cls, user: User) -> Principal:
        permissions = user.role.permission_set if user.role is not None else frozenset()
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            permissions=permissions,
        )

    def has(self, permission: RolePermission | None) -> bool:
        return permission is not None and permission in self.permissions


class Operation(str, enum.Enum):
    """Mutating operations subject to authorization."""

    SAVE = "save"
    UPDATE = "update"
    DELETE = "delete"
    SET_STATUS = "set_status"
    SET_PUBLISHED_AT = "set_published_at"
    SET_AUTHOR = "set_author"
    SET_VIEWS = "set_views"
    SET_IMPORTANCE = "set_importance"


@dataclass(frozen=True)
class PermissionRule:
    """Pair of permissions guarding one operation."""

    any_permission: RolePermission
    own_permission: RolePermission | None = None

    def allows(self, principal: Principal, owns_target: bool) -> bool:
        if principal.has(self.any_permission):
            return True
        return principal.has(self.own_permission) and owns_target


PERMISSION_RULES: Mapping[Operation, PermissionRule] = MappingProxyType(
    {
        Operation.SAVE: PermissionRule(
            RolePermission.SAVE_PUBLICATION, RolePermission.SAVE_OWN_PUBLICATION
        ),
        Operation.UPDATE: PermissionRule(RolePermission.UPDATE_POST, RolePermission.UPDATE_OWN_POST),
        Operation.DELETE: PermissionRule(RolePermission.DELETE_POST, RolePermission.DELETE_OWN_POST),
        Operation.SET_STATUS: PermissionRule(RolePermission.UPDATE_POST),
        Operation.SET_PUBLISHED_AT: PermissionRule(RolePermission.UPDATE_POST),
        Operation.SET_AUTHOR: PermissionRule(RolePermission.UPDATE_POST),
        Operation.SET_VIEWS: PermissionRule(RolePermission.UPDATE_POST),
        Operation.SET_IMPORTANCE: PermissionRule(RolePermission.SET_IMPORTANCE),
    }
)


def owns(principal: Principal, post: Post | None) -> bool:
    """Return True if the post is attributed to the principal's author profile."""
    if post is None or post.author is None:
        return False
    return post.author.profile_id == principal.id


class AuthorizationGuard:
    """Decide whether a principal may perform an operation on a post."""

    def __init__(self, rules: Mapping[Operation, PermissionRule] = PERMISSION_RULES) -> None:
        self.rules = rules

    def is_allowed(self, principal: Principal, operation: Operation, post: Post | None = None) -> bool:
        return self.rules[operation].allows(principal, owns(principal, post))

    def authorize(self, principal: Principal, operation: Operation, post: Post | None = None) -> None:
        """Raise unless the principal may perform ``operation`` on ``post``.

        Raises:
            ForbiddenPermissionsError: If neither the "any" permission nor the
                "own" permission together with ownership is present.
        """
        if not self.is_allowed(principal, operation, post):
            logger.info(
                "Denied %s for principal %s on post %s",
                operation.value,
                principal.id,
                getattr(post, "id", None),
            )
            raise ForbiddenPermissionsError(
                f"Principal {principal.id} is not allowed to {operation.value} this post"
            )

    def resolve_save_author(
        self,
        principal: Principal,
        requested_author_id: int | None,
        requested_author: Author | None,
        own_author: Author | None,
    ) -> Author:
        """Return the author a newly saved post is attributed to.

        Principals holding the "any" permission may attribute the post to any
        existing author. Principals holding only the "own" permission always
        get their own author profile, even when another author was requested;
        the request is downgraded rather than rejected.

        Raises:
            ForbiddenPermissionsError: If the principal may not save posts at all.
            EntityNotFoundError: If the resulting author does not exist.
        """
        rule = self.rules[Operation.SAVE]
        if principal.has(rule.any_permission):
            if requested_author_id is None or (
                own_author is not None and requested_author_id == own_author.id
            ):
                target = own_author
            else:
                target = requested_author
            if target is None:
                raise EntityNotFoundError(f"Author {requested_author_id} not found")
            return target

        if principal.has(rule.own_permission):
            if own_author is None:
                raise EntityNotFoundError(f"Principal {principal.id} has no author profile")
            if requested_author_id is not None and requested_author_id != own_author.id:
                logger.info(
                    "Principal %s may only save own posts; attributing to author %s instead of %s",
                    principal.id,
                    own_author.id,
                    requested_author_id,
                )
            return own_author

        raise ForbiddenPermissionsError(f"Principal {principal.id} is not allowed to save posts")
