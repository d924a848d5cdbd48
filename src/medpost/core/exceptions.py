"""Domain exceptions raised by the post lifecycle services."""

from __future__ import annotations


class MedpostError(RuntimeError):
    """Base class for all domain errors raised by medpost services."""


class ForbiddenPermissionsError(MedpostError):
    """Raised when a principal lacks the permission or ownership an operation needs.

    No mutation is performed before this error is raised and callers must not
    retry the operation.
    """

    def __init__(self, message: str = "Forbidden: insufficient permissions") -> None:
        super().__init__(message)


class EntityNotFoundError(MedpostError):
    """Raised when a referenced post, author or user does not exist."""

    def __init__(self, message: str = "Entity not found") -> None:
        super().__init__(message)


class StatusNotFoundError(EntityNotFoundError):
    """Raised when a status ordinal or name does not map to a known status."""

    def __init__(self, message: str = "Status not found") -> None:
        super().__init__(message)
