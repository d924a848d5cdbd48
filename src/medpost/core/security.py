"""JWT helpers for bearer authentication."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import jwt

from medpost.core.settings import settings


def create_access_token(user_id: int, expires_minutes: int | None = None) -> str:
    """Return a signed access token whose subject is the user identifier.

    Args:
        user_id: Primary key of the authenticated user.
        expires_minutes: Optional lifetime override; defaults to the configured TTL.
    """
    lifetime = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    expire = datetime.now(UTC) + timedelta(minutes=lifetime)
    payload = {"sub": str(user_id), "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> int | None:
    """Return the user identifier carried by a token, or None if it has no subject.

    Raises:
        jose.JWTError: If the token signature or claims are invalid.
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    subject = payload.get("sub")
    if subject is None:
        return None
    return int(subject)
