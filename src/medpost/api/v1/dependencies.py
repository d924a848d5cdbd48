"""Request-scoped dependencies: caller identity, sessions, paging and the post service."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session, sessionmaker

from medpost.core.security import decode_access_token
from medpost.core.settings import settings
from medpost.db.session import get_db
from medpost.models import User
from medpost.repositories.pagination import SORT_DESC, PageRequest
from medpost.repositories.post_repo import SORTABLE_FIELDS
from medpost.services.analytics import AnalyticsClient, get_analytics_client
from medpost.services.audit import AuditSink, DatabaseAuditSink
from medpost.services.authorization import Principal
from medpost.services.post_service import PostService

bearer_scheme = HTTPBearer(auto_error=False)

SessionDep = Annotated[Session, Depends(get_db)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Resolve the bearer token to a stored user.

    A missing header, an undecodable token and a token for a user that no
    longer exists all answer 401.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = decode_access_token(credentials.credentials)
    except (JWTError, ValueError) as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


CurrentUserDep = Annotated[User, Depends(get_current_user)]


def get_current_principal(user: CurrentUserDep) -> Principal:
    """Return the authenticated actor handed to the service layer."""
    return Principal.from_user(user)


CurrentPrincipalDep = Annotated[Principal, Depends(get_current_principal)]


def get_audit_sink(db: SessionDep) -> AuditSink:
    """Return an audit sink writing to the request's database in its own session."""
    return DatabaseAuditSink(sessionmaker(bind=db.get_bind(), expire_on_commit=False))


def get_analytics() -> AnalyticsClient:
    """Return the shared analytics client."""
    return get_analytics_client()


AuditSinkDep = Annotated[AuditSink, Depends(get_audit_sink)]
AnalyticsDep = Annotated[AnalyticsClient, Depends(get_analytics)]


def get_post_service(db: SessionDep, audit: AuditSinkDep, analytics: AnalyticsDep) -> PostService:
    return PostService(db, audit=audit, analytics=analytics)


PostServiceDep = Annotated[PostService, Depends(get_post_service)]


def pagination(
    default_sort: tuple[tuple[str, str], ...] = (("modified_at", SORT_DESC),),
    default_size: int | None = None,
) -> Callable[..., PageRequest]:
    """Build a dependency that turns ``page``/``size``/``sort`` query parameters into a PageRequest.

    ``sort`` takes ``field,direction`` values and may be repeated.
    """

    def dependency(
        page: Annotated[int, Query(ge=0)] = 0,
        size: Annotated[int | None, Query(ge=1)] = None,
        sort: Annotated[list[str] | None, Query()] = None,
    ) -> PageRequest:
        effective_size = min(size or default_size or settings.default_page_size, settings.max_page_size)
        try:
            keys = PageRequest.parse_sort(sort) or default_sort
            request = PageRequest(page=page, size=effective_size, sort=keys)
        except ValueError as err:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
        unknown = [name for name, _ in request.sort if name not in SORTABLE_FIELDS]
        if unknown:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unsupported sort field: {', '.join(unknown)}",
            )
        return request

    return dependency
