from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.database import get_db
from blogapi.exceptions import AppError, Unauthenticated
from blogapi.pagination import PageRequest, normalize_page
from blogapi.security import Caller
from blogapi.services.auth_service import resolve_caller

bearer_scheme = HTTPBearer(auto_error=False)


class PaginationParams:
    """
    Reusable FastAPI dependency that normalises ``page`` / ``limit`` query
    parameters.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(pagination: PaginationParams = Depends()):
            ...

    The raw values are accepted as strings so that out-of-range or
    unparseable input is clamped to the defaults instead of rejected.
    """

    def __init__(
        self,
        page: str | None = Query(None, description="Page number (1-based)."),
        limit: str | None = Query(None, description="Items per page (1-100, default 10)."),
    ) -> None:
        self.request: PageRequest = normalize_page(page, limit)

    @property
    def page(self) -> int:
        return self.request.page

    @property
    def limit(self) -> int:
        return self.request.limit


async def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Caller | None:
    """The authenticated caller, or None for anonymous / unverifiable requests."""
    if credentials is None:
        return None
    try:
        caller = await resolve_caller(db, credentials.credentials)
    except AppError:
        return None
    request.state.caller_id = caller.user_id
    return caller


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Caller:
    if credentials is None:
        raise Unauthenticated()
    caller = await resolve_caller(db, credentials.credentials)
    request.state.caller_id = caller.user_id
    return caller
