from datetime import datetime
from typing import AsyncIterator, Iterable

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .usecases.members import MemberSuggestionService
from .utils.auth import Identity, decode_access_token
from .utils.time import to_utc_naive


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_identity(authorization: str | None = Header(default=None)) -> Identity:
    if authorization is None:
        raise _unauthorized("Authorization header required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Bearer token required")
    settings = get_settings()
    try:
        return decode_access_token(token.strip(), secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError as exc:
        raise _unauthorized("invalid or expired token") from exc


async def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return identity


def get_member_service(request: Request) -> MemberSuggestionService:
    return request.app.state.member_service


def utc_naive_or_400(dt: datetime, field: str) -> datetime:
    if dt.tzinfo is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} must have timezone")
    return to_utc_naive(dt)


def utc_naive_list_or_400(values: Iterable[datetime], field: str) -> list[datetime]:
    return [utc_naive_or_400(dt, field) for dt in values]
