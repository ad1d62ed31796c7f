"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
the authenticated caller, and configuration.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from business_escrow.config import Settings, get_settings
from business_escrow.domain.exceptions import UnauthenticatedError
from business_escrow.domain.ports import CurrentUser
from business_escrow.infrastructure.database.directories import resolve_session_user
from business_escrow.infrastructure.database.engine import get_async_session
from business_escrow.logging_config import get_logger

logger = get_logger(__name__)

BEARER_PREFIX = "bearer "


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async for session in get_async_session():
        yield session


async def get_current_user(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_db_session),
) -> CurrentUser:
    """Resolve the caller from an `Authorization: Bearer <session token>` header."""
    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        raise UnauthenticatedError()
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise UnauthenticatedError()

    user = await resolve_session_user(session, token)
    if user is None:
        logger.info("auth.session_rejected")
        raise UnauthenticatedError("Session is invalid or expired")
    return user


def get_app_settings() -> Settings:
    """Provide the application settings."""
    return get_settings()
