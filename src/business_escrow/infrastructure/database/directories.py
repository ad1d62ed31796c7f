"""SQL-backed adapters for the collaborator ports in domain/ports.py.

Each adapter reads a table owned by another marketplace service and
returns a frozen domain summary, so services never hold ORM rows that
belong to someone else.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select

from business_escrow.domain.ports import CurrentUser, ListingSummary, LoiSummary, UserSummary
from business_escrow.infrastructure.database.orm_models import (
    Listing,
    LoiOffer,
    User,
    UserRole,
    UserSession,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class SqlListingDirectory:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_listing(self, listing_id: int) -> ListingSummary | None:
        listing = await self._session.get(Listing, listing_id)
        if listing is None:
            return None
        return ListingSummary(
            id=listing.id,
            seller_id=listing.seller_id,
            title=listing.title,
            business_model=listing.business_model,
            niche=listing.niche,
            business_type=listing.business_type,
            asking_price=listing.asking_price,
            status=listing.status,
        )


class SqlLoiDirectory:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_loi(self, loi_id: int) -> LoiSummary | None:
        loi = await self._session.get(LoiOffer, loi_id)
        if loi is None:
            return None
        return LoiSummary(
            id=loi.id,
            listing_id=loi.listing_id,
            buyer_id=loi.buyer_id,
            seller_id=loi.seller_id,
            status=loi.status,
            offer_price=loi.offer_price,
        )


class SqlUserDirectory:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_users(self, user_ids: list[str]) -> dict[str, UserSummary]:
        if not user_ids:
            return {}
        result = await self._session.execute(select(User).where(User.id.in_(set(user_ids))))
        return {
            user.id: UserSummary(id=user.id, name=user.name, email=user.email, image=user.image)
            for user in result.scalars().all()
        }


class SqlRoleDirectory:
    """Admin check against the user_roles table."""

    def __init__(self, session: AsyncSession, admin_role: str = "admin") -> None:
        self._session = session
        self._admin_role = admin_role

    async def is_admin(self, user_id: str) -> bool:
        result = await self._session.execute(
            select(UserRole.id).where(
                UserRole.user_id == user_id,
                UserRole.role == self._admin_role,
            )
        )
        return result.first() is not None


async def resolve_session_user(session: AsyncSession, token: str) -> CurrentUser | None:
    """Return the user behind an unexpired session token, or None."""
    result = await session.execute(
        select(User)
        .join(UserSession, UserSession.user_id == User.id)
        .where(
            UserSession.token == token,
            UserSession.expires_at > datetime.now(UTC),
        )
    )
    user = result.scalar_one_or_none()
    if user is None:
        return None
    return CurrentUser(id=user.id, email=user.email, name=user.name)
