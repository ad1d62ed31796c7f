"""Collaborator ports.

The escrow subsystem consumes identity, listings, LOIs and admin roles from
other parts of the marketplace. These Protocols describe only the shape it
needs; the SQL-backed adapters live in infrastructure/database/directories.py.

The domain layer has ZERO imports from SQLAlchemy or FastAPI.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class CurrentUser:
    """The authenticated caller, resolved from a session token."""

    id: str
    email: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class UserSummary:
    """Public profile of a buyer or seller, used to enrich escrow reads."""

    id: str
    name: str | None
    email: str | None
    image: str | None = None

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "image": self.image}


@dataclass(frozen=True)
class ListingSummary:
    """The parts of a listing the escrow subsystem reads.

    Attributes:
        id: Listing primary key.
        seller_id: Owner of the listing; must match the escrow's seller.
        title: Display title.
        business_model: e.g. "SaaS", "Content".
        niche: Market niche.
        business_type: e.g. "ecommerce".
        asking_price: Asking price in minor units.
        status: Listing lifecycle state, owned by the listings service.
    """

    id: int
    seller_id: str
    title: str | None = None
    business_model: str | None = None
    niche: str | None = None
    business_type: str | None = None
    asking_price: int | None = None
    status: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sellerId": self.seller_id,
            "title": self.title,
            "businessModel": self.business_model,
            "niche": self.niche,
            "businessType": self.business_type,
            "askingPrice": self.asking_price,
            "status": self.status,
        }


@dataclass(frozen=True)
class LoiSummary:
    """An accepted (or not) letter of intent that may precede an escrow."""

    id: int
    listing_id: int
    buyer_id: str
    seller_id: str
    status: str
    offer_price: int | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "listingId": self.listing_id,
            "buyerId": self.buyer_id,
            "sellerId": self.seller_id,
            "status": self.status,
            "offerPrice": self.offer_price,
        }


@runtime_checkable
class ListingDirectory(Protocol):
    async def get_listing(self, listing_id: int) -> ListingSummary | None:
        """Return the listing, or None if it does not exist."""
        ...


@runtime_checkable
class LoiDirectory(Protocol):
    async def get_loi(self, loi_id: int) -> LoiSummary | None:
        """Return the LOI, or None if it does not exist."""
        ...


@runtime_checkable
class UserDirectory(Protocol):
    async def get_users(self, user_ids: list[str]) -> dict[str, UserSummary]:
        """Return the known users among user_ids, keyed by id."""
        ...


@runtime_checkable
class RoleDirectory(Protocol):
    async def is_admin(self, user_id: str) -> bool:
        """Return True if the user holds the platform admin role."""
        ...
