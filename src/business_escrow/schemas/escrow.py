"""Pydantic schemas for the escrow transaction and webhook API.

These schemas define the request/response shapes for the REST API. They
are separate from the ORM models to keep the API and database layers apart.
"""

from __future__ import annotations

import uuid  # noqa: TC003 - pydantic resolves annotations at runtime
from datetime import datetime  # noqa: TC003
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from business_escrow.schemas.common import CamelModel, PaginationInfo

# Body keys that would let a caller choose the buyer.
FORBIDDEN_BUYER_KEYS = frozenset({"buyerId", "buyer_id"})

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class CreateEscrowRequest(CamelModel):
    """Request body for creating an escrow. The buyer is the caller."""

    model_config = ConfigDict(extra="allow")

    listing_id: int | None = Field(default=None, description="Listing being purchased")
    seller_id: str | None = Field(default=None, description="Must be the listing's seller")
    escrow_amount: int | None = Field(
        default=None,
        description="Amount held in escrow, in cents",
        examples=[920000],
    )
    loi_id: int | None = Field(default=None, description="Accepted LOI this escrow follows")
    escrow_provider: str | None = Field(default=None, max_length=64)
    escrow_reference_id: str | None = Field(
        default=None,
        max_length=255,
        description="The provider's transaction reference; webhooks look it up",
    )
    notes: str | None = None
    idempotency_key: str | None = Field(
        default=None,
        description="Optional key to prevent duplicate escrow creation",
    )

    def spoofed_buyer_keys(self) -> set[str]:
        """Return any buyer-identifying keys present in the body."""
        return FORBIDDEN_BUYER_KEYS.intersection(self.model_extra or {})


class UpdateStatusRequest(CamelModel):
    status: str | None = Field(
        default=None,
        description="One of initiated, funded, in_migration, complete, released",
    )
    notes: str | None = None


class WebhookRequest(BaseModel):
    """Provider callback. Keys are snake_case as the provider sends them."""

    model_config = ConfigDict(extra="allow")

    escrow_reference_id: str | None = None
    status: str | None = None
    webhook_secret: str | None = None
    event_type: str | None = None
    payload: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class EscrowResponse(CamelModel):
    """An escrow transaction as seen by its parties (without the secret)."""

    id: uuid.UUID
    listing_id: int
    loi_id: int | None
    buyer_id: str
    seller_id: str
    status: str
    escrow_amount: int
    platform_fee_percent: Decimal
    platform_fee_amount: int | None
    buyer_total_amount: int | None
    seller_net_amount: int | None
    escrow_provider: str | None
    escrow_reference_id: str | None
    fee_invoice_url: str | None
    fee_transferred_at: datetime | None
    platform_account_id: str | None
    initiated_at: datetime | None
    funded_at: datetime | None
    migration_started_at: datetime | None
    completed_at: datetime | None
    released_at: datetime | None
    notes: str | None
    created_at: datetime
    updated_at: datetime

    @field_serializer("platform_fee_percent")
    def _percent_as_number(self, value: Decimal) -> float:
        return float(value)


class EscrowCreatedResponse(EscrowResponse):
    """Creation response; carries the secret the provider must echo back."""

    webhook_secret: str


class EscrowDetailResponse(EscrowCreatedResponse):
    """Single-escrow read, enriched with its listing, LOI and parties."""

    listing: dict | None = None
    loi: dict | None = None
    buyer: dict | None = None
    seller: dict | None = None


class EscrowListResponse(CamelModel):
    escrows: list[EscrowResponse]
    pagination: PaginationInfo


class WebhookResponse(CamelModel):
    success: bool
    message: str
    escrow_id: uuid.UUID
    previous_status: str
    new_status: str
    event_type: str
    processed_at: datetime
