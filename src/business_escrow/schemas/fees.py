"""Pydantic schemas for the fee API."""

from __future__ import annotations

import uuid  # noqa: TC003 - pydantic resolves annotations at runtime
from datetime import datetime  # noqa: TC003
from decimal import Decimal

from pydantic import Field, field_serializer

from business_escrow.domain.fees import FeeBreakdown, format_currency
from business_escrow.schemas.common import CamelModel


class FeeCalculateRequest(CamelModel):
    transaction_amount: int | None = Field(
        default=None, description="Amount in cents", examples=[920000]
    )


class EscrowReferenceRequest(CamelModel):
    """Body of the invoice and transfer endpoints."""

    escrow_id: uuid.UUID


class FeeFormatted(CamelModel):
    transaction_amount: str
    platform_fee_amount: str
    buyer_total_amount: str
    seller_net_amount: str


class FeeBreakdownResponse(CamelModel):
    transaction_amount: int
    platform_fee_percent: Decimal
    platform_fee_amount: int
    buyer_total_amount: int
    seller_net_amount: int
    formatted: FeeFormatted

    @field_serializer("platform_fee_percent")
    def _percent_as_number(self, value: Decimal) -> float:
        return float(value)

    @classmethod
    def from_breakdown(cls, breakdown: FeeBreakdown) -> FeeBreakdownResponse:
        return cls(
            transaction_amount=breakdown.transaction_amount,
            platform_fee_percent=breakdown.platform_fee_percent,
            platform_fee_amount=breakdown.platform_fee_amount,
            buyer_total_amount=breakdown.buyer_total_amount,
            seller_net_amount=breakdown.seller_net_amount,
            formatted=FeeFormatted(
                transaction_amount=format_currency(breakdown.transaction_amount),
                platform_fee_amount=format_currency(breakdown.platform_fee_amount),
                buyer_total_amount=format_currency(breakdown.buyer_total_amount),
                seller_net_amount=format_currency(breakdown.seller_net_amount),
            ),
        )


class FeeStatusFlags(CamelModel):
    calculated: bool
    invoice_generated: bool
    transferred: bool


class EscrowFeeResponse(CamelModel):
    escrow_id: uuid.UUID
    escrow_status: str
    breakdown: FeeBreakdownResponse
    fee_invoice_url: str | None
    fee_transferred_at: datetime | None
    platform_account_id: str | None
    status: FeeStatusFlags


class FeeInvoiceResponse(CamelModel):
    invoice_url: str
    escrow_id: uuid.UUID
    platform_fee_amount: int
    generated_at: datetime


class FeeTransferResponse(CamelModel):
    success: bool
    escrow_id: uuid.UUID
    platform_fee_amount: int
    platform_account_id: str
    fee_transferred_at: datetime
