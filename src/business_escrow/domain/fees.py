"""Platform fee arithmetic.

All amounts are integer minor units (cents). The fee is rounded half-up to
the nearest unit, so 920000 at 5% gives 46000 and 333 at 5% gives 17.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

DEFAULT_PLATFORM_FEE_PERCENT = Decimal("5")


@dataclass(frozen=True)
class FeeBreakdown:
    """Derived fee figures for one transaction amount."""

    transaction_amount: int
    platform_fee_percent: Decimal
    platform_fee_amount: int
    buyer_total_amount: int
    seller_net_amount: int


def calculate_fees(
    amount: int,
    fee_percent: Decimal = DEFAULT_PLATFORM_FEE_PERCENT,
) -> FeeBreakdown:
    """Compute the platform fee, what the buyer pays, and what the seller nets.

    Raises:
        ValueError: If the amount is not a positive integer or the percent is negative.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f"Transaction amount must be a positive integer, got {amount!r}")
    percent = Decimal(fee_percent)
    if percent < 0:
        raise ValueError(f"Fee percent must not be negative, got {fee_percent}")

    fee = int((Decimal(amount) * percent / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return FeeBreakdown(
        transaction_amount=amount,
        platform_fee_percent=percent,
        platform_fee_amount=fee,
        buyer_total_amount=amount + fee,
        seller_net_amount=amount,
    )


def format_currency(amount_cents: int) -> str:
    """Render minor units as a dollar string, e.g. 966000 -> "$9,660.00"."""
    dollars = (Decimal(amount_cents) / 100).quantize(Decimal("0.01"))
    return f"${dollars:,.2f}"
