"""Tests for platform fee arithmetic."""

from __future__ import annotations

from decimal import Decimal

import pytest

from business_escrow.domain.fees import calculate_fees, format_currency


class TestCalculateFees:
    def test_standard_five_percent(self) -> None:
        fees = calculate_fees(920_000, Decimal("5"))
        assert fees.platform_fee_amount == 46_000
        assert fees.buyer_total_amount == 966_000
        assert fees.seller_net_amount == 920_000
        assert fees.transaction_amount == 920_000

    def test_buyer_total_is_amount_plus_fee(self) -> None:
        fees = calculate_fees(12_345, Decimal("5"))
        assert fees.buyer_total_amount == fees.transaction_amount + fees.platform_fee_amount
        assert fees.seller_net_amount == fees.transaction_amount

    def test_rounds_half_up(self) -> None:
        # 333 * 5% = 16.65 -> 17
        assert calculate_fees(333, Decimal("5")).platform_fee_amount == 17
        # 10 * 5% = 0.5 -> 1
        assert calculate_fees(10, Decimal("5")).platform_fee_amount == 1
        # 9 * 5% = 0.45 -> 0
        assert calculate_fees(9, Decimal("5")).platform_fee_amount == 0

    def test_fractional_percent(self) -> None:
        assert calculate_fees(100_000, Decimal("2.5")).platform_fee_amount == 2_500

    def test_zero_percent(self) -> None:
        fees = calculate_fees(50_000, Decimal("0"))
        assert fees.platform_fee_amount == 0
        assert fees.buyer_total_amount == 50_000

    @pytest.mark.parametrize("amount", [0, -1, 10.5, "100", True, None])
    def test_rejects_invalid_amounts(self, amount: object) -> None:
        with pytest.raises(ValueError):
            calculate_fees(amount, Decimal("5"))  # type: ignore[arg-type]

    def test_rejects_negative_percent(self) -> None:
        with pytest.raises(ValueError):
            calculate_fees(1_000, Decimal("-1"))


class TestFormatCurrency:
    def test_formats_with_separators(self) -> None:
        assert format_currency(966_000) == "$9,660.00"

    def test_small_amounts(self) -> None:
        assert format_currency(5) == "$0.05"
        assert format_currency(0) == "$0.00"
