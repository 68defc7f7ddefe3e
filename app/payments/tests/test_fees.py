"""
Tests for the fee calculator.

Covers the flat rate, tiers, half-up rounding, the [min, max] commission
clamp and the invariant that the parts add up to the gross amount.
"""

from decimal import Decimal

import pytest

from payments.fees import calculate_fees, percent_of
from payments.models import CommissionTier, PlatformSettings


def make_settings(**overrides):
    values = {
        "commission_rate": Decimal("10.00"),
        "min_commission": 0,
        "max_commission": 10_000_000,
        "payment_processing_fee": Decimal("0.00"),
        "tax_rate": Decimal("0.00"),
        "currency": "USD",
    }
    values.update(overrides)
    return PlatformSettings(**values)


class TestPercentOf:
    @pytest.mark.parametrize(
        "amount,percentage,expected",
        [
            (150000, Decimal("10"), 15000),
            (1005, Decimal("10"), 101),  # 100.5 rounds up
            (1004, Decimal("10"), 100),
            (333, Decimal("2.9"), 10),  # 9.657
            (0, Decimal("10"), 0),
        ],
    )
    def test_rounds_half_up(self, amount, percentage, expected):
        assert percent_of(amount, percentage) == expected


class TestCalculateFees:
    def test_flat_ten_percent(self):
        breakdown = calculate_fees(150000, make_settings())

        assert breakdown.platform_commission == 15000
        assert breakdown.freelancer_amount == 135000
        assert breakdown.commission_rate == Decimal("10.00")
        assert breakdown.commission_tier_name is None

    def test_minimum_commission_applies(self):
        breakdown = calculate_fees(1000, make_settings(min_commission=500))

        assert breakdown.platform_commission == 500
        assert breakdown.freelancer_amount == 500

    def test_maximum_commission_applies(self):
        breakdown = calculate_fees(10_000_000, make_settings(max_commission=50000))

        assert breakdown.platform_commission == 50000
        assert breakdown.freelancer_amount == 9_950_000

    def test_tier_rate_is_used(self):
        tiers = [
            CommissionTier(
                name="Enterprise",
                commission_percentage=Decimal("5.00"),
                min_amount=100000,
                is_active=True,
            )
        ]

        breakdown = calculate_fees(150000, make_settings(), tiers)

        assert breakdown.platform_commission == 7500
        assert breakdown.commission_tier_name == "Enterprise"

    def test_processing_fee_and_tax(self):
        breakdown = calculate_fees(
            10000,
            make_settings(payment_processing_fee=Decimal("2.90"), tax_rate=Decimal("5.00")),
        )

        assert breakdown.platform_commission == 1000
        assert breakdown.processing_fee == 290
        assert breakdown.tax == 500
        assert breakdown.total_fees == 1790
        assert breakdown.freelancer_amount == 8210

    @pytest.mark.parametrize("amount", [1, 99, 1005, 12345, 999_999])
    def test_parts_sum_to_amount(self, amount):
        breakdown = calculate_fees(
            amount,
            make_settings(payment_processing_fee=Decimal("2.90"), tax_rate=Decimal("1.25")),
        )

        assert (
            breakdown.platform_commission
            + breakdown.processing_fee
            + breakdown.tax
            + breakdown.freelancer_amount
            == amount
        )

    def test_to_dict(self):
        data = calculate_fees(150000, make_settings()).to_dict()

        assert data["amount"] == 150000
        assert data["total_fees"] == 15000
        assert data["commission_rate"] == "10.00"
        assert data["currency"] == "USD"
