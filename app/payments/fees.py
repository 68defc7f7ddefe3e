"""
Fee calculator.

Splits a gross amount (integer minor units) into platform commission,
processing fee, tax and the freelancer's net amount. Percentages are
applied with Decimal arithmetic and rounded half-up to whole minor units;
the commission is then clamped to the configured [min, max] bounds.

The four parts always sum to the gross amount exactly.

Usage:
    from payments.fees import calculate_fees

    breakdown = calculate_fees(150000, settings)
    breakdown.platform_commission   # 15000
    breakdown.freelancer_amount     # 135000 (with 0% processing and tax)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from payments.commission import resolve_rate

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

    from payments.models import CommissionTier, PlatformSettings

HUNDRED = Decimal("100")


def percent_of(amount: int, percentage: Decimal) -> int:
    """Return ``amount * percentage / 100`` rounded half-up to an integer."""
    value = Decimal(amount) * Decimal(percentage) / HUNDRED
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class FeeBreakdown:
    amount: int
    platform_commission: int
    processing_fee: int
    tax: int
    freelancer_amount: int
    currency: str
    commission_rate: Decimal
    commission_tier_name: str | None = None

    @property
    def total_fees(self) -> int:
        return self.platform_commission + self.processing_fee + self.tax

    def to_dict(self) -> dict[str, Any]:
        return {
            "amount": self.amount,
            "platform_commission": self.platform_commission,
            "processing_fee": self.processing_fee,
            "tax": self.tax,
            "total_fees": self.total_fees,
            "freelancer_amount": self.freelancer_amount,
            "currency": self.currency,
            "commission_rate": str(self.commission_rate),
            "commission_tier_name": self.commission_tier_name,
        }


def calculate_fees(
    amount: int,
    settings: PlatformSettings,
    tiers: Iterable[CommissionTier] = (),
) -> FeeBreakdown:
    """
    Compute the fee breakdown for ``amount``.

    Does not validate ``amount``; callers reject non-positive amounts.
    """
    rate = resolve_rate(amount, settings, tiers)

    commission = percent_of(amount, rate.percentage)
    commission = max(settings.min_commission, min(commission, settings.max_commission))

    processing_fee = percent_of(amount, settings.payment_processing_fee)
    tax = percent_of(amount, settings.tax_rate)

    return FeeBreakdown(
        amount=amount,
        platform_commission=commission,
        processing_fee=processing_fee,
        tax=tax,
        freelancer_amount=amount - commission - processing_fee - tax,
        currency=settings.currency,
        commission_rate=rate.percentage,
        commission_tier_name=rate.tier_name,
    )
