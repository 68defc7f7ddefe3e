"""
Commission policy.

Resolves the commission percentage for an amount: the first active tier
whose inclusive range contains the amount wins, otherwise the flat rate
from platform settings applies. Pure function, no database access.

Usage:
    from payments.commission import resolve_rate

    rate = resolve_rate(150000, settings, tiers)
    rate.percentage   # Decimal("10.00")
    rate.tier_name    # None when the flat rate applied
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from payments.models import CommissionTier, PlatformSettings


@dataclass(frozen=True)
class CommissionRate:
    percentage: Decimal
    tier_name: str | None = None


def resolve_rate(
    amount: int,
    settings: PlatformSettings,
    tiers: Iterable[CommissionTier] = (),
) -> CommissionRate:
    """
    Select the commission percentage for ``amount``.

    Args:
        amount: Amount in minor units
        settings: Platform settings providing the flat commission_rate
        tiers: Tiers in evaluation order; inactive tiers are skipped

    Returns:
        CommissionRate with the percentage and the matching tier name
    """
    for tier in tiers:
        if tier.is_active and tier.contains(amount):
            return CommissionRate(
                percentage=Decimal(tier.commission_percentage),
                tier_name=tier.name,
            )
    return CommissionRate(percentage=Decimal(settings.commission_rate))
