"""
PlatformSettings and CommissionTier models.

PlatformSettings is an append-only, versioned configuration store: every
update inserts a new row with version + 1 and deactivates the previous
one, so past fee configurations stay auditable. Exactly one row is active.

CommissionTier rows define amount-banded commission percentages evaluated
in ``position`` order before the flat rate.

Usage:
    from payments.services.settings_service import PlatformSettingsService

    current = PlatformSettingsService.get_current()
    current.commission_rate        # Decimal("10.00")
    current.min_commission         # 100 (minor units)
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.models import BaseModel

PERCENT_VALIDATORS = [
    MinValueValidator(Decimal("0")),
    MaxValueValidator(Decimal("100")),
]

DEFAULT_SETTINGS = {
    "commission_rate": Decimal("10.00"),
    "min_commission": 100,
    "max_commission": 1_000_000,
    "payment_processing_fee": Decimal("2.90"),
    "tax_rate": Decimal("0.00"),
    "currency": "USD",
    "escrow_hold_days": 7,
    "withdrawal_min_amount": 1000,
    "withdrawal_fee": 0,
}


class PlatformSettings(BaseModel):
    """
    One version of the platform fee configuration.

    Fields:
        commission_rate: Flat commission percentage used when no tier matches
        min_commission / max_commission: Clamp bounds in minor units
        payment_processing_fee: Gateway fee percentage passed to the payer
        tax_rate: Tax percentage
        escrow_hold_days: Days a captured payment stays in escrow before
            it becomes eligible for automatic release
        is_active: True for the single current version
        version: Monotonic version number, previous active version + 1
        updated_by: Admin who created this version

    Note:
        Rows are never updated after creation. Use
        PlatformSettingsService.update() to append a new version.
    """

    # ==========================================================================
    # Commission & Fees
    # ==========================================================================

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=DEFAULT_SETTINGS["commission_rate"],
        validators=PERCENT_VALIDATORS,
        help_text="Flat platform commission percentage (0-100)",
    )

    min_commission = models.PositiveBigIntegerField(
        default=DEFAULT_SETTINGS["min_commission"],
        help_text="Minimum commission in minor units",
    )

    max_commission = models.PositiveBigIntegerField(
        default=DEFAULT_SETTINGS["max_commission"],
        help_text="Maximum commission in minor units",
    )

    payment_processing_fee = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=DEFAULT_SETTINGS["payment_processing_fee"],
        validators=PERCENT_VALIDATORS,
        help_text="Payment processing fee percentage (0-100)",
    )

    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=DEFAULT_SETTINGS["tax_rate"],
        validators=PERCENT_VALIDATORS,
        help_text="Tax percentage (0-100)",
    )

    currency = models.CharField(
        max_length=3,
        default=DEFAULT_SETTINGS["currency"],
        help_text="ISO 4217 currency code (upper case)",
    )

    # ==========================================================================
    # Escrow & Withdrawals
    # ==========================================================================

    escrow_hold_days = models.PositiveIntegerField(
        default=DEFAULT_SETTINGS["escrow_hold_days"],
        help_text="Days funds stay in escrow before automatic release",
    )

    withdrawal_min_amount = models.PositiveBigIntegerField(
        default=DEFAULT_SETTINGS["withdrawal_min_amount"],
        help_text="Minimum withdrawal amount in minor units",
    )

    withdrawal_fee = models.PositiveBigIntegerField(
        default=DEFAULT_SETTINGS["withdrawal_fee"],
        help_text="Flat withdrawal fee in minor units",
    )

    # ==========================================================================
    # Policies
    # ==========================================================================

    refund_policy = models.TextField(blank=True, default="")
    terms_of_service = models.TextField(blank=True, default="")
    privacy_policy = models.TextField(blank=True, default="")

    # ==========================================================================
    # Versioning
    # ==========================================================================

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether this is the current settings version",
    )

    version = models.PositiveIntegerField(
        default=1,
        help_text="Settings version, incremented on every update",
    )

    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="platform_settings_versions",
        help_text="Admin who created this version",
    )

    class Meta:
        ordering = ["-version"]
        verbose_name = "Platform Settings"
        verbose_name_plural = "Platform Settings"
        constraints = [
            models.UniqueConstraint(
                fields=["is_active"],
                condition=models.Q(is_active=True),
                name="platform_settings_single_active",
            ),
            models.UniqueConstraint(
                fields=["version"],
                name="platform_settings_unique_version",
            ),
            models.CheckConstraint(
                condition=models.Q(min_commission__lte=models.F("max_commission")),
                name="platform_settings_commission_bounds",
            ),
        ]

    def __str__(self) -> str:
        state = "active" if self.is_active else "archived"
        return f"PlatformSettings(v{self.version}, {state})"


class CommissionTier(BaseModel):
    """
    Amount-banded commission percentage.

    A tier matches when ``min_amount <= amount <= max_amount``; a missing
    bound is unbounded. Active tiers are evaluated in ``position`` order and
    the first match wins.

    Tiers are not edited in place once transactions reference them.
    Transactions keep a snapshot of the rate and tier name.
    """

    name = models.CharField(max_length=100)

    commission_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=PERCENT_VALIDATORS,
        help_text="Commission percentage applied to amounts in this band",
    )

    min_amount = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Inclusive lower bound in minor units (empty = unbounded)",
    )

    max_amount = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Inclusive upper bound in minor units (empty = unbounded)",
    )

    position = models.PositiveIntegerField(
        default=0,
        db_index=True,
        help_text="Evaluation order, lowest first",
    )

    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["position", "created_at"]
        verbose_name = "Commission Tier"
        verbose_name_plural = "Commission Tiers"
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(min_amount__isnull=True)
                    | models.Q(max_amount__isnull=True)
                    | models.Q(min_amount__lte=models.F("max_amount"))
                ),
                name="commission_tier_bounds_ordered",
            ),
        ]

    def __str__(self) -> str:
        return f"CommissionTier({self.name}, {self.commission_percentage}%)"

    def contains(self, amount: int) -> bool:
        """Check whether ``amount`` falls inside this tier's inclusive range."""
        if self.min_amount is not None and amount < self.min_amount:
            return False
        if self.max_amount is not None and amount > self.max_amount:
            return False
        return True
