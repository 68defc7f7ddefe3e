"""
Platform settings service.

Reads and appends versions of PlatformSettings and manages commission
tiers. The active settings row is created lazily with defaults the first
time it is read.

Usage:
    from payments.services import PlatformSettingsService

    current = PlatformSettingsService.get_current()

    PlatformSettingsService.update(
        {"commission_rate": Decimal("12.5")},
        actor=admin_user,
    )  # deactivates v1, returns active v2
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from django.db import IntegrityError

from core.exceptions import AuthorizationError, NotFoundError, ValidationError
from core.helpers import calculate_pagination
from core.services import BaseService

from payments.fees import calculate_fees
from payments.models import DEFAULT_SETTINGS, CommissionTier, PlatformSettings

if TYPE_CHECKING:
    from typing import Any

    from authentication.models import User
    from payments.fees import FeeBreakdown

PERCENT_FIELDS = ("commission_rate", "payment_processing_fee", "tax_rate")
AMOUNT_FIELDS = (
    "min_commission",
    "max_commission",
    "escrow_hold_days",
    "withdrawal_min_amount",
    "withdrawal_fee",
)
TEXT_FIELDS = ("refund_policy", "terms_of_service", "privacy_policy")
UPDATABLE_FIELDS = (*PERCENT_FIELDS, *AMOUNT_FIELDS, *TEXT_FIELDS, "currency")


def _require_admin(actor: User | None) -> None:
    if actor is None or not getattr(actor, "is_platform_admin", False):
        raise AuthorizationError(
            "Only platform administrators can change platform settings",
            error_code="ADMIN_REQUIRED",
        )


def _parse_percentage(field_name: str, value: Any) -> Decimal:
    try:
        percentage = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(
            f"{field_name} must be a number",
            error_code="INVALID_SETTINGS",
            details={field_name: value},
        ) from e
    if not Decimal("0") <= percentage <= Decimal("100"):
        raise ValidationError(
            f"{field_name} must be between 0 and 100",
            error_code="INVALID_SETTINGS",
            details={field_name: str(percentage)},
        )
    return percentage


class PlatformSettingsService(BaseService):
    """
    Versioned platform configuration.

    Every update appends a row; the previous active row is deactivated in the
    same DB transaction, and the partial unique constraint on is_active
    guarantees a single current version.
    """

    @classmethod
    def get_current(cls) -> PlatformSettings:
        current = PlatformSettings.objects.filter(is_active=True).first()
        if current is not None:
            return current

        try:
            with cls.atomic():
                last_version = (
                    PlatformSettings.objects.order_by("-version")
                    .values_list("version", flat=True)
                    .first()
                )
                current = PlatformSettings.objects.create(
                    is_active=True,
                    version=(last_version or 0) + 1,
                    **DEFAULT_SETTINGS,
                )
        except IntegrityError:
            # Created concurrently by another request
            return PlatformSettings.objects.get(is_active=True)

        cls.get_logger().info(
            "Created default platform settings",
            extra={"settings_version": current.version},
        )
        return current

    @classmethod
    def update(cls, changes: dict[str, Any], actor: User | None) -> PlatformSettings:
        """
        Append a new settings version with ``changes`` applied.

        Raises:
            AuthorizationError: actor is not an admin
            ValidationError: Unknown field, rate outside 0-100,
                min_commission > max_commission, bad currency
        """
        _require_admin(actor)

        unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValidationError(
                f"Unknown settings fields: {', '.join(unknown)}",
                error_code="INVALID_SETTINGS",
                details={"fields": unknown},
            )

        with cls.atomic():
            previous = cls.get_current()
            previous = PlatformSettings.objects.select_for_update().get(pk=previous.pk)

            values = {name: getattr(previous, name) for name in UPDATABLE_FIELDS}
            values.update(cls._clean_changes(changes))

            if values["min_commission"] > values["max_commission"]:
                raise ValidationError(
                    "min_commission cannot exceed max_commission",
                    error_code="INVALID_SETTINGS",
                    details={
                        "min_commission": values["min_commission"],
                        "max_commission": values["max_commission"],
                    },
                )

            previous.is_active = False
            previous.save(update_fields=["is_active", "updated_at"])

            current = PlatformSettings.objects.create(
                is_active=True,
                version=previous.version + 1,
                updated_by=actor,
                **values,
            )

        cls.get_logger().info(
            "Platform settings updated",
            extra={
                "settings_version": current.version,
                "changed_fields": sorted(changes),
                "actor_id": actor.pk,
            },
        )
        return current

    @classmethod
    def _clean_changes(cls, changes: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for name, value in changes.items():
            if name in PERCENT_FIELDS:
                cleaned[name] = _parse_percentage(name, value)
            elif name in AMOUNT_FIELDS:
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    raise ValidationError(
                        f"{name} must be a non-negative integer",
                        error_code="INVALID_SETTINGS",
                        details={name: value},
                    )
                cleaned[name] = value
            elif name == "currency":
                if not isinstance(value, str) or len(value) != 3 or not value.isalpha():
                    raise ValidationError(
                        "currency must be a 3-letter ISO 4217 code",
                        error_code="INVALID_SETTINGS",
                        details={"currency": value},
                    )
                cleaned[name] = value.upper()
            else:
                cleaned[name] = value or ""
        return cleaned

    @classmethod
    def history(cls, page: int = 1, limit: int = 20) -> dict[str, Any]:
        """Settings versions, newest first, with pagination metadata."""
        queryset = PlatformSettings.objects.select_related("updated_by").order_by(
            "-version"
        )
        pagination = calculate_pagination(queryset.count(), page, limit)
        offset = pagination.pop("offset")
        return {
            "versions": list(queryset[offset : offset + pagination["limit"]]),
            "pagination": pagination,
        }

    # ==========================================================================
    # Fees
    # ==========================================================================

    @classmethod
    def active_tiers(cls) -> list[CommissionTier]:
        return cls.list_tiers()

    @classmethod
    def calculate_commission(cls, amount: int) -> FeeBreakdown:
        """
        Fee breakdown for ``amount`` under the current settings and tiers.

        Raises:
            ValidationError: Amount is not a positive integer, or the fees
                leave nothing for the freelancer (AMOUNT_TOO_SMALL)
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(
                "Amount must be a positive integer in minor units",
                error_code="INVALID_AMOUNT",
                details={"amount": amount},
            )
        breakdown = calculate_fees(amount, cls.get_current(), cls.active_tiers())
        if breakdown.freelancer_amount <= 0:
            raise ValidationError(
                "Amount does not cover platform fees",
                error_code="AMOUNT_TOO_SMALL",
                details=breakdown.to_dict(),
            )
        return breakdown

    # ==========================================================================
    # Commission Tiers
    # ==========================================================================

    @classmethod
    def list_tiers(cls, include_inactive: bool = False) -> list[CommissionTier]:
        queryset = CommissionTier.objects.order_by("position", "created_at")
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        return list(queryset)

    @classmethod
    def create_tier(
        cls,
        actor: User | None,
        name: str,
        commission_percentage: Any,
        min_amount: int | None = None,
        max_amount: int | None = None,
        position: int | None = None,
    ) -> CommissionTier:
        _require_admin(actor)

        percentage = _parse_percentage("commission_percentage", commission_percentage)
        if min_amount is not None and max_amount is not None and min_amount > max_amount:
            raise ValidationError(
                "min_amount cannot exceed max_amount",
                error_code="INVALID_TIER",
                details={"min_amount": min_amount, "max_amount": max_amount},
            )

        if position is None:
            last = CommissionTier.objects.order_by("-position").values_list(
                "position", flat=True
            ).first()
            position = 0 if last is None else last + 1

        tier = CommissionTier.objects.create(
            name=name,
            commission_percentage=percentage,
            min_amount=min_amount,
            max_amount=max_amount,
            position=position,
        )
        cls.get_logger().info(
            "Commission tier created",
            extra={"tier_id": tier.pk, "tier_name": name, "actor_id": actor.pk},
        )
        return tier

    @classmethod
    def deactivate_tier(cls, tier_id: int, actor: User | None) -> CommissionTier:
        _require_admin(actor)

        tier = CommissionTier.objects.filter(pk=tier_id).first()
        if tier is None:
            raise NotFoundError(
                f"Commission tier {tier_id} not found",
                error_code="TIER_NOT_FOUND",
            )

        if tier.is_active:
            tier.is_active = False
            tier.save(update_fields=["is_active", "updated_at"])
            cls.get_logger().info(
                "Commission tier deactivated",
                extra={"tier_id": tier.pk, "actor_id": actor.pk},
            )
        return tier
