"""
Tests for PlatformSettingsService.

Tests cover:
- Lazy creation of default settings
- Versioned updates (one active row, history kept)
- Validation of updated values and admin-only access
- Commission tiers and commission calculation
"""

from decimal import Decimal

import pytest

from core.exceptions import AuthorizationError, NotFoundError, ValidationError
from payments.models import DEFAULT_SETTINGS, CommissionTier, PlatformSettings
from payments.services import PlatformSettingsService
from payments.tests.factories import CommissionTierFactory


class TestGetCurrent:
    def test_creates_defaults_when_missing(self, db):
        current = PlatformSettingsService.get_current()

        assert current.is_active
        assert current.version == 1
        assert current.commission_rate == DEFAULT_SETTINGS["commission_rate"]
        assert PlatformSettings.objects.count() == 1

    def test_returns_existing_active_version(self, platform_settings):
        assert PlatformSettingsService.get_current() == platform_settings
        assert PlatformSettings.objects.count() == 1


class TestUpdate:
    def test_appends_new_active_version(self, platform_settings, admin_user):
        updated = PlatformSettingsService.update(
            {"commission_rate": "12.5"}, actor=admin_user
        )

        assert updated.version == platform_settings.version + 1
        assert updated.commission_rate == Decimal("12.5")
        assert updated.updated_by == admin_user
        assert PlatformSettings.objects.filter(is_active=True).get() == updated
        previous = PlatformSettings.objects.get(pk=platform_settings.pk)
        assert previous.is_active is False
        assert previous.commission_rate == Decimal("10.00")

    def test_unchanged_fields_are_carried_over(self, platform_settings, admin_user):
        updated = PlatformSettingsService.update({"escrow_hold_days": 14}, actor=admin_user)

        assert updated.escrow_hold_days == 14
        assert updated.commission_rate == platform_settings.commission_rate
        assert updated.max_commission == platform_settings.max_commission

    def test_currency_is_upper_cased(self, platform_settings, admin_user):
        updated = PlatformSettingsService.update({"currency": "eur"}, actor=admin_user)

        assert updated.currency == "EUR"

    @pytest.mark.parametrize(
        "changes",
        [
            {"commission_rate": "101"},
            {"tax_rate": "-1"},
            {"payment_processing_fee": "abc"},
            {"min_commission": -5},
            {"escrow_hold_days": "7"},
            {"currency": "DOLLARS"},
            {"unknown_field": 1},
        ],
    )
    def test_rejects_invalid_values(self, platform_settings, admin_user, changes):
        with pytest.raises(ValidationError) as exc_info:
            PlatformSettingsService.update(changes, actor=admin_user)

        assert exc_info.value.error_code == "INVALID_SETTINGS"
        assert PlatformSettings.objects.count() == 1

    def test_min_commission_cannot_exceed_max(self, platform_settings, admin_user):
        with pytest.raises(ValidationError):
            PlatformSettingsService.update(
                {"min_commission": 5000, "max_commission": 100}, actor=admin_user
            )

    def test_non_admin_is_rejected(self, platform_settings, client_user):
        with pytest.raises(AuthorizationError) as exc_info:
            PlatformSettingsService.update({"commission_rate": "5"}, actor=client_user)

        assert exc_info.value.error_code == "ADMIN_REQUIRED"


class TestHistory:
    def test_versions_newest_first(self, platform_settings, admin_user):
        PlatformSettingsService.update({"commission_rate": "11"}, actor=admin_user)
        PlatformSettingsService.update({"commission_rate": "12"}, actor=admin_user)

        history = PlatformSettingsService.history(page=1, limit=2)

        assert [s.commission_rate for s in history["versions"]] == [
            Decimal("12"),
            Decimal("11"),
        ]
        assert history["pagination"]["total"] == 3
        assert history["pagination"]["pages"] == 2


class TestCommissionTiers:
    def test_create_tier_appends_position(self, platform_settings, admin_user):
        CommissionTierFactory(position=3)

        tier = PlatformSettingsService.create_tier(
            admin_user, name="Enterprise", commission_percentage="5", min_amount=100000
        )

        assert tier.position == 4
        assert tier.commission_percentage == Decimal("5")

    def test_create_tier_requires_admin(self, platform_settings, client_user):
        with pytest.raises(AuthorizationError):
            PlatformSettingsService.create_tier(
                client_user, name="Cheap", commission_percentage="1"
            )

    def test_create_tier_validates_bounds(self, platform_settings, admin_user):
        with pytest.raises(ValidationError) as exc_info:
            PlatformSettingsService.create_tier(
                admin_user,
                name="Backwards",
                commission_percentage="5",
                min_amount=1000,
                max_amount=10,
            )

        assert exc_info.value.error_code == "INVALID_TIER"

    def test_deactivate_tier(self, platform_settings, admin_user):
        tier = CommissionTierFactory()

        PlatformSettingsService.deactivate_tier(tier.pk, actor=admin_user)

        assert CommissionTier.objects.get(pk=tier.pk).is_active is False
        assert PlatformSettingsService.list_tiers() == []
        assert PlatformSettingsService.list_tiers(include_inactive=True) == [tier]

    def test_deactivate_unknown_tier(self, platform_settings, admin_user):
        with pytest.raises(NotFoundError):
            PlatformSettingsService.deactivate_tier(999999, actor=admin_user)


class TestCalculateCommission:
    def test_flat_rate(self, platform_settings):
        breakdown = PlatformSettingsService.calculate_commission(150000)

        assert breakdown.platform_commission == 15000
        assert breakdown.freelancer_amount == 135000

    def test_active_tier_applies(self, platform_settings):
        CommissionTierFactory(name="Large", commission_percentage="5.00", min_amount=100000)

        breakdown = PlatformSettingsService.calculate_commission(150000)

        assert breakdown.platform_commission == 7500
        assert breakdown.commission_tier_name == "Large"

    def test_minimum_commission(self, admin_user, platform_settings):
        PlatformSettingsService.update({"min_commission": 500}, actor=admin_user)

        breakdown = PlatformSettingsService.calculate_commission(1000)

        assert breakdown.platform_commission == 500
        assert breakdown.freelancer_amount == 500

    def test_rejects_amount_consumed_by_fees(self, admin_user, platform_settings):
        PlatformSettingsService.update({"min_commission": 500}, actor=admin_user)

        with pytest.raises(ValidationError) as exc_info:
            PlatformSettingsService.calculate_commission(500)

        assert exc_info.value.error_code == "AMOUNT_TOO_SMALL"
        assert exc_info.value.details["freelancer_amount"] == 0

    @pytest.mark.parametrize("amount", [0, -1, 10.5, True])
    def test_rejects_invalid_amount(self, platform_settings, amount):
        with pytest.raises(ValidationError):
            PlatformSettingsService.calculate_commission(amount)
