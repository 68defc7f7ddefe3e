"""
DRF serializers for the payments app.

This module provides serializers for:
- Transaction display (detail, history)
- Escrow action requests (payment intent, confirm, refund, fees)
- Platform settings and commission tiers

Related files:
    - models/: Transaction, PlatformSettings, CommissionTier
    - views.py: Payment API views

Usage:
    serializer = TransactionSerializer(transaction)
    data = serializer.data
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSummarySerializer
from payments.models import CommissionTier, PlatformSettings, Transaction


# =============================================================================
# Transactions
# =============================================================================


class TransactionSerializer(serializers.ModelSerializer):
    """
    Transaction serializer for API responses.

    Amounts are integers in minor units of ``currency``.
    """

    client = UserSummarySerializer(read_only=True)
    freelancer = UserSummarySerializer(read_only=True)
    total_fees = serializers.IntegerField(read_only=True)
    can_be_refunded = serializers.BooleanField(read_only=True)

    class Meta:
        model = Transaction
        fields = [
            "id",
            "contract",
            "milestone",
            "client",
            "freelancer",
            "amount",
            "platform_commission",
            "processing_fee",
            "tax",
            "freelancer_amount",
            "total_fees",
            "commission_rate",
            "commission_tier_name",
            "currency",
            "status",
            "payment_method",
            "stripe_payment_intent_id",
            "escrow_release_date",
            "released_at",
            "refunded_at",
            "paid_out_at",
            "failed_at",
            "cancelled_at",
            "failure_reason",
            "refund_reason",
            "description",
            "can_be_refunded",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CreatePaymentIntentSerializer(serializers.Serializer):
    """
    Request body for creating a PaymentIntent.

    ``amount`` defaults to the milestone amount when a milestone is given.
    """

    contract_id = serializers.UUIDField()
    milestone_id = serializers.UUIDField(required=False, allow_null=True)
    amount = serializers.IntegerField(required=False, allow_null=True, min_value=1)

    def validate(self, attrs):
        if not attrs.get("milestone_id") and not attrs.get("amount"):
            raise serializers.ValidationError(
                "Either milestone_id or amount is required."
            )
        return attrs


class ConfirmPaymentSerializer(serializers.Serializer):
    payment_intent_id = serializers.CharField(max_length=255)


class RefundSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000)


class CalculateFeesSerializer(serializers.Serializer):
    amount = serializers.IntegerField(min_value=1, help_text="Amount in minor units")


class FeeBreakdownSerializer(serializers.Serializer):
    """Serializer for payments.fees.FeeBreakdown."""

    amount = serializers.IntegerField()
    platform_commission = serializers.IntegerField()
    processing_fee = serializers.IntegerField()
    tax = serializers.IntegerField()
    freelancer_amount = serializers.IntegerField()
    total_fees = serializers.IntegerField()
    currency = serializers.CharField()
    commission_rate = serializers.DecimalField(max_digits=5, decimal_places=2)
    commission_tier_name = serializers.CharField(allow_null=True)


class PaginationSerializer(serializers.Serializer):
    page = serializers.IntegerField()
    limit = serializers.IntegerField()
    total = serializers.IntegerField()
    pages = serializers.IntegerField()


class TransactionHistorySerializer(serializers.Serializer):
    transactions = TransactionSerializer(many=True)
    pagination = PaginationSerializer()


class BalanceSerializer(serializers.Serializer):
    """Serializer for EscrowService.get_balance()."""

    pending = serializers.IntegerField()
    in_escrow = serializers.IntegerField()
    available = serializers.IntegerField()
    paid_out = serializers.IntegerField()
    total_earned = serializers.IntegerField()
    currency = serializers.CharField()
    withdrawal_min_amount = serializers.IntegerField()
    withdrawal_fee = serializers.IntegerField()
    can_withdraw = serializers.BooleanField()
    withdrawable = serializers.IntegerField()


# =============================================================================
# Platform Settings
# =============================================================================


class PlatformSettingsSerializer(serializers.ModelSerializer):
    updated_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = PlatformSettings
        fields = [
            "id",
            "version",
            "is_active",
            "commission_rate",
            "min_commission",
            "max_commission",
            "payment_processing_fee",
            "tax_rate",
            "currency",
            "escrow_hold_days",
            "withdrawal_min_amount",
            "withdrawal_fee",
            "refund_policy",
            "terms_of_service",
            "privacy_policy",
            "updated_by",
            "created_at",
        ]
        read_only_fields = fields


class PlatformSettingsUpdateSerializer(serializers.Serializer):
    """
    Partial settings update.

    Field-level checks only; cross-field rules (min <= max) are enforced by
    PlatformSettingsService.update against the merged values.
    """

    commission_rate = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False
    )
    min_commission = serializers.IntegerField(min_value=0, required=False)
    max_commission = serializers.IntegerField(min_value=0, required=False)
    payment_processing_fee = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False
    )
    tax_rate = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False
    )
    currency = serializers.CharField(min_length=3, max_length=3, required=False)
    escrow_hold_days = serializers.IntegerField(min_value=0, required=False)
    withdrawal_min_amount = serializers.IntegerField(min_value=0, required=False)
    withdrawal_fee = serializers.IntegerField(min_value=0, required=False)
    refund_policy = serializers.CharField(allow_blank=True, required=False)
    terms_of_service = serializers.CharField(allow_blank=True, required=False)
    privacy_policy = serializers.CharField(allow_blank=True, required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("No settings fields provided.")
        return attrs


class SettingsHistorySerializer(serializers.Serializer):
    versions = PlatformSettingsSerializer(many=True)
    pagination = PaginationSerializer()


class CommissionTierSerializer(serializers.ModelSerializer):
    class Meta:
        model = CommissionTier
        fields = [
            "id",
            "name",
            "commission_percentage",
            "min_amount",
            "max_amount",
            "position",
            "is_active",
            "created_at",
        ]
        read_only_fields = ["id", "is_active", "created_at"]
        extra_kwargs = {"position": {"required": False}}
