"""
Payment admin configuration.

Financial records are read-mostly in the admin: transactions, outbox rows
and webhook events cannot be added or deleted here. State changes go
through the service layer.
"""

from django.contrib import admin

from payments.models import (
    CommissionTier,
    GatewayOperation,
    PlatformSettings,
    Transaction,
    WebhookEvent,
)


class GatewayOperationInline(admin.TabularInline):
    model = GatewayOperation
    extra = 0
    fields = ["operation_type", "status", "external_id", "attempts", "error_code", "created_at"]
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    """
    Transactions with their fee breakdown and gateway ids.

    The status field is protected by django-fsm and cannot be edited here.
    """

    list_display = [
        "id",
        "client",
        "freelancer",
        "amount_display",
        "status",
        "escrow_release_date",
        "created_at",
    ]
    list_filter = ["status", "currency", "payment_method", "created_at"]
    search_fields = [
        "id",
        "stripe_payment_intent_id",
        "stripe_transfer_id",
        "client__email",
        "freelancer__email",
    ]
    readonly_fields = [
        "id",
        "status",
        "version",
        "amount",
        "platform_commission",
        "processing_fee",
        "tax",
        "freelancer_amount",
        "commission_rate",
        "commission_tier_name",
        "stripe_payment_intent_id",
        "stripe_charge_id",
        "stripe_transfer_id",
        "stripe_refund_id",
        "released_at",
        "refunded_at",
        "paid_out_at",
        "failed_at",
        "cancelled_at",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["contract", "milestone", "client", "freelancer"]
    date_hierarchy = "created_at"
    inlines = [GatewayOperationInline]

    fieldsets = (
        (None, {"fields": ("id", "contract", "milestone", "client", "freelancer", "status")}),
        (
            "Amounts",
            {
                "fields": (
                    "amount",
                    "platform_commission",
                    "processing_fee",
                    "tax",
                    "freelancer_amount",
                    "commission_rate",
                    "commission_tier_name",
                    "currency",
                ),
            },
        ),
        (
            "Stripe",
            {
                "fields": (
                    "payment_method",
                    "stripe_payment_intent_id",
                    "stripe_charge_id",
                    "stripe_transfer_id",
                    "stripe_refund_id",
                ),
            },
        ),
        (
            "State Timestamps",
            {
                "fields": (
                    "escrow_release_date",
                    "released_at",
                    "refunded_at",
                    "paid_out_at",
                    "failed_at",
                    "cancelled_at",
                ),
                "classes": ("collapse",),
            },
        ),
        (
            "Details",
            {
                "fields": (
                    "description",
                    "failure_reason",
                    "refund_reason",
                    "metadata",
                    "version",
                ),
                "classes": ("collapse",),
            },
        ),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    @admin.display(description="Amount")
    def amount_display(self, obj: Transaction) -> str:
        return f"{obj.amount / 100:.2f} {obj.currency}"

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(PlatformSettings)
class PlatformSettingsAdmin(admin.ModelAdmin):
    """Settings versions are append-only; new versions come from the API."""

    list_display = [
        "version",
        "is_active",
        "commission_rate",
        "min_commission",
        "max_commission",
        "payment_processing_fee",
        "tax_rate",
        "currency",
        "updated_by",
        "created_at",
    ]
    list_filter = ["is_active"]
    ordering = ["-version"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(CommissionTier)
class CommissionTierAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "commission_percentage",
        "min_amount",
        "max_amount",
        "position",
        "is_active",
    ]
    list_filter = ["is_active"]
    ordering = ["position", "created_at"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """Webhook events are immutable once received; only status can be reset."""

    list_display = [
        "id",
        "stripe_event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "stripe_event_id", "event_type"]
    readonly_fields = [
        "id",
        "stripe_event_id",
        "event_type",
        "payload",
        "processed_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
