"""
Contract admin configuration.

Statuses are protected by django-fsm and shown read-only; state changes go
through ContractService.
"""

from django.contrib import admin

from contracts.models import Amendment, Contract, Milestone, Signature


class MilestoneInline(admin.TabularInline):
    model = Milestone
    extra = 0
    fields = ["position", "title", "amount", "due_date", "status", "paid_at"]
    readonly_fields = ["status", "paid_at"]


class SignatureInline(admin.TabularInline):
    model = Signature
    extra = 0
    fields = ["signed_by", "signed_at", "ip_address", "signature_hash"]
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    list_display = [
        "title",
        "client",
        "freelancer",
        "amount_display",
        "status",
        "start_date",
        "end_date",
        "created_at",
    ]
    list_filter = ["status", "source_type", "currency"]
    search_fields = ["id", "title", "client__email", "freelancer__email"]
    readonly_fields = [
        "id",
        "status",
        "version",
        "completed_at",
        "cancelled_at",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["client", "freelancer"]
    date_hierarchy = "created_at"
    inlines = [MilestoneInline, SignatureInline]

    @admin.display(description="Total")
    def amount_display(self, obj: Contract) -> str:
        return f"{obj.total_amount / 100:.2f} {obj.currency}"


@admin.register(Amendment)
class AmendmentAdmin(admin.ModelAdmin):
    list_display = [
        "contract",
        "amendment_type",
        "status",
        "proposed_by",
        "responded_by",
        "created_at",
    ]
    list_filter = ["amendment_type", "status"]
    search_fields = ["contract__title", "description"]
    raw_id_fields = ["contract", "proposed_by", "responded_by"]
