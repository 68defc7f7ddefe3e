"""
Django admin configuration for notification models.
"""

from django.contrib import admin

from notifications.models import Notification, NotificationType


@admin.register(NotificationType)
class NotificationTypeAdmin(admin.ModelAdmin):
    """Management of notification type definitions and templates."""

    list_display = ["key", "display_name", "is_active"]
    list_filter = ["is_active"]
    search_fields = ["key", "display_name"]
    ordering = ["key"]
    fieldsets = (
        (None, {"fields": ("key", "display_name", "is_active")}),
        ("Templates", {"fields": ("title_template", "body_template")}),
    )


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Read-only view of notifications for support."""

    list_display = ["id", "recipient", "notification_type", "title", "is_read", "created_at"]
    list_filter = ["is_read", "notification_type"]
    search_fields = ["recipient__email", "title", "idempotency_key"]
    raw_id_fields = ["recipient", "actor"]
    readonly_fields = [
        "notification_type",
        "recipient",
        "actor",
        "title",
        "body",
        "data",
        "content_type",
        "object_id",
        "idempotency_key",
        "read_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False
