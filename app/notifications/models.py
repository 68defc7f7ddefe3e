"""
Notification models.

- NotificationType: Configuration for notification types with templates
- Notification: Individual in-app notifications sent to users

Design Decisions:
    - NotificationType uses integer PK (internal lookup table)
    - Notification inherits from BaseModel (timestamps, ordering)
    - Actor uses SET_NULL (preserve notification when actor deleted)
    - NotificationType uses PROTECT (prevent deletion with existing notifications)
    - GenericForeignKey links to the source object (Transaction, Milestone, ...)

Usage:
    from notifications.models import Notification, NotificationTypeKey

    Notification.objects.filter(
        recipient=freelancer,
        notification_type__key=NotificationTypeKey.ESCROW_RELEASED,
    )
"""

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models

from core.models import BaseModel


class NotificationTypeKey(models.TextChoices):
    """Notification types emitted by the escrow lifecycle."""

    PAYMENT_RECEIVED = "payment_received", "Payment Received"
    ESCROW_RELEASED = "escrow_released", "Escrow Released"


# Default templates, used by the seed migration and for on-demand creation.
DEFAULT_TYPE_TEMPLATES = {
    NotificationTypeKey.PAYMENT_RECEIVED: {
        "display_name": "Payment Received",
        "title_template": "Payment received for {contract_title}",
        "body_template": (
            "{amount_display} is now held in escrow and will be released "
            "when the work is approved."
        ),
    },
    NotificationTypeKey.ESCROW_RELEASED: {
        "display_name": "Escrow Released",
        "title_template": "Escrow released for {contract_title}",
        "body_template": "{amount_display} has been released to your account.",
    },
}


class NotificationType(models.Model):
    """
    Lookup table for notification type definitions.

    Fields:
        key: Unique programmatic identifier (e.g., "escrow_released")
        display_name: Human-readable name for admin/UI display
        title_template: Python format string for notification title
        body_template: Python format string for notification body
        is_active: Whether this notification type is currently enabled

    Note:
        - Templates use Python str.format() syntax: {placeholder}
        - Missing placeholders raise KeyError during rendering
    """

    key = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        help_text="Unique programmatic identifier (e.g., 'escrow_released')",
    )

    display_name = models.CharField(
        max_length=200,
        help_text="Human-readable name for display",
    )

    title_template = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Python format string template for title",
    )

    body_template = models.TextField(
        blank=True,
        default="",
        help_text="Python format string template for body",
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether this notification type is currently enabled",
    )

    class Meta:
        db_table = "notifications_notification_type"
        verbose_name = "notification type"
        verbose_name_plural = "notification types"
        ordering = ["key"]

    def __str__(self) -> str:
        return f"{self.display_name} ({self.key})"


class Notification(BaseModel):
    """
    Individual notification record for a user.

    Title and body are fully rendered strings and are not edited after
    creation. Only the read state changes.

    Fields:
        notification_type: FK to NotificationType
        recipient: User receiving the notification (scopes all queries)
        actor: Optional user who triggered the notification
        title / body: Rendered text
        data: JSON context (freelancer_id, contract_id, transaction_id, amount)
        content_type/object_id/source_object: Generic FK to source entity
        is_read / read_at: Read state
        idempotency_key: Unique when present, prevents duplicates on retry
    """

    notification_type = models.ForeignKey(
        NotificationType,
        on_delete=models.PROTECT,
        related_name="notifications",
        help_text="Type of this notification",
    )

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        db_index=True,
        help_text="User receiving this notification",
    )

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="triggered_notifications",
        help_text="User who triggered this notification (optional)",
    )

    title = models.CharField(max_length=500)
    body = models.TextField(blank=True, default="")

    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Context data (ids, amounts, deep links)",
    )

    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    object_id = models.CharField(
        max_length=36,
        null=True,
        blank=True,
        help_text="ID of source object (supports UUID and integer PKs)",
    )
    source_object = GenericForeignKey("content_type", "object_id")

    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)

    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Idempotency key to prevent duplicate notifications",
    )

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["idempotency_key"],
                name="notif_idempotency_key_unique",
                condition=models.Q(idempotency_key__isnull=False),
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return (
            f"Notification({self.notification_type.key}) -> "
            f"User {self.recipient_id} [{read_status}]"
        )
