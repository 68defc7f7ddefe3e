"""
Notification service layer.

Services:
    NotificationService: Notification creation and read status management

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Template rendering raises KeyError on missing placeholders
    - Escrow notifications are idempotent per (type, transaction)

Usage:
    from notifications.services import NotificationService

    result = NotificationService.create_notification(
        recipient=freelancer,
        type_key="payment_received",
        data={"contract_title": "Logo design", "amount_display": "150.00 USD"},
        source_object=transaction,
    )

    NotificationService.notify_escrow_released(transaction)
    NotificationService.mark_all_as_read(user)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.contenttypes.models import ContentType
from django.db import transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult
from notifications.models import (
    DEFAULT_TYPE_TEMPLATES,
    Notification,
    NotificationType,
    NotificationTypeKey,
)

if TYPE_CHECKING:
    from django.db.models import Model

    from authentication.models import User
    from payments.models import Transaction


def format_amount(amount: int, currency: str) -> str:
    """Render minor units for display, e.g. 150000 USD -> '1500.00 USD'."""
    return f"{amount / 100:.2f} {currency}"


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        create_notification: Create a new notification with template rendering
        notify_payment_received: Tell the freelancer funds are held in escrow
        notify_escrow_released: Tell the freelancer funds were released
        mark_as_read: Mark a single notification as read
        mark_all_as_read: Mark all user's unread notifications as read
    """

    @classmethod
    def get_or_create_type(cls, type_key: str) -> NotificationType | None:
        """
        Look up a NotificationType, creating the built-in escrow types on demand.

        Returns None for unknown keys that have no default template.
        """
        notification_type = NotificationType.objects.filter(key=type_key).first()
        if notification_type is not None:
            return notification_type

        defaults = DEFAULT_TYPE_TEMPLATES.get(type_key)
        if defaults is None:
            return None

        notification_type, _ = NotificationType.objects.get_or_create(
            key=type_key, defaults=defaults
        )
        return notification_type

    @classmethod
    def create_notification(
        cls,
        recipient: User,
        type_key: str,
        data: dict | None = None,
        title: str | None = None,
        body: str | None = None,
        actor: User | None = None,
        source_object: Model | None = None,
        idempotency_key: str | None = None,
    ) -> ServiceResult[Notification]:
        """
        Create a new notification for a user.

        If title/body are not provided, templates from NotificationType are
        rendered using the data dict. Explicit title/body override templates.

        Returns:
            ServiceResult with created Notification if successful

        Error codes:
            TYPE_NOT_FOUND: Notification type key doesn't exist
            TYPE_INACTIVE: Notification type is deactivated
            DUPLICATE: Notification with this idempotency_key already exists

        Raises:
            KeyError: If template placeholder is missing from data
        """
        data = data or {}
        logger = cls.get_logger()

        notification_type = cls.get_or_create_type(type_key)
        if notification_type is None:
            logger.warning("Notification type not found", extra={"type_key": type_key})
            return ServiceResult.failure(
                f"Notification type not found: {type_key}",
                error_code="TYPE_NOT_FOUND",
            )

        if not notification_type.is_active:
            logger.info(
                "Notification type inactive, skipping", extra={"type_key": type_key}
            )
            return ServiceResult.failure(
                f"Notification type is inactive: {type_key}",
                error_code="TYPE_INACTIVE",
            )

        rendered_title = title or notification_type.title_template.format(**data)
        rendered_body = body or notification_type.body_template.format(**data)

        content_type = None
        object_id = None
        if source_object is not None:
            content_type = ContentType.objects.get_for_model(source_object)
            # String PK supports both UUID and integer PKs
            object_id = str(source_object.pk)

        with transaction.atomic():
            if idempotency_key:
                existing = (
                    Notification.objects.select_for_update()
                    .filter(idempotency_key=idempotency_key)
                    .first()
                )
                if existing:
                    logger.info(
                        "Duplicate notification prevented",
                        extra={"idempotency_key": idempotency_key},
                    )
                    return ServiceResult.failure(
                        f"Notification with idempotency_key already exists: {idempotency_key}",
                        error_code="DUPLICATE",
                    )

            notification = Notification.objects.create(
                notification_type=notification_type,
                recipient=recipient,
                actor=actor,
                title=rendered_title,
                body=rendered_body,
                data=data,
                content_type=content_type,
                object_id=object_id,
                idempotency_key=idempotency_key,
            )

        logger.info(
            "Created notification",
            extra={
                "notification_id": notification.id,
                "type_key": type_key,
                "recipient_id": recipient.id,
            },
        )
        return ServiceResult.success(notification)

    @classmethod
    def _escrow_data(cls, txn: Transaction) -> dict:
        return {
            "freelancer_id": txn.freelancer_id,
            "contract_id": str(txn.contract_id),
            "contract_title": txn.contract.title,
            "transaction_id": str(txn.id),
            "milestone_id": str(txn.milestone_id) if txn.milestone_id else None,
            "amount": txn.freelancer_amount,
            "currency": txn.currency,
            "amount_display": format_amount(txn.freelancer_amount, txn.currency),
        }

    @classmethod
    def notify_payment_received(
        cls, txn: Transaction, actor: User | None = None
    ) -> ServiceResult[Notification]:
        """Notify the freelancer that the client's payment is held in escrow."""
        return cls.create_notification(
            recipient=txn.freelancer,
            type_key=NotificationTypeKey.PAYMENT_RECEIVED,
            data=cls._escrow_data(txn),
            actor=actor or txn.client,
            source_object=txn,
            idempotency_key=f"{NotificationTypeKey.PAYMENT_RECEIVED}:{txn.id}",
        )

    @classmethod
    def notify_escrow_released(
        cls, txn: Transaction, actor: User | None = None
    ) -> ServiceResult[Notification]:
        """Notify the freelancer that escrowed funds were transferred."""
        return cls.create_notification(
            recipient=txn.freelancer,
            type_key=NotificationTypeKey.ESCROW_RELEASED,
            data=cls._escrow_data(txn),
            actor=actor,
            source_object=txn,
            idempotency_key=f"{NotificationTypeKey.ESCROW_RELEASED}:{txn.id}",
        )

    @classmethod
    def mark_as_read(
        cls,
        notification: Notification,
        user: User,
    ) -> ServiceResult[Notification]:
        """
        Mark a single notification as read.

        Idempotent: marking an already-read notification succeeds.

        Error codes:
            NOT_OWNER: User doesn't own the notification
        """
        if notification.recipient_id != user.id:
            cls.get_logger().warning(
                "Attempt to mark foreign notification",
                extra={
                    "user_id": user.id,
                    "notification_id": notification.id,
                    "owner_id": notification.recipient_id,
                },
            )
            return ServiceResult.failure(
                "Cannot mark notification you don't own",
                error_code="NOT_OWNER",
            )

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=["is_read", "read_at", "updated_at"])

        return ServiceResult.success(notification)

    @classmethod
    def mark_all_as_read(cls, user: User) -> ServiceResult[int]:
        """Mark all unread notifications of the user as read in one query."""
        count = Notification.objects.filter(
            recipient=user,
            is_read=False,
        ).update(is_read=True, read_at=timezone.now())

        cls.get_logger().info(
            "Marked notifications as read",
            extra={"user_id": user.id, "count": count},
        )
        return ServiceResult.success(count)
