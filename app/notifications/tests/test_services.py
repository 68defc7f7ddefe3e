"""
Tests for NotificationService.
"""

from notifications.models import Notification, NotificationType, NotificationTypeKey
from notifications.services import NotificationService, format_amount


class TestCreateNotification:
    def test_renders_templates_from_data(self, client_user, templated_type):
        result = NotificationService.create_notification(
            recipient=client_user,
            type_key="templated_notification",
            data={"contract_title": "Logo", "amount_display": "10.00 USD"},
        )

        assert result.success
        assert result.data.title == "Paid for Logo"
        assert result.data.body == "10.00 USD received"

    def test_explicit_title_overrides_template(self, client_user, notification_type):
        result = NotificationService.create_notification(
            recipient=client_user,
            type_key="test_notification",
            title="Custom",
        )

        assert result.data.title == "Custom"
        assert result.data.body == "Test Body"

    def test_unknown_type_is_failure(self, client_user):
        result = NotificationService.create_notification(
            recipient=client_user, type_key="does_not_exist"
        )

        assert not result.success
        assert result.error_code == "TYPE_NOT_FOUND"

    def test_inactive_type_is_failure(self, client_user, inactive_type):
        result = NotificationService.create_notification(
            recipient=client_user, type_key="inactive_notification"
        )

        assert not result.success
        assert result.error_code == "TYPE_INACTIVE"
        assert not Notification.objects.exists()

    def test_duplicate_idempotency_key_is_failure(self, client_user, notification_type):
        first = NotificationService.create_notification(
            recipient=client_user, type_key="test_notification", idempotency_key="once"
        )
        second = NotificationService.create_notification(
            recipient=client_user, type_key="test_notification", idempotency_key="once"
        )

        assert first.success
        assert not second.success
        assert second.error_code == "DUPLICATE"
        assert Notification.objects.count() == 1

    def test_source_object_is_linked(self, client_user, freelancer, notification_type):
        result = NotificationService.create_notification(
            recipient=client_user, type_key="test_notification", source_object=freelancer
        )

        assert result.data.object_id == str(freelancer.pk)
        assert result.data.source_object == freelancer

    def test_builtin_escrow_type_created_on_demand(self, client_user):
        NotificationType.objects.filter(key=NotificationTypeKey.ESCROW_RELEASED).delete()

        result = NotificationService.create_notification(
            recipient=client_user,
            type_key=NotificationTypeKey.ESCROW_RELEASED,
            data={"contract_title": "Site", "amount_display": "5.00 USD"},
        )

        assert result.success
        assert result.data.title == "Escrow released for Site"


class TestMarkAsRead:
    def test_marks_notification_read(self, client_user, unread_notification):
        result = NotificationService.mark_as_read(unread_notification, client_user)

        assert result.success
        unread_notification.refresh_from_db()
        assert unread_notification.is_read is True
        assert unread_notification.read_at is not None

    def test_rejects_non_owner(self, outsider, unread_notification):
        result = NotificationService.mark_as_read(unread_notification, outsider)

        assert not result.success
        assert result.error_code == "NOT_OWNER"

    def test_mark_all_as_read_counts_unread_only(
        self, client_user, unread_notification, read_notification
    ):
        result = NotificationService.mark_all_as_read(client_user)

        assert result.data == 1
        assert not Notification.objects.filter(recipient=client_user, is_read=False).exists()


def test_format_amount_renders_minor_units():
    assert format_amount(150000, "USD") == "1500.00 USD"
    assert format_amount(5, "EUR") == "0.05 EUR"
