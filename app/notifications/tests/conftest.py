"""
Test configuration and fixtures for notification tests.

Usage:
    def test_example(client_user, unread_notification, auth_client):
        response = auth_client(client_user).get('/api/v1/notifications/')
        assert response.status_code == 200
"""

import pytest

from notifications.tests.factories import NotificationFactory, NotificationTypeFactory


@pytest.fixture
def notification_type(db):
    """Active type with static templates."""
    return NotificationTypeFactory(
        key="test_notification",
        title_template="Test Title",
        body_template="Test Body",
    )


@pytest.fixture
def templated_type(db):
    """Type whose templates need {contract_title} and {amount_display}."""
    return NotificationTypeFactory(
        key="templated_notification",
        title_template="Paid for {contract_title}",
        body_template="{amount_display} received",
    )


@pytest.fixture
def inactive_type(db):
    return NotificationTypeFactory(key="inactive_notification", is_active=False)


@pytest.fixture
def unread_notification(client_user, notification_type):
    return NotificationFactory(recipient=client_user, notification_type=notification_type)


@pytest.fixture
def read_notification(client_user, notification_type):
    return NotificationFactory(
        recipient=client_user, notification_type=notification_type, is_read=True
    )
