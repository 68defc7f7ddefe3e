"""
Notifications app for in-app notifications.

This app provides:
- NotificationType model holding title/body templates
- Notification model for storing user notifications
- NotificationService for centralized notification creation
- REST API for listing and marking notifications read

Usage:
    from notifications.services import NotificationService

    result = NotificationService.notify_escrow_released(transaction, actor=user)

    if result.success:
        notification = result.data
"""
