"""
Serializers for the notifications API.
"""

from rest_framework import serializers

from notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    """
    Read-only serializer for Notification.

    Includes the type key and the actor's email (None for system
    notifications or when the actor was deleted).
    """

    type_key = serializers.CharField(source="notification_type.key", read_only=True)
    actor_email = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = [
            "id",
            "type_key",
            "title",
            "body",
            "data",
            "actor_email",
            "is_read",
            "read_at",
            "created_at",
        ]
        read_only_fields = fields

    def get_actor_email(self, obj: Notification) -> str | None:
        if obj.actor is None:
            return None
        return obj.actor.email


class MarkAllReadResponseSerializer(serializers.Serializer):
    marked_count = serializers.IntegerField()
