"""
Serializers for authentication models.

This module provides DRF serializers for:
- User model (read operations, nested participant summaries)
- Registration (create user with a marketplace role)
- Account updates (name and payout account)

Related files:
    - models.py: User model
    - views.py: Views that use these serializers

Security:
    - Password fields are write-only
    - Admin role cannot be self-assigned at registration
"""

from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from authentication.models import User, UserRole


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user representation embedded in contracts and transactions."""

    full_name = serializers.CharField(source="get_full_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "email", "full_name", "role"]
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for the current user (read operations).

    Exposes whether payouts can be received so clients of the API can
    prompt freelancers to connect a Stripe account.
    """

    full_name = serializers.CharField(source="get_full_name", read_only=True)
    can_receive_payouts = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "first_name",
            "last_name",
            "full_name",
            "role",
            "stripe_connected_account_id",
            "can_receive_payouts",
            "date_joined",
        ]
        read_only_fields = fields


class RegisterSerializer(serializers.Serializer):
    """
    Serializer for account registration.

    Only client and freelancer roles are accepted; admins are created
    through the management command or Django admin.
    """

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    role = serializers.ChoiceField(
        choices=[UserRole.CLIENT, UserRole.FREELANCER],
        default=UserRole.CLIENT,
    )
    first_name = serializers.CharField(max_length=50, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=50, required=False, allow_blank=True)

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value

    def validate_password(self, value):
        validate_password(value)
        return value

    def create(self, validated_data):
        return User.objects.create_user(**validated_data)


class UserUpdateSerializer(serializers.ModelSerializer):
    """Serializer for updating the current user's name and payout account."""

    class Meta:
        model = User
        fields = ["first_name", "last_name", "stripe_connected_account_id"]

    def validate_stripe_connected_account_id(self, value):
        if value and not value.startswith("acct_"):
            raise serializers.ValidationError(
                "Connected account ID must start with 'acct_'."
            )
        return value or None
