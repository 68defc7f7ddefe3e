"""
State enums for payment models.

These are Django TextChoices for database storage and admin integration,
used as django-fsm states.

Transaction States:
    pending → processing → held_in_escrow → released → paid_out
    held_in_escrow/released → refunded (within the refund window)
    pending/processing → failed
    pending/processing → cancelled
"""

from django.db import models


class TransactionStatus(models.TextChoices):
    """
    States for the Transaction lifecycle.

    Terminal states: PAID_OUT, REFUNDED, FAILED, CANCELLED

    State Flow (happy path):
        PENDING → PROCESSING → HELD_IN_ESCROW → RELEASED → PAID_OUT

    Refund Flow:
        HELD_IN_ESCROW → REFUNDED
        RELEASED → REFUNDED (transfer reversed first)

    Failure / Cancellation Flow:
        PENDING/PROCESSING → FAILED
        PENDING/PROCESSING → CANCELLED
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    HELD_IN_ESCROW = "held_in_escrow", "Held in Escrow"
    RELEASED = "released", "Released"
    PAID_OUT = "paid_out", "Paid Out"
    REFUNDED = "refunded", "Refunded"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"

    @classmethod
    def pre_escrow(cls) -> list[str]:
        return [cls.PENDING, cls.PROCESSING]

    @classmethod
    def refundable(cls) -> list[str]:
        return [cls.HELD_IN_ESCROW, cls.RELEASED]

    @classmethod
    def inactive(cls) -> list[str]:
        """States that no longer reserve the milestone for payment."""
        return [cls.FAILED, cls.CANCELLED, cls.REFUNDED]


class PaymentMethod(models.TextChoices):
    STRIPE = "stripe", "Stripe"
    PAYPAL = "paypal", "PayPal"
    BANK_TRANSFER = "bank_transfer", "Bank Transfer"
    OTHER = "other", "Other"


class GatewayOperationType(models.TextChoices):
    """Money-moving calls recorded in the gateway outbox."""

    CREATE_INTENT = "create_intent", "Create PaymentIntent"
    CAPTURE = "capture", "Capture PaymentIntent"
    CANCEL_INTENT = "cancel_intent", "Cancel PaymentIntent"
    TRANSFER = "transfer", "Transfer to Connected Account"
    REVERSE_TRANSFER = "reverse_transfer", "Reverse Transfer"
    REFUND = "refund", "Refund"


class GatewayOperationStatus(models.TextChoices):
    """
    Outbox row lifecycle.

    State Flow:
        PENDING → SUCCEEDED
        PENDING → FAILED → PENDING (retry with the same idempotency key)
    """

    PENDING = "pending", "Pending"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


__all__ = [
    "TransactionStatus",
    "PaymentMethod",
    "GatewayOperationType",
    "GatewayOperationStatus",
    "WebhookEventStatus",
]
