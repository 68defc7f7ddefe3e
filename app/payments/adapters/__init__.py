"""
Payment gateway adapters.

All external payment API calls go through these adapters so error
handling, timeouts, idempotency and logging stay consistent.

Usage:
    from payments.adapters import StripeAdapter, IdempotencyKeyGenerator

    intent = StripeAdapter.retrieve_payment_intent("pi_123")
"""

from payments.adapters.stripe_adapter import (
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    RefundResult,
    StripeAdapter,
    TransferResult,
    TransferReversalResult,
    is_retryable_stripe_error,
)

__all__ = [
    "CreatePaymentIntentParams",
    "IdempotencyKeyGenerator",
    "PaymentIntentResult",
    "RefundResult",
    "StripeAdapter",
    "TransferResult",
    "TransferReversalResult",
    "is_retryable_stripe_error",
]
