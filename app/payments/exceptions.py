"""
Payment-specific exceptions.

Exception Hierarchy:
    GatewayError (core)
    └── StripeError - Base for all Stripe errors
        ├── StripeCardDeclinedError - Card declined (permanent)
        ├── StripeInsufficientFundsError - Insufficient funds (permanent)
        ├── StripeInvalidAccountError - Invalid Connect account (permanent)
        ├── StripeInvalidRequestError - Invalid request params (permanent)
        ├── StripeRateLimitError - Rate limited (transient, retry)
        ├── StripeAPIUnavailableError - API unavailable (transient, retry)
        └── StripeTimeoutError - Request timeout (transient, retry)

    ConflictError (core)
    ├── StaleRecordError - Optimistic locking conflict
    ├── LockAcquisitionError - Distributed lock timeout
    └── InvalidStateTransitionError - FSM transition not allowed

Usage:
    from payments.exceptions import InvalidStateTransitionError

    try:
        txn.release()
    except TransitionNotAllowed:
        raise InvalidStateTransitionError(
            "Transaction is not held in escrow",
            details={"current_status": txn.status, "transition": "release"},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import ConflictError, GatewayError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(GatewayError):
    """
    Base exception for all Stripe-related errors.

    Attributes:
        stripe_code: Stripe's internal error code
        decline_code: Card decline code (if applicable)
        is_retryable: Whether the operation can be retried with the same
            idempotency key
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


# Permanent errors (do not retry)


class StripeCardDeclinedError(StripeError):
    """Card was declined by the issuing bank; decline_code has the reason."""

    default_error_code: str = "CARD_DECLINED"


class StripeInsufficientFundsError(StripeError):
    default_error_code: str = "INSUFFICIENT_FUNDS"


class StripeInvalidAccountError(StripeError):
    """
    The freelancer's connected account cannot receive the transfer.

    Covers accounts that are missing, restricted or not fully onboarded.
    Requires manual intervention.
    """

    default_error_code: str = "INVALID_STRIPE_ACCOUNT"


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe.

    Usually a bug on our side (unknown PaymentIntent id, refund larger than
    the charge, transfer already reversed). Logged for investigation.
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"


# Transient errors (safe to retry with backoff)


class StripeRateLimitError(StripeError):
    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """Network failures and Stripe 5xx responses."""

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Stripe API call timed out.

    The operation may have succeeded on Stripe's side. Retrying with the
    same idempotency key returns the original result.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects concurrent modification.

    details carries pk, expected_version and current_version. The caller
    should reload and retry, or abort.
    """

    default_error_code: str = "STALE_RECORD"


class LockAcquisitionError(ConflictError):
    """Raised when a distributed lock cannot be acquired within its timeout."""

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed so callers get the standard
    error body with current_state and transition in details.
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


__all__ = [
    "StripeError",
    "StripeCardDeclinedError",
    "StripeInsufficientFundsError",
    "StripeInvalidAccountError",
    "StripeInvalidRequestError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    "StripeTimeoutError",
    "StaleRecordError",
    "LockAcquisitionError",
    "InvalidStateTransitionError",
]
