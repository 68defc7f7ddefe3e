"""
Stripe API adapter for escrow operations.

Every Stripe call made by the escrow core goes through StripeAdapter so
that timeouts, idempotency keys, logging and error translation are handled
the same way everywhere. Stripe SDK exceptions never leave this module;
they are translated into payments.exceptions.StripeError subclasses.

Escrow uses manual-capture PaymentIntents: the client authorizes, the
platform captures into its own balance (held in escrow), and release is a
separate Transfer to the freelancer's connected account.

Configuration (via settings):
    STRIPE_SECRET_KEY: Stripe API secret key
    STRIPE_WEBHOOK_SECRET: Webhook signing secret
    STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
    STRIPE_MAX_RETRIES: SDK network retries (default: 3)

Usage:
    from payments.adapters import StripeAdapter, CreatePaymentIntentParams

    result = StripeAdapter.create_payment_intent(
        CreatePaymentIntentParams(
            amount_cents=150000,
            currency="usd",
            idempotency_key=IdempotencyKeyGenerator.generate("create_intent", txn.id),
            metadata={"transaction_id": str(txn.id)},
        )
    )
    result.client_secret
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeError,
    StripeInsufficientFundsError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)

if TYPE_CHECKING:
    from collections.abc import Generator


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreatePaymentIntentParams:
    """
    Parameters for creating a Stripe PaymentIntent.

    Escrow intents default to ``capture_method="manual"`` so funds are only
    authorized until the platform captures them.
    """

    amount_cents: int
    currency: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)
    customer_id: str | None = None
    payment_method_types: list[str] = field(default_factory=lambda: ["card"])
    capture_method: str = "manual"
    description: str | None = None

    def __post_init__(self) -> None:
        if self.amount_cents <= 0:
            raise ValueError("amount_cents must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if not self.currency:
            raise ValueError("currency is required")


@dataclass
class PaymentIntentResult:
    """
    Result from Stripe PaymentIntent operations.

    Attributes:
        id: PaymentIntent ID (pi_xxx)
        status: requires_payment_method, requires_capture, succeeded, ...
        client_secret: Secret for client-side confirmation
        latest_charge: Charge ID (ch_xxx) once the intent has a charge
        last_payment_error: Message of the last failed payment attempt
    """

    id: str
    status: str
    amount_cents: int
    currency: str
    client_secret: str | None = None
    latest_charge: str | None = None
    last_payment_error: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)

    def summary(self) -> dict[str, Any]:
        """Compact dict stored on the gateway outbox row."""
        return {
            "id": self.id,
            "status": self.status,
            "amount": self.amount_cents,
            "currency": self.currency,
            "client_secret": self.client_secret,
            "latest_charge": self.latest_charge,
        }


@dataclass
class TransferResult:
    id: str
    amount_cents: int
    currency: str
    destination_account: str | None = None
    reversed: bool = False
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "amount": self.amount_cents,
            "currency": self.currency,
            "destination": self.destination_account,
            "reversed": self.reversed,
        }


@dataclass
class TransferReversalResult:
    id: str
    transfer_id: str
    amount_cents: int
    currency: str
    raw_response: dict[str, Any] = field(default_factory=dict)

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "transfer": self.transfer_id,
            "amount": self.amount_cents,
            "currency": self.currency,
        }


@dataclass
class RefundResult:
    id: str
    amount_cents: int
    currency: str
    status: str
    payment_intent_id: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "amount": self.amount_cents,
            "currency": self.currency,
            "status": self.status,
            "payment_intent": self.payment_intent_id,
        }


# =============================================================================
# Idempotency Keys & Retry Helpers
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Deterministic idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The same (operation, entity, attempt) always produces the same key, so a
    retried call after a timeout is de-duplicated by Stripe.

    Example:
        IdempotencyKeyGenerator.generate("transfer", txn.id)
        # "transfer:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]
        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


def is_retryable_stripe_error(error: Exception) -> bool:
    """True for transient Stripe errors (rate limit, outage, timeout)."""
    if isinstance(error, StripeError):
        return getattr(error, "is_retryable", False)
    return False


def _stripe_attr(obj: Any, name: str, default: Any = None) -> Any:
    value = getattr(obj, name, default)
    return default if value is None else value


def _to_dict(obj: Any) -> dict[str, Any]:
    to_dict = getattr(obj, "to_dict", None)
    return to_dict() if callable(to_dict) else {}


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Stateless adapter for Stripe API operations.

    All methods are classmethods and thread-safe for use from Celery
    workers. EscrowService receives this class (or a test double with the
    same methods) as its gateway.
    """

    @staticmethod
    def _configure_stripe() -> None:
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.max_network_retries = getattr(settings, "STRIPE_MAX_RETRIES", 3)
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def _operation(cls, log_context: dict[str, Any]) -> Generator[dict[str, Any], None, None]:
        """
        Wrap one Stripe call: configure the client, log start and finish
        with duration_ms, translate SDK errors.

        The yielded dict is merged into the completion log line.
        """
        cls._configure_stripe()
        logger = cls.get_logger()
        result_context: dict[str, Any] = {}

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)
        try:
            yield result_context
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                **result_context,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )

    @staticmethod
    def _intent_result(intent: Any) -> PaymentIntentResult:
        last_error = _stripe_attr(intent, "last_payment_error")
        return PaymentIntentResult(
            id=intent.id,
            status=intent.status,
            amount_cents=intent.amount,
            currency=intent.currency,
            client_secret=_stripe_attr(intent, "client_secret"),
            latest_charge=_stripe_attr(intent, "latest_charge"),
            last_payment_error=_stripe_attr(last_error, "message") if last_error else None,
            metadata=dict(_stripe_attr(intent, "metadata", {})),
            raw_response=_to_dict(intent),
        )

    @staticmethod
    def _transfer_result(transfer: Any) -> TransferResult:
        return TransferResult(
            id=transfer.id,
            amount_cents=transfer.amount,
            currency=transfer.currency,
            destination_account=_stripe_attr(transfer, "destination"),
            reversed=bool(_stripe_attr(transfer, "reversed", False)),
            metadata=dict(_stripe_attr(transfer, "metadata", {})),
            raw_response=_to_dict(transfer),
        )

    # =========================================================================
    # PaymentIntents
    # =========================================================================

    @classmethod
    def create_payment_intent(cls, params: CreatePaymentIntentParams) -> PaymentIntentResult:
        """
        Create a PaymentIntent.

        Raises:
            StripeInvalidRequestError: Invalid parameters
            StripeAPIUnavailableError / StripeTimeoutError: Transient failure
        """
        log_context = {
            "operation": "create_payment_intent",
            "amount_cents": params.amount_cents,
            "currency": params.currency,
            "idempotency_key": params.idempotency_key,
        }
        with cls._operation(log_context) as result_context:
            create_params: dict[str, Any] = {
                "amount": params.amount_cents,
                "currency": params.currency,
                "metadata": params.metadata,
                "payment_method_types": params.payment_method_types,
                "capture_method": params.capture_method,
            }
            if params.customer_id:
                create_params["customer"] = params.customer_id
            if params.description:
                create_params["description"] = params.description

            intent = stripe.PaymentIntent.create(
                idempotency_key=params.idempotency_key,
                **create_params,
            )
            result_context.update(payment_intent_id=intent.id, status=intent.status)
        return cls._intent_result(intent)

    @classmethod
    def retrieve_payment_intent(cls, payment_intent_id: str) -> PaymentIntentResult:
        log_context = {
            "operation": "retrieve_payment_intent",
            "payment_intent_id": payment_intent_id,
        }
        with cls._operation(log_context) as result_context:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)
            result_context["status"] = intent.status
        return cls._intent_result(intent)

    @classmethod
    def capture_payment_intent(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
    ) -> PaymentIntentResult:
        """Capture an authorized (requires_capture) PaymentIntent in full."""
        log_context = {
            "operation": "capture_payment_intent",
            "payment_intent_id": payment_intent_id,
            "idempotency_key": idempotency_key,
        }
        with cls._operation(log_context) as result_context:
            intent = stripe.PaymentIntent.capture(
                payment_intent_id,
                idempotency_key=idempotency_key,
            )
            result_context["status"] = intent.status
        return cls._intent_result(intent)

    @classmethod
    def cancel_payment_intent(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
    ) -> PaymentIntentResult:
        log_context = {
            "operation": "cancel_payment_intent",
            "payment_intent_id": payment_intent_id,
            "idempotency_key": idempotency_key,
        }
        with cls._operation(log_context) as result_context:
            intent = stripe.PaymentIntent.cancel(
                payment_intent_id,
                idempotency_key=idempotency_key,
            )
            result_context["status"] = intent.status
        return cls._intent_result(intent)

    # =========================================================================
    # Transfers
    # =========================================================================

    @classmethod
    def create_transfer(
        cls,
        amount_cents: int,
        destination_account: str,
        idempotency_key: str,
        currency: str = "usd",
        metadata: dict[str, str] | None = None,
        source_transaction: str | None = None,
    ) -> TransferResult:
        """
        Transfer funds from the platform balance to a connected account.

        ``source_transaction`` ties the transfer to the escrow charge so it
        can be made before the charge's funds are available.

        Raises:
            StripeInvalidAccountError: Destination account cannot receive funds
            StripeInsufficientFundsError: Platform balance too low
        """
        log_context = {
            "operation": "create_transfer",
            "amount_cents": amount_cents,
            "destination_account": destination_account,
            "idempotency_key": idempotency_key,
        }
        with cls._operation(log_context) as result_context:
            transfer_params: dict[str, Any] = {
                "amount": amount_cents,
                "currency": currency,
                "destination": destination_account,
                "metadata": metadata or {},
            }
            if source_transaction:
                transfer_params["source_transaction"] = source_transaction

            transfer = stripe.Transfer.create(
                idempotency_key=idempotency_key,
                **transfer_params,
            )
            result_context["transfer_id"] = transfer.id
        return cls._transfer_result(transfer)

    @classmethod
    def retrieve_transfer(cls, transfer_id: str) -> TransferResult:
        log_context = {"operation": "retrieve_transfer", "transfer_id": transfer_id}
        with cls._operation(log_context) as result_context:
            transfer = stripe.Transfer.retrieve(transfer_id)
            result_context["reversed"] = bool(_stripe_attr(transfer, "reversed", False))
        return cls._transfer_result(transfer)

    @classmethod
    def reverse_transfer(
        cls,
        transfer_id: str,
        idempotency_key: str,
        amount_cents: int | None = None,
        metadata: dict[str, str] | None = None,
    ) -> TransferReversalResult:
        """Pull a released transfer back to the platform balance (full by default)."""
        log_context = {
            "operation": "reverse_transfer",
            "transfer_id": transfer_id,
            "amount_cents": amount_cents,
            "idempotency_key": idempotency_key,
        }
        with cls._operation(log_context) as result_context:
            reversal_params: dict[str, Any] = {"metadata": metadata or {}}
            if amount_cents is not None:
                reversal_params["amount"] = amount_cents

            reversal = stripe.Transfer.create_reversal(
                transfer_id,
                idempotency_key=idempotency_key,
                **reversal_params,
            )
            result_context["reversal_id"] = reversal.id
        return TransferReversalResult(
            id=reversal.id,
            transfer_id=transfer_id,
            amount_cents=reversal.amount,
            currency=reversal.currency,
            raw_response=_to_dict(reversal),
        )

    # =========================================================================
    # Refunds
    # =========================================================================

    @classmethod
    def create_refund(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        amount_cents: int | None = None,
        reason: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> RefundResult:
        """
        Refund a PaymentIntent (full refund when amount_cents is None).

        ``reason`` is one of duplicate, fraudulent, requested_by_customer.
        """
        log_context = {
            "operation": "create_refund",
            "payment_intent_id": payment_intent_id,
            "amount_cents": amount_cents,
            "idempotency_key": idempotency_key,
        }
        with cls._operation(log_context) as result_context:
            refund_params: dict[str, Any] = {
                "payment_intent": payment_intent_id,
                "metadata": metadata or {},
            }
            if amount_cents is not None:
                refund_params["amount"] = amount_cents
            if reason:
                refund_params["reason"] = reason

            refund = stripe.Refund.create(
                idempotency_key=idempotency_key,
                **refund_params,
            )
            result_context.update(refund_id=refund.id, status=refund.status)
        return RefundResult(
            id=refund.id,
            amount_cents=refund.amount,
            currency=refund.currency,
            status=refund.status,
            payment_intent_id=_stripe_attr(refund, "payment_intent"),
            metadata=dict(_stripe_attr(refund, "metadata", {})),
            raw_response=_to_dict(refund),
        )

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(cls, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify the Stripe-Signature header and return the parsed event.

        Raises:
            StripeInvalidRequestError: Signature or payload invalid
        """
        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
        except stripe.SignatureVerificationError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            ) from e
        except ValueError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook payload",
                stripe_code="invalid_payload",
                details={"error": str(e)},
            ) from e
        return event.to_dict()

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate a Stripe SDK exception into a StripeError subclass.

        Always raises.
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            error_class = (
                StripeInsufficientFundsError
                if decline_code == "insufficient_funds"
                else StripeCardDeclinedError
            )
            raise error_class(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            ) from error

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            error_class = (
                StripeInvalidAccountError
                if "account" in str(error).lower()
                else StripeInvalidRequestError
            )
            raise error_class(str(error), stripe_code=error.code) from error

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        if isinstance(error, stripe.APIConnectionError):
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            if "timed out" in str(error).lower() or "timeout" in str(error).lower():
                raise StripeTimeoutError(
                    "Stripe request timed out. Please retry.",
                    stripe_code="timeout",
                ) from error
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        if isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        if isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise StripeAPIUnavailableError(
            f"Unexpected Stripe error: {error}",
            stripe_code="unknown_error",
        ) from error
