"""
Webhook event handlers for Stripe events.

Handlers are registered per event type and return a ServiceResult. Expected
outcomes (unknown PaymentIntent, transaction already in a terminal state)
are failures; gateway errors propagate so the Celery task retries.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("charge.dispute.created")
    def handle_dispute(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from core.exceptions import ConflictError, NotFoundError
from core.services import ServiceResult

from payments.services import EscrowService

if TYPE_CHECKING:
    from payments.models import WebhookEvent


logger = logging.getLogger(__name__)


WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(*event_types: str) -> Callable:
    """Register the decorated function for one or more Stripe event types."""

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        for event_type in event_types:
            WEBHOOK_HANDLERS[event_type] = func
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Route an event to its handler.

    Unknown event types succeed without doing anything so Stripe stops
    redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return handler(webhook_event)


def _payment_intent_id(webhook_event: WebhookEvent) -> str | None:
    payment_intent_id = webhook_event.get_object_id()
    if not payment_intent_id:
        logger.error(
            f"{webhook_event.event_type}: could not extract payment_intent_id",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
    return payment_intent_id


def _invalid_payload() -> ServiceResult:
    return ServiceResult.failure(
        "Could not extract payment_intent_id from webhook",
        error_code="INVALID_WEBHOOK_PAYLOAD",
    )


def _run(webhook_event: WebhookEvent, operation: Callable[[], object]) -> ServiceResult:
    try:
        return ServiceResult.success(operation())
    except (NotFoundError, ConflictError) as e:
        logger.warning(
            f"{webhook_event.event_type} not applied: {e.message}",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "error_code": e.error_code,
            },
        )
        return ServiceResult.failure(e.message, error_code=e.error_code)


# =============================================================================
# Payment Intent Handlers
# =============================================================================


@register_handler(
    "payment_intent.amount_capturable_updated",
    "payment_intent.succeeded",
)
def handle_payment_authorized(webhook_event: WebhookEvent) -> ServiceResult:
    """Capture the authorized payment and move the transaction into escrow."""
    payment_intent_id = _payment_intent_id(webhook_event)
    if not payment_intent_id:
        return _invalid_payload()

    return _run(webhook_event, lambda: EscrowService.confirm_payment(payment_intent_id))


@register_handler("payment_intent.payment_failed")
def handle_payment_failed(webhook_event: WebhookEvent) -> ServiceResult:
    payment_intent_id = _payment_intent_id(webhook_event)
    if not payment_intent_id:
        return _invalid_payload()

    last_error = webhook_event.data_object.get("last_payment_error") or {}
    reason = last_error.get("message") or "Payment failed"

    return _run(webhook_event, lambda: EscrowService.fail_payment(payment_intent_id, reason))


@register_handler("payment_intent.canceled")
def handle_payment_canceled(webhook_event: WebhookEvent) -> ServiceResult:
    payment_intent_id = _payment_intent_id(webhook_event)
    if not payment_intent_id:
        return _invalid_payload()

    return _run(
        webhook_event,
        lambda: EscrowService.fail_payment(payment_intent_id, "Payment canceled"),
    )
