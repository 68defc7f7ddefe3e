"""
Celery tasks for escrow processing.

This module provides async tasks for:
- Processing stored Stripe webhook events
- Retrying failed and resetting stuck webhook events
- Releasing escrow automatically once the hold period has passed
- Moving released transactions to paid_out once the transfer is confirmed

Periodic tasks are scheduled with django-celery-beat (see the
0002_escrow_beat_schedules migration).

Usage:
    from payments.tasks import process_webhook_event

    process_webhook_event.delay(str(webhook_event.id))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from contracts.models import ContractStatus
from core.exceptions import BaseApplicationError
from payments.adapters import is_retryable_stripe_error
from payments.exceptions import LockAcquisitionError, StripeError
from payments.locks import DistributedLock
from payments.models import Transaction, WebhookEvent
from payments.state_machines import TransactionStatus, WebhookEventStatus

logger = logging.getLogger(__name__)


STUCK_PROCESSING_THRESHOLD_MINUTES = 30
AUTO_RELEASE_LOCK_KEY = "escrow:auto_release"
PAYOUT_BATCH_LOCK_KEY = "escrow:payout_batch"
BATCH_LOCK_TTL = 300


def _batch_size() -> int:
    return getattr(settings, "ESCROW_BATCH_SIZE", 100)


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a stored Stripe webhook event.

    Handler failures (unknown intent, terminal transaction) and permanent
    gateway errors (declined card, invalid request) mark the event failed
    and return. Other exceptions mark it failed and are re-raised so Celery
    retries with backoff.
    """
    from payments.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    webhook_event = WebhookEvent.objects.filter(id=webhook_event_id).first()
    if webhook_event is None:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        return {"status": "already_processed", "webhook_event_id": str(webhook_event_id)}

    webhook_event.mark_processing()
    webhook_event.save()

    try:
        result = dispatch_webhook(webhook_event)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.exception(
            "Webhook processing failed with exception",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
            },
        )
        if isinstance(e, StripeError) and not is_retryable_stripe_error(e):
            return {
                "status": "gateway_failed",
                "webhook_event_id": str(webhook_event_id),
                "error": e.message,
            }
        raise

    if not result.success:
        webhook_event.mark_failed(result.error or "Handler returned failure")
        webhook_event.save()
        logger.warning(
            f"Webhook handler failed: {result.error}",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "error_code": result.error_code,
            },
        )
        return {
            "status": "handler_failed",
            "webhook_event_id": str(webhook_event_id),
            "error": result.error,
        }

    webhook_event.mark_processed()
    webhook_event.save()
    logger.info(
        "Webhook processed successfully",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "stripe_event_id": webhook_event.stripe_event_id,
            "event_type": webhook_event.event_type,
        },
    )
    return {
        "status": "processed",
        "webhook_event_id": str(webhook_event_id),
        "stripe_event_id": webhook_event.stripe_event_id,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """Re-queue failed webhook events that are below the retry cap."""
    max_retries = getattr(settings, "WEBHOOK_MAX_RETRIES", 5)
    failed_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=max_retries,
    ).order_by("created_at")[: _batch_size()]

    queued_count = 0
    for webhook in failed_webhooks:
        process_webhook_event.delay(str(webhook.id))
        queued_count += 1

    logger.info(
        f"Queued {queued_count} failed webhooks for retry",
        extra={"queued_count": queued_count},
    )
    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """Mark events stuck in PROCESSING (worker crash) as failed so they retry."""
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)

    reset_count = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    ).update(
        status=WebhookEventStatus.FAILED,
        error_message="Processing timed out - reset for retry",
        updated_at=timezone.now(),
    )

    if reset_count:
        logger.warning(
            f"Reset {reset_count} stuck webhook events",
            extra={"reset_count": reset_count},
        )
    return {"reset_count": reset_count}


# =============================================================================
# Escrow Tasks
# =============================================================================


@shared_task
def auto_release_escrow() -> dict:
    """
    Release held transactions whose escrow_release_date has passed.

    Runs as a system release under a Redis lock so overlapping beat runs do
    not work the same batch. Transactions on a disputed contract, or whose
    freelancer has no connected account, are skipped. Per-transaction errors
    are logged and the batch continues.
    """
    from payments.services import EscrowService

    if not getattr(settings, "ESCROW_AUTO_RELEASE_ENABLED", True):
        return {"status": "disabled"}

    try:
        with DistributedLock(AUTO_RELEASE_LOCK_KEY, ttl=BATCH_LOCK_TTL, blocking=False):
            due = (
                Transaction.objects.filter(
                    status=TransactionStatus.HELD_IN_ESCROW,
                    escrow_release_date__lte=timezone.now(),
                )
                .select_related("freelancer", "contract")
                .order_by("escrow_release_date")[: _batch_size()]
            )

            released, skipped, failed = 0, 0, 0
            for txn in due:
                if txn.contract.status == ContractStatus.DISPUTED:
                    logger.warning(
                        "Skipping auto-release: contract is disputed",
                        extra={"transaction_id": str(txn.pk), "contract_id": str(txn.contract_id)},
                    )
                    skipped += 1
                    continue
                if not txn.freelancer.stripe_connected_account_id:
                    logger.warning(
                        "Skipping auto-release: freelancer has no connected account",
                        extra={"transaction_id": str(txn.pk), "freelancer_id": txn.freelancer_id},
                    )
                    skipped += 1
                    continue

                try:
                    EscrowService.release_escrow(txn.pk, actor=None, system=True)
                except BaseApplicationError as e:
                    logger.error(
                        f"Auto-release failed: {e.message}",
                        extra={"transaction_id": str(txn.pk), "error_code": e.error_code},
                    )
                    failed += 1
                else:
                    released += 1
    except LockAcquisitionError:
        logger.info("Auto-release already running, skipping")
        return {"status": "locked"}

    logger.info(
        "Auto-release batch finished",
        extra={"released": released, "skipped": skipped, "failed": failed},
    )
    return {"status": "completed", "released": released, "skipped": skipped, "failed": failed}


@shared_task
def process_payout_batch() -> dict:
    """
    Move released transactions to paid_out once the gateway confirms the
    transfer was not reversed.
    """
    from payments.services import EscrowService

    adapter = EscrowService.get_stripe_adapter()

    try:
        with DistributedLock(PAYOUT_BATCH_LOCK_KEY, ttl=BATCH_LOCK_TTL, blocking=False):
            released = Transaction.objects.filter(
                status=TransactionStatus.RELEASED,
                stripe_transfer_id__isnull=False,
            ).order_by("released_at")[: _batch_size()]

            paid_out, pending, failed = 0, 0, 0
            for txn in released:
                try:
                    transfer = adapter.retrieve_transfer(txn.stripe_transfer_id)
                    if transfer.reversed:
                        pending += 1
                        continue
                    EscrowService.mark_paid_out(txn.pk)
                except BaseApplicationError as e:
                    logger.error(
                        f"Payout update failed: {e.message}",
                        extra={"transaction_id": str(txn.pk), "error_code": e.error_code},
                    )
                    failed += 1
                else:
                    paid_out += 1
    except LockAcquisitionError:
        logger.info("Payout batch already running, skipping")
        return {"status": "locked"}

    logger.info(
        "Payout batch finished",
        extra={"paid_out": paid_out, "pending": pending, "failed": failed},
    )
    return {"status": "completed", "paid_out": paid_out, "pending": pending, "failed": failed}
