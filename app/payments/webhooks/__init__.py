"""
Stripe webhook handling.

Events are verified, stored idempotently as WebhookEvent rows and
processed asynchronously by the process_webhook_event Celery task.
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.views import stripe_webhook

__all__ = [
    "dispatch_webhook",
    "register_handler",
    "stripe_webhook",
]
