"""
URL configuration for the transactions API.

Routes:
    POST /payment-intent/          - Create PaymentIntent
    POST /confirm/                 - Confirm payment into escrow
    GET  /{id}/                    - Transaction detail
    POST /{id}/release/            - Release escrow
    POST /{id}/refund/             - Refund
    POST /{id}/cancel/             - Cancel before escrow
    GET  /history/                 - Paginated history (?page, ?limit, ?role, ?status)
    GET  /stats/                   - Aggregates (platform-wide for admins)
    GET  /balance/                 - Freelancer balance and withdrawable amount
    POST /auto-release/            - Run the auto-release batch (admin)
    POST /calculate-fees/          - Fee breakdown
    POST /webhooks/stripe/         - Stripe webhook endpoint

All routes are prefixed with /api/v1/transactions/ in config/urls.py.
"""

from django.urls import path
from rest_framework.routers import SimpleRouter

from payments.views import TransactionViewSet
from payments.webhooks.views import stripe_webhook

router = SimpleRouter()
router.register(r"", TransactionViewSet, basename="transaction")

app_name = "payments"

urlpatterns = [
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    *router.urls,
]
