"""
Payments app configuration.

Escrow core: commission policy, fee calculation, platform settings,
the Transaction state machine, the Stripe gateway outbox and webhooks.
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
