"""
Payment domain models.

- PlatformSettings: Versioned fee configuration (one active row)
- CommissionTier: Amount-banded commission percentages
- Transaction: Escrow payment record with FSM status
- GatewayOperation: Outbox row for each money-moving gateway call
- WebhookEvent: Stripe webhook event tracking for idempotent processing
"""

from payments.models.gateway_operation import GatewayOperation
from payments.models.platform_settings import (
    DEFAULT_SETTINGS,
    CommissionTier,
    PlatformSettings,
)
from payments.models.transaction import Transaction
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "DEFAULT_SETTINGS",
    "CommissionTier",
    "GatewayOperation",
    "PlatformSettings",
    "Transaction",
    "WebhookEvent",
]
