"""
State machine enums for payment models.
"""

from payments.state_machines.states import (
    GatewayOperationStatus,
    GatewayOperationType,
    PaymentMethod,
    TransactionStatus,
    WebhookEventStatus,
)

__all__ = [
    "GatewayOperationStatus",
    "GatewayOperationType",
    "PaymentMethod",
    "TransactionStatus",
    "WebhookEventStatus",
]
