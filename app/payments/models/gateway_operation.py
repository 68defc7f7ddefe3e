"""
GatewayOperation outbox model.

A row is written (status PENDING) before every money-moving gateway call
and settled afterwards. Retrying an operation reuses the row and its
idempotency key, so the gateway de-duplicates and a SUCCEEDED row can be
replayed without calling the gateway at all.

Usage:
    op, _ = GatewayOperation.objects.get_or_create(
        idempotency_key=key,
        defaults={"transaction": txn, "operation_type": GatewayOperationType.TRANSFER},
    )
    if op.is_succeeded:
        return op.response
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import GatewayOperationStatus, GatewayOperationType


class GatewayOperation(UUIDPrimaryKeyMixin, BaseModel):
    """
    Outbox record for one external payment gateway call.

    Fields:
        transaction: Transaction the call acts on
        operation_type: create_intent, capture, transfer, refund, ...
        idempotency_key: Deterministic key sent to the gateway (unique)
        status: pending, succeeded or failed
        request_params: Parameters sent (amounts, ids), for audit
        response: Summary of the gateway response, replayed on retry
        external_id: Gateway object id (pi_xxx, tr_xxx, re_xxx)
        attempts: Number of calls made with this key
        error_message / error_code: Last failure details
    """

    transaction = models.ForeignKey(
        "payments.Transaction",
        on_delete=models.PROTECT,
        related_name="gateway_operations",
    )

    operation_type = models.CharField(
        max_length=30,
        choices=GatewayOperationType.choices,
        db_index=True,
    )

    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Idempotency key sent to the gateway",
    )

    status = models.CharField(
        max_length=20,
        choices=GatewayOperationStatus.choices,
        default=GatewayOperationStatus.PENDING,
        db_index=True,
    )

    request_params = models.JSONField(default=dict, blank=True)
    response = models.JSONField(default=dict, blank=True)

    external_id = models.CharField(max_length=255, null=True, blank=True)

    attempts = models.PositiveSmallIntegerField(default=0)

    error_message = models.TextField(null=True, blank=True)
    error_code = models.CharField(max_length=100, null=True, blank=True)

    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Gateway Operation"
        verbose_name_plural = "Gateway Operations"
        indexes = [
            models.Index(fields=["transaction", "operation_type"], name="gwop_txn_type_idx"),
            models.Index(fields=["status", "created_at"], name="gwop_status_created_idx"),
        ]

    def __str__(self) -> str:
        return f"GatewayOperation({self.operation_type}, {self.status}, {self.idempotency_key})"

    @property
    def is_succeeded(self) -> bool:
        return self.status == GatewayOperationStatus.SUCCEEDED

    def mark_attempt(self) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = GatewayOperationStatus.PENDING
        self.attempts += 1

    def mark_succeeded(self, external_id: str | None, response: dict) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = GatewayOperationStatus.SUCCEEDED
        self.external_id = external_id
        self.response = response
        self.error_message = None
        self.error_code = None
        self.completed_at = timezone.now()

    def mark_failed(self, error_message: str, error_code: str | None = None) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = GatewayOperationStatus.FAILED
        self.error_message = error_message
        self.error_code = error_code
