"""
Tests for the gateway outbox in EscrowService._run_gateway_operation.
"""

import pytest

from payments.adapters import IdempotencyKeyGenerator, TransferResult
from payments.exceptions import StripeRateLimitError
from payments.models import GatewayOperation
from payments.services import EscrowService
from payments.state_machines import GatewayOperationStatus, GatewayOperationType
from payments.tests.factories import GatewayOperationFactory, TransactionFactory


@pytest.fixture
def txn(db):
    return TransactionFactory()


def transfer_call(calls):
    def call(key):
        calls.append(key)
        return TransferResult(id="tr_outbox", amount_cents=135000, currency="usd")

    return call


class TestRunGatewayOperation:
    def test_success_stores_summary(self, txn):
        calls = []

        summary = EscrowService._run_gateway_operation(
            txn,
            GatewayOperationType.TRANSFER,
            transfer_call(calls),
            request_params={"amount": 135000},
        )

        assert summary["id"] == "tr_outbox"
        operation = GatewayOperation.objects.get(transaction=txn)
        assert operation.status == GatewayOperationStatus.SUCCEEDED
        assert operation.response == summary
        assert operation.request_params == {"amount": 135000}
        assert operation.completed_at is not None
        assert calls == [IdempotencyKeyGenerator.generate("transfer", txn.pk)]

    def test_succeeded_operation_is_replayed_without_calling_gateway(self, txn):
        key = IdempotencyKeyGenerator.generate(GatewayOperationType.TRANSFER, txn.pk)
        GatewayOperationFactory(
            transaction=txn,
            operation_type=GatewayOperationType.TRANSFER,
            idempotency_key=key,
            status=GatewayOperationStatus.SUCCEEDED,
            response={"id": "tr_earlier"},
        )
        calls = []

        summary = EscrowService._run_gateway_operation(
            txn, GatewayOperationType.TRANSFER, transfer_call(calls)
        )

        assert summary == {"id": "tr_earlier"}
        assert calls == []

    def test_failure_is_recorded_and_raised(self, txn):
        def failing(key):
            raise StripeRateLimitError("slow down")

        with pytest.raises(StripeRateLimitError):
            EscrowService._run_gateway_operation(txn, GatewayOperationType.REFUND, failing)

        operation = GatewayOperation.objects.get(transaction=txn)
        assert operation.status == GatewayOperationStatus.FAILED
        assert operation.error_code == "STRIPE_RATE_LIMITED"
        assert operation.error_message == "slow down"
        assert operation.attempts == 1

    def test_retry_reuses_row_and_key(self, txn):
        def failing(key):
            raise StripeRateLimitError("slow down")

        with pytest.raises(StripeRateLimitError):
            EscrowService._run_gateway_operation(txn, GatewayOperationType.TRANSFER, failing)

        calls = []
        EscrowService._run_gateway_operation(
            txn, GatewayOperationType.TRANSFER, transfer_call(calls)
        )

        operation = GatewayOperation.objects.get(transaction=txn)
        assert operation.attempts == 2
        assert operation.status == GatewayOperationStatus.SUCCEEDED
        assert operation.idempotency_key == calls[0]

    def test_operation_types_get_separate_rows(self, txn):
        EscrowService._run_gateway_operation(
            txn, GatewayOperationType.TRANSFER, transfer_call([])
        )
        EscrowService._run_gateway_operation(
            txn, GatewayOperationType.REVERSE_TRANSFER, transfer_call([])
        )

        assert GatewayOperation.objects.filter(transaction=txn).count() == 2
