"""
Tests for the Transaction state machine.

Transitions are exercised on unsaved instances; no database access.
"""

from datetime import timedelta

import pytest
from django.test import override_settings
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from payments.models import Transaction
from payments.state_machines import TransactionStatus


def make_transaction(status=TransactionStatus.PENDING, **kwargs):
    return Transaction(
        status=status,
        amount=150000,
        platform_commission=15000,
        freelancer_amount=135000,
        **kwargs,
    )


class TestHappyPath:
    def test_full_lifecycle(self):
        txn = make_transaction()
        release_date = timezone.now() + timedelta(days=7)

        txn.start_processing()
        assert txn.status == TransactionStatus.PROCESSING

        txn.hold_in_escrow(release_date)
        assert txn.status == TransactionStatus.HELD_IN_ESCROW
        assert txn.escrow_release_date == release_date

        txn.release()
        assert txn.status == TransactionStatus.RELEASED
        assert txn.released_at is not None

        txn.mark_paid_out()
        assert txn.status == TransactionStatus.PAID_OUT
        assert txn.paid_out_at is not None

    def test_cannot_skip_escrow(self):
        txn = make_transaction(TransactionStatus.PROCESSING)

        with pytest.raises(TransitionNotAllowed):
            txn.release()

    def test_release_twice_not_allowed(self):
        txn = make_transaction(TransactionStatus.HELD_IN_ESCROW)
        txn.release()

        with pytest.raises(TransitionNotAllowed):
            txn.release()


class TestRefund:
    @pytest.mark.parametrize(
        "status", [TransactionStatus.HELD_IN_ESCROW, TransactionStatus.RELEASED]
    )
    def test_refund_from_held_or_released(self, status):
        txn = make_transaction(status, created_at=timezone.now() - timedelta(days=5))

        txn.refund("Work not delivered")

        assert txn.status == TransactionStatus.REFUNDED
        assert txn.refund_reason == "Work not delivered"
        assert txn.refunded_at is not None

    @pytest.mark.parametrize(
        "status",
        [
            TransactionStatus.PENDING,
            TransactionStatus.PROCESSING,
            TransactionStatus.PAID_OUT,
            TransactionStatus.FAILED,
        ],
    )
    def test_refund_from_other_states_not_allowed(self, status):
        txn = make_transaction(status)

        with pytest.raises(TransitionNotAllowed):
            txn.refund()

    def test_refund_after_window_not_allowed(self):
        txn = make_transaction(
            TransactionStatus.HELD_IN_ESCROW,
            created_at=timezone.now() - timedelta(days=31),
        )

        assert txn.can_be_refunded is False
        with pytest.raises(TransitionNotAllowed):
            txn.refund()

    def test_refund_on_last_day_of_window(self):
        txn = make_transaction(
            TransactionStatus.RELEASED,
            created_at=timezone.now() - timedelta(days=29, hours=23),
        )

        assert txn.can_be_refunded is True

    @override_settings(REFUND_WINDOW_DAYS=7)
    def test_window_follows_settings(self):
        txn = make_transaction(
            TransactionStatus.HELD_IN_ESCROW,
            created_at=timezone.now() - timedelta(days=8),
        )

        assert txn.can_be_refunded is False


class TestFailureAndCancellation:
    @pytest.mark.parametrize(
        "status", [TransactionStatus.PENDING, TransactionStatus.PROCESSING]
    )
    def test_fail_before_escrow(self, status):
        txn = make_transaction(status)

        txn.fail("Card declined")

        assert txn.status == TransactionStatus.FAILED
        assert txn.failure_reason == "Card declined"
        assert txn.failed_at is not None

    @pytest.mark.parametrize(
        "status", [TransactionStatus.PENDING, TransactionStatus.PROCESSING]
    )
    def test_cancel_before_escrow(self, status):
        txn = make_transaction(status)

        txn.cancel()

        assert txn.status == TransactionStatus.CANCELLED
        assert txn.cancelled_at is not None

    @pytest.mark.parametrize(
        "status", [TransactionStatus.HELD_IN_ESCROW, TransactionStatus.RELEASED]
    )
    def test_cannot_cancel_funded_transaction(self, status):
        txn = make_transaction(status)

        with pytest.raises(TransitionNotAllowed):
            txn.cancel()


class TestProtectedStatus:
    def test_status_cannot_be_assigned_directly(self):
        txn = make_transaction()

        with pytest.raises(AttributeError):
            txn.status = TransactionStatus.RELEASED


class TestFeeProperties:
    def test_total_fees(self):
        txn = make_transaction(processing_fee=0, tax=0)

        assert txn.total_fees == 15000
