"""
Tests for the escrow Celery tasks (auto-release and payout batch).

Tasks are called directly; Redis is mocked through mock_redis.
"""

from datetime import timedelta

import pytest
from django.test import override_settings
from django.utils import timezone

from authentication.tests.factories import FreelancerFactory
from contracts.models import ContractStatus, MilestoneStatus
from contracts.tests.factories import create_contract_with_milestones
from payments.exceptions import StripeAPIUnavailableError
from payments.models import Transaction
from payments.state_machines import TransactionStatus
from payments.tasks import auto_release_escrow, process_payout_batch
from payments.tests.factories import TransactionFactory


def held(milestone, release_in_days):
    return TransactionFactory(
        milestone=milestone,
        status=TransactionStatus.HELD_IN_ESCROW,
        stripe_charge_id="ch_test123",
        escrow_release_date=timezone.now() + timedelta(days=release_in_days),
    )


class TestAutoReleaseEscrow:
    def test_releases_due_transactions(self, mock_stripe, mock_redis, milestone):
        txn = held(milestone, release_in_days=-1)

        result = auto_release_escrow()

        assert result == {"status": "completed", "released": 1, "skipped": 0, "failed": 0}
        assert Transaction.objects.get(pk=txn.pk).status == TransactionStatus.RELEASED

    def test_ignores_transactions_not_yet_due(self, mock_stripe, mock_redis, milestone):
        txn = held(milestone, release_in_days=3)

        result = auto_release_escrow()

        assert result["released"] == 0
        assert Transaction.objects.get(pk=txn.pk).status == TransactionStatus.HELD_IN_ESCROW
        assert mock_stripe.calls == []

    def test_skips_freelancer_without_account(self, mock_stripe, mock_redis, client_user):
        contract = create_contract_with_milestones(
            [150000],
            milestone_status=MilestoneStatus.APPROVED,
            client=client_user,
            freelancer=FreelancerFactory(stripe_connected_account_id=None),
        )
        held(contract.milestones.get(), release_in_days=-1)

        result = auto_release_escrow()

        assert result["skipped"] == 1
        assert result["released"] == 0

    def test_skips_disputed_contract(self, mock_stripe, mock_redis, client_user, freelancer):
        contract = create_contract_with_milestones(
            [150000],
            status=ContractStatus.DISPUTED,
            milestone_status=MilestoneStatus.APPROVED,
            client=client_user,
            freelancer=freelancer,
        )
        txn = held(contract.milestones.get(), release_in_days=-1)

        result = auto_release_escrow()

        assert result == {"status": "completed", "released": 0, "skipped": 1, "failed": 0}
        assert Transaction.objects.get(pk=txn.pk).status == TransactionStatus.HELD_IN_ESCROW
        assert contract.milestones.get().status == MilestoneStatus.APPROVED
        assert mock_stripe.calls_to("create_transfer") == []

    def test_gateway_failure_is_counted(self, mock_stripe, mock_redis, milestone):
        mock_stripe.errors["create_transfer"] = StripeAPIUnavailableError("down")
        held(milestone, release_in_days=-1)

        result = auto_release_escrow()

        assert result["failed"] == 1

    def test_skips_when_lock_is_held(self, mock_stripe, mock_redis, milestone):
        mock_redis.set.return_value = False
        txn = held(milestone, release_in_days=-1)

        assert auto_release_escrow() == {"status": "locked"}
        assert Transaction.objects.get(pk=txn.pk).status == TransactionStatus.HELD_IN_ESCROW

    @override_settings(ESCROW_AUTO_RELEASE_ENABLED=False)
    def test_disabled(self, mock_stripe, mock_redis, milestone):
        held(milestone, release_in_days=-1)

        assert auto_release_escrow() == {"status": "disabled"}
        mock_redis.set.assert_not_called()


class TestProcessPayoutBatch:
    def test_marks_confirmed_transfers_paid_out(
        self, mock_stripe, mock_redis, released_transaction
    ):
        result = process_payout_batch()

        assert result["paid_out"] == 1
        txn = Transaction.objects.get(pk=released_transaction.pk)
        assert txn.status == TransactionStatus.PAID_OUT
        assert mock_stripe.calls_to("retrieve_transfer") == [{"transfer_id": "tr_test123"}]

    def test_reversed_transfer_stays_released(
        self, mock_stripe, mock_redis, released_transaction
    ):
        mock_stripe.transfer_reversed = True

        result = process_payout_batch()

        assert result["pending"] == 1
        txn = Transaction.objects.get(pk=released_transaction.pk)
        assert txn.status == TransactionStatus.RELEASED

    @pytest.mark.usefixtures("held_transaction")
    def test_ignores_unreleased_transactions(self, mock_stripe, mock_redis):
        result = process_payout_batch()

        assert result == {"status": "completed", "paid_out": 0, "pending": 0, "failed": 0}

    def test_skips_when_lock_is_held(self, mock_stripe, mock_redis, released_transaction):
        mock_redis.set.return_value = False

        assert process_payout_batch() == {"status": "locked"}
