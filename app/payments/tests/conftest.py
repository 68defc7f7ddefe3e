"""
Pytest fixtures for payment tests.

Provides:
- mock_stripe: MockStripeAdapter installed on EscrowService
- mock_redis: Redis client double for DistributedLock
- platform_settings: active 10% flat-rate settings without other fees
- Contracts and transactions in the states the escrow tests start from
"""

from unittest.mock import MagicMock

import pytest

from contracts.models import MilestoneStatus
from contracts.tests.factories import create_contract_with_milestones
from payments.services import EscrowService
from payments.state_machines import TransactionStatus
from payments.tests.factories import PlatformSettingsFactory, TransactionFactory
from payments.tests.mocks import MockStripeAdapter


@pytest.fixture
def mock_stripe():
    adapter = MockStripeAdapter()
    EscrowService.set_stripe_adapter(adapter)
    yield adapter
    EscrowService.set_stripe_adapter(None)


@pytest.fixture
def mock_redis(mocker):
    """
    Redis double where SET NX succeeds and the Lua scripts report success.

    Set ``mock_redis.set.return_value = False`` to simulate a held lock.
    """
    redis = MagicMock()
    redis.set.return_value = True
    redis.eval.return_value = 1
    mocker.patch("payments.locks.get_redis_connection", return_value=redis)
    return redis


@pytest.fixture
def platform_settings(db):
    return PlatformSettingsFactory()


# =============================================================================
# Contract Fixtures
# =============================================================================


@pytest.fixture
def contract(db, client_user, freelancer):
    """Active contract with one 150000 milestone, approved and ready to pay."""
    return create_contract_with_milestones(
        [150000],
        milestone_status=MilestoneStatus.APPROVED,
        client=client_user,
        freelancer=freelancer,
    )


@pytest.fixture
def milestone(contract):
    return contract.milestones.get()


# =============================================================================
# Transaction Fixtures
# =============================================================================


@pytest.fixture
def processing_transaction(milestone):
    return TransactionFactory(milestone=milestone, status=TransactionStatus.PROCESSING)


@pytest.fixture
def held_transaction(milestone):
    return TransactionFactory(
        milestone=milestone,
        status=TransactionStatus.HELD_IN_ESCROW,
        stripe_charge_id="ch_test123",
    )


@pytest.fixture
def released_transaction(milestone):
    return TransactionFactory(
        milestone=milestone,
        status=TransactionStatus.RELEASED,
        stripe_charge_id="ch_test123",
        stripe_transfer_id="tr_test123",
    )
