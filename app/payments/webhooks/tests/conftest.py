"""
Pytest fixtures for webhook tests.

Provides Stripe event payloads, stored WebhookEvent rows in each status and
a processing transaction whose PaymentIntent the events refer to.
"""

import pytest

from contracts.models import MilestoneStatus
from contracts.tests.factories import create_contract_with_milestones
from payments.services import EscrowService
from payments.state_machines import TransactionStatus, WebhookEventStatus
from payments.tests.factories import (
    PlatformSettingsFactory,
    TransactionFactory,
    WebhookEventFactory,
)
from payments.tests.mocks import MockStripeAdapter
from payments.webhooks.tests.payloads import PAYMENT_INTENT_ID, make_event_payload


@pytest.fixture
def mock_stripe():
    adapter = MockStripeAdapter()
    EscrowService.set_stripe_adapter(adapter)
    yield adapter
    EscrowService.set_stripe_adapter(None)


@pytest.fixture
def processing_transaction(db, client_user, freelancer):
    PlatformSettingsFactory()
    contract = create_contract_with_milestones(
        [150000],
        milestone_status=MilestoneStatus.APPROVED,
        client=client_user,
        freelancer=freelancer,
    )
    return TransactionFactory(
        milestone=contract.milestones.get(),
        status=TransactionStatus.PROCESSING,
        stripe_payment_intent_id=PAYMENT_INTENT_ID,
    )


@pytest.fixture
def succeeded_event(db):
    payload = make_event_payload("payment_intent.succeeded")
    return WebhookEventFactory(
        stripe_event_id=payload["id"],
        event_type=payload["type"],
        payload=payload,
    )


@pytest.fixture
def failed_payment_event(db):
    payload = make_event_payload(
        "payment_intent.payment_failed",
        last_payment_error={"message": "Your card was declined."},
    )
    return WebhookEventFactory(
        stripe_event_id=payload["id"],
        event_type=payload["type"],
        payload=payload,
    )


@pytest.fixture
def processed_webhook_event(db):
    return WebhookEventFactory(status=WebhookEventStatus.PROCESSED, retry_count=1)


@pytest.fixture
def failed_webhook_event(db):
    return WebhookEventFactory(
        status=WebhookEventStatus.FAILED,
        retry_count=1,
        error_message="Previous failure",
    )
