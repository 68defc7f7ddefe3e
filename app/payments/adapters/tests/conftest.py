"""
Pytest fixtures for Stripe adapter tests.

The Stripe SDK resources (stripe.PaymentIntent, stripe.Transfer, ...) are
patched; responses are MockStripeObject instances exposing attributes and
to_dict() like real StripeObjects.
"""

from dataclasses import dataclass
from typing import Any
from unittest.mock import patch

import pytest
import stripe


@dataclass
class MockStripeObject:
    """Mock Stripe API object: attribute access over a dict, plus to_dict()."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


# =============================================================================
# Mock Stripe Responses
# =============================================================================


@pytest.fixture
def mock_payment_intent():
    def _create(
        id: str = "pi_test123456",
        status: str = "requires_payment_method",
        amount: int = 150000,
        currency: str = "usd",
        client_secret: str | None = "pi_test123456_secret_abc",
        latest_charge: str | None = None,
        last_payment_error: dict | None = None,
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "payment_intent",
                "status": status,
                "amount": amount,
                "currency": currency,
                "client_secret": client_secret,
                "latest_charge": latest_charge,
                "last_payment_error": (
                    MockStripeObject(last_payment_error) if last_payment_error else None
                ),
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_transfer():
    def _create(
        id: str = "tr_test123456",
        amount: int = 135000,
        currency: str = "usd",
        destination: str = "acct_dest123",
        reversed: bool = False,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "transfer",
                "amount": amount,
                "currency": currency,
                "destination": destination,
                "reversed": reversed,
                "metadata": {},
            }
        )

    return _create


@pytest.fixture
def mock_refund():
    def _create(
        id: str = "re_test123456",
        amount: int = 150000,
        currency: str = "usd",
        status: str = "succeeded",
        payment_intent: str = "pi_test123456",
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "refund",
                "amount": amount,
                "currency": currency,
                "status": status,
                "payment_intent": payment_intent,
                "metadata": {},
            }
        )

    return _create


# =============================================================================
# Stripe SDK Errors
# =============================================================================


@pytest.fixture
def card_error():
    def _create(decline_code: str | None = "generic_decline") -> stripe.CardError:
        error = stripe.CardError(
            message="Your card was declined.",
            param=None,
            code="card_declined",
        )
        error.decline_code = decline_code
        return error

    return _create


@pytest.fixture
def invalid_request_error():
    def _create(
        message: str = "No such payment_intent: 'pi_missing'",
        code: str = "resource_missing",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(message=message, param=None, code=code)

    return _create


@pytest.fixture
def signature_verification_error():
    return stripe.SignatureVerificationError(
        message="Unable to verify webhook signature.",
        sig_header="bad_signature",
    )


# =============================================================================
# Patched SDK Resources
# =============================================================================


@pytest.fixture(autouse=True)
def mock_stripe_http_client():
    with patch("stripe.RequestsClient") as mock:
        yield mock


@pytest.fixture
def mock_stripe_payment_intent(mock_payment_intent):
    with patch("stripe.PaymentIntent") as mock:
        mock.create.return_value = mock_payment_intent()
        mock.retrieve.return_value = mock_payment_intent(status="requires_capture")
        mock.capture.return_value = mock_payment_intent(
            status="succeeded", latest_charge="ch_test123"
        )
        mock.cancel.return_value = mock_payment_intent(status="canceled")
        yield mock


@pytest.fixture
def mock_stripe_transfer(mock_transfer):
    with patch("stripe.Transfer") as mock:
        mock.create.return_value = mock_transfer()
        mock.retrieve.return_value = mock_transfer()
        mock.create_reversal.return_value = MockStripeObject(
            {"id": "trr_test123", "amount": 135000, "currency": "usd"}
        )
        yield mock


@pytest.fixture
def mock_stripe_refund(mock_refund):
    with patch("stripe.Refund") as mock:
        mock.create.return_value = mock_refund()
        yield mock


@pytest.fixture
def mock_stripe_webhook():
    with patch("stripe.Webhook") as mock:
        mock.construct_event.return_value = MockStripeObject(
            {
                "id": "evt_test123",
                "type": "payment_intent.succeeded",
                "data": {"object": {"id": "pi_test123", "object": "payment_intent"}},
            }
        )
        yield mock
