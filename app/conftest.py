"""
Project-wide pytest configuration.

Provides:
- Auto-marking of tests as unit / integration / e2e by filename
- Shared user fixtures (client, freelancer, admin) and API clients

App-specific fixtures are defined in each app's tests/conftest.py.
"""

import pytest
from rest_framework.test import APIClient


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full escrow journeys)
    - test_views.py, test_services.py, test_tasks.py, etc. → integration
    - test_models.py, test_fees.py, test_state_transitions.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_webhooks.py",
        "test_handlers.py",
        "test_escrow_service.py",
        "test_settings_service.py",
        "test_contract_service.py",
        "test_optimistic_locking.py",
        "test_outbox.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_serializers.py",
        "test_managers.py",
        "test_adapters.py",
        "test_stripe_adapter.py",
        "test_commission.py",
        "test_fees.py",
        "test_state_transitions.py",
        "test_locks.py",
        "test_exceptions.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def client_user(db):
    """A user with the client role (pays for contracts)."""
    from authentication.tests.factories import ClientFactory

    return ClientFactory()


@pytest.fixture
def freelancer(db):
    """A freelancer with a Stripe connected account."""
    from authentication.tests.factories import FreelancerFactory

    return FreelancerFactory()


@pytest.fixture
def admin_user(db):
    """A platform admin."""
    from authentication.tests.factories import AdminFactory

    return AdminFactory()


@pytest.fixture
def outsider(db):
    """A client who takes no part in the contract under test."""
    from authentication.tests.factories import ClientFactory

    return ClientFactory()


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture
def auth_client():
    """
    Factory returning an API client authenticated as the given user.

    Usage:
        def test_example(auth_client, client_user):
            api = auth_client(client_user)
            api.get("/api/v1/transactions/history/")
    """

    def _make(user):
        api = APIClient()
        api.force_authenticate(user=user)
        return api

    return _make
