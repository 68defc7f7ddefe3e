"""
Test configuration and fixtures for authentication tests.

User fixtures (client_user, freelancer, admin_user, api_client) are shared
from app/conftest.py.

Usage:
    def test_example(client_user, authenticated_client):
        response = authenticated_client.get('/api/v1/auth/me/')
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient

from authentication.models import User


@pytest.fixture
def superuser(db):
    """Create a superuser with admin privileges."""
    return User.objects.create_superuser(
        email="admin@example.com", password="AdminPass123!"
    )


@pytest.fixture
def authenticated_client(client_user):
    """API client authenticated as the client user."""
    api = APIClient()
    api.force_authenticate(user=client_user)
    return api
