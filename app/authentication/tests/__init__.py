"""
Tests for authentication app.

This package contains test modules for:
- test_managers.py: UserManager tests
- test_models.py: User model tests
- test_views.py: Registration, token and current user API tests

Usage:
    pytest authentication/tests/
    pytest authentication/tests/test_models.py
"""
