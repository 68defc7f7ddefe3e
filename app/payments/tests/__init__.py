"""
Tests for payments app.

This package contains test modules for:
- test_commission.py, test_fees.py: Commission policy and fee calculation
- test_state_transitions.py: Transaction state machine
- test_escrow_service.py, test_outbox.py: EscrowService and the gateway outbox
- test_settings_service.py: Versioned platform settings and tiers
- test_locks.py, test_optimistic_locking.py: Redis locks and version checks
- test_tasks.py: Auto-release and payout batch tasks
- test_views.py: API endpoint tests

Webhook and Stripe adapter tests live in payments/webhooks/tests/ and
payments/adapters/tests/.

Usage:
    pytest payments/tests/
    pytest payments/tests/test_escrow_service.py
"""
