"""
Pytest fixtures for contract tests.

Provides:
- draft_contract: unsigned contract with 50000 + 100000 milestones
- active_contract: the same split on an active contract
- first_milestone: the pending 50000 milestone of active_contract
- submitted_milestone: the same milestone, already submitted
- milestone_payload: request-shaped milestone dicts for create calls
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from contracts.models import ContractStatus, Milestone, MilestoneStatus
from contracts.tests.factories import MilestoneFactory, create_contract_with_milestones


@pytest.fixture
def draft_contract(db, client_user, freelancer):
    return create_contract_with_milestones(
        status=ContractStatus.DRAFT,
        client=client_user,
        freelancer=freelancer,
    )


@pytest.fixture
def active_contract(db, client_user, freelancer):
    return create_contract_with_milestones(client=client_user, freelancer=freelancer)


@pytest.fixture
def first_milestone(active_contract):
    return active_contract.milestones.get(position=0)


@pytest.fixture
def submitted_milestone(active_contract):
    """Replace the first milestone with a submitted one of the same amount."""
    pending = active_contract.milestones.get(position=0)
    Milestone.objects.filter(pk=pending.pk).delete()
    return MilestoneFactory(
        contract=active_contract,
        position=0,
        amount=pending.amount,
        status=MilestoneStatus.SUBMITTED,
    )


@pytest.fixture
def milestone_payload():
    due = timezone.now() + timedelta(days=14)
    return [
        {"title": "Drafts", "description": "Three concepts", "amount": 50000, "due_date": due},
        {
            "title": "Final",
            "description": "Final files",
            "amount": 100000,
            "due_date": due + timedelta(days=14),
        },
    ]
