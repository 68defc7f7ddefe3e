"""
API tests for contract, milestone and amendment endpoints.
"""

import uuid
from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework import status

from contracts.models import AmendmentStatus, ContractStatus, MilestoneStatus
from contracts.tests.factories import AmendmentFactory

CONTRACTS_URL = "/api/v1/contracts/"


def milestone_url(contract, milestone, action):
    return f"{CONTRACTS_URL}{contract.pk}/milestones/{milestone.pk}/{action}/"


@pytest.mark.django_db
class TestContractList:
    def test_requires_authentication(self, api_client):
        response = api_client.get(CONTRACTS_URL)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_lists_own_contracts(self, auth_client, active_contract, draft_contract, outsider):
        response = auth_client(active_contract.freelancer).get(CONTRACTS_URL)

        assert response.status_code == status.HTTP_200_OK
        assert {c["id"] for c in response.data} == {
            str(active_contract.pk),
            str(draft_contract.pk),
        }
        assert auth_client(outsider).get(CONTRACTS_URL).data == []

    def test_status_filter(self, auth_client, active_contract, draft_contract):
        response = auth_client(active_contract.client).get(
            CONTRACTS_URL, {"status": ContractStatus.ACTIVE}
        )

        assert [c["id"] for c in response.data] == [str(active_contract.pk)]

    def test_unknown_status(self, auth_client, client_user):
        response = auth_client(client_user).get(CONTRACTS_URL, {"status": "archived"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_STATUS"


@pytest.mark.django_db
class TestContractCreate:
    def payload(self, freelancer, **overrides):
        start = timezone.now()
        data = {
            "freelancer_id": freelancer.pk,
            "title": "Landing page",
            "description": "Single page site",
            "total_amount": 150000,
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=30)).isoformat(),
            "milestones": [
                {
                    "title": "Design",
                    "description": "Mockups",
                    "amount": 50000,
                    "due_date": (start + timedelta(days=10)).isoformat(),
                },
                {
                    "title": "Build",
                    "description": "Implementation",
                    "amount": 100000,
                    "due_date": (start + timedelta(days=25)).isoformat(),
                },
            ],
        }
        data.update(overrides)
        return data

    def test_creates_draft(self, auth_client, client_user, freelancer):
        response = auth_client(client_user).post(
            CONTRACTS_URL, self.payload(freelancer), format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["status"] == ContractStatus.DRAFT
        assert [m["amount"] for m in response.data["milestones"]] == [50000, 100000]
        assert response.data["progress"] == 0
        assert response.data["version"] == 1

    def test_milestone_mismatch(self, auth_client, client_user, freelancer):
        response = auth_client(client_user).post(
            CONTRACTS_URL, self.payload(freelancer, total_amount=120000), format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "MILESTONE_TOTAL_MISMATCH"

    def test_freelancer_cannot_create(self, auth_client, freelancer):
        from authentication.tests.factories import FreelancerFactory

        response = auth_client(freelancer).post(
            CONTRACTS_URL, self.payload(FreelancerFactory()), format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unknown_freelancer(self, auth_client, client_user, freelancer):
        data = self.payload(freelancer, freelancer_id=999999)

        response = auth_client(client_user).post(CONTRACTS_URL, data, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_missing_fields(self, auth_client, client_user):
        response = auth_client(client_user).post(CONTRACTS_URL, {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestContractDetailAndActions:
    def test_detail(self, auth_client, active_contract):
        response = auth_client(active_contract.client).get(
            f"{CONTRACTS_URL}{active_contract.pk}/"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["total_amount"] == 150000
        assert response.data["remaining_amount"] == 150000
        assert len(response.data["milestones"]) == 2

    def test_detail_forbidden_for_outsider(self, auth_client, active_contract, outsider):
        response = auth_client(outsider).get(f"{CONTRACTS_URL}{active_contract.pk}/")

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_detail_not_found(self, auth_client, client_user):
        response = auth_client(client_user).get(f"{CONTRACTS_URL}{uuid.uuid4()}/")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_sign_activates_after_both_parties(self, auth_client, draft_contract):
        url = f"{CONTRACTS_URL}{draft_contract.pk}/sign/"

        first = auth_client(draft_contract.client).post(url)
        second = auth_client(draft_contract.freelancer).post(url)

        assert first.data["status"] == ContractStatus.DRAFT
        assert second.status_code == status.HTTP_200_OK
        assert second.data["status"] == ContractStatus.ACTIVE
        assert len(second.data["signatures"]) == 2

    def test_sign_twice_conflict(self, auth_client, draft_contract):
        api = auth_client(draft_contract.client)
        api.post(f"{CONTRACTS_URL}{draft_contract.pk}/sign/")

        response = api.post(f"{CONTRACTS_URL}{draft_contract.pk}/sign/")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "ALREADY_SIGNED"

    def test_pause_and_resume(self, auth_client, active_contract):
        api = auth_client(active_contract.client)

        paused = api.post(f"{CONTRACTS_URL}{active_contract.pk}/pause/")
        resumed = api.post(f"{CONTRACTS_URL}{active_contract.pk}/resume/")

        assert paused.data["status"] == ContractStatus.PAUSED
        assert resumed.data["status"] == ContractStatus.ACTIVE

    def test_cancel_requires_reason(self, auth_client, active_contract):
        response = auth_client(active_contract.client).post(
            f"{CONTRACTS_URL}{active_contract.pk}/cancel/", {}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_cancel(self, auth_client, active_contract):
        response = auth_client(active_contract.client).post(
            f"{CONTRACTS_URL}{active_contract.pk}/cancel/",
            {"reason": "No longer needed"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == ContractStatus.CANCELLED
        assert response.data["cancellation_reason"] == "No longer needed"

    def test_dispute_draft_conflict(self, auth_client, draft_contract):
        response = auth_client(draft_contract.client).post(
            f"{CONTRACTS_URL}{draft_contract.pk}/dispute/",
            {"reason": "Unresponsive"},
            format="json",
        )

        assert response.status_code == status.HTTP_409_CONFLICT


@pytest.mark.django_db
class TestMilestoneEndpoints:
    def test_submit_and_approve(self, auth_client, active_contract, first_milestone):
        submitted = auth_client(active_contract.freelancer).post(
            milestone_url(active_contract, first_milestone, "submit"),
            {"notes": "Ready for review"},
            format="json",
        )
        approved = auth_client(active_contract.client).post(
            milestone_url(active_contract, first_milestone, "approve"), {}, format="json"
        )

        assert submitted.status_code == status.HTTP_200_OK
        assert submitted.data["status"] == MilestoneStatus.SUBMITTED
        assert approved.data["status"] == MilestoneStatus.APPROVED

    def test_submit_by_client_forbidden(self, auth_client, active_contract, first_milestone):
        response = auth_client(active_contract.client).post(
            milestone_url(active_contract, first_milestone, "submit"), {}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "NOT_CONTRACT_FREELANCER"

    def test_approve_pending_conflict(self, auth_client, active_contract, first_milestone):
        response = auth_client(active_contract.client).post(
            milestone_url(active_contract, first_milestone, "approve"), {}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "INVALID_MILESTONE_STATE"

    def test_reject(self, auth_client, active_contract, submitted_milestone):
        response = auth_client(active_contract.client).post(
            milestone_url(active_contract, submitted_milestone, "reject"),
            {"feedback": "Needs revisions"},
            format="json",
        )

        assert response.data["status"] == MilestoneStatus.REJECTED
        assert response.data["client_feedback"] == "Needs revisions"

    def test_start(self, auth_client, active_contract, first_milestone):
        response = auth_client(active_contract.freelancer).post(
            milestone_url(active_contract, first_milestone, "start")
        )

        assert response.data["status"] == MilestoneStatus.IN_PROGRESS


@pytest.mark.django_db
class TestAmendmentEndpoints:
    def test_propose_and_list(self, auth_client, active_contract):
        api = auth_client(active_contract.client)

        created = api.post(
            f"{CONTRACTS_URL}{active_contract.pk}/amendments/",
            {
                "amendment_type": "terms_change",
                "description": "Add weekly call",
                "changes": {"terms": {"additional_terms": "Weekly call"}},
                "reason": "Communication",
            },
            format="json",
        )
        listed = api.get(f"{CONTRACTS_URL}{active_contract.pk}/amendments/")

        assert created.status_code == status.HTTP_201_CREATED
        assert created.data["status"] == AmendmentStatus.PENDING
        assert [a["id"] for a in listed.data] == [created.data["id"]]

    def test_respond(self, auth_client, active_contract):
        amendment = AmendmentFactory(contract=active_contract)

        response = auth_client(active_contract.freelancer).post(
            f"{CONTRACTS_URL}{active_contract.pk}/amendments/{amendment.pk}/respond/",
            {"accept": True, "notes": "Agreed"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == AmendmentStatus.ACCEPTED
        assert response.data["response_notes"] == "Agreed"

    def test_proposer_cannot_respond(self, auth_client, active_contract):
        amendment = AmendmentFactory(contract=active_contract)

        response = auth_client(active_contract.client).post(
            f"{CONTRACTS_URL}{active_contract.pk}/amendments/{amendment.pk}/respond/",
            {"accept": True},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
