"""
Tests for ContractService.

Tests cover:
- Contract creation and its validations
- Signing and activation
- Milestone workflow with role and status checks
- Paying milestones and automatic contract completion
- Pause, resume, dispute and cancel
- Amendments
"""

import uuid
from datetime import timedelta

import pytest
from django.utils import timezone

from contracts.models import (
    Amendment,
    AmendmentStatus,
    AmendmentType,
    Contract,
    ContractStatus,
    Milestone,
    MilestoneStatus,
    Signature,
)
from contracts.services import ContractService
from contracts.tests.factories import (
    AmendmentFactory,
    ContractFactory,
    create_contract_with_milestones,
)
from core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


def reload(contract):
    return Contract.objects.get(pk=contract.pk)


# =============================================================================
# Create & Read
# =============================================================================


@pytest.mark.django_db
class TestCreateContract:
    def create(self, client, freelancer, **overrides):
        start = timezone.now()
        kwargs = {
            "client": client,
            "freelancer": freelancer,
            "title": "Logo design",
            "description": "Brand refresh",
            "total_amount": 150000,
            "start_date": start,
            "end_date": start + timedelta(days=30),
        }
        kwargs.update(overrides)
        return ContractService.create_contract(**kwargs)

    def test_creates_draft_with_milestones(self, client_user, freelancer, milestone_payload):
        contract = self.create(client_user, freelancer, milestones=milestone_payload)

        assert contract.status == ContractStatus.DRAFT
        assert contract.version == 1
        milestones = list(contract.milestones.order_by("position"))
        assert [m.position for m in milestones] == [0, 1]
        assert [m.amount for m in milestones] == [50000, 100000]
        assert all(m.status == MilestoneStatus.PENDING for m in milestones)

    def test_terms_merge_with_defaults(self, client_user, freelancer):
        contract = self.create(
            client_user, freelancer, terms={"additional_terms": "Weekly calls"}
        )

        assert contract.terms["additional_terms"] == "Weekly calls"
        assert "payment_terms" in contract.terms

    def test_milestone_sum_mismatch_persists_nothing(
        self, client_user, freelancer, milestone_payload
    ):
        with pytest.raises(ValidationError) as exc_info:
            self.create(
                client_user, freelancer, total_amount=160000, milestones=milestone_payload
            )

        assert exc_info.value.error_code == "MILESTONE_TOTAL_MISMATCH"
        assert Contract.objects.count() == 0
        assert Milestone.objects.count() == 0

    def test_freelancer_cannot_create(self, freelancer):
        from authentication.tests.factories import FreelancerFactory

        with pytest.raises(AuthorizationError) as exc_info:
            self.create(freelancer, FreelancerFactory())

        assert exc_info.value.error_code == "CLIENT_ROLE_REQUIRED"

    def test_hired_user_must_be_freelancer(self, client_user, outsider):
        with pytest.raises(ValidationError) as exc_info:
            self.create(client_user, outsider)

        assert exc_info.value.error_code == "INVALID_FREELANCER"

    def test_end_must_follow_start(self, client_user, freelancer):
        start = timezone.now()

        with pytest.raises(ValidationError) as exc_info:
            self.create(client_user, freelancer, start_date=start, end_date=start)

        assert exc_info.value.error_code == "INVALID_DATES"

    @pytest.mark.parametrize("amount", [0, -5, 10.5, "100"])
    def test_total_must_be_positive_integer(self, client_user, freelancer, amount):
        with pytest.raises(ValidationError) as exc_info:
            self.create(client_user, freelancer, total_amount=amount)

        assert exc_info.value.error_code == "INVALID_AMOUNT"

    def test_incomplete_milestone(self, client_user, freelancer, milestone_payload):
        del milestone_payload[0]["title"]

        with pytest.raises(ValidationError) as exc_info:
            self.create(client_user, freelancer, milestones=milestone_payload)

        assert exc_info.value.error_code == "INVALID_MILESTONE"
        assert exc_info.value.details["missing"] == ["title"]


@pytest.mark.django_db
class TestReadContracts:
    def test_participants_and_admin_can_read(self, active_contract, admin_user):
        for user in (active_contract.client, active_contract.freelancer, admin_user):
            assert ContractService.get_contract(active_contract.pk, user) == active_contract

    def test_outsider_cannot_read(self, active_contract, outsider):
        with pytest.raises(AuthorizationError):
            ContractService.get_contract(active_contract.pk, outsider)

    def test_unknown_contract(self, client_user):
        with pytest.raises(NotFoundError) as exc_info:
            ContractService.get_contract(uuid.uuid4(), client_user)

        assert exc_info.value.error_code == "CONTRACT_NOT_FOUND"

    def test_list_only_own_contracts(self, active_contract, draft_contract, outsider):
        ContractFactory(client=outsider)

        contracts = ContractService.list_contracts(active_contract.client)

        assert set(contracts) == {active_contract, draft_contract}

    def test_list_filters_by_status(self, active_contract, draft_contract):
        contracts = ContractService.list_contracts(
            active_contract.client, status=ContractStatus.DRAFT
        )

        assert list(contracts) == [draft_contract]

    def test_list_rejects_unknown_status(self, client_user):
        with pytest.raises(ValidationError) as exc_info:
            ContractService.list_contracts(client_user, status="archived")

        assert exc_info.value.error_code == "INVALID_STATUS"


# =============================================================================
# Signatures
# =============================================================================


@pytest.mark.django_db
class TestSignContract:
    def test_first_signature_keeps_draft(self, draft_contract):
        contract = ContractService.sign_contract(
            draft_contract.pk, draft_contract.client, ip_address="10.0.0.1"
        )

        assert contract.status == ContractStatus.DRAFT
        signature = Signature.objects.get(contract=draft_contract)
        assert signature.signed_by == draft_contract.client
        assert signature.ip_address == "10.0.0.1"
        assert len(signature.signature_hash) == 64

    def test_both_signatures_activate(self, draft_contract):
        ContractService.sign_contract(draft_contract.pk, draft_contract.client)
        contract = ContractService.sign_contract(draft_contract.pk, draft_contract.freelancer)

        assert contract.status == ContractStatus.ACTIVE
        assert reload(draft_contract).status == ContractStatus.ACTIVE
        assert reload(draft_contract).version == 3

    def test_cannot_sign_twice(self, draft_contract):
        ContractService.sign_contract(draft_contract.pk, draft_contract.client)

        with pytest.raises(ConflictError) as exc_info:
            ContractService.sign_contract(draft_contract.pk, draft_contract.client)

        assert exc_info.value.error_code == "ALREADY_SIGNED"
        assert Signature.objects.filter(contract=draft_contract).count() == 1

    def test_cannot_sign_active_contract(self, active_contract):
        with pytest.raises(ConflictError) as exc_info:
            ContractService.sign_contract(active_contract.pk, active_contract.client)

        assert exc_info.value.error_code == "CONTRACT_NOT_DRAFT"

    def test_outsider_cannot_sign(self, draft_contract, outsider):
        with pytest.raises(AuthorizationError):
            ContractService.sign_contract(draft_contract.pk, outsider)


# =============================================================================
# Milestones
# =============================================================================


@pytest.mark.django_db
class TestMilestoneWorkflow:
    def test_start_submit_approve(self, active_contract, first_milestone):
        client, freelancer = active_contract.client, active_contract.freelancer

        ContractService.start_milestone(active_contract.pk, first_milestone.pk, freelancer)
        ContractService.submit_milestone(
            active_contract.pk, first_milestone.pk, freelancer, notes="Concepts attached"
        )
        milestone = ContractService.approve_milestone(
            active_contract.pk, first_milestone.pk, client, feedback="Great"
        )

        milestone = Milestone.objects.get(pk=milestone.pk)
        assert milestone.status == MilestoneStatus.APPROVED
        assert milestone.freelancer_notes == "Concepts attached"
        assert milestone.client_feedback == "Great"
        assert reload(active_contract).progress == 50

    def test_submit_by_non_freelancer(self, active_contract, first_milestone):
        with pytest.raises(AuthorizationError) as exc_info:
            ContractService.submit_milestone(
                active_contract.pk, first_milestone.pk, active_contract.client
            )

        assert exc_info.value.error_code == "NOT_CONTRACT_FREELANCER"
        assert Milestone.objects.get(pk=first_milestone.pk).status == MilestoneStatus.PENDING

    def test_approve_non_submitted(self, active_contract, first_milestone):
        with pytest.raises(ConflictError) as exc_info:
            ContractService.approve_milestone(
                active_contract.pk, first_milestone.pk, active_contract.client
            )

        assert exc_info.value.error_code == "INVALID_MILESTONE_STATE"
        assert exc_info.value.details["milestone_status"] == MilestoneStatus.PENDING

    def test_approve_by_freelancer(self, active_contract, submitted_milestone):
        with pytest.raises(AuthorizationError) as exc_info:
            ContractService.approve_milestone(
                active_contract.pk, submitted_milestone.pk, active_contract.freelancer
            )

        assert exc_info.value.error_code == "NOT_CONTRACT_CLIENT"

    def test_reject_then_resubmit(self, active_contract, submitted_milestone):
        ContractService.reject_milestone(
            active_contract.pk,
            submitted_milestone.pk,
            active_contract.client,
            feedback="Wrong colours",
        )
        milestone = ContractService.submit_milestone(
            active_contract.pk, submitted_milestone.pk, active_contract.freelancer
        )

        assert milestone.status == MilestoneStatus.SUBMITTED
        assert milestone.client_feedback == "Wrong colours"

    def test_submit_on_paused_contract(self, client_user, freelancer):
        contract = create_contract_with_milestones(
            [150000], status=ContractStatus.PAUSED, client=client_user, freelancer=freelancer
        )

        with pytest.raises(ConflictError):
            ContractService.submit_milestone(
                contract.pk, contract.milestones.get().pk, freelancer
            )

    def test_milestone_from_other_contract(self, active_contract):
        other = create_contract_with_milestones([150000])

        with pytest.raises(NotFoundError) as exc_info:
            ContractService.submit_milestone(
                active_contract.pk, other.milestones.get().pk, active_contract.freelancer
            )

        assert exc_info.value.error_code == "MILESTONE_NOT_FOUND"

    def test_transition_bumps_contract_version(self, active_contract, first_milestone):
        ContractService.start_milestone(
            active_contract.pk, first_milestone.pk, active_contract.freelancer
        )

        assert reload(active_contract).version == active_contract.version + 1


@pytest.mark.django_db
class TestMarkMilestonePaid:
    def test_contract_completes_when_last_milestone_paid(self, client_user, freelancer):
        contract = create_contract_with_milestones(
            [50000, 100000],
            milestone_status=MilestoneStatus.APPROVED,
            client=client_user,
            freelancer=freelancer,
        )
        first, second = contract.milestones.order_by("position")

        ContractService.mark_milestone_paid(first.pk)
        assert reload(contract).status == ContractStatus.ACTIVE

        ContractService.mark_milestone_paid(second.pk)
        completed = reload(contract)
        assert completed.status == ContractStatus.COMPLETED
        assert completed.completed_at is not None
        assert completed.total_paid == 150000
        assert completed.progress == 100

    def test_already_paid_is_unchanged(self):
        contract = create_contract_with_milestones(
            [150000], milestone_status=MilestoneStatus.PAID
        )
        milestone = contract.milestones.get()

        result = ContractService.mark_milestone_paid(milestone.pk)

        assert result.status == MilestoneStatus.PAID
        assert reload(contract).version == contract.version

    def test_unapproved_milestone(self, active_contract, first_milestone):
        with pytest.raises(ConflictError) as exc_info:
            ContractService.mark_milestone_paid(first_milestone.pk)

        assert exc_info.value.error_code == "INVALID_STATE_TRANSITION"

    def test_unknown_milestone(self, db):
        with pytest.raises(NotFoundError):
            ContractService.mark_milestone_paid(uuid.uuid4())

    def test_disputed_contract_blocks_payment(self):
        contract = create_contract_with_milestones(
            [150000],
            status=ContractStatus.DISPUTED,
            milestone_status=MilestoneStatus.APPROVED,
        )
        milestone = contract.milestones.get()

        with pytest.raises(ConflictError) as exc_info:
            ContractService.mark_milestone_paid(milestone.pk)

        assert exc_info.value.error_code == "CONTRACT_DISPUTED"
        assert Milestone.objects.get(pk=milestone.pk).status == MilestoneStatus.APPROVED

    def test_cancelled_contract_blocks_payment(self):
        contract = create_contract_with_milestones(
            [150000],
            status=ContractStatus.CANCELLED,
            milestone_status=MilestoneStatus.APPROVED,
        )

        with pytest.raises(ConflictError) as exc_info:
            ContractService.mark_milestone_paid(contract.milestones.get().pk)

        assert exc_info.value.error_code == "CONTRACT_NOT_ACTIVE"

    def test_paused_contract_completes_on_resume(self):
        contract = create_contract_with_milestones(
            [150000],
            status=ContractStatus.PAUSED,
            milestone_status=MilestoneStatus.APPROVED,
        )

        ContractService.mark_milestone_paid(contract.milestones.get().pk)
        assert reload(contract).status == ContractStatus.PAUSED

        resumed = ContractService.resume_contract(contract.pk, contract.client)

        assert resumed.status == ContractStatus.COMPLETED
        assert reload(contract).completed_at is not None


# =============================================================================
# Contract Status
# =============================================================================


@pytest.mark.django_db
class TestContractStatusChanges:
    def test_pause_and_resume(self, active_contract):
        ContractService.pause_contract(active_contract.pk, active_contract.client)
        assert reload(active_contract).status == ContractStatus.PAUSED

        ContractService.resume_contract(active_contract.pk, active_contract.freelancer)
        assert reload(active_contract).status == ContractStatus.ACTIVE

    def test_dispute(self, active_contract):
        contract = ContractService.dispute_contract(
            active_contract.pk, active_contract.client, "Deadline missed"
        )

        assert contract.status == ContractStatus.DISPUTED
        assert reload(active_contract).dispute_reason == "Deadline missed"

    def test_pause_draft_not_allowed(self, draft_contract):
        with pytest.raises(ConflictError) as exc_info:
            ContractService.pause_contract(draft_contract.pk, draft_contract.client)

        assert exc_info.value.error_code == "INVALID_STATE_TRANSITION"

    def test_outsider_cannot_pause(self, active_contract, outsider):
        with pytest.raises(AuthorizationError):
            ContractService.pause_contract(active_contract.pk, outsider)

    def test_cancel_records_amendment(self, active_contract):
        contract = ContractService.cancel_contract(
            active_contract.pk, active_contract.client, "Budget cut"
        )

        assert contract.status == ContractStatus.CANCELLED
        amendment = Amendment.objects.get(contract=active_contract)
        assert amendment.amendment_type == AmendmentType.SCOPE_CHANGE
        assert amendment.status == AmendmentStatus.ACCEPTED
        assert amendment.changes == {"status": ContractStatus.CANCELLED}
        assert amendment.reason == "Budget cut"

    def test_cannot_cancel_completed(self):
        contract = create_contract_with_milestones(
            [150000],
            status=ContractStatus.COMPLETED,
            milestone_status=MilestoneStatus.PAID,
        )

        with pytest.raises(ConflictError):
            ContractService.cancel_contract(contract.pk, contract.client, "Too late")

        assert not Amendment.objects.filter(contract=contract).exists()


# =============================================================================
# Amendments
# =============================================================================


@pytest.mark.django_db
class TestProposeAmendment:
    def test_propose(self, active_contract):
        amendment = ContractService.propose_amendment(
            active_contract.pk,
            active_contract.freelancer,
            AmendmentType.TIMELINE_CHANGE,
            "Two more weeks",
            {"end_date": (active_contract.end_date + timedelta(days=14)).isoformat()},
            "Scope grew",
        )

        assert amendment.status == AmendmentStatus.PENDING
        assert amendment.proposed_by == active_contract.freelancer

    def test_unknown_type(self, active_contract):
        with pytest.raises(ValidationError):
            ContractService.propose_amendment(
                active_contract.pk,
                active_contract.client,
                "price_hike",
                "x",
                {"terms": {}},
                "y",
            )

    def test_unknown_change_key(self, active_contract):
        with pytest.raises(ValidationError) as exc_info:
            ContractService.propose_amendment(
                active_contract.pk,
                active_contract.client,
                AmendmentType.TERMS_CHANGE,
                "x",
                {"status": "completed"},
                "y",
            )

        assert exc_info.value.details["unknown"] == ["status"]

    def test_contract_must_be_active(self, draft_contract):
        with pytest.raises(ConflictError) as exc_info:
            ContractService.propose_amendment(
                draft_contract.pk,
                draft_contract.client,
                AmendmentType.TERMS_CHANGE,
                "x",
                {"terms": {"additional_terms": "y"}},
                "z",
            )

        assert exc_info.value.error_code == "CONTRACT_NOT_ACTIVE"


@pytest.mark.django_db
class TestRespondToAmendment:
    def respond(self, amendment, user, accept=True):
        return ContractService.respond_to_amendment(
            amendment.contract_id, amendment.pk, user, accept=accept, notes="ok"
        )

    def test_accept_applies_terms(self, active_contract):
        amendment = AmendmentFactory(contract=active_contract)

        result = self.respond(amendment, active_contract.freelancer)

        assert result.status == AmendmentStatus.ACCEPTED
        assert result.responded_by == active_contract.freelancer
        assert reload(active_contract).terms["additional_terms"] == "Weekly reports"

    def test_reject_leaves_contract(self, active_contract):
        amendment = AmendmentFactory(contract=active_contract)

        result = self.respond(amendment, active_contract.freelancer, accept=False)

        assert result.status == AmendmentStatus.REJECTED
        assert "Weekly reports" not in reload(active_contract).terms.values()

    def test_proposer_cannot_respond(self, active_contract):
        amendment = AmendmentFactory(contract=active_contract)

        with pytest.raises(AuthorizationError) as exc_info:
            self.respond(amendment, active_contract.client)

        assert exc_info.value.error_code == "AMENDMENT_PROPOSER"

    def test_cannot_respond_twice(self, active_contract):
        amendment = AmendmentFactory(contract=active_contract)
        self.respond(amendment, active_contract.freelancer)

        with pytest.raises(ConflictError) as exc_info:
            self.respond(amendment, active_contract.freelancer)

        assert exc_info.value.error_code == "AMENDMENT_NOT_PENDING"

    def test_amount_change_with_new_milestone(self, active_contract):
        due = (timezone.now() + timedelta(days=40)).isoformat()
        amendment = AmendmentFactory(
            contract=active_contract,
            amendment_type=AmendmentType.AMOUNT_CHANGE,
            changes={
                "total_amount": 200000,
                "milestones": [
                    {"title": "Extras", "description": "Icons", "amount": 50000, "due_date": due}
                ],
            },
        )

        self.respond(amendment, active_contract.freelancer)

        contract = reload(active_contract)
        assert contract.total_amount == 200000
        assert contract.milestones.count() == 3
        assert contract.milestones.get(position=2).title == "Extras"

    def test_total_mismatch_rolls_back(self, active_contract):
        amendment = AmendmentFactory(
            contract=active_contract,
            amendment_type=AmendmentType.AMOUNT_CHANGE,
            changes={"total_amount": 200000},
        )

        with pytest.raises(ValidationError) as exc_info:
            self.respond(amendment, active_contract.freelancer)

        assert exc_info.value.error_code == "MILESTONE_TOTAL_MISMATCH"
        assert reload(active_contract).total_amount == 150000
        assert Amendment.objects.get(pk=amendment.pk).status == AmendmentStatus.PENDING

    def test_approved_milestone_is_locked(self, client_user, freelancer):
        contract = create_contract_with_milestones(
            [150000],
            milestone_status=MilestoneStatus.APPROVED,
            client=client_user,
            freelancer=freelancer,
        )
        milestone = contract.milestones.get()
        amendment = AmendmentFactory(
            contract=contract,
            amendment_type=AmendmentType.MILESTONE_CHANGE,
            changes={"milestones": [{"id": str(milestone.pk), "title": "Renamed"}]},
        )

        with pytest.raises(ConflictError) as exc_info:
            self.respond(amendment, freelancer)

        assert exc_info.value.error_code == "MILESTONE_LOCKED"
        assert Milestone.objects.get(pk=milestone.pk).title != "Renamed"

    def test_remove_and_resize_milestones(self, active_contract):
        first, second = active_contract.milestones.order_by("position")
        amendment = AmendmentFactory(
            contract=active_contract,
            amendment_type=AmendmentType.MILESTONE_CHANGE,
            changes={
                "milestones": [
                    {"id": str(first.pk), "remove": True},
                    {"id": str(second.pk), "amount": 150000},
                ]
            },
        )

        self.respond(amendment, active_contract.freelancer)

        assert list(active_contract.milestones.values_list("amount", flat=True)) == [150000]

    def test_unknown_amendment(self, active_contract):
        with pytest.raises(NotFoundError):
            ContractService.respond_to_amendment(
                active_contract.pk, 999999, active_contract.freelancer, accept=True
            )
