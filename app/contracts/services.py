"""
Contract service layer.

Creates contracts with their milestones and drives the contract and
milestone state machines. Role checks raise AuthorizationError; status
checks (wrong milestone status, contract not active) raise ConflictError.

Every mutating operation runs in one DB transaction with the contract row
locked and saves the contract through VersionedMixin (bumping its version).
Each save re-validates that milestone amounts sum to the contract total, and
an active contract whose milestones are all paid is completed there.

Usage:
    from contracts.services import ContractService

    contract = ContractService.create_contract(
        client=client,
        freelancer=freelancer,
        title="Logo design",
        description="Brand refresh",
        total_amount=150000,
        start_date=start,
        end_date=end,
        milestones=[
            {"title": "Drafts", "description": "...", "amount": 50000, "due_date": d1},
            {"title": "Final", "description": "...", "amount": 100000, "due_date": d2},
        ],
    )
    ContractService.sign_contract(contract.id, client, ip_address, user_agent)
    ContractService.submit_milestone(contract.id, milestone.id, freelancer, notes="Done")
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from django.db import IntegrityError
from django.db.models import ProtectedError, Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from django_fsm import TransitionNotAllowed

from authentication.models import UserRole
from core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from core.helpers import hash_string
from core.services import BaseService
from payments.exceptions import InvalidStateTransitionError

from contracts.models import (
    Amendment,
    AmendmentStatus,
    AmendmentType,
    Contract,
    ContractStatus,
    Milestone,
    MilestoneStatus,
    Signature,
    default_terms,
)

if TYPE_CHECKING:
    from typing import Any
    from uuid import UUID

    from django.db.models import QuerySet

    from authentication.models import User

MILESTONE_FIELDS = ("title", "description", "amount", "due_date")
AMENDMENT_CHANGE_KEYS = ("milestones", "end_date", "total_amount", "terms")

# Milestone statuses whose amount may still change through an amendment
EDITABLE_MILESTONE_STATUSES = (
    MilestoneStatus.PENDING,
    MilestoneStatus.IN_PROGRESS,
    MilestoneStatus.REJECTED,
)


def _positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(
            f"{name} must be a positive integer in minor units",
            error_code="INVALID_AMOUNT",
            details={name: value},
        )
    return value


def _as_datetime(name: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    parsed = parse_datetime(value) if isinstance(value, str) else None
    if parsed is None:
        raise ValidationError(
            f"{name} must be an ISO 8601 datetime",
            error_code="INVALID_DATE",
            details={name: value},
        )
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


class ContractService(BaseService):
    """Contract lifecycle, milestone workflow, signatures and amendments."""

    # ==========================================================================
    # Lookups
    # ==========================================================================

    @staticmethod
    def _is_admin(user: User | None) -> bool:
        return bool(user is not None and getattr(user, "is_platform_admin", False))

    @classmethod
    def _get_contract(cls, contract_id: UUID | str, for_update: bool = False) -> Contract:
        queryset = Contract.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        contract = queryset.filter(pk=contract_id).first()
        if contract is None:
            raise NotFoundError(
                f"Contract {contract_id} not found",
                error_code="CONTRACT_NOT_FOUND",
                details={"contract_id": str(contract_id)},
            )
        return contract

    @classmethod
    def _get_milestone(
        cls, contract: Contract, milestone_id: UUID | str
    ) -> Milestone:
        milestone = (
            Milestone.objects.select_for_update()
            .filter(pk=milestone_id, contract=contract)
            .first()
        )
        if milestone is None:
            raise NotFoundError(
                f"Milestone {milestone_id} not found on this contract",
                error_code="MILESTONE_NOT_FOUND",
                details={"milestone_id": str(milestone_id)},
            )
        return milestone

    @classmethod
    def _require_participant(cls, contract: Contract, user: User | None) -> None:
        if contract.is_participant(user):
            return
        raise AuthorizationError(
            "You are not a party to this contract",
            error_code="NOT_CONTRACT_PARTICIPANT",
            details={"contract_id": str(contract.pk)},
        )

    @staticmethod
    def _require_active(contract: Contract) -> None:
        if contract.status != ContractStatus.ACTIVE:
            raise ConflictError(
                f"Contract is {contract.status}, not active",
                error_code="CONTRACT_NOT_ACTIVE",
                details={"contract_id": str(contract.pk), "status": contract.status},
            )

    @staticmethod
    def require_payable(contract: Contract, for_milestone: bool = True) -> None:
        """
        Raise unless escrow on ``contract`` may be released.

        A dispute blocks every release. Milestone payments also need the
        contract to be active or paused.
        """
        details = {"contract_id": str(contract.pk), "status": contract.status}
        if contract.status == ContractStatus.DISPUTED:
            raise ConflictError(
                "Contract is under dispute",
                error_code="CONTRACT_DISPUTED",
                details=details,
            )
        if for_milestone and contract.status not in ContractStatus.payable():
            raise ConflictError(
                f"Cannot pay a milestone on a {contract.status} contract",
                error_code="CONTRACT_NOT_ACTIVE",
                details=details,
            )

    @staticmethod
    def _apply(obj: Contract | Milestone, name: str, *args: Any) -> None:
        """Call FSM transition ``name``, translating TransitionNotAllowed."""
        try:
            getattr(obj, name)(*args)
        except TransitionNotAllowed as e:
            raise InvalidStateTransitionError(
                f"Cannot {name} a {obj._meta.model_name} in status '{obj.status}'",
                details={"current_status": obj.status, "transition": name},
            ) from e

    @classmethod
    def _save_contract(cls, contract: Contract) -> Contract:
        """Validate and save ``contract``, completing it once every milestone is paid."""
        contract.validate_milestone_total()
        if contract.status == ContractStatus.ACTIVE and contract.all_milestones_paid():
            cls._apply(contract, "complete")
            cls.get_logger().info(
                "Contract completed",
                extra={"contract_id": str(contract.pk)},
            )
        contract.save()
        return contract

    # ==========================================================================
    # Create & Read
    # ==========================================================================

    @classmethod
    def create_contract(
        cls,
        client: User,
        freelancer: User,
        title: str,
        description: str,
        total_amount: int,
        start_date: datetime,
        end_date: datetime,
        milestones: list[dict[str, Any]] | None = None,
        terms: dict[str, Any] | None = None,
        currency: str = "USD",
        source_type: str = "proposal",
        proposal_reference: str = "",
        project_reference: str = "",
    ) -> Contract:
        """
        Create a draft contract together with its milestones.

        Raises:
            AuthorizationError: client/freelancer do not hold those roles
            ValidationError: Bad dates or amounts, or milestone amounts do not
                sum to total_amount (nothing is persisted)
        """
        if client.role != UserRole.CLIENT and not cls._is_admin(client):
            raise AuthorizationError(
                "Only clients can create contracts",
                error_code="CLIENT_ROLE_REQUIRED",
            )
        if freelancer.role != UserRole.FREELANCER:
            raise ValidationError(
                "The hired user is not a freelancer",
                error_code="INVALID_FREELANCER",
                details={"freelancer_id": freelancer.pk},
            )
        if client.pk == freelancer.pk:
            raise ValidationError(
                "Client and freelancer must be different users",
                error_code="INVALID_FREELANCER",
            )

        total_amount = _positive_int("total_amount", total_amount)
        start_date = _as_datetime("start_date", start_date)
        end_date = _as_datetime("end_date", end_date)
        if start_date >= end_date:
            raise ValidationError(
                "End date must be after start date",
                error_code="INVALID_DATES",
                details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )

        with cls.atomic():
            contract = Contract.objects.create(
                client=client,
                freelancer=freelancer,
                title=title,
                description=description,
                total_amount=total_amount,
                currency=currency.upper(),
                start_date=start_date,
                end_date=end_date,
                terms={**default_terms(), **(terms or {})},
                source_type=source_type,
                proposal_reference=proposal_reference,
                project_reference=project_reference,
            )
            for position, data in enumerate(milestones or []):
                cls._create_milestone(contract, data, position)
            contract.validate_milestone_total()

        cls.get_logger().info(
            "Contract created",
            extra={
                "contract_id": str(contract.pk),
                "client_id": client.pk,
                "freelancer_id": freelancer.pk,
                "total_amount": total_amount,
                "milestone_count": len(milestones or []),
            },
        )
        return contract

    @classmethod
    def _create_milestone(
        cls, contract: Contract, data: dict[str, Any], position: int
    ) -> Milestone:
        missing = [name for name in MILESTONE_FIELDS if data.get(name) in (None, "")]
        if missing:
            raise ValidationError(
                f"Milestone is missing: {', '.join(missing)}",
                error_code="INVALID_MILESTONE",
                details={"position": position, "missing": missing},
            )
        return Milestone.objects.create(
            contract=contract,
            position=position,
            title=data["title"],
            description=data["description"],
            amount=_positive_int("amount", data["amount"]),
            due_date=_as_datetime("due_date", data["due_date"]),
        )

    @classmethod
    def get_contract(cls, contract_id: UUID | str, user: User) -> Contract:
        contract = cls._get_contract(contract_id)
        if not cls._is_admin(user):
            cls._require_participant(contract, user)
        return contract

    @classmethod
    def list_contracts(cls, user: User, status: str | None = None) -> QuerySet[Contract]:
        queryset = Contract.objects.select_related("client", "freelancer")
        if not cls._is_admin(user):
            queryset = queryset.filter(Q(client=user) | Q(freelancer=user))
        if status:
            if status not in ContractStatus.values:
                raise ValidationError(
                    f"Unknown contract status '{status}'",
                    error_code="INVALID_STATUS",
                    details={"status": status},
                )
            queryset = queryset.filter(status=status)
        return queryset.order_by("-created_at")

    # ==========================================================================
    # Signatures
    # ==========================================================================

    @classmethod
    def sign_contract(
        cls,
        contract_id: UUID | str,
        user: User,
        ip_address: str | None = None,
        user_agent: str = "",
    ) -> Contract:
        """
        Record ``user``'s signature; activates the contract once both parties
        have signed.

        Raises:
            AuthorizationError: user is not a party
            ConflictError: Contract is not a draft, or user already signed
        """
        with cls.atomic():
            contract = cls._get_contract(contract_id, for_update=True)
            cls._require_participant(contract, user)
            if contract.status != ContractStatus.DRAFT:
                raise ConflictError(
                    "Only draft contracts can be signed",
                    error_code="CONTRACT_NOT_DRAFT",
                    details={"status": contract.status},
                )

            signed_at = timezone.now()
            try:
                with cls.atomic():
                    Signature.objects.create(
                        contract=contract,
                        signed_by=user,
                        signed_at=signed_at,
                        ip_address=ip_address,
                        user_agent=(user_agent or "")[:500],
                        signature_hash=hash_string(
                            f"{contract.pk}:{user.pk}:{signed_at.isoformat()}"
                        ),
                    )
            except IntegrityError as e:
                raise ConflictError(
                    "You have already signed this contract",
                    error_code="ALREADY_SIGNED",
                    details={"contract_id": str(contract.pk)},
                ) from e

            if contract.is_fully_signed():
                cls._apply(contract, "activate")
            cls._save_contract(contract)

        cls.get_logger().info(
            "Contract signed",
            extra={
                "contract_id": str(contract.pk),
                "user_id": user.pk,
                "status": contract.status,
            },
        )
        return contract

    # ==========================================================================
    # Milestones
    # ==========================================================================

    @classmethod
    def _require_freelancer(cls, contract: Contract, user: User) -> None:
        if user is None or user.pk != contract.freelancer_id:
            raise AuthorizationError(
                "Only the contract's freelancer can do this",
                error_code="NOT_CONTRACT_FREELANCER",
                details={"contract_id": str(contract.pk)},
            )

    @classmethod
    def _require_client(cls, contract: Contract, user: User) -> None:
        if user is None or user.pk != contract.client_id:
            raise AuthorizationError(
                "Only the contract's client can do this",
                error_code="NOT_CONTRACT_CLIENT",
                details={"contract_id": str(contract.pk)},
            )

    @classmethod
    def _milestone_conflict(
        cls, contract: Contract, milestone: Milestone, action: str
    ) -> ConflictError:
        return ConflictError(
            f"Cannot {action} milestone: contract is {contract.status}, "
            f"milestone is {milestone.status}",
            error_code="INVALID_MILESTONE_STATE",
            details={
                "contract_status": contract.status,
                "milestone_status": milestone.status,
                "transition": action,
            },
        )

    @classmethod
    def _milestone_transition(
        cls,
        contract_id: UUID | str,
        milestone_id: UUID | str,
        user: User,
        name: str,
        *args: Any,
    ) -> Milestone:
        with cls.atomic():
            contract = cls._get_contract(contract_id, for_update=True)
            milestone = cls._get_milestone(contract, milestone_id)

            if name in ("start", "submit"):
                cls._require_freelancer(contract, user)
                allowed = contract.status == ContractStatus.ACTIVE and (
                    contract.can_submit_milestone(milestone, user)
                    if name == "submit"
                    else milestone.status in (MilestoneStatus.PENDING, MilestoneStatus.REJECTED)
                )
            else:
                cls._require_client(contract, user)
                allowed = contract.can_approve_milestone(milestone, user)

            if not allowed:
                raise cls._milestone_conflict(contract, milestone, name)

            cls._apply(milestone, name, *args)
            milestone.save()
            cls._save_contract(contract)

        cls.get_logger().info(
            "Milestone transitioned",
            extra={
                "contract_id": str(contract.pk),
                "milestone_id": str(milestone.pk),
                "transition": name,
                "status": milestone.status,
                "user_id": user.pk,
            },
        )
        return milestone

    @classmethod
    def start_milestone(
        cls, contract_id: UUID | str, milestone_id: UUID | str, user: User
    ) -> Milestone:
        return cls._milestone_transition(contract_id, milestone_id, user, "start")

    @classmethod
    def submit_milestone(
        cls,
        contract_id: UUID | str,
        milestone_id: UUID | str,
        user: User,
        notes: str = "",
    ) -> Milestone:
        """
        Submit work for review.

        Raises:
            AuthorizationError: user is not the contract's freelancer
            ConflictError: Contract not active or milestone not submittable
        """
        return cls._milestone_transition(contract_id, milestone_id, user, "submit", notes)

    @classmethod
    def approve_milestone(
        cls,
        contract_id: UUID | str,
        milestone_id: UUID | str,
        user: User,
        feedback: str = "",
    ) -> Milestone:
        """
        Approve submitted work; the milestone can then be funded.

        Raises:
            AuthorizationError: user is not the contract's client
            ConflictError: Contract not active or milestone not submitted
        """
        return cls._milestone_transition(contract_id, milestone_id, user, "approve", feedback)

    @classmethod
    def reject_milestone(
        cls,
        contract_id: UUID | str,
        milestone_id: UUID | str,
        user: User,
        feedback: str = "",
    ) -> Milestone:
        return cls._milestone_transition(contract_id, milestone_id, user, "reject", feedback)

    @classmethod
    def mark_milestone_paid(cls, milestone_id: UUID | str) -> Milestone:
        """
        Mark an approved milestone paid after its escrow was released.

        Completes the contract when every milestone is paid. A milestone that
        is already paid is returned unchanged.

        Raises:
            NotFoundError: Milestone does not exist
            ConflictError: Milestone is not approved, or the contract is
                disputed or not active
        """
        logger = cls.get_logger()

        with cls.atomic():
            milestone = Milestone.objects.select_for_update().filter(pk=milestone_id).first()
            if milestone is None:
                raise NotFoundError(
                    f"Milestone {milestone_id} not found",
                    error_code="MILESTONE_NOT_FOUND",
                    details={"milestone_id": str(milestone_id)},
                )
            if milestone.status == MilestoneStatus.PAID:
                return milestone

            contract = cls._get_contract(milestone.contract_id, for_update=True)
            cls.require_payable(contract)
            cls._apply(milestone, "mark_paid")
            milestone.save()
            cls._save_contract(contract)

        logger.info(
            "Milestone paid",
            extra={"contract_id": str(contract.pk), "milestone_id": str(milestone.pk)},
        )
        return milestone

    # ==========================================================================
    # Contract Status
    # ==========================================================================

    @classmethod
    def _contract_transition(
        cls,
        contract_id: UUID | str,
        user: User,
        name: str,
        *args: Any,
    ) -> Contract:
        with cls.atomic():
            contract = cls._get_contract(contract_id, for_update=True)
            cls._require_participant(contract, user)
            cls._apply(contract, name, *args)
            cls._save_contract(contract)

        cls.get_logger().info(
            "Contract transitioned",
            extra={
                "contract_id": str(contract.pk),
                "transition": name,
                "status": contract.status,
                "user_id": user.pk,
            },
        )
        return contract

    @classmethod
    def pause_contract(cls, contract_id: UUID | str, user: User) -> Contract:
        return cls._contract_transition(contract_id, user, "pause")

    @classmethod
    def resume_contract(cls, contract_id: UUID | str, user: User) -> Contract:
        return cls._contract_transition(contract_id, user, "resume")

    @classmethod
    def dispute_contract(cls, contract_id: UUID | str, user: User, reason: str) -> Contract:
        return cls._contract_transition(contract_id, user, "dispute", reason)

    @classmethod
    def cancel_contract(cls, contract_id: UUID | str, user: User, reason: str) -> Contract:
        """
        Cancel a draft or active contract.

        The cancellation is recorded as an accepted scope_change amendment.
        """
        with cls.atomic():
            contract = cls._contract_transition(contract_id, user, "cancel", reason)
            Amendment.objects.create(
                contract=contract,
                amendment_type=AmendmentType.SCOPE_CHANGE,
                description="Contract cancelled",
                proposed_by=user,
                changes={"status": ContractStatus.CANCELLED},
                reason=reason,
                status=AmendmentStatus.ACCEPTED,
                responded_at=timezone.now(),
                responded_by=user,
            )
        return contract

    # ==========================================================================
    # Amendments
    # ==========================================================================

    @classmethod
    def propose_amendment(
        cls,
        contract_id: UUID | str,
        user: User,
        amendment_type: str,
        description: str,
        changes: dict[str, Any],
        reason: str,
    ) -> Amendment:
        """
        Propose a change to an active contract.

        Raises:
            AuthorizationError: user is not a party
            ConflictError: Contract not active
            ValidationError: Unknown type or change keys
        """
        if amendment_type not in AmendmentType.values:
            raise ValidationError(
                f"Unknown amendment type '{amendment_type}'",
                error_code="INVALID_AMENDMENT",
                details={"amendment_type": amendment_type},
            )
        unknown = sorted(set(changes or {}) - set(AMENDMENT_CHANGE_KEYS))
        if not changes or unknown:
            raise ValidationError(
                "Amendment changes must contain only: " + ", ".join(AMENDMENT_CHANGE_KEYS),
                error_code="INVALID_AMENDMENT",
                details={"unknown": unknown},
            )

        with cls.atomic():
            contract = cls._get_contract(contract_id, for_update=True)
            cls._require_participant(contract, user)
            cls._require_active(contract)
            amendment = Amendment.objects.create(
                contract=contract,
                amendment_type=amendment_type,
                description=description,
                proposed_by=user,
                changes=changes,
                reason=reason,
            )
            cls._save_contract(contract)

        cls.get_logger().info(
            "Amendment proposed",
            extra={
                "contract_id": str(contract.pk),
                "amendment_id": amendment.pk,
                "amendment_type": amendment_type,
                "user_id": user.pk,
            },
        )
        return amendment

    @classmethod
    def respond_to_amendment(
        cls,
        contract_id: UUID | str,
        amendment_id: int,
        user: User,
        accept: bool,
        notes: str = "",
    ) -> Amendment:
        """
        Accept or reject a pending amendment.

        Accepted changes are applied in the same DB transaction; if the
        milestone amounts no longer sum to the contract total, everything
        rolls back with ValidationError.

        Raises:
            AuthorizationError: user is the proposer or not a party
            ConflictError: Amendment not pending, or contract not active
        """
        with cls.atomic():
            contract = cls._get_contract(contract_id, for_update=True)
            cls._require_participant(contract, user)

            amendment = (
                Amendment.objects.select_for_update()
                .filter(pk=amendment_id, contract=contract)
                .first()
            )
            if amendment is None:
                raise NotFoundError(
                    f"Amendment {amendment_id} not found on this contract",
                    error_code="AMENDMENT_NOT_FOUND",
                )
            if amendment.proposed_by_id == user.pk:
                raise AuthorizationError(
                    "You cannot respond to your own amendment",
                    error_code="AMENDMENT_PROPOSER",
                )
            if not amendment.is_pending:
                raise ConflictError(
                    f"Amendment is already {amendment.status}",
                    error_code="AMENDMENT_NOT_PENDING",
                    details={"status": amendment.status},
                )
            cls._require_active(contract)

            if accept:
                cls._apply_changes(contract, amendment.changes)

            amendment.status = AmendmentStatus.ACCEPTED if accept else AmendmentStatus.REJECTED
            amendment.responded_at = timezone.now()
            amendment.responded_by = user
            amendment.response_notes = notes
            amendment.save()
            cls._save_contract(contract)

        cls.get_logger().info(
            "Amendment answered",
            extra={
                "contract_id": str(contract.pk),
                "amendment_id": amendment.pk,
                "status": amendment.status,
                "user_id": user.pk,
            },
        )
        return amendment

    @classmethod
    def _apply_changes(cls, contract: Contract, changes: dict[str, Any]) -> None:
        if "terms" in changes:
            contract.terms = {**contract.terms, **(changes["terms"] or {})}

        if "end_date" in changes:
            end_date = _as_datetime("end_date", changes["end_date"])
            if end_date <= contract.start_date:
                raise ValidationError(
                    "End date must be after start date",
                    error_code="INVALID_DATES",
                )
            contract.end_date = end_date

        if "total_amount" in changes:
            contract.total_amount = _positive_int("total_amount", changes["total_amount"])

        for data in changes.get("milestones") or []:
            cls._apply_milestone_change(contract, data)

    @classmethod
    def _apply_milestone_change(cls, contract: Contract, data: dict[str, Any]) -> None:
        """
        Apply one milestone entry of an amendment.

        Entries without an ``id`` create a milestone; entries with an ``id``
        update it, or delete it when ``remove`` is true. Only milestones that
        have not been approved or paid may change.
        """
        if not data.get("id"):
            position = contract.milestones.count()
            cls._create_milestone(contract, data, position)
            return

        milestone = cls._get_milestone(contract, data["id"])
        if milestone.status not in EDITABLE_MILESTONE_STATUSES:
            raise ConflictError(
                f"Milestone is {milestone.status} and can no longer change",
                error_code="MILESTONE_LOCKED",
                details={"milestone_id": str(milestone.pk), "status": milestone.status},
            )

        if data.get("remove"):
            try:
                milestone.delete()
            except ProtectedError as e:
                raise ConflictError(
                    "Milestone has payment records and cannot be removed",
                    error_code="MILESTONE_LOCKED",
                    details={"milestone_id": str(milestone.pk)},
                ) from e
            return

        if "title" in data:
            milestone.title = data["title"]
        if "description" in data:
            milestone.description = data["description"]
        if "amount" in data:
            milestone.amount = _positive_int("amount", data["amount"])
        if "due_date" in data:
            milestone.due_date = _as_datetime("due_date", data["due_date"])
        milestone.save()
