"""
Contract and milestone models.

A Contract binds one client and one freelancer to a fixed total amount
split into milestones. Both carry django-fsm status fields; the contract
completes automatically once every milestone has been paid.

Models:
    Contract: Agreement with terms, dates and a versioned status
    Milestone: Funded unit of work (pending -> ... -> paid)
    Signature: One party's signature on a contract
    Amendment: Proposed change to a contract and its response

Invariant:
    sum(milestone.amount) == contract.total_amount (exact, minor units)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q, Sum
from django.utils import timezone

from django_fsm import FSMField, transition

from core.exceptions import ValidationError
from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel

DEFAULT_TERMS = {
    "payment_terms": (
        "Payment will be released upon milestone completion and client approval."
    ),
    "cancellation_policy": (
        "Either party may cancel this contract with 7 days written notice."
    ),
    "intellectual_property": (
        "All work product created under this contract will be owned by the client."
    ),
    "confidentiality": (
        "Both parties agree to maintain confidentiality of all project information."
    ),
    "dispute_resolution": (
        "Disputes will be resolved through the platform's dispute resolution process."
    ),
    "additional_terms": "",
}


def default_terms() -> dict:
    return dict(DEFAULT_TERMS)


class ContractStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    ACTIVE = "active", "Active"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    DISPUTED = "disputed", "Disputed"
    PAUSED = "paused", "Paused"

    @classmethod
    def payable(cls) -> list[str]:
        """Statuses in which escrow for a milestone may be released."""
        return [cls.ACTIVE, cls.PAUSED]


class MilestoneStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    IN_PROGRESS = "in_progress", "In Progress"
    SUBMITTED = "submitted", "Submitted"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    PAID = "paid", "Paid"

    @classmethod
    def submittable(cls) -> list[str]:
        return [cls.PENDING, cls.IN_PROGRESS, cls.REJECTED]

    @classmethod
    def completed(cls) -> list[str]:
        """Milestones counted as done for progress."""
        return [cls.APPROVED, cls.PAID]


class ContractSourceType(models.TextChoices):
    PROPOSAL = "proposal", "Proposal"
    HIRE_NOW = "hire_now", "Hire Now"


class AmendmentType(models.TextChoices):
    MILESTONE_CHANGE = "milestone_change", "Milestone Change"
    TIMELINE_CHANGE = "timeline_change", "Timeline Change"
    AMOUNT_CHANGE = "amount_change", "Amount Change"
    SCOPE_CHANGE = "scope_change", "Scope Change"
    TERMS_CHANGE = "terms_change", "Terms Change"


class AmendmentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    REJECTED = "rejected", "Rejected"


# =============================================================================
# Contract
# =============================================================================


class Contract(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    Agreement between a client and a freelancer.

    State Flow:
        DRAFT -> ACTIVE (both parties signed) -> COMPLETED (all milestones paid)
        ACTIVE <-> PAUSED
        ACTIVE -> DISPUTED
        DRAFT/ACTIVE -> CANCELLED

    The status field is protected: change it through the transition
    methods, then save().
    """

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="client_contracts",
    )
    freelancer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="freelancer_contracts",
    )

    # Upstream records live outside this core; kept as opaque references
    proposal_reference = models.CharField(max_length=255, blank=True, default="")
    project_reference = models.CharField(max_length=255, blank=True, default="")
    source_type = models.CharField(
        max_length=20,
        choices=ContractSourceType.choices,
        default=ContractSourceType.PROPOSAL,
    )

    title = models.CharField(max_length=200)
    description = models.TextField(max_length=2000)
    total_amount = models.PositiveBigIntegerField(
        help_text="Contract total in the smallest currency unit (e.g., cents)",
    )
    currency = models.CharField(max_length=3, default="USD")
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    terms = models.JSONField(default=default_terms)

    status = FSMField(
        default=ContractStatus.DRAFT,
        choices=ContractStatus.choices,
        protected=True,
        db_index=True,
    )

    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True, default="")
    dispute_reason = models.TextField(blank=True, default="")

    class Meta:
        db_table = "contracts_contract"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["client", "status"], name="contract_client_status_idx"),
            models.Index(fields=["freelancer", "status"], name="contract_freelancer_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(total_amount__gt=0),
                name="contract_total_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(end_date__gt=models.F("start_date")),
                name="contract_end_after_start",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.title} ({self.status})"

    # ==========================================================================
    # Participants & Guards
    # ==========================================================================

    def is_participant(self, user) -> bool:
        return user is not None and user.pk in (self.client_id, self.freelancer_id)

    def other_party_id(self, user) -> int:
        return self.freelancer_id if user.pk == self.client_id else self.client_id

    def can_submit_milestone(self, milestone: Milestone, user) -> bool:
        """True iff ``user`` is the freelancer and the milestone can be submitted."""
        return (
            user is not None
            and user.pk == self.freelancer_id
            and self.status == ContractStatus.ACTIVE
            and milestone.contract_id == self.pk
            and milestone.status in MilestoneStatus.submittable()
        )

    def can_approve_milestone(self, milestone: Milestone, user) -> bool:
        """True iff ``user`` is the client and the milestone awaits review."""
        return (
            user is not None
            and user.pk == self.client_id
            and self.status == ContractStatus.ACTIVE
            and milestone.contract_id == self.pk
            and milestone.status == MilestoneStatus.SUBMITTED
        )

    def can_be_modified(self, user) -> bool:
        return self.status == ContractStatus.DRAFT and self.is_participant(user)

    def is_fully_signed(self) -> bool:
        signers = set(self.signatures.values_list("signed_by_id", flat=True))
        return {self.client_id, self.freelancer_id} <= signers

    # ==========================================================================
    # Milestone Aggregates
    # ==========================================================================

    def milestone_total(self) -> int:
        return self.milestones.aggregate(total=Sum("amount"))["total"] or 0

    def validate_milestone_total(self) -> None:
        """
        Raise ValidationError unless milestone amounts sum to total_amount.

        A contract without milestones is valid.
        """
        if not self.milestones.exists():
            return
        milestone_total = self.milestone_total()
        if milestone_total != self.total_amount:
            raise ValidationError(
                "Total milestone amount must equal contract total amount",
                error_code="MILESTONE_TOTAL_MISMATCH",
                details={
                    "milestone_total": milestone_total,
                    "total_amount": self.total_amount,
                },
            )

    @property
    def progress(self) -> int:
        """Percentage of milestones approved or paid."""
        statuses = list(self.milestones.values_list("status", flat=True))
        if not statuses:
            return 0
        done = sum(1 for s in statuses if s in MilestoneStatus.completed())
        return round(done * 100 / len(statuses))

    @property
    def total_paid(self) -> int:
        return (
            self.milestones.filter(status=MilestoneStatus.PAID).aggregate(
                total=Sum("amount")
            )["total"]
            or 0
        )

    @property
    def remaining_amount(self) -> int:
        return max(0, self.total_amount - self.total_paid)

    def overdue_milestones(self):
        return self.milestones.filter(due_date__lt=timezone.now()).exclude(
            status__in=MilestoneStatus.completed()
        )

    def next_milestone(self) -> Milestone | None:
        return (
            self.milestones.filter(
                status__in=[MilestoneStatus.PENDING, MilestoneStatus.IN_PROGRESS]
            )
            .order_by("due_date", "position")
            .first()
        )

    def all_milestones_paid(self) -> bool:
        return (
            self.milestones.exists()
            and not self.milestones.exclude(status=MilestoneStatus.PAID).exists()
        )

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source=ContractStatus.DRAFT, target=ContractStatus.ACTIVE)
    def activate(self):
        """Transition: DRAFT -> ACTIVE (both parties signed)"""

    @transition(
        field=status,
        source=ContractStatus.ACTIVE,
        target=ContractStatus.COMPLETED,
        conditions=[lambda contract: contract.all_milestones_paid()],
    )
    def complete(self):
        """Transition: ACTIVE -> COMPLETED"""
        self.completed_at = timezone.now()

    @transition(
        field=status,
        source=[ContractStatus.DRAFT, ContractStatus.ACTIVE],
        target=ContractStatus.CANCELLED,
    )
    def cancel(self, reason: str = ""):
        """Transition: DRAFT/ACTIVE -> CANCELLED"""
        self.cancellation_reason = reason
        self.cancelled_at = timezone.now()

    @transition(field=status, source=ContractStatus.ACTIVE, target=ContractStatus.DISPUTED)
    def dispute(self, reason: str = ""):
        self.dispute_reason = reason

    @transition(field=status, source=ContractStatus.ACTIVE, target=ContractStatus.PAUSED)
    def pause(self):
        pass

    @transition(field=status, source=ContractStatus.PAUSED, target=ContractStatus.ACTIVE)
    def resume(self):
        pass


# =============================================================================
# Milestone
# =============================================================================


class Milestone(UUIDPrimaryKeyMixin, BaseModel):
    """
    A funded unit of work within a contract.

    State Flow:
        PENDING/REJECTED -> IN_PROGRESS
        PENDING/IN_PROGRESS/REJECTED -> SUBMITTED (freelancer)
        SUBMITTED -> APPROVED | REJECTED (client)
        APPROVED -> PAID (escrow released)
    """

    contract = models.ForeignKey(
        Contract,
        on_delete=models.CASCADE,
        related_name="milestones",
    )
    position = models.PositiveIntegerField(default=0)
    title = models.CharField(max_length=200)
    description = models.TextField(max_length=1000)
    amount = models.PositiveBigIntegerField(
        help_text="Milestone amount in the smallest currency unit",
    )
    due_date = models.DateTimeField()

    status = FSMField(
        default=MilestoneStatus.PENDING,
        choices=MilestoneStatus.choices,
        protected=True,
        db_index=True,
    )

    submitted_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    client_feedback = models.TextField(max_length=1000, blank=True, default="")
    freelancer_notes = models.TextField(max_length=1000, blank=True, default="")

    class Meta:
        db_table = "contracts_milestone"
        ordering = ["position", "created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="milestone_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.title} ({self.status})"

    @property
    def is_overdue(self) -> bool:
        return self.due_date < timezone.now() and self.status not in MilestoneStatus.completed()

    @transition(
        field=status,
        source=[MilestoneStatus.PENDING, MilestoneStatus.REJECTED],
        target=MilestoneStatus.IN_PROGRESS,
    )
    def start(self):
        pass

    @transition(
        field=status,
        source=MilestoneStatus.submittable(),
        target=MilestoneStatus.SUBMITTED,
    )
    def submit(self, notes: str = ""):
        if notes:
            self.freelancer_notes = notes
        self.submitted_at = timezone.now()

    @transition(field=status, source=MilestoneStatus.SUBMITTED, target=MilestoneStatus.APPROVED)
    def approve(self, feedback: str = ""):
        if feedback:
            self.client_feedback = feedback
        self.approved_at = timezone.now()

    @transition(field=status, source=MilestoneStatus.SUBMITTED, target=MilestoneStatus.REJECTED)
    def reject(self, feedback: str = ""):
        self.client_feedback = feedback
        self.rejected_at = timezone.now()

    @transition(field=status, source=MilestoneStatus.APPROVED, target=MilestoneStatus.PAID)
    def mark_paid(self):
        self.paid_at = timezone.now()


# =============================================================================
# Signatures & Amendments
# =============================================================================


class Signature(BaseModel):
    """One party's signature; hash is over contract id, signer, and time."""

    contract = models.ForeignKey(
        Contract,
        on_delete=models.CASCADE,
        related_name="signatures",
    )
    signed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="contract_signatures",
    )
    signed_at = models.DateTimeField(default=timezone.now)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True, default="")
    signature_hash = models.CharField(max_length=64)

    class Meta:
        db_table = "contracts_signature"
        ordering = ["signed_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["contract", "signed_by"],
                name="unique_signature_per_signer",
            ),
        ]

    def __str__(self) -> str:
        return f"Signature({self.contract_id}, user={self.signed_by_id})"


class Amendment(BaseModel):
    """
    Proposed change to a contract.

    ``changes`` holds the proposed values, keyed by what they replace:
    ``milestones`` (list of milestone dicts), ``end_date``,
    ``total_amount`` and ``terms``.
    """

    contract = models.ForeignKey(
        Contract,
        on_delete=models.CASCADE,
        related_name="amendments",
    )
    amendment_type = models.CharField(max_length=30, choices=AmendmentType.choices)
    description = models.TextField(max_length=1000)
    proposed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="proposed_amendments",
    )
    changes = models.JSONField(default=dict)
    reason = models.TextField(max_length=500)
    status = models.CharField(
        max_length=20,
        choices=AmendmentStatus.choices,
        default=AmendmentStatus.PENDING,
        db_index=True,
    )
    responded_at = models.DateTimeField(null=True, blank=True)
    responded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="responded_amendments",
    )
    response_notes = models.TextField(max_length=500, blank=True, default="")

    class Meta:
        db_table = "contracts_amendment"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.amendment_type} ({self.status})"

    @property
    def is_pending(self) -> bool:
        return self.status == AmendmentStatus.PENDING
