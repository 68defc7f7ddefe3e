"""
Transaction model for the escrow payment lifecycle.

A Transaction records one client payment against a contract (optionally a
single milestone) from PaymentIntent creation through escrow, release to
the freelancer and payout. Fee amounts are computed once at creation and
frozen on the row together with a snapshot of the commission rate.

Usage:
    from payments.models import Transaction

    txn = Transaction.objects.create(
        contract=contract,
        milestone=milestone,
        client=contract.client,
        freelancer=contract.freelancer,
        amount=150000,
        platform_commission=15000,
        processing_fee=0,
        tax=0,
        freelancer_amount=135000,
    )

    txn.start_processing()  # pending -> processing
    txn.save()
"""

from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel

from payments.state_machines import PaymentMethod, TransactionStatus


def refund_window_days() -> int:
    return getattr(settings, "REFUND_WINDOW_DAYS", 30)


def within_refund_window(instance: Transaction) -> bool:
    """FSM condition: the transaction was created inside the refund window."""
    return instance.is_within_refund_window


class Transaction(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    Escrow payment record with a django-fsm status.

    State Flow (happy path):
        PENDING -> PROCESSING -> HELD_IN_ESCROW -> RELEASED -> PAID_OUT

    Refund Flow (within REFUND_WINDOW_DAYS of creation):
        HELD_IN_ESCROW/RELEASED -> REFUNDED

    Failure / Cancellation Flow:
        PENDING/PROCESSING -> FAILED
        PENDING/PROCESSING -> CANCELLED

    Invariant:
        amount == platform_commission + processing_fee + tax + freelancer_amount

    Note:
        Transactions are never deleted. All references use PROTECT and the
        admin disables deletion.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    contract = models.ForeignKey(
        "contracts.Contract",
        on_delete=models.PROTECT,
        related_name="transactions",
        help_text="Contract this payment funds",
    )

    milestone = models.ForeignKey(
        "contracts.Milestone",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transactions",
        help_text="Milestone this payment funds (if any)",
    )

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="client_transactions",
        help_text="Paying client",
    )

    freelancer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="freelancer_transactions",
        help_text="Receiving freelancer",
    )

    # ==========================================================================
    # Amounts (minor units)
    # ==========================================================================

    amount = models.PositiveBigIntegerField(
        help_text="Gross amount charged to the client",
    )

    platform_commission = models.PositiveBigIntegerField(default=0)
    processing_fee = models.PositiveBigIntegerField(default=0)
    tax = models.PositiveBigIntegerField(default=0)

    freelancer_amount = models.PositiveBigIntegerField(
        help_text="Net amount transferred to the freelancer on release",
    )

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Commission percentage applied at creation",
    )

    commission_tier_name = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        help_text="Commission tier applied at creation (empty = flat rate)",
    )

    currency = models.CharField(
        max_length=3,
        default="USD",
        help_text="ISO 4217 currency code (upper case)",
    )

    # ==========================================================================
    # Status
    # ==========================================================================

    status = FSMField(
        default=TransactionStatus.PENDING,
        choices=TransactionStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current status (managed by FSM)",
    )

    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.STRIPE,
    )

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )

    stripe_charge_id = models.CharField(max_length=255, null=True, blank=True)
    stripe_transfer_id = models.CharField(max_length=255, null=True, blank=True)
    stripe_refund_id = models.CharField(max_length=255, null=True, blank=True)

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    escrow_release_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When held funds become eligible for automatic release",
    )

    released_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    paid_out_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Details
    # ==========================================================================

    failure_reason = models.TextField(null=True, blank=True)
    refund_reason = models.TextField(null=True, blank=True)
    description = models.TextField(blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Transaction"
        verbose_name_plural = "Transactions"
        indexes = [
            models.Index(fields=["client", "created_at"], name="txn_client_created_idx"),
            models.Index(fields=["freelancer", "created_at"], name="txn_freelancer_created_idx"),
            models.Index(fields=["status", "escrow_release_date"], name="txn_status_release_idx"),
            models.Index(fields=["milestone", "status"], name="txn_milestone_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="transaction_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(
                    amount=(
                        models.F("platform_commission")
                        + models.F("processing_fee")
                        + models.F("tax")
                        + models.F("freelancer_amount")
                    )
                ),
                name="transaction_amount_breakdown_sums",
            ),
            models.UniqueConstraint(
                fields=["milestone"],
                condition=~models.Q(status__in=TransactionStatus.inactive()),
                name="transaction_one_live_per_milestone",
            ),
        ]

    def __str__(self) -> str:
        return f"Transaction({self.id}, {self.status}, {self.amount / 100:.2f} {self.currency})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_within_refund_window(self) -> bool:
        if self.created_at is None:
            return True
        return timezone.now() - self.created_at <= timedelta(days=refund_window_days())

    @property
    def can_be_refunded(self) -> bool:
        """Held or released, and created at most REFUND_WINDOW_DAYS ago."""
        return (
            self.status in TransactionStatus.refundable()
            and self.is_within_refund_window
        )

    @property
    def total_fees(self) -> int:
        return self.platform_commission + self.processing_fee + self.tax

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=TransactionStatus.PENDING,
        target=TransactionStatus.PROCESSING,
    )
    def start_processing(self):
        """
        Transition: PENDING -> PROCESSING

        Called once the PaymentIntent exists at the gateway and the client
        can complete payment.
        """

    @transition(
        field=status,
        source=TransactionStatus.PROCESSING,
        target=TransactionStatus.HELD_IN_ESCROW,
    )
    def hold_in_escrow(self, release_date=None):
        """
        Transition: PROCESSING -> HELD_IN_ESCROW

        Funds are captured and held by the platform until release.
        """
        self.escrow_release_date = release_date

    @transition(
        field=status,
        source=TransactionStatus.HELD_IN_ESCROW,
        target=TransactionStatus.RELEASED,
    )
    def release(self):
        """Transition: HELD_IN_ESCROW -> RELEASED"""
        self.released_at = timezone.now()

    @transition(
        field=status,
        source=TransactionStatus.RELEASED,
        target=TransactionStatus.PAID_OUT,
    )
    def mark_paid_out(self):
        """Transition: RELEASED -> PAID_OUT"""
        self.paid_out_at = timezone.now()

    @transition(
        field=status,
        source=[TransactionStatus.HELD_IN_ESCROW, TransactionStatus.RELEASED],
        target=TransactionStatus.REFUNDED,
        conditions=[within_refund_window],
    )
    def refund(self, reason: str = ""):
        """
        Transition: HELD_IN_ESCROW/RELEASED -> REFUNDED

        Only allowed within REFUND_WINDOW_DAYS of creation.
        """
        self.refund_reason = reason
        self.refunded_at = timezone.now()

    @transition(
        field=status,
        source=[TransactionStatus.PENDING, TransactionStatus.PROCESSING],
        target=TransactionStatus.FAILED,
    )
    def fail(self, reason: str = ""):
        """Transition: PENDING/PROCESSING -> FAILED"""
        self.failure_reason = reason
        self.failed_at = timezone.now()

    @transition(
        field=status,
        source=[TransactionStatus.PENDING, TransactionStatus.PROCESSING],
        target=TransactionStatus.CANCELLED,
    )
    def cancel(self):
        """Transition: PENDING/PROCESSING -> CANCELLED"""
        self.cancelled_at = timezone.now()
