"""
Escrow lifecycle service.

Moves client payments through the Transaction state machine and performs
the matching Stripe calls:

    create_payment_intent  pending -> processing (manual-capture PaymentIntent)
    confirm_payment        processing -> held_in_escrow (capture) or failed
    release_escrow         held_in_escrow -> released (transfer to freelancer)
    refund_payment         held_in_escrow/released -> refunded
    cancel_payment         pending/processing -> cancelled
    mark_paid_out          released -> paid_out

Every money-moving call goes through the GatewayOperation outbox (see
_run_gateway_operation). Each mutating operation follows the same order:
read the transaction and its version, check guards, call the gateway with
no DB lock held, then re-check the version under select_for_update and
apply the transition. A concurrent writer makes the second commit fail with
StaleRecordError.

Usage:
    from payments.services import EscrowService

    created = EscrowService.create_payment_intent(
        contract_id=contract.id,
        client=request.user,
        milestone_id=milestone.id,
    )
    created.client_secret  # passed to Stripe.js

    EscrowService.release_escrow(created.transaction.id, actor=request.user)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from django.db import IntegrityError
from django.db.models import Count, Q, Sum
from django.utils import timezone

from django_fsm import TransitionNotAllowed

from contracts.models import Contract, Milestone, MilestoneStatus
from contracts.services import ContractService
from core.exceptions import (
    AuthorizationError,
    ConflictError,
    GatewayError,
    NotFoundError,
    ValidationError,
)
from core.helpers import calculate_pagination
from core.services import BaseService
from notifications.services import NotificationService

from payments.adapters import (
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
)
from payments.exceptions import InvalidStateTransitionError
from payments.locks import check_version
from payments.models import GatewayOperation, Transaction
from payments.services.settings_service import PlatformSettingsService
from payments.state_machines import GatewayOperationType, TransactionStatus

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any
    from uuid import UUID

    from authentication.models import User
    from payments.fees import FeeBreakdown

STRIPE_REFUND_REASON = "requested_by_customer"

# Statuses after which confirm_payment is a no-op
CONFIRMED_STATUSES = frozenset(
    [
        TransactionStatus.HELD_IN_ESCROW,
        TransactionStatus.RELEASED,
        TransactionStatus.PAID_OUT,
        TransactionStatus.REFUNDED,
    ]
)

HISTORY_ROLES = ("client", "freelancer")


@dataclass
class PaymentIntentCreated:
    transaction: Transaction
    client_secret: str | None


class EscrowService(BaseService):
    """
    Escrow operations on Transaction records.

    The gateway is StripeAdapter by default; tests inject a double with the
    same methods through set_stripe_adapter().
    """

    _stripe_adapter: Any = None

    @classmethod
    def get_stripe_adapter(cls) -> Any:
        return cls._stripe_adapter or StripeAdapter

    @classmethod
    def set_stripe_adapter(cls, adapter: Any) -> None:
        """Set the gateway adapter (None restores StripeAdapter)."""
        cls._stripe_adapter = adapter

    # ==========================================================================
    # Lookups & Guards
    # ==========================================================================

    @staticmethod
    def _is_admin(user: User | None) -> bool:
        return bool(user is not None and getattr(user, "is_platform_admin", False))

    @classmethod
    def _get_transaction(cls, transaction_id: UUID | str) -> Transaction:
        txn = (
            Transaction.objects.select_related("contract", "milestone", "client", "freelancer")
            .filter(pk=transaction_id)
            .first()
        )
        if txn is None:
            raise NotFoundError(
                f"Transaction {transaction_id} not found",
                error_code="TRANSACTION_NOT_FOUND",
                details={"transaction_id": str(transaction_id)},
            )
        return txn

    @classmethod
    def _get_by_payment_intent(cls, payment_intent_id: str) -> Transaction:
        txn = (
            Transaction.objects.select_related("contract", "client", "freelancer")
            .filter(stripe_payment_intent_id=payment_intent_id)
            .first()
        )
        if txn is None:
            raise NotFoundError(
                f"No transaction for PaymentIntent {payment_intent_id}",
                error_code="TRANSACTION_NOT_FOUND",
                details={"payment_intent_id": payment_intent_id},
            )
        return txn

    @classmethod
    def _require_client_or_admin(cls, txn: Transaction, actor: User | None, action: str) -> None:
        if actor is not None and (actor.pk == txn.client_id or cls._is_admin(actor)):
            return
        raise AuthorizationError(
            f"Only the client or an administrator can {action} this transaction",
            error_code="NOT_TRANSACTION_CLIENT",
            details={"transaction_id": str(txn.pk)},
        )

    @staticmethod
    def _require_status(txn: Transaction, allowed: list[str] | frozenset, action: str) -> None:
        if txn.status not in allowed:
            raise InvalidStateTransitionError(
                f"Cannot {action} a transaction in status '{txn.status}'",
                details={"current_status": txn.status, "transition": action},
            )

    @staticmethod
    def _validate_amount(amount: Any) -> int:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(
                "Amount must be a positive integer in minor units",
                error_code="INVALID_AMOUNT",
                details={"amount": amount},
            )
        return amount

    # ==========================================================================
    # Transitions & Outbox
    # ==========================================================================

    @classmethod
    def _transition(
        cls,
        txn: Transaction,
        name: str,
        *args: Any,
        updates: dict[str, Any] | None = None,
    ) -> Transaction:
        """
        Apply FSM transition ``name`` if the row still has txn.version.

        Raises:
            StaleRecordError: The row changed since ``txn`` was read
            InvalidStateTransitionError: The transition is not allowed
        """
        with cls.atomic():
            locked = check_version(Transaction, txn.pk, txn.version)
            for field_name, value in (updates or {}).items():
                setattr(locked, field_name, value)
            try:
                getattr(locked, name)(*args)
            except TransitionNotAllowed as e:
                raise InvalidStateTransitionError(
                    f"Transition '{name}' not allowed from status '{locked.status}'",
                    details={"current_status": locked.status, "transition": name},
                ) from e
            locked.save()

        cls.get_logger().info(
            "Transaction transitioned",
            extra={
                "transaction_id": str(locked.pk),
                "transition": name,
                "status": locked.status,
                "version": locked.version,
            },
        )
        return locked

    @classmethod
    def _run_gateway_operation(
        cls,
        txn: Transaction,
        operation_type: str,
        call: Callable[[str], Any],
        request_params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Execute one gateway call through the outbox.

        The outbox row is keyed by a deterministic idempotency key, so a
        retried operation reuses the row and the key. A row that already
        succeeded is replayed from its stored response without calling the
        gateway. ``call`` receives the idempotency key and returns an adapter
        result with summary().

        Raises:
            GatewayError: The call failed; the row is marked failed and the
                transaction is left untouched
        """
        logger = cls.get_logger()
        key = IdempotencyKeyGenerator.generate(operation_type, txn.pk)

        operation, _ = GatewayOperation.objects.get_or_create(
            idempotency_key=key,
            defaults={
                "transaction": txn,
                "operation_type": operation_type,
                "request_params": request_params or {},
            },
        )
        if operation.is_succeeded:
            logger.info(
                "Replaying succeeded gateway operation",
                extra={"transaction_id": str(txn.pk), "operation": operation_type},
            )
            return operation.response

        operation.mark_attempt()
        operation.save(update_fields=["status", "attempts", "updated_at"])

        try:
            result = call(key)
        except GatewayError as e:
            operation.mark_failed(e.message, e.error_code)
            operation.save(update_fields=["status", "error_message", "error_code", "updated_at"])
            logger.warning(
                "Gateway operation failed",
                extra={
                    "transaction_id": str(txn.pk),
                    "operation": operation_type,
                    "attempts": operation.attempts,
                    "error_code": e.error_code,
                },
            )
            raise

        summary = result.summary()
        operation.mark_succeeded(result.id, summary)
        operation.save()
        return summary

    # ==========================================================================
    # Payment Intent
    # ==========================================================================

    @classmethod
    def create_payment_intent(
        cls,
        contract_id: UUID | str,
        client: User,
        amount: int | None = None,
        freelancer_id: int | None = None,
        milestone_id: UUID | str | None = None,
    ) -> PaymentIntentCreated:
        """
        Create a pending Transaction and its manual-capture PaymentIntent.

        Raises:
            NotFoundError: Contract or milestone does not exist
            AuthorizationError: Caller is not the contract's client, or the
                freelancer does not match the contract
            ValidationError: Bad amount, amount too small to cover fees, or
                milestone not approved
            ConflictError: Milestone already has a live transaction
            GatewayError: PaymentIntent creation failed
        """
        logger = cls.get_logger()

        contract = Contract.objects.filter(pk=contract_id).first()
        if contract is None:
            raise NotFoundError(
                f"Contract {contract_id} not found",
                error_code="CONTRACT_NOT_FOUND",
                details={"contract_id": str(contract_id)},
            )
        if contract.client_id != client.pk:
            raise AuthorizationError(
                "Only the contract's client can pay for it",
                error_code="NOT_CONTRACT_CLIENT",
                details={"contract_id": str(contract.pk)},
            )
        if freelancer_id is not None and freelancer_id != contract.freelancer_id:
            raise AuthorizationError(
                "Freelancer does not belong to this contract",
                error_code="FREELANCER_MISMATCH",
                details={"contract_id": str(contract.pk), "freelancer_id": freelancer_id},
            )

        milestone = None
        if milestone_id is not None:
            milestone = Milestone.objects.filter(pk=milestone_id, contract=contract).first()
            if milestone is None:
                raise NotFoundError(
                    f"Milestone {milestone_id} not found on this contract",
                    error_code="MILESTONE_NOT_FOUND",
                    details={"milestone_id": str(milestone_id)},
                )
            if milestone.status != MilestoneStatus.APPROVED:
                raise ValidationError(
                    "Milestone must be approved before it can be paid",
                    error_code="MILESTONE_NOT_APPROVED",
                    details={"milestone_status": milestone.status},
                )
            if amount is None:
                amount = milestone.amount

        fees = cls.calculate_fees(amount)
        try:
            with cls.atomic():
                # The milestone row lock serializes concurrent payments for it
                if milestone is not None:
                    Milestone.objects.select_for_update().get(pk=milestone.pk)
                    txn = cls._reusable_transaction(milestone, client)
                else:
                    txn = None
                created = txn is None
                if created:
                    txn = Transaction.objects.create(
                        contract=contract,
                        milestone=milestone,
                        client=client,
                        freelancer=contract.freelancer,
                        amount=amount,
                        platform_commission=fees.platform_commission,
                        processing_fee=fees.processing_fee,
                        tax=fees.tax,
                        freelancer_amount=fees.freelancer_amount,
                        commission_rate=fees.commission_rate,
                        commission_tier_name=fees.commission_tier_name,
                        currency=fees.currency,
                        description=(
                            f"Payment for {milestone.title if milestone else contract.title}"
                        ),
                    )
        except IntegrityError as e:
            raise ConflictError(
                "Milestone already has an active payment",
                error_code="MILESTONE_ALREADY_FUNDED",
                details={"milestone_id": str(milestone.pk) if milestone else None},
            ) from e

        if created:
            logger.info(
                "Transaction created",
                extra={
                    "transaction_id": str(txn.pk),
                    "contract_id": str(contract.pk),
                    "amount": amount,
                    "platform_commission": fees.platform_commission,
                },
            )

        metadata = {
            "transaction_id": str(txn.pk),
            "contract_id": str(contract.pk),
            "milestone_id": str(milestone.pk) if milestone else "",
            "client_id": str(client.pk),
            "freelancer_id": str(contract.freelancer_id),
        }
        summary = cls._run_gateway_operation(
            txn,
            GatewayOperationType.CREATE_INTENT,
            lambda key: cls.get_stripe_adapter().create_payment_intent(
                CreatePaymentIntentParams(
                    amount_cents=txn.amount,
                    currency=txn.currency.lower(),
                    idempotency_key=key,
                    metadata=metadata,
                    description=txn.description,
                )
            ),
            request_params={"amount": txn.amount, "currency": txn.currency},
        )

        txn = cls._transition(
            txn,
            "start_processing",
            updates={"stripe_payment_intent_id": summary["id"]},
        )
        return PaymentIntentCreated(transaction=txn, client_secret=summary.get("client_secret"))

    @classmethod
    def _reusable_transaction(cls, milestone: Milestone, client: User) -> Transaction | None:
        """
        Return the milestone's live transaction if it can be retried.

        A pending transaction without a PaymentIntent is left behind when
        intent creation failed at the gateway; retrying reuses it (and its
        outbox key). Any other live transaction is a conflict.
        """
        live = (
            Transaction.objects.filter(milestone=milestone)
            .exclude(status__in=TransactionStatus.inactive())
            .first()
        )
        if live is None:
            return None
        if (
            live.status == TransactionStatus.PENDING
            and live.client_id == client.pk
            and not live.stripe_payment_intent_id
        ):
            return live
        raise ConflictError(
            "Milestone already has an active payment",
            error_code="MILESTONE_ALREADY_FUNDED",
            details={"transaction_id": str(live.pk), "status": live.status},
        )

    @classmethod
    def confirm_payment(cls, payment_intent_id: str, actor: User | None = None) -> Transaction:
        """
        Reconcile a transaction with its PaymentIntent.

        Captures an authorized intent and moves the transaction into escrow,
        or fails it when the gateway reports the payment failed. Already
        confirmed transactions are returned unchanged.

        Raises:
            NotFoundError: No transaction for the intent
            AuthorizationError: actor given and not the client or an admin
            ConflictError: Intent not in a confirmable state
        """
        txn = cls._get_by_payment_intent(payment_intent_id)
        if actor is not None:
            cls._require_client_or_admin(txn, actor, "confirm")

        if txn.status in CONFIRMED_STATUSES:
            return txn
        cls._require_status(txn, [TransactionStatus.PROCESSING], "confirm")

        adapter = cls.get_stripe_adapter()
        intent = adapter.retrieve_payment_intent(payment_intent_id)

        if intent.status == "requires_capture":
            captured = cls._run_gateway_operation(
                txn,
                GatewayOperationType.CAPTURE,
                lambda key: adapter.capture_payment_intent(payment_intent_id, key),
                request_params={"payment_intent_id": payment_intent_id},
            )
            charge_id = captured.get("latest_charge")
        elif intent.status == "succeeded":
            charge_id = intent.latest_charge
        elif intent.status == "canceled" or (
            intent.status == "requires_payment_method" and intent.last_payment_error
        ):
            reason = intent.last_payment_error or "Payment canceled"
            return cls._transition(txn, "fail", reason)
        else:
            raise ConflictError(
                f"PaymentIntent is not ready to confirm (status '{intent.status}')",
                error_code="PAYMENT_NOT_COMPLETED",
                details={"payment_intent_id": payment_intent_id, "intent_status": intent.status},
            )

        hold_days = PlatformSettingsService.get_current().escrow_hold_days
        txn = cls._transition(
            txn,
            "hold_in_escrow",
            timezone.now() + timedelta(days=hold_days),
            updates={"stripe_charge_id": charge_id},
        )

        NotificationService.notify_payment_received(txn, actor=txn.client)
        return txn

    @classmethod
    def fail_payment(cls, payment_intent_id: str, reason: str) -> Transaction:
        """Mark a pre-escrow transaction failed; later statuses are left alone."""
        txn = cls._get_by_payment_intent(payment_intent_id)
        if txn.status not in TransactionStatus.pre_escrow():
            cls.get_logger().info(
                "Ignoring payment failure for settled transaction",
                extra={"transaction_id": str(txn.pk), "status": txn.status},
            )
            return txn
        return cls._transition(txn, "fail", reason)

    @classmethod
    def cancel_payment(cls, transaction_id: UUID | str, actor: User) -> Transaction:
        """Cancel a pre-escrow transaction, cancelling its PaymentIntent first."""
        txn = cls._get_transaction(transaction_id)
        cls._require_client_or_admin(txn, actor, "cancel")
        cls._require_status(txn, TransactionStatus.pre_escrow(), "cancel")

        if txn.stripe_payment_intent_id:
            adapter = cls.get_stripe_adapter()
            cls._run_gateway_operation(
                txn,
                GatewayOperationType.CANCEL_INTENT,
                lambda key: adapter.cancel_payment_intent(txn.stripe_payment_intent_id, key),
                request_params={"payment_intent_id": txn.stripe_payment_intent_id},
            )

        return cls._transition(txn, "cancel")

    # ==========================================================================
    # Release, Refund, Payout
    # ==========================================================================

    @classmethod
    def release_escrow(
        cls,
        transaction_id: UUID | str,
        actor: User | None,
        system: bool = False,
    ) -> Transaction:
        """
        Transfer held funds to the freelancer.

        ``system=True`` is used by the auto-release task and skips the
        actor check.

        Raises:
            AuthorizationError: actor is not the client or an admin
            InvalidStateTransitionError: Not held in escrow (e.g. released twice)
            ConflictError: Contract is disputed, or a milestone's contract is not
                active or paused
            ValidationError: Freelancer has no connected account
            GatewayError: Transfer failed
        """
        txn = cls._get_transaction(transaction_id)
        if not system:
            cls._require_client_or_admin(txn, actor, "release")
        cls._require_status(txn, [TransactionStatus.HELD_IN_ESCROW], "release")
        ContractService.require_payable(txn.contract, for_milestone=bool(txn.milestone_id))

        destination = txn.freelancer.stripe_connected_account_id
        if not destination:
            raise ValidationError(
                "Freelancer has not connected a payout account",
                error_code="FREELANCER_NOT_ONBOARDED",
                details={"freelancer_id": txn.freelancer_id},
            )

        adapter = cls.get_stripe_adapter()
        transfer = cls._run_gateway_operation(
            txn,
            GatewayOperationType.TRANSFER,
            lambda key: adapter.create_transfer(
                amount_cents=txn.freelancer_amount,
                destination_account=destination,
                idempotency_key=key,
                currency=txn.currency.lower(),
                metadata={"transaction_id": str(txn.pk), "contract_id": str(txn.contract_id)},
                source_transaction=txn.stripe_charge_id,
            ),
            request_params={"amount": txn.freelancer_amount, "destination": destination},
        )

        txn = cls._transition(txn, "release", updates={"stripe_transfer_id": transfer["id"]})

        if txn.milestone_id:
            ContractService.mark_milestone_paid(txn.milestone_id)

        NotificationService.notify_escrow_released(txn, actor=actor)
        return txn

    @classmethod
    def refund_payment(cls, transaction_id: UUID | str, reason: str, actor: User) -> Transaction:
        """
        Refund the full amount to the client.

        A released transaction has its transfer reversed before the refund.

        Raises:
            AuthorizationError: actor is not the client or an admin
            InvalidStateTransitionError: Not held or released
            ValidationError: Outside the refund window
            GatewayError: Reversal or refund failed
        """
        txn = cls._get_transaction(transaction_id)
        cls._require_client_or_admin(txn, actor, "refund")
        cls._require_status(txn, TransactionStatus.refundable(), "refund")

        if not txn.is_within_refund_window:
            raise ValidationError(
                "Refund window has expired",
                error_code="REFUND_WINDOW_EXPIRED",
                details={"transaction_id": str(txn.pk), "created_at": txn.created_at.isoformat()},
            )

        adapter = cls.get_stripe_adapter()
        metadata = {"transaction_id": str(txn.pk)}

        if txn.status == TransactionStatus.RELEASED and txn.stripe_transfer_id:
            cls._run_gateway_operation(
                txn,
                GatewayOperationType.REVERSE_TRANSFER,
                lambda key: adapter.reverse_transfer(
                    txn.stripe_transfer_id, key, metadata=metadata
                ),
                request_params={"transfer_id": txn.stripe_transfer_id},
            )

        refund = cls._run_gateway_operation(
            txn,
            GatewayOperationType.REFUND,
            lambda key: adapter.create_refund(
                payment_intent_id=txn.stripe_payment_intent_id,
                idempotency_key=key,
                reason=STRIPE_REFUND_REASON,
                metadata=metadata,
            ),
            request_params={"amount": txn.amount, "reason": STRIPE_REFUND_REASON},
        )

        return cls._transition(txn, "refund", reason, updates={"stripe_refund_id": refund["id"]})

    @classmethod
    def mark_paid_out(cls, transaction_id: UUID | str) -> Transaction:
        txn = cls._get_transaction(transaction_id)
        return cls._transition(txn, "mark_paid_out")

    # ==========================================================================
    # Fees
    # ==========================================================================

    @classmethod
    def calculate_fees(cls, amount: int) -> FeeBreakdown:
        return PlatformSettingsService.calculate_commission(cls._validate_amount(amount))

    # ==========================================================================
    # Queries
    # ==========================================================================

    @classmethod
    def get_transaction(cls, transaction_id: UUID | str, user: User) -> Transaction:
        txn = cls._get_transaction(transaction_id)
        if user.pk not in (txn.client_id, txn.freelancer_id) and not cls._is_admin(user):
            raise AuthorizationError(
                "You are not a participant in this transaction",
                error_code="NOT_TRANSACTION_PARTICIPANT",
            )
        return txn

    @classmethod
    def _participant_filter(cls, user: User, role: str | None = None) -> Q:
        if role is None:
            return Q(client=user) | Q(freelancer=user)
        if role not in HISTORY_ROLES:
            raise ValidationError(
                f"role must be one of {', '.join(HISTORY_ROLES)}",
                error_code="INVALID_ROLE",
                details={"role": role},
            )
        return Q(**{role: user})

    @classmethod
    def _history_filter(cls, user: User, role: str | None = None) -> Q:
        # Administrators see every transaction unless they ask for a role
        if role is None and cls._is_admin(user):
            return Q()
        return cls._participant_filter(user, role)

    @classmethod
    def get_transaction_history(
        cls,
        user: User,
        role: str | None = None,
        page: int = 1,
        limit: int = 20,
        status: str | None = None,
    ) -> dict[str, Any]:
        """
        Transactions newest first, with pagination metadata.

        Participants see their own rows (optionally only as ``role``).
        Platform administrators see all rows when no role is given.
        """
        queryset = Transaction.objects.filter(cls._history_filter(user, role))
        if status is not None:
            if status not in TransactionStatus.values:
                raise ValidationError(
                    f"Unknown transaction status '{status}'",
                    error_code="INVALID_STATUS",
                    details={"status": status},
                )
            queryset = queryset.filter(status=status)

        queryset = queryset.select_related(
            "contract", "milestone", "client", "freelancer"
        ).order_by("-created_at")
        pagination = calculate_pagination(queryset.count(), page, limit)
        offset = pagination.pop("offset")
        return {
            "transactions": list(queryset[offset : offset + pagination["limit"]]),
            "pagination": pagination,
        }

    @classmethod
    def get_transaction_stats(cls, user: User) -> dict[str, Any]:
        """
        Per-status counts and amounts, plus totals paid and earned.

        For platform administrators the figures cover every transaction and
        include total_volume and total_commission over live transactions.
        """
        platform = cls._is_admin(user)
        queryset = Transaction.objects.filter(cls._history_filter(user))

        by_status = {
            row["status"]: {"count": row["count"], "amount": row["amount"] or 0}
            for row in queryset.values("status").annotate(
                count=Count("id"), amount=Sum("amount")
            )
        }

        funded = Q(
            status__in=[
                TransactionStatus.HELD_IN_ESCROW,
                TransactionStatus.RELEASED,
                TransactionStatus.PAID_OUT,
            ]
        )
        earned = Q(status__in=[TransactionStatus.RELEASED, TransactionStatus.PAID_OUT])
        if not platform:
            funded &= Q(client=user)
            earned &= Q(freelancer=user)

        totals = queryset.aggregate(
            total_count=Count("id"),
            total_paid=Sum("amount", filter=funded),
            in_escrow=Sum("amount", filter=Q(status=TransactionStatus.HELD_IN_ESCROW)),
            total_earned=Sum("freelancer_amount", filter=earned),
        )
        stats = {
            "scope": "platform" if platform else "user",
            "by_status": by_status,
            "total_count": totals["total_count"],
            "total_paid": totals["total_paid"] or 0,
            "in_escrow": totals["in_escrow"] or 0,
            "total_earned": totals["total_earned"] or 0,
        }

        if platform:
            live = queryset.exclude(status__in=TransactionStatus.inactive()).aggregate(
                total_volume=Sum("amount"),
                total_commission=Sum("platform_commission"),
            )
            stats["total_volume"] = live["total_volume"] or 0
            stats["total_commission"] = live["total_commission"] or 0
        return stats

    @classmethod
    def get_balance(cls, user: User) -> dict[str, Any]:
        """
        The freelancer's earnings by stage and what can be withdrawn now.

        ``available`` is released money not yet paid out. A withdrawal needs
        at least withdrawal_min_amount available and costs the flat
        withdrawal_fee, so ``withdrawable`` is available minus the fee, or
        zero below the minimum.
        """
        sums = Transaction.objects.filter(freelancer=user).aggregate(
            pending=Sum(
                "freelancer_amount", filter=Q(status__in=TransactionStatus.pre_escrow())
            ),
            in_escrow=Sum(
                "freelancer_amount", filter=Q(status=TransactionStatus.HELD_IN_ESCROW)
            ),
            available=Sum("freelancer_amount", filter=Q(status=TransactionStatus.RELEASED)),
            paid_out=Sum("freelancer_amount", filter=Q(status=TransactionStatus.PAID_OUT)),
        )
        balance = {key: value or 0 for key, value in sums.items()}

        settings = PlatformSettingsService.get_current()
        available = balance["available"]
        can_withdraw = (
            available >= settings.withdrawal_min_amount
            and available > settings.withdrawal_fee
        )

        balance.update(
            total_earned=balance["in_escrow"] + available + balance["paid_out"],
            currency=settings.currency,
            withdrawal_min_amount=settings.withdrawal_min_amount,
            withdrawal_fee=settings.withdrawal_fee,
            can_withdraw=can_withdraw,
            withdrawable=available - settings.withdrawal_fee if can_withdraw else 0,
        )
        return balance

    # ==========================================================================
    # Administration
    # ==========================================================================

    @classmethod
    def trigger_auto_release(cls, actor: User) -> dict[str, Any]:
        """Run the auto-release batch now; platform administrators only."""
        from payments.tasks import auto_release_escrow

        if not cls._is_admin(actor):
            raise AuthorizationError(
                "Only platform administrators can trigger auto-release",
                error_code="ADMIN_REQUIRED",
            )

        cls.get_logger().info(
            "Auto-release triggered manually",
            extra={"user_id": actor.pk},
        )
        return auto_release_escrow()
