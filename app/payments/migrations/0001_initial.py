import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models

PERCENT_VALIDATORS = [
    django.core.validators.MinValueValidator(Decimal("0")),
    django.core.validators.MaxValueValidator(Decimal("100")),
]


def created_at():
    return models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this record was created",
    )


def updated_at():
    return models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last modified",
    )


def uuid_pk():
    return models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
        primary_key=True,
        serialize=False,
    )


def big_auto_pk():
    return models.BigAutoField(
        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("contracts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PlatformSettings",
            fields=[
                ("id", big_auto_pk()),
                ("created_at", created_at()),
                ("updated_at", updated_at()),
                (
                    "commission_rate",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("10.00"),
                        help_text="Flat platform commission percentage (0-100)",
                        max_digits=5,
                        validators=PERCENT_VALIDATORS,
                    ),
                ),
                (
                    "min_commission",
                    models.PositiveBigIntegerField(
                        default=100, help_text="Minimum commission in minor units"
                    ),
                ),
                (
                    "max_commission",
                    models.PositiveBigIntegerField(
                        default=1000000, help_text="Maximum commission in minor units"
                    ),
                ),
                (
                    "payment_processing_fee",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("2.90"),
                        help_text="Payment processing fee percentage (0-100)",
                        max_digits=5,
                        validators=PERCENT_VALIDATORS,
                    ),
                ),
                (
                    "tax_rate",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Tax percentage (0-100)",
                        max_digits=5,
                        validators=PERCENT_VALIDATORS,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="USD",
                        help_text="ISO 4217 currency code (upper case)",
                        max_length=3,
                    ),
                ),
                (
                    "escrow_hold_days",
                    models.PositiveIntegerField(
                        default=7,
                        help_text="Days funds stay in escrow before automatic release",
                    ),
                ),
                (
                    "withdrawal_min_amount",
                    models.PositiveBigIntegerField(
                        default=1000, help_text="Minimum withdrawal amount in minor units"
                    ),
                ),
                (
                    "withdrawal_fee",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Flat withdrawal fee in minor units"
                    ),
                ),
                ("refund_policy", models.TextField(blank=True, default="")),
                ("terms_of_service", models.TextField(blank=True, default="")),
                ("privacy_policy", models.TextField(blank=True, default="")),
                (
                    "is_active",
                    models.BooleanField(
                        db_index=True,
                        default=True,
                        help_text="Whether this is the current settings version",
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Settings version, incremented on every update",
                    ),
                ),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Admin who created this version",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="platform_settings_versions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Platform Settings",
                "verbose_name_plural": "Platform Settings",
                "ordering": ["-version"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True)),
                        fields=("is_active",),
                        name="platform_settings_single_active",
                    ),
                    models.UniqueConstraint(
                        fields=("version",), name="platform_settings_unique_version"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("min_commission__lte", models.F("max_commission"))),
                        name="platform_settings_commission_bounds",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CommissionTier",
            fields=[
                ("id", big_auto_pk()),
                ("created_at", created_at()),
                ("updated_at", updated_at()),
                ("name", models.CharField(max_length=100)),
                (
                    "commission_percentage",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Commission percentage applied to amounts in this band",
                        max_digits=5,
                        validators=PERCENT_VALIDATORS,
                    ),
                ),
                (
                    "min_amount",
                    models.PositiveBigIntegerField(
                        blank=True,
                        help_text="Inclusive lower bound in minor units (empty = unbounded)",
                        null=True,
                    ),
                ),
                (
                    "max_amount",
                    models.PositiveBigIntegerField(
                        blank=True,
                        help_text="Inclusive upper bound in minor units (empty = unbounded)",
                        null=True,
                    ),
                ),
                (
                    "position",
                    models.PositiveIntegerField(
                        db_index=True, default=0, help_text="Evaluation order, lowest first"
                    ),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True)),
            ],
            options={
                "verbose_name": "Commission Tier",
                "verbose_name_plural": "Commission Tiers",
                "ordering": ["position", "created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            models.Q(("min_amount__isnull", True))
                            | models.Q(("max_amount__isnull", True))
                            | models.Q(("min_amount__lte", models.F("max_amount")))
                        ),
                        name="commission_tier_bounds_ordered",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("created_at", created_at()),
                ("updated_at", updated_at()),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                ("id", uuid_pk()),
                ("amount", models.PositiveBigIntegerField(help_text="Gross amount charged to the client")),
                ("platform_commission", models.PositiveBigIntegerField(default=0)),
                ("processing_fee", models.PositiveBigIntegerField(default=0)),
                ("tax", models.PositiveBigIntegerField(default=0)),
                (
                    "freelancer_amount",
                    models.PositiveBigIntegerField(
                        help_text="Net amount transferred to the freelancer on release"
                    ),
                ),
                (
                    "commission_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Commission percentage applied at creation",
                        max_digits=5,
                        null=True,
                    ),
                ),
                (
                    "commission_tier_name",
                    models.CharField(
                        blank=True,
                        help_text="Commission tier applied at creation (empty = flat rate)",
                        max_length=100,
                        null=True,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="USD",
                        help_text="ISO 4217 currency code (upper case)",
                        max_length=3,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("held_in_escrow", "Held in Escrow"),
                            ("released", "Released"),
                            ("paid_out", "Paid Out"),
                            ("refunded", "Refunded"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        choices=[
                            ("stripe", "Stripe"),
                            ("paypal", "PayPal"),
                            ("bank_transfer", "Bank Transfer"),
                            ("other", "Other"),
                        ],
                        default="stripe",
                        max_length=20,
                    ),
                ),
                (
                    "stripe_payment_intent_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe PaymentIntent ID (pi_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                ("stripe_charge_id", models.CharField(blank=True, max_length=255, null=True)),
                ("stripe_transfer_id", models.CharField(blank=True, max_length=255, null=True)),
                ("stripe_refund_id", models.CharField(blank=True, max_length=255, null=True)),
                (
                    "escrow_release_date",
                    models.DateTimeField(
                        blank=True,
                        help_text="When held funds become eligible for automatic release",
                        null=True,
                    ),
                ),
                ("released_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("paid_out_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("failure_reason", models.TextField(blank=True, null=True)),
                ("refund_reason", models.TextField(blank=True, null=True)),
                ("description", models.TextField(blank=True, default="")),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "client",
                    models.ForeignKey(
                        help_text="Paying client",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="client_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "contract",
                    models.ForeignKey(
                        help_text="Contract this payment funds",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="contracts.contract",
                    ),
                ),
                (
                    "freelancer",
                    models.ForeignKey(
                        help_text="Receiving freelancer",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="freelancer_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "milestone",
                    models.ForeignKey(
                        blank=True,
                        help_text="Milestone this payment funds (if any)",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="contracts.milestone",
                    ),
                ),
            ],
            options={
                "verbose_name": "Transaction",
                "verbose_name_plural": "Transactions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["client", "created_at"], name="txn_client_created_idx"),
                    models.Index(fields=["freelancer", "created_at"], name="txn_freelancer_created_idx"),
                    models.Index(fields=["status", "escrow_release_date"], name="txn_status_release_idx"),
                    models.Index(fields=["milestone", "status"], name="txn_milestone_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="transaction_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            (
                                "amount",
                                models.F("platform_commission")
                                + models.F("processing_fee")
                                + models.F("tax")
                                + models.F("freelancer_amount"),
                            )
                        ),
                        name="transaction_amount_breakdown_sums",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(
                            ("status__in", ["failed", "cancelled", "refunded"]),
                            _negated=True,
                        ),
                        fields=("milestone",),
                        name="transaction_one_live_per_milestone",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="GatewayOperation",
            fields=[
                ("created_at", created_at()),
                ("updated_at", updated_at()),
                ("id", uuid_pk()),
                (
                    "operation_type",
                    models.CharField(
                        choices=[
                            ("create_intent", "Create PaymentIntent"),
                            ("capture", "Capture PaymentIntent"),
                            ("cancel_intent", "Cancel PaymentIntent"),
                            ("transfer", "Transfer to Connected Account"),
                            ("reverse_transfer", "Reverse Transfer"),
                            ("refund", "Refund"),
                        ],
                        db_index=True,
                        max_length=30,
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        help_text="Idempotency key sent to the gateway",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("succeeded", "Succeeded"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("request_params", models.JSONField(blank=True, default=dict)),
                ("response", models.JSONField(blank=True, default=dict)),
                ("external_id", models.CharField(blank=True, max_length=255, null=True)),
                ("attempts", models.PositiveSmallIntegerField(default=0)),
                ("error_message", models.TextField(blank=True, null=True)),
                ("error_code", models.CharField(blank=True, max_length=100, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "transaction",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="gateway_operations",
                        to="payments.transaction",
                    ),
                ),
            ],
            options={
                "verbose_name": "Gateway Operation",
                "verbose_name_plural": "Gateway Operations",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["transaction", "operation_type"], name="gwop_txn_type_idx"),
                    models.Index(fields=["status", "created_at"], name="gwop_status_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                ("created_at", created_at()),
                ("updated_at", updated_at()),
                ("id", uuid_pk()),
                (
                    "stripe_event_id",
                    models.CharField(
                        help_text="Stripe Event ID (evt_xxx)", max_length=255, unique=True
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe event type, e.g. payment_intent.succeeded",
                        max_length=100,
                    ),
                ),
                ("payload", models.JSONField(help_text="Full event payload from Stripe")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, null=True)),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Number of processing attempts"
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
                    models.Index(fields=["event_type", "created_at"], name="webhook_type_created_idx"),
                ],
            },
        ),
    ]
