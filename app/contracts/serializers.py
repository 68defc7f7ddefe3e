"""
DRF serializers for the contracts app.

Read serializers render contracts with their milestones, signatures and
amendments. Input serializers only check request shape; business rules
(roles, statuses, the milestone total) are enforced by ContractService.
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSummarySerializer
from contracts.models import (
    Amendment,
    AmendmentType,
    Contract,
    ContractSourceType,
    Milestone,
    Signature,
)


class MilestoneSerializer(serializers.ModelSerializer):
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Milestone
        fields = [
            "id",
            "position",
            "title",
            "description",
            "amount",
            "due_date",
            "status",
            "is_overdue",
            "submitted_at",
            "approved_at",
            "rejected_at",
            "paid_at",
            "client_feedback",
            "freelancer_notes",
        ]
        read_only_fields = fields


class SignatureSerializer(serializers.ModelSerializer):
    signed_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = Signature
        fields = ["id", "signed_by", "signed_at", "signature_hash"]
        read_only_fields = fields


class AmendmentSerializer(serializers.ModelSerializer):
    proposed_by = UserSummarySerializer(read_only=True)
    responded_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = Amendment
        fields = [
            "id",
            "amendment_type",
            "description",
            "changes",
            "reason",
            "status",
            "proposed_by",
            "created_at",
            "responded_by",
            "responded_at",
            "response_notes",
        ]
        read_only_fields = fields


class ContractSerializer(serializers.ModelSerializer):
    """
    Contract with milestones and signatures.

    ``progress`` is the percentage of milestones approved or paid;
    ``total_paid`` and ``remaining_amount`` are in minor units.
    """

    client = UserSummarySerializer(read_only=True)
    freelancer = UserSummarySerializer(read_only=True)
    milestones = MilestoneSerializer(many=True, read_only=True)
    signatures = SignatureSerializer(many=True, read_only=True)
    progress = serializers.IntegerField(read_only=True)
    total_paid = serializers.IntegerField(read_only=True)
    remaining_amount = serializers.IntegerField(read_only=True)

    class Meta:
        model = Contract
        fields = [
            "id",
            "client",
            "freelancer",
            "source_type",
            "proposal_reference",
            "project_reference",
            "title",
            "description",
            "total_amount",
            "currency",
            "start_date",
            "end_date",
            "terms",
            "status",
            "milestones",
            "signatures",
            "progress",
            "total_paid",
            "remaining_amount",
            "completed_at",
            "cancelled_at",
            "cancellation_reason",
            "dispute_reason",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


# =============================================================================
# Input
# =============================================================================


class MilestoneInputSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(max_length=1000)
    amount = serializers.IntegerField(min_value=1)
    due_date = serializers.DateTimeField()


class ContractCreateSerializer(serializers.Serializer):
    """
    Request body for creating a contract.

    Usage:
        serializer = ContractCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ContractService.create_contract(client=request.user, freelancer=..., **data)
    """

    freelancer_id = serializers.IntegerField()
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(max_length=2000)
    total_amount = serializers.IntegerField(min_value=1)
    currency = serializers.CharField(min_length=3, max_length=3, default="USD")
    start_date = serializers.DateTimeField()
    end_date = serializers.DateTimeField()
    terms = serializers.DictField(required=False)
    source_type = serializers.ChoiceField(
        choices=ContractSourceType.choices, default=ContractSourceType.PROPOSAL
    )
    proposal_reference = serializers.CharField(max_length=255, required=False, default="")
    project_reference = serializers.CharField(max_length=255, required=False, default="")
    milestones = MilestoneInputSerializer(many=True, required=False)


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000)


class MilestoneSubmitSerializer(serializers.Serializer):
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")


class MilestoneReviewSerializer(serializers.Serializer):
    feedback = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")


class AmendmentCreateSerializer(serializers.Serializer):
    amendment_type = serializers.ChoiceField(choices=AmendmentType.choices)
    description = serializers.CharField(max_length=1000)
    changes = serializers.DictField()
    reason = serializers.CharField(max_length=500)


class AmendmentResponseSerializer(serializers.Serializer):
    accept = serializers.BooleanField()
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
