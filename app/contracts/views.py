"""
Views for the contracts API.

Endpoints:
    GET  /                                      - List the user's contracts (?status)
    POST /                                      - Create a contract (client)
    GET  /{id}/                                 - Contract detail
    POST /{id}/sign/                            - Sign
    POST /{id}/pause/, /{id}/resume/            - Pause / resume
    POST /{id}/dispute/, /{id}/cancel/          - Dispute / cancel ({reason})
    GET  /{id}/amendments/                      - List amendments
    POST /{id}/amendments/                      - Propose amendment
    POST /{id}/amendments/{aid}/respond/        - Accept or reject amendment
    POST /{id}/milestones/{mid}/start|submit|approve|reject/
"""

from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from contracts.serializers import (
    AmendmentCreateSerializer,
    AmendmentResponseSerializer,
    AmendmentSerializer,
    ContractCreateSerializer,
    ContractSerializer,
    MilestoneReviewSerializer,
    MilestoneSerializer,
    MilestoneSubmitSerializer,
    ReasonSerializer,
)
from contracts.services import ContractService
from core.exceptions import BaseApplicationError, NotFoundError
from core.helpers import get_client_ip
from core.views import error_response

logger = logging.getLogger(__name__)

UUID_REGEX = "[0-9a-fA-F-]{36}"
MILESTONE_PATH = r"milestones/(?P<milestone_id>[0-9a-fA-F-]{36})"


def _contract_response(contract, status_code=status.HTTP_200_OK) -> Response:
    return Response(ContractSerializer(contract).data, status=status_code)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_contracts",
        summary="List contracts",
        parameters=[OpenApiParameter(name="status", type=str, required=False)],
        responses={200: ContractSerializer(many=True)},
        tags=["Contracts"],
    ),
    create=extend_schema(
        operation_id="create_contract",
        summary="Create contract",
        request=ContractCreateSerializer,
        responses={201: ContractSerializer},
        tags=["Contracts"],
    ),
    retrieve=extend_schema(
        operation_id="get_contract",
        summary="Get contract",
        responses={200: ContractSerializer},
        tags=["Contracts"],
    ),
)
class ContractViewSet(viewsets.ViewSet):
    """
    Contracts the authenticated user is a party to.

    Non-participants get 403 on detail and actions; administrators can read
    every contract.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = UUID_REGEX

    def list(self, request):
        try:
            contracts = ContractService.list_contracts(
                request.user, status=request.query_params.get("status") or None
            ).prefetch_related("milestones", "signatures__signed_by")
        except BaseApplicationError as e:
            return error_response(e)
        return Response(ContractSerializer(contracts, many=True).data)

    def create(self, request):
        serializer = ContractCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        freelancer_id = data.pop("freelancer_id")
        try:
            freelancer = get_user_model().objects.filter(pk=freelancer_id).first()
            if freelancer is None:
                raise NotFoundError(
                    f"User {freelancer_id} not found",
                    error_code="USER_NOT_FOUND",
                )
            contract = ContractService.create_contract(
                client=request.user, freelancer=freelancer, **data
            )
        except BaseApplicationError as e:
            return error_response(e)
        return _contract_response(contract, status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        try:
            contract = ContractService.get_contract(pk, request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return _contract_response(contract)

    # ==========================================================================
    # Contract Actions
    # ==========================================================================

    @extend_schema(summary="Sign contract", request=None, tags=["Contracts"])
    @action(detail=True, methods=["post"])
    def sign(self, request, pk=None):
        try:
            contract = ContractService.sign_contract(
                pk,
                request.user,
                ip_address=get_client_ip(request) or None,
                user_agent=request.headers.get("User-Agent", ""),
            )
        except BaseApplicationError as e:
            return error_response(e)
        return _contract_response(contract)

    @extend_schema(summary="Pause contract", request=None, tags=["Contracts"])
    @action(detail=True, methods=["post"])
    def pause(self, request, pk=None):
        try:
            contract = ContractService.pause_contract(pk, request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return _contract_response(contract)

    @extend_schema(summary="Resume contract", request=None, tags=["Contracts"])
    @action(detail=True, methods=["post"])
    def resume(self, request, pk=None):
        try:
            contract = ContractService.resume_contract(pk, request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return _contract_response(contract)

    @extend_schema(summary="Dispute contract", request=ReasonSerializer, tags=["Contracts"])
    @action(detail=True, methods=["post"])
    def dispute(self, request, pk=None):
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            contract = ContractService.dispute_contract(
                pk, request.user, serializer.validated_data["reason"]
            )
        except BaseApplicationError as e:
            return error_response(e)
        return _contract_response(contract)

    @extend_schema(summary="Cancel contract", request=ReasonSerializer, tags=["Contracts"])
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            contract = ContractService.cancel_contract(
                pk, request.user, serializer.validated_data["reason"]
            )
        except BaseApplicationError as e:
            return error_response(e)
        return _contract_response(contract)

    # ==========================================================================
    # Amendments
    # ==========================================================================

    @extend_schema(
        summary="List or propose amendments",
        request=AmendmentCreateSerializer,
        responses={200: AmendmentSerializer(many=True), 201: AmendmentSerializer},
        tags=["Contracts"],
    )
    @action(detail=True, methods=["get", "post"])
    def amendments(self, request, pk=None):
        if request.method == "GET":
            try:
                contract = ContractService.get_contract(pk, request.user)
            except BaseApplicationError as e:
                return error_response(e)
            amendments = contract.amendments.select_related("proposed_by", "responded_by")
            return Response(AmendmentSerializer(amendments, many=True).data)

        serializer = AmendmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            amendment = ContractService.propose_amendment(
                pk, request.user, **serializer.validated_data
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(AmendmentSerializer(amendment).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Respond to amendment",
        request=AmendmentResponseSerializer,
        responses={200: AmendmentSerializer},
        tags=["Contracts"],
    )
    @action(
        detail=True,
        methods=["post"],
        url_path=r"amendments/(?P<amendment_id>\d+)/respond",
    )
    def respond_amendment(self, request, pk=None, amendment_id=None):
        serializer = AmendmentResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            amendment = ContractService.respond_to_amendment(
                pk,
                int(amendment_id),
                request.user,
                accept=serializer.validated_data["accept"],
                notes=serializer.validated_data["notes"],
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(AmendmentSerializer(amendment).data)

    # ==========================================================================
    # Milestones
    # ==========================================================================

    @extend_schema(
        summary="Start milestone",
        request=None,
        responses={200: MilestoneSerializer},
        tags=["Milestones"],
    )
    @action(detail=True, methods=["post"], url_path=f"{MILESTONE_PATH}/start")
    def start_milestone(self, request, pk=None, milestone_id=None):
        try:
            milestone = ContractService.start_milestone(pk, milestone_id, request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(MilestoneSerializer(milestone).data)

    @extend_schema(
        summary="Submit milestone",
        request=MilestoneSubmitSerializer,
        responses={200: MilestoneSerializer},
        tags=["Milestones"],
    )
    @action(detail=True, methods=["post"], url_path=f"{MILESTONE_PATH}/submit")
    def submit_milestone(self, request, pk=None, milestone_id=None):
        serializer = MilestoneSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            milestone = ContractService.submit_milestone(
                pk, milestone_id, request.user, notes=serializer.validated_data["notes"]
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(MilestoneSerializer(milestone).data)

    @extend_schema(
        summary="Approve milestone",
        request=MilestoneReviewSerializer,
        responses={200: MilestoneSerializer},
        tags=["Milestones"],
    )
    @action(detail=True, methods=["post"], url_path=f"{MILESTONE_PATH}/approve")
    def approve_milestone(self, request, pk=None, milestone_id=None):
        serializer = MilestoneReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            milestone = ContractService.approve_milestone(
                pk, milestone_id, request.user, feedback=serializer.validated_data["feedback"]
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(MilestoneSerializer(milestone).data)

    @extend_schema(
        summary="Reject milestone",
        request=MilestoneReviewSerializer,
        responses={200: MilestoneSerializer},
        tags=["Milestones"],
    )
    @action(detail=True, methods=["post"], url_path=f"{MILESTONE_PATH}/reject")
    def reject_milestone(self, request, pk=None, milestone_id=None):
        serializer = MilestoneReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            milestone = ContractService.reject_milestone(
                pk, milestone_id, request.user, feedback=serializer.validated_data["feedback"]
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(MilestoneSerializer(milestone).data)
