"""
Payment API views.

This module provides API views for:
- Escrow actions on transactions (create intent, confirm, release, refund, cancel)
- Transaction detail, history, stats and the freelancer balance
- Manual auto-release for administrators
- Fee previews
- Platform settings and commission tiers

Business rules live in EscrowService and PlatformSettingsService; views
validate the request shape and render service errors with
core.views.error_response.

Related files:
    - serializers.py: Request/response serialization
    - urls.py, settings_urls.py: URL routing
    - webhooks/views.py: Stripe webhook endpoint
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError, ValidationError
from core.views import error_response
from payments.serializers import (
    BalanceSerializer,
    CalculateFeesSerializer,
    CommissionTierSerializer,
    ConfirmPaymentSerializer,
    CreatePaymentIntentSerializer,
    FeeBreakdownSerializer,
    PlatformSettingsSerializer,
    PlatformSettingsUpdateSerializer,
    RefundSerializer,
    SettingsHistorySerializer,
    TransactionHistorySerializer,
    TransactionSerializer,
)
from payments.services import EscrowService, PlatformSettingsService

logger = logging.getLogger(__name__)

UUID_REGEX = "[0-9a-fA-F-]{36}"
MAX_PAGE_SIZE = 100


def _int_param(request, name: str, default: int) -> int:
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValidationError(
            f"{name} must be an integer",
            error_code="INVALID_QUERY_PARAM",
            details={name: raw},
        ) from e


def _page_params(request) -> tuple[int, int]:
    page = _int_param(request, "page", 1)
    limit = min(_int_param(request, "limit", 20), MAX_PAGE_SIZE)
    return page, limit


def _transaction_response(transaction, status_code=status.HTTP_200_OK) -> Response:
    return Response(
        {"transaction": TransactionSerializer(transaction).data},
        status=status_code,
    )


# =============================================================================
# Transactions
# =============================================================================


class TransactionViewSet(viewsets.ViewSet):
    """
    Escrow transactions for the authenticated user.

    URL: /api/v1/transactions/
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = UUID_REGEX

    @extend_schema(
        operation_id="get_transaction",
        summary="Get transaction",
        tags=["Transactions"],
        responses={200: TransactionSerializer, 403: OpenApiResponse(), 404: OpenApiResponse()},
    )
    def retrieve(self, request, pk=None):
        try:
            transaction = EscrowService.get_transaction(pk, request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(TransactionSerializer(transaction).data)

    @extend_schema(
        operation_id="create_payment_intent",
        summary="Create PaymentIntent",
        description=(
            "Create a pending transaction for a contract (or approved milestone) "
            "and a manual-capture PaymentIntent. Returns the client secret for Stripe.js."
        ),
        request=CreatePaymentIntentSerializer,
        responses={201: OpenApiResponse(description="{transaction, client_secret}")},
        tags=["Transactions"],
    )
    @action(detail=False, methods=["post"], url_path="payment-intent")
    def payment_intent(self, request):
        serializer = CreatePaymentIntentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            created = EscrowService.create_payment_intent(
                contract_id=data["contract_id"],
                client=request.user,
                amount=data.get("amount"),
                milestone_id=data.get("milestone_id"),
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(
            {
                "transaction": TransactionSerializer(created.transaction).data,
                "client_secret": created.client_secret,
            },
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        operation_id="confirm_payment",
        summary="Confirm payment",
        description="Capture an authorized PaymentIntent and hold the funds in escrow.",
        request=ConfirmPaymentSerializer,
        tags=["Transactions"],
    )
    @action(detail=False, methods=["post"])
    def confirm(self, request):
        serializer = ConfirmPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            transaction = EscrowService.confirm_payment(
                serializer.validated_data["payment_intent_id"], actor=request.user
            )
        except BaseApplicationError as e:
            return error_response(e)
        return _transaction_response(transaction)

    @extend_schema(
        operation_id="release_escrow",
        summary="Release escrow",
        description="Transfer held funds to the freelancer's connected account.",
        request=None,
        tags=["Transactions"],
    )
    @action(detail=True, methods=["post"])
    def release(self, request, pk=None):
        try:
            transaction = EscrowService.release_escrow(pk, actor=request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return _transaction_response(transaction)

    @extend_schema(
        operation_id="refund_payment",
        summary="Refund payment",
        description="Refund the client. Allowed within the refund window only.",
        request=RefundSerializer,
        tags=["Transactions"],
    )
    @action(detail=True, methods=["post"])
    def refund(self, request, pk=None):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            transaction = EscrowService.refund_payment(
                pk, serializer.validated_data["reason"], actor=request.user
            )
        except BaseApplicationError as e:
            return error_response(e)
        return _transaction_response(transaction)

    @extend_schema(
        operation_id="cancel_payment",
        summary="Cancel payment",
        request=None,
        tags=["Transactions"],
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        try:
            transaction = EscrowService.cancel_payment(pk, actor=request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return _transaction_response(transaction)

    @extend_schema(
        operation_id="transaction_history",
        summary="Transaction history",
        parameters=[
            OpenApiParameter(name="page", type=int, required=False),
            OpenApiParameter(name="limit", type=int, required=False),
            OpenApiParameter(name="role", type=str, required=False, enum=["client", "freelancer"]),
            OpenApiParameter(name="status", type=str, required=False),
        ],
        responses={200: TransactionHistorySerializer},
        tags=["Transactions"],
    )
    @action(detail=False, methods=["get"])
    def history(self, request):
        try:
            page, limit = _page_params(request)
            history = EscrowService.get_transaction_history(
                request.user,
                role=request.query_params.get("role") or None,
                page=page,
                limit=limit,
                status=request.query_params.get("status") or None,
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(TransactionHistorySerializer(history).data)

    @extend_schema(
        operation_id="transaction_stats",
        summary="Transaction stats",
        description="The caller's own figures; platform-wide figures for administrators.",
        tags=["Transactions"],
    )
    @action(detail=False, methods=["get"])
    def stats(self, request):
        return Response(EscrowService.get_transaction_stats(request.user))

    @extend_schema(
        operation_id="freelancer_balance",
        summary="Freelancer balance",
        description=(
            "Earnings by stage and the amount withdrawable after the platform's "
            "withdrawal minimum and fee."
        ),
        responses={200: BalanceSerializer},
        tags=["Transactions"],
    )
    @action(detail=False, methods=["get"])
    def balance(self, request):
        return Response(BalanceSerializer(EscrowService.get_balance(request.user)).data)

    @extend_schema(
        operation_id="trigger_auto_release",
        summary="Run auto-release now",
        description="Release every held transaction that is past its release date.",
        request=None,
        tags=["Transactions"],
    )
    @action(detail=False, methods=["post"], url_path="auto-release")
    def auto_release(self, request):
        try:
            result = EscrowService.trigger_auto_release(request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(result)

    @extend_schema(
        operation_id="calculate_fees",
        summary="Calculate fees",
        request=CalculateFeesSerializer,
        responses={200: FeeBreakdownSerializer},
        tags=["Transactions"],
    )
    @action(detail=False, methods=["post"], url_path="calculate-fees")
    def calculate_fees(self, request):
        serializer = CalculateFeesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            breakdown = EscrowService.calculate_fees(serializer.validated_data["amount"])
        except BaseApplicationError as e:
            return error_response(e)
        return Response(FeeBreakdownSerializer(breakdown).data)


# =============================================================================
# Platform Settings
# =============================================================================


class PlatformSettingsView(APIView):
    """
    GET: Current platform settings
    PATCH: Append a new settings version (admin only)

    URL: /api/v1/settings/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get platform settings",
        responses={200: PlatformSettingsSerializer},
        tags=["Settings"],
    )
    def get(self, request):
        return Response(PlatformSettingsSerializer(PlatformSettingsService.get_current()).data)

    @extend_schema(
        summary="Update platform settings",
        request=PlatformSettingsUpdateSerializer,
        responses={200: PlatformSettingsSerializer},
        tags=["Settings"],
    )
    def patch(self, request):
        serializer = PlatformSettingsUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            current = PlatformSettingsService.update(
                dict(serializer.validated_data), actor=request.user
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(PlatformSettingsSerializer(current).data)


class PlatformSettingsHistoryView(APIView):
    """URL: /api/v1/settings/history/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Settings history",
        parameters=[
            OpenApiParameter(name="page", type=int, required=False),
            OpenApiParameter(name="limit", type=int, required=False),
        ],
        responses={200: SettingsHistorySerializer},
        tags=["Settings"],
    )
    def get(self, request):
        try:
            page, limit = _page_params(request)
        except BaseApplicationError as e:
            return error_response(e)
        history = PlatformSettingsService.history(page=page, limit=limit)
        return Response(SettingsHistorySerializer(history).data)


class CalculateCommissionView(APIView):
    """URL: /api/v1/settings/calculate-commission/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Calculate commission",
        request=CalculateFeesSerializer,
        responses={200: FeeBreakdownSerializer},
        tags=["Settings"],
    )
    def post(self, request):
        serializer = CalculateFeesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            breakdown = PlatformSettingsService.calculate_commission(
                serializer.validated_data["amount"]
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(FeeBreakdownSerializer(breakdown).data)


class CommissionTierListView(APIView):
    """
    GET: Active commission tiers (admins may pass ?include_inactive=true)
    POST: Create a tier (admin only)

    URL: /api/v1/settings/tiers/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List commission tiers",
        parameters=[OpenApiParameter(name="include_inactive", type=bool, required=False)],
        responses={200: CommissionTierSerializer(many=True)},
        tags=["Settings"],
    )
    def get(self, request):
        include_inactive = (
            request.query_params.get("include_inactive", "").lower() == "true"
            and request.user.is_platform_admin
        )
        tiers = PlatformSettingsService.list_tiers(include_inactive=include_inactive)
        return Response(CommissionTierSerializer(tiers, many=True).data)

    @extend_schema(
        summary="Create commission tier",
        request=CommissionTierSerializer,
        responses={201: CommissionTierSerializer},
        tags=["Settings"],
    )
    def post(self, request):
        serializer = CommissionTierSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            tier = PlatformSettingsService.create_tier(request.user, **serializer.validated_data)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(CommissionTierSerializer(tier).data, status=status.HTTP_201_CREATED)


class CommissionTierDeactivateView(APIView):
    """URL: /api/v1/settings/tiers/{id}/deactivate/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Deactivate commission tier",
        request=None,
        responses={200: CommissionTierSerializer},
        tags=["Settings"],
    )
    def post(self, request, tier_id):
        try:
            tier = PlatformSettingsService.deactivate_tier(tier_id, actor=request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(CommissionTierSerializer(tier).data)
