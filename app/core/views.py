"""
Core views and view helpers.

Contains infrastructure endpoints (health check) and the helper that
renders service-layer exceptions as DRF responses.
"""

from __future__ import annotations

import logging

from django.db import connection
from django.http import JsonResponse
from rest_framework import status
from rest_framework.response import Response

from core.exceptions import (
    AuthorizationError,
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# Most specific first: GatewayError is matched through ExternalServiceError
ERROR_STATUS_MAP: list[tuple[type[BaseApplicationError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
]


def status_for_error(exc: BaseApplicationError) -> int:
    """Map an application error to its HTTP status code."""
    for error_class, status_code in ERROR_STATUS_MAP:
        if isinstance(exc, error_class):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def error_response(exc: BaseApplicationError) -> Response:
    """
    Render a service-layer exception as a DRF Response.

    Usage:
        try:
            transaction = EscrowService.release_escrow(pk, actor=request.user)
        except BaseApplicationError as e:
            return error_response(e)
    """
    status_code = status_for_error(exc)
    log = logger.warning if status_code >= 500 else logger.info
    log(
        f"Request failed: {exc}",
        extra={"error_code": exc.error_code, "status_code": status_code},
    )
    return Response(exc.to_dict(), status=status_code)


def health_check(request):
    """
    Health check endpoint for load balancers and container orchestration.

    Returns 200 when the database answers, 503 otherwise. Cache status is
    reported but never fails the check.
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        logger.exception("Health check database probe failed")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    try:
        from django.core.cache import cache

        cache.set("health_check", "ok", timeout=1)
        health_status["cache"] = (
            "connected" if cache.get("health_check") == "ok" else "disconnected"
        )
    except Exception:
        health_status["cache"] = "disconnected"

    return JsonResponse(health_status, status=200 if is_healthy else 503)
