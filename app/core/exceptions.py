"""
Application-wide exception taxonomy.

Every domain error raised by the service layer derives from
BaseApplicationError so the HTTP layer can render it with a single helper
(core.views.error_response) and a stable machine-readable error code.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Bad input shape or range
    ├── NotFoundError - Contract, milestone or transaction absent
    ├── AuthorizationError - Caller is not a participant or has the wrong role
    ├── ConflictError - Status guard violated, stale version, duplicate
    └── ExternalServiceError - Third-party failures
        └── GatewayError - Payment gateway call failed

Usage:
    from core.exceptions import ConflictError, ValidationError

    if amount <= 0:
        raise ValidationError(
            "Amount must be positive",
            error_code="INVALID_AMOUNT",
            details={"amount": amount},
        )

    try:
        EscrowService.release_escrow(transaction_id, actor=user)
    except BaseApplicationError as e:
        return error_response(e)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, ids, states)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Transaction is not held in escrow",
                "error_code": "INVALID_STATE_TRANSITION",
                "details": {"current_status": "released"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for non-positive amounts, out-of-range percentages, a milestone
    that is not payable, or milestone totals that do not add up.

    Note:
        DRF serializers handle request-shape validation. This is for
        service-layer business rules.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        contract = Contract.objects.filter(id=contract_id).first()
        if contract is None:
            raise NotFoundError(
                f"Contract {contract_id} not found",
                error_code="CONTRACT_NOT_FOUND",
                details={"contract_id": str(contract_id)},
            )
    """

    default_error_code: str = "NOT_FOUND"


class AuthorizationError(BaseApplicationError):
    """
    Raised when the caller is not allowed to perform an operation.

    Use for:
    - Caller is not a participant of the contract
    - Freelancer trying to approve, client trying to submit
    - Non-admin updating platform settings

    Note:
        Authentication failures (missing or invalid JWT) are handled by DRF
        before the service layer is reached.
    """

    default_error_code: str = "NOT_AUTHORIZED"


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with the current resource state.

    Use for:
    - Status guard violations (releasing a non-escrowed transaction)
    - Optimistic locking failures
    - Duplicate actions (signing a contract twice)

    Note:
        HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Log the original error for debugging. The message exposed to clients
    should be safe to disclose.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"


class GatewayError(ExternalServiceError):
    """
    Raised when the payment gateway rejects or fails a call.

    The gateway's message is passed through in ``message``. The local
    record is left in its pre-call status so the operation can be retried.

    Attributes:
        is_retryable: Whether the same call may succeed on retry
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False


__all__ = [
    "AuthorizationError",
    "BaseApplicationError",
    "ConflictError",
    "ExternalServiceError",
    "GatewayError",
    "NotFoundError",
    "ValidationError",
]
