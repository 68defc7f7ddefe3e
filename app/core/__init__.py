"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps (payments, contracts,
notifications). No domain logic lives here.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - VersionedMixin: Optimistic locking version field

Services (import from core.services):
    - BaseService, ServiceResult

Exceptions (import from core.exceptions):
    - ValidationError, NotFoundError, AuthorizationError, ConflictError,
      ExternalServiceError, GatewayError

Views (import from core.views):
    - health_check, error_response

Note:
    Models and mixins are NOT imported here to avoid AppRegistryNotReady
    errors. Import them directly from their modules.
"""

from .exceptions import (
    AuthorizationError,
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    GatewayError,
    NotFoundError,
    ValidationError,
)
from .helpers import calculate_pagination, get_client_ip, hash_string
from .services import BaseService, ServiceResult

__all__ = [
    "AuthorizationError",
    "BaseApplicationError",
    "BaseService",
    "ConflictError",
    "ExternalServiceError",
    "GatewayError",
    "NotFoundError",
    "ServiceResult",
    "ValidationError",
    "calculate_pagination",
    "get_client_ip",
    "hash_string",
]
