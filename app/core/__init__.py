"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps. No chat logic lives here.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input validation failures
    - NotFoundError: Referenced record not found
    - PermissionDeniedError: Ownership / authorization failures
    - PersistenceError: Store failures and lock timeouts

Views (import from core.views):
    - health_check: Database and channel layer probe

Note:
    Models are NOT imported here to avoid AppRegistryNotReady errors.
    Import them directly from core.models.
"""

from .exceptions import (
    BaseApplicationError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    ValidationError,
)
from .services import BaseService, ServiceResult

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "PersistenceError",
]
