"""Error handling framework for StoreLink.

This package provides:
- Typed domain exceptions (auth, credential, webhook, upstream, validation)
- A registry of stable error codes with their HTTP status and default message
"""

from storelink.errors.domain import (
    AuthError,
    AuthErrorCode,
    ConfigError,
    ConflictError,
    CredentialError,
    CredentialErrorCode,
    ForbiddenError,
    NotFoundError,
    ProductValidationError,
    StoreLinkError,
    UpstreamError,
    ValidationError,
    WebhookError,
    WebhookErrorCode,
)
from storelink.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    get_error,
    get_errors_by_category,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    # Domain exceptions
    "StoreLinkError",
    "AuthError",
    "AuthErrorCode",
    "ForbiddenError",
    "ConflictError",
    "CredentialError",
    "CredentialErrorCode",
    "WebhookError",
    "WebhookErrorCode",
    "ValidationError",
    "ProductValidationError",
    "NotFoundError",
    "UpstreamError",
    "ConfigError",
]
