"""Typed domain exceptions for API error mapping.

Routes and services raise these; the API layer maps them to HTTP status
codes and the standard error envelope through the code registry.

Usage:
    # In service layer
    raise CredentialError(CredentialErrorCode.NO_CREDENTIAL, store_id=shop)

    # In route handler (or the app-level exception handler)
    except StoreLinkError as e:
        return JSONResponse(status_code=e.http_status, content=e.to_payload())
"""

from enum import Enum
from typing import Any

from storelink.errors.registry import get_error


class AuthErrorCode(str, Enum):
    """Why a session could not be established."""

    NO_TOKEN = "NO_TOKEN"
    INVALID = "INVALID_SESSION"
    EXPIRED = "SESSION_EXPIRED"
    SELLER_REQUIRED = "SELLER_REQUIRED"


class CredentialErrorCode(str, Enum):
    """Why no credential could be resolved for a store."""

    NO_CREDENTIAL = "NO_CREDENTIAL"
    MALFORMED_RECORD = "MALFORMED_CREDENTIAL"


class WebhookErrorCode(str, Enum):
    """Why an inbound webhook was rejected."""

    BAD_SIGNATURE = "BAD_SIGNATURE"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"


class StoreLinkError(Exception):
    """Base exception for all domain errors.

    Attributes:
        code: Stable error code from the registry.
        message: Human-readable message (defaults to the registry text).
    """

    def __init__(self, code: str, message: str | None = None) -> None:
        self.code = code
        self.message = message or get_error(code).message
        super().__init__(f"{code}: {self.message}")

    @property
    def http_status(self) -> int:
        return get_error(self.code).http_status

    def to_payload(self) -> dict[str, Any]:
        """Build the standard error envelope."""
        return {
            "success": False,
            "error": {"code": self.code, "message": self.message},
        }


class AuthError(StoreLinkError):
    """Session missing, invalid, expired, or of the wrong role. Maps to 401."""

    def __init__(self, code: AuthErrorCode, message: str | None = None) -> None:
        super().__init__(code.value, message)
        self.reason = code


class ForbiddenError(StoreLinkError):
    """Authenticated caller may not act on the target resource."""


class ConflictError(StoreLinkError):
    """Target resource is held by someone else. Maps to 409."""


class CredentialError(StoreLinkError):
    """No usable credential for a store. Maps to 401.

    Never carries credential material, only the store identifier.
    """

    def __init__(
        self,
        code: CredentialErrorCode,
        store_id: str = "",
        message: str | None = None,
    ) -> None:
        super().__init__(code.value, message)
        self.reason = code
        self.store_id = store_id


class WebhookError(StoreLinkError):
    """Inbound webhook rejected before dispatch."""

    def __init__(self, code: WebhookErrorCode, message: str | None = None) -> None:
        super().__init__(code.value, message)
        self.reason = code


class ValidationError(StoreLinkError):
    """Request or input validation failure. Maps to 400."""


class ProductValidationError(ValidationError):
    """Product payload cannot be pushed (missing title or priced variant)."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__("INVALID_PRODUCT", message)


class NotFoundError(StoreLinkError):
    """Resource was not found. Maps to 404."""

    def __init__(self, resource_type: str, identifier: str) -> None:
        super().__init__("NOT_FOUND", f"{resource_type} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier


class UpstreamError(StoreLinkError):
    """The external platform answered with a non-2xx status.

    4xx and 5xx statuses and the parsed body are relayed verbatim so the
    caller can decide whether to retry. Anything else (an unfollowed 3xx
    redirect, say) is reported as 502 with the original status in
    ``upstreamStatus``.
    """

    def __init__(self, status_code: int, payload: Any) -> None:
        super().__init__("UPSTREAM_ERROR", f"Shopify API returned HTTP {status_code}")
        self.status_code = status_code
        self.payload = payload

    @property
    def http_status(self) -> int:
        if 400 <= self.status_code < 600:
            return self.status_code
        return super().http_status

    def to_payload(self) -> dict[str, Any]:
        errors = self.payload
        if isinstance(self.payload, dict) and self.payload.get("errors"):
            errors = self.payload["errors"]
        return {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "details": errors,
                "upstreamStatus": self.status_code,
            },
        }


class ConfigError(Exception):
    """Invalid startup configuration."""
