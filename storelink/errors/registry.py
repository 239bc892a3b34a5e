"""Stable error code registry.

Every error surfaced to a client carries one of these codes. Codes are part
of the public contract: callers branch on them, so they never change meaning.

Each entry maps the code to the HTTP status it is surfaced with and a default
human-readable message.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    AUTH = "auth"
    CREDENTIAL = "credential"
    WEBHOOK = "webhook"
    VALIDATION = "validation"
    UPSTREAM = "upstream"
    SYSTEM = "system"


@dataclass(frozen=True)
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Stable machine-readable code.
        category: Error category for grouping.
        http_status: Status code the error is surfaced with.
        message: Default message shown to the caller.
    """

    code: str
    category: ErrorCategory
    http_status: int
    message: str


ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Authentication
    "NO_TOKEN": ErrorCode(
        code="NO_TOKEN",
        category=ErrorCategory.AUTH,
        http_status=401,
        message="No session token found",
    ),
    "INVALID_SESSION": ErrorCode(
        code="INVALID_SESSION",
        category=ErrorCategory.AUTH,
        http_status=401,
        message="Invalid session",
    ),
    "SESSION_EXPIRED": ErrorCode(
        code="SESSION_EXPIRED",
        category=ErrorCategory.AUTH,
        http_status=401,
        message="Session expired",
    ),
    "SELLER_REQUIRED": ErrorCode(
        code="SELLER_REQUIRED",
        category=ErrorCategory.AUTH,
        http_status=401,
        message="Seller authentication required",
    ),
    "STORE_NOT_CONNECTED": ErrorCode(
        code="STORE_NOT_CONNECTED",
        category=ErrorCategory.AUTH,
        http_status=403,
        message="Store is not connected to this seller",
    ),
    "STORE_OWNED_ELSEWHERE": ErrorCode(
        code="STORE_OWNED_ELSEWHERE",
        category=ErrorCategory.AUTH,
        http_status=409,
        message="Store is already configured by another seller",
    ),
    # Credentials
    "NO_CREDENTIAL": ErrorCode(
        code="NO_CREDENTIAL",
        category=ErrorCategory.CREDENTIAL,
        http_status=401,
        message="Missing access token. Please connect to Shopify first.",
    ),
    "MALFORMED_CREDENTIAL": ErrorCode(
        code="MALFORMED_CREDENTIAL",
        category=ErrorCategory.CREDENTIAL,
        http_status=401,
        message="No valid credentials found for direct API store",
    ),
    # Webhooks
    "BAD_SIGNATURE": ErrorCode(
        code="BAD_SIGNATURE",
        category=ErrorCategory.WEBHOOK,
        http_status=401,
        message="Invalid signature",
    ),
    "MALFORMED_PAYLOAD": ErrorCode(
        code="MALFORMED_PAYLOAD",
        category=ErrorCategory.WEBHOOK,
        http_status=400,
        message="Invalid JSON",
    ),
    # Validation
    "INVALID_REQUEST": ErrorCode(
        code="INVALID_REQUEST",
        category=ErrorCategory.VALIDATION,
        http_status=400,
        message="Missing shop or product data",
    ),
    "INVALID_PRODUCT": ErrorCode(
        code="INVALID_PRODUCT",
        category=ErrorCategory.VALIDATION,
        http_status=400,
        message="Product must have a title and at least one variant with a price",
    ),
    "INVALID_DOMAIN": ErrorCode(
        code="INVALID_DOMAIN",
        category=ErrorCategory.VALIDATION,
        http_status=400,
        message="Store domain must match *.myshopify.com",
    ),
    "INVALID_CREDENTIALS": ErrorCode(
        code="INVALID_CREDENTIALS",
        category=ErrorCategory.VALIDATION,
        http_status=400,
        message="Provide either access_token or both api_key and api_secret",
    ),
    "NOT_FOUND": ErrorCode(
        code="NOT_FOUND",
        category=ErrorCategory.VALIDATION,
        http_status=404,
        message="Resource not found",
    ),
    # Upstream
    "UPSTREAM_ERROR": ErrorCode(
        code="UPSTREAM_ERROR",
        category=ErrorCategory.UPSTREAM,
        http_status=502,
        message="Shopify error",
    ),
    "UPSTREAM_UNREACHABLE": ErrorCode(
        code="UPSTREAM_UNREACHABLE",
        category=ErrorCategory.UPSTREAM,
        http_status=502,
        message="Could not reach the Shopify store",
    ),
    # System
    "INTERNAL_ERROR": ErrorCode(
        code="INTERNAL_ERROR",
        category=ErrorCategory.SYSTEM,
        http_status=500,
        message="Internal server error",
    ),
}


def get_error(code: str) -> ErrorCode:
    """Look up an error code, falling back to INTERNAL_ERROR for unknown codes."""
    return ERROR_REGISTRY.get(code, ERROR_REGISTRY["INTERNAL_ERROR"])


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Return all registered errors in a category."""
    return [e for e in ERROR_REGISTRY.values() if e.category == category]
