"""FastAPI application factory for the StoreLink API.

``create_app`` builds every process-wide handle exactly once and stores it on
``app.state``: settings, the database, the credential encryption key, the
webhook verifier, the Shopify Admin client and the clock. Route dependencies
build request-scoped services from those handles.

Run with:
    uvicorn storelink.api.main:create_app --factory
"""

import logging
import sys
from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import datetime

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storelink import __version__
from storelink.api.dependencies import clear_session_cookie
from storelink.api.routes import auth, push, store_configs, stores, webhooks
from storelink.config import Settings, load_settings, validate_settings
from storelink.db.connection import Database
from storelink.errors import AuthError, AuthErrorCode, StoreLinkError, get_error
from storelink.services.credential_encryption import get_or_create_key
from storelink.services.session_authenticator import SessionAuthenticator, utc_now
from storelink.services.shopify_client import ShopifyAdminClient
from storelink.services.webhook_dispatcher import purge_webhook_receipts
from storelink.services.webhook_verifier import WebhookVerifier
from storelink.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

# Rejections that mean the client-held token is useless and must be dropped.
_COOKIE_CLEARING_REASONS = frozenset({
    AuthErrorCode.NO_TOKEN,
    AuthErrorCode.INVALID,
    AuthErrorCode.EXPIRED,
})


def configure_logging(level: str = "INFO") -> None:
    """Configure logging to stdout for uvicorn to capture."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s:%(name)s:%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("storelink").setLevel(level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup housekeeping and shutdown cleanup."""
    database: Database = app.state.database
    settings: Settings = app.state.settings

    try:
        with database.session_scope() as db:
            SessionAuthenticator(
                db,
                ttl_seconds=settings.session_ttl_seconds,
                clock=app.state.clock,
            ).purge_expired()
    except Exception as e:
        logger.error("Expired session purge failed (non-blocking): %s", e)

    try:
        with database.session_scope() as db:
            purge_webhook_receipts(db, now=app.state.clock())
    except Exception as e:
        logger.error("Webhook receipt purge failed (non-blocking): %s", e)

    yield

    database.dispose()


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StoreLinkError)
    async def storelink_error_handler(request: Request, exc: StoreLinkError) -> JSONResponse:
        """Map domain errors to the standard error envelope.

        Auth rejections for a missing, invalid or expired session also clear
        the session cookie.
        """
        response = JSONResponse(status_code=exc.http_status, content=exc.to_payload())
        if isinstance(exc, AuthError) and exc.reason in _COOKIE_CLEARING_REASONS:
            clear_session_cookie(response, request.app.state.settings)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Return 400 without echoing submitted values (they may be secrets)."""
        fields = sorted({
            ".".join(str(part) for part in err.get("loc", ()) if part != "body")
            for err in exc.errors()
        })
        named = [f for f in fields if f]
        message = get_error("INVALID_REQUEST").message
        if named:
            message = f"Invalid request fields: {', '.join(named)}"
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": {"code": "INVALID_REQUEST", "message": message}},
        )

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unexpected error during %s %s: %s: %s",
            request.method, request.url.path, type(exc).__name__,
            sanitize_error_message(str(exc)),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": {"code": "INTERNAL_ERROR", "message": get_error("INTERNAL_ERROR").message},
            },
        )


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    credential_key: bytes | None = None,
    shopify_transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Build the StoreLink FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment when omitted.
        database: Database handle; built from ``settings.database_url`` when omitted.
        credential_key: 32-byte AES key; loaded/generated when omitted.
        shopify_transport: httpx transport for the Admin API (tests).
        clock: Current-time source for sessions (tests).

    Raises:
        ConfigError: If the settings fail startup validation.
    """
    settings = settings or load_settings()
    validate_settings(settings)
    configure_logging(settings.log_level)

    if database is None:
        database = Database(settings.database_url)
    database.create_all()

    app = FastAPI(
        title="StoreLink API",
        description="Seller sessions, store credentials and Shopify webhooks",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.credential_key = credential_key or get_or_create_key()
    app.state.webhook_verifier = WebhookVerifier(settings.webhook_secret)
    app.state.shopify_client = ShopifyAdminClient(
        api_version=settings.shopify_api_version,
        timeout=settings.shopify_http_timeout,
        transport=shopify_transport,
    )
    app.state.clock = clock or utc_now

    # CORS allowlist is env-driven. If unset, CORS is disabled (same-origin only).
    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "X-Supplier-Product-ID"],
        )

    _register_exception_handlers(app)

    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(stores.router, prefix="/api/v1")
    app.include_router(push.router, prefix="/api/v1")
    app.include_router(webhooks.router, prefix="/api/v1")
    app.include_router(store_configs.router, prefix="/api/v1")

    @app.get("/health")
    def health_check() -> dict:
        """Process health: version, webhook mode and database reachability."""
        try:
            with database.session_scope() as db:
                db.connection()
            db_ok = True
        except Exception as e:
            logger.warning("Health check database query failed: %s", type(e).__name__)
            db_ok = False
        return {
            "status": "ok" if db_ok else "degraded",
            "version": __version__,
            "database": "ok" if db_ok else "unreachable",
            "webhook_verification": "bypass" if settings.webhook_bypass else "enforced",
        }

    logger.info(
        "StoreLink API configured (env=%s, webhook_verification=%s)",
        settings.env, "bypass" if settings.webhook_bypass else "enforced",
    )
    return app
