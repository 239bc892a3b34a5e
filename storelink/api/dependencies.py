"""FastAPI dependencies that build request-scoped components.

Process-wide handles (settings, database, credential key, webhook verifier,
Shopify client, clock) live on ``app.state`` and are set by ``create_app``.
Everything built here is per-request and discarded afterwards.
"""

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from storelink.config import Settings
from storelink.db.connection import get_db
from storelink.db.models import UserType
from storelink.errors import AuthError, AuthErrorCode
from storelink.services.credential_resolver import CredentialResolver
from storelink.services.credential_store import CredentialStore
from storelink.services.credential_types import SessionUser
from storelink.services.push_service import PushService
from storelink.services.session_authenticator import (
    SessionAuthenticator,
    SessionVerification,
)
from storelink.services.store_registry import StoreConnectionRegistry
from storelink.services.webhook_dispatcher import WebhookDispatcher
from storelink.services.webhook_verifier import WebhookVerifier

SESSION_COOKIE = "session_token"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_webhook_verifier(request: Request) -> WebhookVerifier:
    return request.app.state.webhook_verifier


def get_session_authenticator(
    request: Request,
    db: Session = Depends(get_db),
) -> SessionAuthenticator:
    settings: Settings = request.app.state.settings
    return SessionAuthenticator(
        db,
        ttl_seconds=settings.session_ttl_seconds,
        sliding=settings.session_sliding,
        clock=request.app.state.clock,
    )


def get_credential_store(request: Request, db: Session = Depends(get_db)) -> CredentialStore:
    return CredentialStore(db, request.app.state.credential_key)


def get_store_registry(db: Session = Depends(get_db)) -> StoreConnectionRegistry:
    return StoreConnectionRegistry(db)


def get_push_service(
    request: Request,
    db: Session = Depends(get_db),
    store: CredentialStore = Depends(get_credential_store),
    registry: StoreConnectionRegistry = Depends(get_store_registry),
) -> PushService:
    return PushService(
        db,
        resolver=CredentialResolver(store),
        registry=registry,
        client=request.app.state.shopify_client,
    )


def get_webhook_dispatcher(
    db: Session = Depends(get_db),
    store: CredentialStore = Depends(get_credential_store),
) -> WebhookDispatcher:
    return WebhookDispatcher(db, store)


def get_session_verification(
    request: Request,
    authenticator: SessionAuthenticator = Depends(get_session_authenticator),
) -> SessionVerification:
    """Verify the session cookie without raising."""
    return authenticator.verify(request.cookies.get(SESSION_COOKIE))


def require_session(
    verification: SessionVerification = Depends(get_session_verification),
) -> SessionUser:
    """Return the verified user or raise the matching AuthError."""
    if not verification.ok:
        raise AuthError(verification.reason or AuthErrorCode.INVALID)
    return verification.user


def require_seller(user: SessionUser = Depends(require_session)) -> SessionUser:
    """Return the verified user if it is a seller."""
    if user.user_type != UserType.seller.value:
        raise AuthError(AuthErrorCode.SELLER_REQUIRED)
    return user


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    """Attach the session cookie (HTTP-only, SameSite=Lax, Max-Age = TTL)."""
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
