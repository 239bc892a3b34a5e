"""Session routes: current session lookup and logout.

Session issuance belongs to the login collaborator (and the CLI); these
routes only read and revoke sessions carried in the ``session_token`` cookie.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response

from storelink.api.dependencies import (
    SESSION_COOKIE,
    clear_session_cookie,
    get_session_authenticator,
    get_settings,
    require_session,
    set_session_cookie,
)
from storelink.config import Settings
from storelink.services.credential_types import SessionUser
from storelink.services.session_authenticator import SessionAuthenticator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/session")
def get_session(
    request: Request,
    response: Response,
    user: SessionUser = Depends(require_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Return the user bound to the session cookie.

    Invalid or expired sessions raise AuthError, which the app-level handler
    turns into a 401 that also clears the cookie.
    """
    if settings.session_sliding:
        set_session_cookie(response, request.cookies[SESSION_COOKIE], settings)
    return {"success": True, "user": user.to_dict()}


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    authenticator: SessionAuthenticator = Depends(get_session_authenticator),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Revoke the cookie's session. Always succeeds."""
    authenticator.invalidate(request.cookies.get(SESSION_COOKIE))
    clear_session_cookie(response, settings)
    return {"success": True}
