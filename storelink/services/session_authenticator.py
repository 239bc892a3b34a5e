"""SessionAuthenticator: issue, verify and invalidate session tokens.

Tokens are 256-bit ``secrets.token_urlsafe`` values handed to the client in an
HTTP-only cookie. Only their SHA-256 digest is persisted, so a database read
never yields a usable token.

``verify`` never raises: it returns a ``SessionVerification`` carrying either
the user or the reason the session was rejected. Route dependencies turn a
rejection into an ``AuthError``.
"""

import hashlib
import logging
import re
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session

from storelink.db.models import AuthSession, UserType
from storelink.errors import AuthErrorCode
from storelink.services.credential_types import IssuedSession, SessionUser

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 7 * 24 * 60 * 60
_TOKEN_BYTES = 32
_TOKEN_RE = re.compile(r"^[A-Za-z0-9_\-]{22,128}$")
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def hash_token(token: str) -> str:
    """Hex SHA-256 digest of a session token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _format_ts(value: datetime) -> str:
    return value.astimezone(UTC).strftime(_TIMESTAMP_FORMAT)


def _parse_ts(value: str) -> datetime:
    return datetime.strptime(value, _TIMESTAMP_FORMAT).replace(tzinfo=UTC)


def _expiry_after(now: datetime, ttl: timedelta) -> datetime:
    """now + ttl, rounded up to the whole second the stored format keeps."""
    expires = now + ttl
    if expires.microsecond:
        expires = expires.replace(microsecond=0) + timedelta(seconds=1)
    return expires


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class SessionVerification:
    """Outcome of ``SessionAuthenticator.verify``."""

    user: SessionUser | None = None
    reason: AuthErrorCode | None = None

    @property
    def ok(self) -> bool:
        return self.user is not None


@dataclass(frozen=True)
class Identity:
    """Who a request claims to act for.

    ``verified`` is True only for identities backed by a server session.
    Unverified identities come from client-supplied hints and must never be
    used for ownership checks.
    """

    username: str
    verified: bool
    user_type: str | None = None


def resolve_identity(
    verification: SessionVerification,
    client_hint: str | None = None,
) -> Identity | None:
    """Pick the identity for a request, preferring the verified session.

    A client hint is only used when there is no valid session, and the
    result is marked unverified.
    """
    if verification.ok:
        user = verification.user
        return Identity(username=user.username, verified=True, user_type=user.user_type)
    hint = (client_hint or "").strip()
    if hint:
        return Identity(username=hint, verified=False)
    return None


class SessionAuthenticator:
    """Server-side session lifecycle backed by the ``auth_sessions`` table.

    Args:
        db: SQLAlchemy session.
        ttl_seconds: Session lifetime.
        sliding: Push expiry forward on every successful verify.
        clock: Returns the current aware UTC datetime. Injected by tests.
    """

    def __init__(
        self,
        db: Session,
        ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        sliding: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"Session TTL must be positive (got {ttl_seconds})")
        self._db = db
        self._ttl = timedelta(seconds=ttl_seconds)
        self._sliding = sliding
        self._clock = clock

    def issue(self, user_id: str, username: str, user_type: str) -> IssuedSession:
        """Create a new session and return it with its plaintext token.

        Raises:
            ValueError: On an empty user id/username or an unknown user type.
        """
        if not user_id or not username:
            raise ValueError("user_id and username are required")
        try:
            role = UserType(user_type)
        except ValueError:
            raise ValueError(
                f"Invalid user_type '{user_type}'. Must be one of: "
                f"{sorted(t.value for t in UserType)}"
            ) from None

        token = secrets.token_urlsafe(_TOKEN_BYTES)
        now = self._clock()
        issued_at = _format_ts(now)
        expires_at = _format_ts(_expiry_after(now, self._ttl))
        digest = hash_token(token)

        self._db.add(
            AuthSession(
                token_hash=digest,
                user_id=user_id,
                username=username,
                user_type=role.value,
                issued_at=issued_at,
                expires_at=expires_at,
            )
        )
        self._db.commit()

        logger.info(
            "Issued session %s for %s (%s), expires %s",
            digest[:8], username, role.value, expires_at,
        )
        return IssuedSession(
            token=token,
            user=SessionUser(user_id=user_id, username=username, user_type=role.value),
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def verify(self, token: str | None) -> SessionVerification:
        """Check a session token. Never raises for bad input."""
        if not token:
            return SessionVerification(reason=AuthErrorCode.NO_TOKEN)
        if not isinstance(token, str) or not _TOKEN_RE.match(token):
            return SessionVerification(reason=AuthErrorCode.INVALID)

        row = self._db.query(AuthSession).filter_by(token_hash=hash_token(token)).first()
        if row is None:
            return SessionVerification(reason=AuthErrorCode.INVALID)

        try:
            expires_at = _parse_ts(row.expires_at)
        except ValueError:
            logger.warning("Session %s has unparseable expiry %r", row.token_hash[:8], row.expires_at)
            return SessionVerification(reason=AuthErrorCode.INVALID)

        now = self._clock()
        if now >= expires_at:
            return SessionVerification(reason=AuthErrorCode.EXPIRED)

        if self._sliding:
            row.expires_at = _format_ts(_expiry_after(now, self._ttl))
            row.last_seen_at = _format_ts(now)
            self._db.commit()

        return SessionVerification(
            user=SessionUser(
                user_id=row.user_id,
                username=row.username,
                user_type=row.user_type,
            )
        )

    def invalidate(self, token: str | None) -> bool:
        """Remove a session. Idempotent; returns whether a row was deleted."""
        if not token:
            return False
        digest = hash_token(token)
        deleted = self._db.query(AuthSession).filter_by(token_hash=digest).delete()
        self._db.commit()
        if deleted:
            logger.info("Revoked session %s", digest[:8])
        return bool(deleted)

    def purge_expired(self) -> int:
        """Delete every session at or past its expiry. Returns the count."""
        cutoff = _format_ts(self._clock())
        deleted = (
            self._db.query(AuthSession)
            .filter(AuthSession.expires_at <= cutoff)
            .delete(synchronize_session=False)
        )
        self._db.commit()
        if deleted:
            logger.info("Purged %d expired sessions", deleted)
        return deleted
