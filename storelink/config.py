"""Environment-driven settings and startup validation.

``load_settings()`` reads the environment once and returns an immutable
``Settings`` model. ``validate_settings()`` is called from ``create_app``
and the CLI to fail fast before any request is served.
"""

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from storelink.db.connection import get_database_url
from storelink.errors import ConfigError
from storelink.services.session_authenticator import DEFAULT_SESSION_TTL_SECONDS
from storelink.services.shopify_client import DEFAULT_API_VERSION, DEFAULT_TIMEOUT_SECONDS
from storelink.services.webhook_verifier import (
    PLACEHOLDER_WEBHOOK_SECRET,
    is_placeholder_secret,
)

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


class Settings(BaseModel):
    """Process-wide configuration."""

    model_config = ConfigDict(frozen=True)

    env: str = "development"
    database_url: str = "sqlite://"
    session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS
    session_sliding: bool = False
    cookie_secure: bool = True
    webhook_secret: str = Field(default=PLACEHOLDER_WEBHOOK_SECRET, repr=False)
    shopify_api_version: str = DEFAULT_API_VERSION
    shopify_http_timeout: float = DEFAULT_TIMEOUT_SECONDS
    allowed_origins: list[str] = Field(default_factory=list)
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def webhook_bypass(self) -> bool:
        return is_placeholder_secret(self.webhook_secret)


def _parse_bool(name: str, raw: str | None, default: bool) -> bool:
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigError(f"{name} must be a boolean (got '{raw}')")


def _parse_number(name: str, raw: str | None, default, cast):
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be a number (got '{raw}')") from None


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the environment.

    Args:
        environ: Mapping to read instead of os.environ (tests).

    Raises:
        ConfigError: On unparseable boolean or numeric values.
    """
    env = os.environ if environ is None else environ

    database_url = env.get("DATABASE_URL", "").strip()
    if not database_url:
        if environ is None:
            database_url = get_database_url()
        else:
            db_path = env.get("STORELINK_DB_PATH", "").strip()
            database_url = f"sqlite:///{db_path}" if db_path else "sqlite://"

    origins = [
        origin.strip()
        for origin in env.get("ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    ]

    return Settings(
        env=env.get("STORELINK_ENV", "development").strip().lower() or "development",
        database_url=database_url,
        session_ttl_seconds=_parse_number(
            "STORELINK_SESSION_TTL_SECONDS",
            env.get("STORELINK_SESSION_TTL_SECONDS"),
            DEFAULT_SESSION_TTL_SECONDS,
            int,
        ),
        session_sliding=_parse_bool(
            "STORELINK_SESSION_SLIDING", env.get("STORELINK_SESSION_SLIDING"), False
        ),
        cookie_secure=_parse_bool(
            "STORELINK_COOKIE_SECURE", env.get("STORELINK_COOKIE_SECURE"), True
        ),
        webhook_secret=env.get("SHOPIFY_WEBHOOK_SECRET", "").strip(),
        shopify_api_version=env.get("SHOPIFY_API_VERSION", "").strip() or DEFAULT_API_VERSION,
        shopify_http_timeout=_parse_number(
            "SHOPIFY_HTTP_TIMEOUT",
            env.get("SHOPIFY_HTTP_TIMEOUT"),
            DEFAULT_TIMEOUT_SECONDS,
            float,
        ),
        allowed_origins=origins,
        log_level=env.get("STORELINK_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )


def validate_settings(settings: Settings) -> None:
    """Validate configuration at startup.

    Raises:
        ConfigError: On a non-positive session TTL, or in production with the
            webhook secret unset/placeholder or insecure cookies.
    """
    if settings.session_ttl_seconds <= 0:
        raise ConfigError(
            f"STORELINK_SESSION_TTL_SECONDS must be positive "
            f"(got {settings.session_ttl_seconds})"
        )
    if settings.shopify_http_timeout <= 0:
        raise ConfigError(
            f"SHOPIFY_HTTP_TIMEOUT must be positive (got {settings.shopify_http_timeout})"
        )
    if settings.is_production:
        if settings.webhook_bypass:
            raise ConfigError(
                "SHOPIFY_WEBHOOK_SECRET must be set to the real webhook secret "
                "when STORELINK_ENV=production; signature bypass is not allowed."
            )
        if not settings.cookie_secure:
            raise ConfigError(
                "STORELINK_COOKIE_SECURE cannot be disabled when STORELINK_ENV=production."
            )
