"""Shared types and constants for credentials, sessions and store connections.

Neutral module with no DB or service-layer imports. Used by CredentialStore,
CredentialResolver, StoreConnectionRegistry, SessionAuthenticator and the
API layer.

Secret-bearing dataclasses exclude their secret fields from repr() so an
accidental log line or traceback never prints them.
"""

import base64
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from storelink.errors import ValidationError


class CredentialScheme(str, Enum):
    """How a resolved credential authenticates against the Admin API."""

    oauth_token = "oauth_token"
    api_key_pair = "api_key_pair"


class CredentialSource(str, Enum):
    """Where a credential record came from."""

    direct_config = "direct_config"
    oauth_flow = "oauth_flow"


class ConnectionSource(str, Enum):
    """Which registry a store connection was read from."""

    primary_registry = "primary_registry"
    legacy_token_store = "legacy_token_store"


# --- Credential allowlist (key -> max length) ---

DIRECT_CONFIG_CREDENTIAL_KEYS: dict[str, int] = {
    "access_token": 4096,
    "api_key": 1024,
    "api_secret": 1024,
}

_STORE_DOMAIN_RE = re.compile(r"^[a-z0-9][a-z0-9\-]*\.myshopify\.com$")


def normalize_store_domain(raw: str) -> str:
    """Normalize a Shopify store domain.

    Lowercases, strips protocol/trailing slashes, validates *.myshopify.com.

    Args:
        raw: Raw domain string (may include protocol).

    Returns:
        Normalized domain (e.g. 'mystore.myshopify.com').

    Raises:
        ValidationError: If the domain is empty or not a myshopify domain.
    """
    if not raw or not raw.strip():
        raise ValidationError("INVALID_DOMAIN", "Store domain is required")

    domain = raw.strip().lower()
    if "://" in domain:
        domain = urlparse(domain).hostname or ""
    domain = domain.rstrip("/").strip()

    if not _STORE_DOMAIN_RE.match(domain):
        raise ValidationError(
            "INVALID_DOMAIN",
            f"Domain must match *.myshopify.com (got '{domain}')",
        )
    return domain


# --- Credential dataclasses ---


@dataclass(frozen=True)
class CredentialRecord:
    """One decrypted credential record from a single source.

    Multiple records may exist per store (one per source). Fields from two
    records are never combined.
    """

    store_id: str
    source: CredentialSource
    is_active: bool
    record_id: str = ""
    owner: str = ""
    oauth_token: str = field(default="", repr=False)
    api_key: str = field(default="", repr=False)
    api_secret: str = field(default="", repr=False)

    @property
    def has_token(self) -> bool:
        return bool(self.oauth_token)

    @property
    def has_key_pair(self) -> bool:
        return bool(self.api_key and self.api_secret)


@dataclass(frozen=True)
class ResolvedCredential:
    """The single credential chosen for a push to one store.

    Only the push operation reads the secret; it is turned straight into
    request headers and never serialized.
    """

    store_id: str
    scheme: CredentialScheme
    source: CredentialSource
    secret: str = field(repr=False)

    def auth_headers(self) -> dict[str, str]:
        """Build the Admin API authentication headers for this credential."""
        if self.scheme == CredentialScheme.oauth_token:
            return {"X-Shopify-Access-Token": self.secret}
        return {"Authorization": f"Basic {self.secret}"}


def basic_auth_value(api_key: str, api_secret: str) -> str:
    """Encode a key/secret pair the way HTTP Basic auth expects."""
    return base64.b64encode(f"{api_key}:{api_secret}".encode("utf-8")).decode("ascii")


# --- Store connections ---


@dataclass(frozen=True)
class StoreConnection:
    """One store in a seller's merged store list."""

    store_id: str
    display_name: str
    connected_at: str
    updated_at: str
    connection_type: str
    source: ConnectionSource

    def to_dict(self) -> dict[str, Any]:
        """Client-facing representation."""
        return {
            "shop": self.store_id,
            "name": self.display_name,
            "connectedAt": self.connected_at,
            "lastUpdated": self.updated_at,
            "type": self.connection_type,
            "source": self.source.value,
        }


# --- Sessions ---


@dataclass(frozen=True)
class SessionUser:
    """Identity a valid session resolves to."""

    user_id: str
    username: str
    user_type: str

    def to_dict(self) -> dict[str, str]:
        return {
            "userId": self.user_id,
            "username": self.username,
            "userType": self.user_type,
        }


@dataclass(frozen=True)
class IssuedSession:
    """A freshly issued session. The token is only available at issuance."""

    token: str = field(repr=False)
    user: SessionUser
    issued_at: str
    expires_at: str
