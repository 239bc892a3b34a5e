"""CredentialStore: encrypted persistence for both credential sources.

Two tables hold store credentials:

- ``store_configs`` (direct_config): provisioned by a seller with either an
  access token or an api_key/api_secret pair.
- ``shopify_tokens`` (oauth_flow): written by the OAuth exchange, read here.

All secret material is validated against an allowlist, encrypted with
AES-256-GCM and bound to its row through AAD. Nothing returned to API callers
contains secret values.
"""

import logging

from sqlalchemy.orm import Session

from storelink.db.models import (
    ShopifyToken,
    StoreConfig,
    generate_uuid,
    utc_now_iso,
)
from storelink.errors import ConflictError, NotFoundError, ValidationError
from storelink.services.credential_encryption import (
    CredentialDecryptionError,
    decrypt_credentials,
    encrypt_credentials,
)
from storelink.services.credential_types import (
    DIRECT_CONFIG_CREDENTIAL_KEYS,
    CredentialRecord,
    CredentialSource,
    normalize_store_domain,
)

logger = logging.getLogger(__name__)


def _direct_config_aad(store_url: str, record_id: str) -> str:
    return f"direct_config:{store_url}:{record_id}"


def _oauth_token_aad(shop: str, record_id: str) -> str:
    return f"oauth_flow:{shop}:{record_id}"


def _validate_credential_keys(credentials: dict) -> None:
    """Validate credential keys against the allowlist and enforce max lengths.

    Raises:
        ValidationError: On unknown keys, oversized values, or neither a token
            nor a complete key pair.
    """
    unknown = set(credentials) - set(DIRECT_CONFIG_CREDENTIAL_KEYS)
    if unknown:
        raise ValidationError(
            "INVALID_CREDENTIALS",
            f"Unknown credential keys: {sorted(unknown)}",
        )

    for key, value in credentials.items():
        if not isinstance(value, str):
            raise ValidationError("INVALID_CREDENTIALS", f"Credential '{key}' must be a string")
        limit = DIRECT_CONFIG_CREDENTIAL_KEYS[key]
        if len(value) > limit:
            raise ValidationError(
                "INVALID_CREDENTIALS",
                f"Credential '{key}' exceeds max length {limit}",
            )

    has_token = bool(credentials.get("access_token"))
    has_pair = bool(credentials.get("api_key") and credentials.get("api_secret"))
    if not (has_token or has_pair):
        raise ValidationError("INVALID_CREDENTIALS")


class CredentialStore:
    """Reads and writes encrypted store credentials.

    Args:
        db: SQLAlchemy session.
        key: 32-byte AES-256 key.
    """

    def __init__(self, db: Session, key: bytes) -> None:
        self._db = db
        self._key = key

    # --- direct_config ---

    def save_store_config(
        self,
        owner: str,
        store_url: str,
        credentials: dict,
        display_name: str = "",
    ) -> dict:
        """Provision direct-config credentials for a store.

        The owner's previous active record for the store is deactivated so at
        most one record stays active. Another seller's active record for the
        same store is a conflict.

        Args:
            owner: Seller username provisioning the credentials.
            store_url: Store domain (normalized here).
            credentials: access_token and/or api_key + api_secret.
            display_name: Optional display name, defaults to the domain.

        Returns:
            Metadata dict for the new record (no secrets).

        Raises:
            ValidationError: On a bad domain or bad credential fields.
            ConflictError: If another seller owns an active record for the store.
        """
        store_url = normalize_store_domain(store_url)
        cleaned = {k: v for k, v in credentials.items() if v not in (None, "")}
        _validate_credential_keys(cleaned)

        active = (
            self._db.query(StoreConfig)
            .filter_by(store_url=store_url, is_active=True)
            .all()
        )
        if any(row.owner_username != owner for row in active):
            raise ConflictError("STORE_OWNED_ELSEWHERE")

        now = utc_now_iso()
        for row in active:
            row.is_active = False
            row.updated_at = now

        record_id = generate_uuid()
        row = StoreConfig(
            id=record_id,
            store_url=store_url,
            owner_username=owner,
            display_name=display_name or store_url,
            encrypted_credentials=encrypt_credentials(
                cleaned, self._key, aad=_direct_config_aad(store_url, record_id)
            ),
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self._db.add(row)
        self._db.commit()

        logger.info(
            "Saved direct config for %s (owner=%s, replaced=%d)",
            store_url, owner, len(active),
        )
        return self._config_to_dict(row, cleaned)

    def deactivate_store_config(self, owner: str, store_url: str) -> dict:
        """Deactivate the owner's active direct-config record for a store.

        Raises:
            NotFoundError: If the owner has no active record for the store.
        """
        store_url = normalize_store_domain(store_url)
        row = (
            self._db.query(StoreConfig)
            .filter_by(store_url=store_url, owner_username=owner, is_active=True)
            .first()
        )
        if row is None:
            raise NotFoundError("Store config", store_url)

        row.is_active = False
        row.updated_at = utc_now_iso()
        self._db.commit()
        logger.info("Deactivated direct config for %s (owner=%s)", store_url, owner)
        return self._config_to_dict(row)

    def list_store_configs(self, owner: str) -> list[dict]:
        """List the owner's active direct-config records, newest first."""
        rows = (
            self._db.query(StoreConfig)
            .filter_by(owner_username=owner, is_active=True)
            .order_by(StoreConfig.updated_at.desc())
            .all()
        )
        return [self._config_to_dict(row) for row in rows]

    def get_active_direct_configs(self, store_url: str) -> list[CredentialRecord]:
        """Decrypt every active direct-config record for a store.

        A record that fails to decrypt is returned with no secret fields so
        the resolver treats it as malformed instead of skipping past it.
        """
        rows = (
            self._db.query(StoreConfig)
            .filter_by(store_url=store_url, is_active=True)
            .order_by(StoreConfig.updated_at.desc())
            .all()
        )
        records = []
        for row in rows:
            creds = self._decrypt_config(row)
            records.append(
                CredentialRecord(
                    store_id=row.store_url,
                    source=CredentialSource.direct_config,
                    is_active=row.is_active,
                    record_id=row.id,
                    owner=row.owner_username,
                    oauth_token=creds.get("access_token", ""),
                    api_key=creds.get("api_key", ""),
                    api_secret=creds.get("api_secret", ""),
                )
            )
        return records

    def _decrypt_config(self, row: StoreConfig) -> dict:
        try:
            return decrypt_credentials(
                row.encrypted_credentials,
                self._key,
                aad=_direct_config_aad(row.store_url, row.id),
            )
        except CredentialDecryptionError:
            logger.warning("Failed to decrypt direct config %s for %s", row.id, row.store_url)
            return {}

    def _config_to_dict(self, row: StoreConfig, creds: dict | None = None) -> dict:
        """Convert a row to a response dict (no credentials exposed)."""
        if creds is None:
            creds = self._decrypt_config(row)
        if creds.get("access_token"):
            scheme = "oauth_token"
        elif creds.get("api_key") and creds.get("api_secret"):
            scheme = "api_key_pair"
        else:
            scheme = None
        return {
            "id": row.id,
            "shop": row.store_url,
            "name": row.display_name,
            "scheme": scheme,
            "isActive": row.is_active,
            "createdAt": row.created_at,
            "updatedAt": row.updated_at,
        }

    # --- oauth_flow (legacy token store) ---

    def save_oauth_token(
        self,
        shop: str,
        username: str,
        access_token: str,
        scope: str | None = None,
    ) -> str:
        """Persist an OAuth access token for a shop.

        Returns:
            The new row id.
        """
        shop = normalize_store_domain(shop)
        if not access_token:
            raise ValidationError("INVALID_CREDENTIALS", "access_token is required")

        record_id = generate_uuid()
        now = utc_now_iso()
        row = ShopifyToken(
            id=record_id,
            shop=shop,
            username=username,
            encrypted_token=encrypt_credentials(
                {"access_token": access_token},
                self._key,
                aad=_oauth_token_aad(shop, record_id),
            ),
            scope=scope,
            created_at=now,
            updated_at=now,
        )
        self._db.add(row)
        self._db.commit()
        return record_id

    def get_oauth_token(self, shop: str) -> CredentialRecord | None:
        """Return the most recent decryptable OAuth token for a shop, if any."""
        rows = (
            self._db.query(ShopifyToken)
            .filter_by(shop=shop)
            .order_by(ShopifyToken.updated_at.desc())
            .all()
        )
        for row in rows:
            try:
                creds = decrypt_credentials(
                    row.encrypted_token, self._key, aad=_oauth_token_aad(row.shop, row.id)
                )
            except CredentialDecryptionError:
                logger.warning("Failed to decrypt OAuth token %s for %s", row.id, row.shop)
                continue
            token = creds.get("access_token", "")
            if token:
                return CredentialRecord(
                    store_id=row.shop,
                    source=CredentialSource.oauth_flow,
                    is_active=True,
                    record_id=row.id,
                    owner=row.username,
                    oauth_token=token,
                )
        return None

    def delete_oauth_tokens(self, shop: str) -> int:
        """Delete every OAuth token for a shop. Returns the number removed."""
        count = self._db.query(ShopifyToken).filter_by(shop=shop).delete()
        self._db.commit()
        return count
