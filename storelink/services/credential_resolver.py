"""Per-store credential resolution.

Precedence for one store:
    1. The active direct-config record: its access token, else its
       api_key/api_secret pair as HTTP Basic. A record with neither is
       malformed and resolution stops there.
    2. The most recent legacy OAuth token.
    3. No credential.

Fields are never combined across records, and the resolver never writes.
"""

import logging

from storelink.errors import CredentialError, CredentialErrorCode
from storelink.services.credential_store import CredentialStore
from storelink.services.credential_types import (
    CredentialScheme,
    CredentialSource,
    ResolvedCredential,
    basic_auth_value,
)

logger = logging.getLogger(__name__)


class CredentialResolver:
    """Chooses the single credential used to push to a store."""

    def __init__(self, store: CredentialStore) -> None:
        self._store = store

    def resolve(self, store_id: str) -> ResolvedCredential:
        """Resolve the credential for ``store_id``.

        Raises:
            CredentialError: NO_CREDENTIAL when no source has one,
                MALFORMED_CREDENTIAL when the direct config is unusable or
                ambiguous.
        """
        direct = self._store.get_active_direct_configs(store_id)
        if len(direct) > 1:
            logger.error(
                "Store %s has %d active direct configs; refusing to pick one",
                store_id, len(direct),
            )
            raise CredentialError(CredentialErrorCode.MALFORMED_RECORD, store_id=store_id)

        if direct:
            record = direct[0]
            if record.has_token:
                return ResolvedCredential(
                    store_id=store_id,
                    scheme=CredentialScheme.oauth_token,
                    source=CredentialSource.direct_config,
                    secret=record.oauth_token,
                )
            if record.has_key_pair:
                return ResolvedCredential(
                    store_id=store_id,
                    scheme=CredentialScheme.api_key_pair,
                    source=CredentialSource.direct_config,
                    secret=basic_auth_value(record.api_key, record.api_secret),
                )
            logger.warning("Direct config %s for %s has no usable credential", record.record_id, store_id)
            raise CredentialError(CredentialErrorCode.MALFORMED_RECORD, store_id=store_id)

        legacy = self._store.get_oauth_token(store_id)
        if legacy is not None:
            return ResolvedCredential(
                store_id=store_id,
                scheme=CredentialScheme.oauth_token,
                source=CredentialSource.oauth_flow,
                secret=legacy.oauth_token,
            )

        raise CredentialError(CredentialErrorCode.NO_CREDENTIAL, store_id=store_id)
