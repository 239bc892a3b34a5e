"""StoreConnectionRegistry: one de-duplicated store list per seller.

Stores come from two sources of truth:

- the primary registry (``seller_store_connections``), written when a seller
  confirms a connection;
- the legacy token store (``shopify_tokens``), written by the OAuth flow.

Primary entries always win. A legacy entry only appears when its store is
absent from the primary set, whatever its timestamps say.
"""

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from storelink.db.models import SellerStoreConnection, ShopifyToken, utc_now_iso
from storelink.services.credential_types import ConnectionSource, StoreConnection

logger = logging.getLogger(__name__)

LEGACY_CONNECTION_TYPE = "legacy"


def _dedupe_keep_last(connections: Iterable[StoreConnection]) -> dict[str, StoreConnection]:
    """Collapse repeated store ids within one source.

    A later occurrence overwrites the earlier value but keeps the earlier
    position (dict insertion order).
    """
    merged: dict[str, StoreConnection] = {}
    for conn in connections:
        merged[conn.store_id] = conn
    return merged


def merge_connections(
    primary: Iterable[StoreConnection],
    legacy: Iterable[StoreConnection],
) -> list[StoreConnection]:
    """Merge two ordered sources, primary first, legacy only for new stores."""
    merged = _dedupe_keep_last(primary)
    for store_id, conn in _dedupe_keep_last(legacy).items():
        if store_id not in merged:
            merged[store_id] = conn
    return list(merged.values())


class StoreConnectionRegistry:
    """Reads and records seller store connections.

    Args:
        db: SQLAlchemy session.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def _primary(self, username: str) -> list[StoreConnection]:
        rows = (
            self._db.query(SellerStoreConnection)
            .filter_by(seller_username=username)
            .order_by(
                SellerStoreConnection.updated_at.desc(),
                SellerStoreConnection.connected_at.desc(),
                SellerStoreConnection.id,
            )
            .all()
        )
        return [
            StoreConnection(
                store_id=row.store_url,
                display_name=row.store_name,
                connected_at=row.connected_at,
                updated_at=row.updated_at,
                connection_type=row.connection_type,
                source=ConnectionSource.primary_registry,
            )
            for row in rows
        ]

    def _legacy(self, username: str) -> list[StoreConnection]:
        rows = (
            self._db.query(ShopifyToken)
            .filter_by(username=username)
            .order_by(
                ShopifyToken.updated_at.desc(),
                ShopifyToken.created_at.desc(),
                ShopifyToken.id,
            )
            .all()
        )
        return [
            StoreConnection(
                store_id=row.shop,
                display_name=row.shop,
                connected_at=row.created_at,
                updated_at=row.updated_at,
                connection_type=LEGACY_CONNECTION_TYPE,
                source=ConnectionSource.legacy_token_store,
            )
            for row in rows
        ]

    def list_for_seller(self, username: str) -> list[StoreConnection]:
        """Return the seller's merged store list, primary entries first."""
        stores = merge_connections(self._primary(username), self._legacy(username))
        logger.debug("Resolved %d stores for seller %s", len(stores), username)
        return stores

    def is_connected(self, username: str, store_id: str) -> bool:
        """Whether ``store_id`` appears in the seller's merged store list."""
        return any(conn.store_id == store_id for conn in self.list_for_seller(username))

    def record_connection(
        self,
        username: str,
        store_id: str,
        display_name: str,
        connection_type: str,
    ) -> None:
        """Upsert the seller's primary-registry row for a store."""
        now = utc_now_iso()
        row = (
            self._db.query(SellerStoreConnection)
            .filter_by(seller_username=username, store_url=store_id)
            .first()
        )
        if row is None:
            row = SellerStoreConnection(
                seller_username=username,
                store_url=store_id,
                store_name=display_name or store_id,
                connection_type=connection_type,
                connected_at=now,
                updated_at=now,
            )
            self._db.add(row)
        else:
            row.store_name = display_name or row.store_name
            row.connection_type = connection_type
            row.updated_at = now
        self._db.commit()
