"""Tests for StoreConnectionRegistry merge rules."""

from storelink.db.models import SellerStoreConnection, ShopifyToken
from storelink.services.credential_types import ConnectionSource, StoreConnection
from storelink.services.store_registry import merge_connections


def _primary(
    db, seller, shop, name, updated_at, connection_type="direct_api",
    connected_at="2024-01-01T00:00:00Z", **extra,
):
    db.add(
        SellerStoreConnection(
            seller_username=seller,
            store_url=shop,
            store_name=name,
            connection_type=connection_type,
            connected_at=connected_at,
            updated_at=updated_at,
            **extra,
        )
    )
    db.commit()


def _legacy(db, seller, shop, updated_at, created_at="2023-06-01T00:00:00Z"):
    db.add(
        ShopifyToken(
            shop=shop,
            username=seller,
            encrypted_token="{}",
            created_at=created_at,
            updated_at=updated_at,
        )
    )
    db.commit()


def _conn(store_id, name, source=ConnectionSource.primary_registry):
    return StoreConnection(
        store_id=store_id,
        display_name=name,
        connected_at="t",
        updated_at="t",
        connection_type="x",
        source=source,
    )


class TestListForSeller:

    def test_primary_and_legacy_only_store(self, db_session, registry):
        """One primary store and one legacy-only store gives 2, primary first."""
        _primary(db_session, "alice", "a.myshopify.com", "Store A", "2024-01-01T00:00:00Z")
        _legacy(db_session, "alice", "b.myshopify.com", "2024-05-01T00:00:00Z")

        stores = registry.list_for_seller("alice")
        assert [s.store_id for s in stores] == ["a.myshopify.com", "b.myshopify.com"]
        assert stores[0].source == ConnectionSource.primary_registry
        assert stores[1].source == ConnectionSource.legacy_token_store

    def test_primary_wins_even_when_legacy_newer(self, db_session, registry):
        _primary(db_session, "alice", "a.myshopify.com", "My Shop", "2023-01-01T00:00:00Z")
        _legacy(db_session, "alice", "a.myshopify.com", "2024-12-01T00:00:00Z")

        stores = registry.list_for_seller("alice")
        assert len(stores) == 1
        assert stores[0].display_name == "My Shop"
        assert stores[0].source == ConnectionSource.primary_registry

    def test_legacy_entry_shape(self, db_session, registry):
        _legacy(db_session, "alice", "b.myshopify.com", "2024-05-01T00:00:00Z")
        store = registry.list_for_seller("alice")[0]
        assert store.to_dict() == {
            "shop": "b.myshopify.com",
            "name": "b.myshopify.com",
            "connectedAt": "2023-06-01T00:00:00Z",
            "lastUpdated": "2024-05-01T00:00:00Z",
            "type": "legacy",
            "source": "legacy_token_store",
        }

    def test_sources_read_most_recent_first(self, db_session, registry):
        _primary(db_session, "alice", "old.myshopify.com", "Old", "2023-01-01T00:00:00Z")
        _primary(db_session, "alice", "new.myshopify.com", "New", "2024-01-01T00:00:00Z")
        stores = registry.list_for_seller("alice")
        assert [s.display_name for s in stores] == ["New", "Old"]

    def test_equal_updated_at_ordered_by_connection_time(self, db_session, registry):
        same = "2024-03-01T00:00:00Z"
        _primary(db_session, "alice", "early.myshopify.com", "Early", same,
                 connected_at="2024-01-01T00:00:00Z")
        _primary(db_session, "alice", "late.myshopify.com", "Late", same,
                 connected_at="2024-02-01T00:00:00Z")
        _legacy(db_session, "alice", "old.myshopify.com", same, created_at="2023-01-01T00:00:00Z")
        _legacy(db_session, "alice", "new.myshopify.com", same, created_at="2023-09-01T00:00:00Z")

        assert [s.store_id for s in registry.list_for_seller("alice")] == [
            "late.myshopify.com", "early.myshopify.com",
            "new.myshopify.com", "old.myshopify.com",
        ]

    def test_full_tie_broken_by_row_id(self, db_session, registry):
        """Identical timestamps still give the same winner whatever the insert order."""
        same = "2024-03-01T00:00:00Z"
        _primary(db_session, "alice", "a.myshopify.com", "Row B", same, id="id-b")
        _primary(db_session, "alice", "a.myshopify.com", "Row A", same, id="id-a")

        stores = registry.list_for_seller("alice")
        assert len(stores) == 1
        assert stores[0].display_name == "Row B"

    def test_repeated_legacy_store_collapses(self, db_session, registry):
        _legacy(db_session, "alice", "b.myshopify.com", "2024-05-01T00:00:00Z")
        _legacy(db_session, "alice", "b.myshopify.com", "2024-01-01T00:00:00Z")
        stores = registry.list_for_seller("alice")
        assert len(stores) == 1
        assert stores[0].updated_at == "2024-01-01T00:00:00Z"

    def test_other_sellers_excluded(self, db_session, registry):
        _primary(db_session, "bob", "a.myshopify.com", "Bob's", "2024-01-01T00:00:00Z")
        _legacy(db_session, "bob", "b.myshopify.com", "2024-01-01T00:00:00Z")
        assert registry.list_for_seller("alice") == []

    def test_is_connected(self, db_session, registry):
        _legacy(db_session, "alice", "b.myshopify.com", "2024-05-01T00:00:00Z")
        assert registry.is_connected("alice", "b.myshopify.com")
        assert not registry.is_connected("alice", "c.myshopify.com")
        assert not registry.is_connected("bob", "b.myshopify.com")


class TestMergeConnections:

    def test_later_duplicate_overwrites_but_keeps_position(self):
        merged = merge_connections(
            [_conn("a", "first"), _conn("b", "B"), _conn("a", "second")],
            [],
        )
        assert [(c.store_id, c.display_name) for c in merged] == [("a", "second"), ("b", "B")]

    def test_legacy_appended_only_when_absent(self):
        legacy = ConnectionSource.legacy_token_store
        merged = merge_connections(
            [_conn("a", "A")],
            [_conn("a", "legacy-a", legacy), _conn("c", "legacy-c", legacy)],
        )
        assert [(c.store_id, c.display_name) for c in merged] == [("a", "A"), ("c", "legacy-c")]


class TestRecordConnection:

    def test_record_creates_then_updates(self, db_session, registry):
        registry.record_connection("alice", "a.myshopify.com", "Acme", "direct_api")
        registry.record_connection("alice", "a.myshopify.com", "Acme Renamed", "direct_api")
        rows = db_session.query(SellerStoreConnection).all()
        assert len(rows) == 1
        assert rows[0].store_name == "Acme Renamed"
        assert registry.list_for_seller("alice")[0].display_name == "Acme Renamed"
