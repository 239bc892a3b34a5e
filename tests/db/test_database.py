"""Tests for Database handle and URL resolution."""

import pytest
from sqlalchemy import inspect

from storelink.db.connection import Database, get_database_url
from storelink.db.models import WebhookReceipt


class TestGetDatabaseUrl:

    def test_database_url_wins(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:////tmp/a.db")
        monkeypatch.setenv("STORELINK_DB_PATH", "/tmp/b.db")
        assert get_database_url() == "sqlite:////tmp/a.db"

    def test_db_path_converted(self, monkeypatch):
        monkeypatch.setenv("STORELINK_DB_PATH", "/tmp/b.db")
        assert get_database_url() == "sqlite:////tmp/b.db"

    def test_db_path_already_url(self, monkeypatch):
        monkeypatch.setenv("STORELINK_DB_PATH", "sqlite:////tmp/c.db")
        assert get_database_url() == "sqlite:////tmp/c.db"

    def test_default_in_data_dir(self, tmp_path):
        assert get_database_url() == f"sqlite:///{tmp_path / 'data' / 'storelink.db'}"


class TestDatabase:

    def test_create_all_tables(self, database):
        tables = set(inspect(database.engine).get_table_names())
        assert {
            "auth_sessions", "store_configs", "shopify_tokens",
            "seller_store_connections", "product_shopify_mappings", "webhook_receipts",
        } <= tables

    def test_memory_sessions_share_tables(self, database):
        with database.session_scope() as db:
            db.add(WebhookReceipt(webhook_id="w1", topic="orders/create", shop_domain="s"))
        with database.session_scope() as db:
            assert db.get(WebhookReceipt, "w1") is not None

    def test_session_scope_rolls_back(self, database):
        with pytest.raises(RuntimeError):
            with database.session_scope() as db:
                db.add(WebhookReceipt(webhook_id="w2", topic="t", shop_domain="s"))
                db.flush()
                raise RuntimeError("boom")
        with database.session_scope() as db:
            assert db.get(WebhookReceipt, "w2") is None

    def test_file_database(self, tmp_path):
        database = Database(f"sqlite:///{tmp_path / 'f.db'}")
        database.create_all()
        database.dispose()
        assert (tmp_path / "f.db").exists()
