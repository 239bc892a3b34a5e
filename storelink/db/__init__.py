"""Persistence layer: ORM models and database handles."""

from storelink.db.connection import Database, get_database_url, get_db
from storelink.db.models import (
    AuthSession,
    Base,
    ProductMapping,
    SellerStoreConnection,
    ShopifyToken,
    StoreConfig,
    UserType,
    WebhookReceipt,
)

__all__ = [
    "Database",
    "get_database_url",
    "get_db",
    "Base",
    "AuthSession",
    "StoreConfig",
    "ShopifyToken",
    "SellerStoreConnection",
    "ProductMapping",
    "WebhookReceipt",
    "UserType",
]
