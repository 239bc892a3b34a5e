"""SQLAlchemy ORM models for the StoreLink state database.

Defines session storage, the two credential sources (direct store configs and
legacy OAuth tokens), the primary seller store registry, product mappings and
webhook receipts. Uses SQLAlchemy 2.0 style with Mapped and mapped_column.

Timestamps are ISO8601 UTC strings ('YYYY-MM-DDTHH:MM:SSZ'), so lexical
ordering matches chronological ordering.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Return current UTC time as an ISO8601 string."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class UserType(str, Enum):
    """Roles a session can be bound to."""

    seller = "seller"
    admin = "admin"


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class AuthSession(Base):
    """Server-side session record.

    Only the SHA-256 digest of the session token is stored; the token itself
    exists only in the client's cookie.

    Attributes:
        id: UUID primary key.
        token_hash: Hex SHA-256 of the session token.
        user_id: Identifier of the authenticated user.
        username: Username (seller handle) of the user.
        user_type: 'seller' or 'admin'.
        issued_at: ISO8601 issuance time.
        expires_at: ISO8601 expiry time.
        last_seen_at: ISO8601 time of the last successful verification.
    """

    __tablename__ = "auth_sessions"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=generate_uuid)
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    user_type: Mapped[str] = mapped_column(String(20), nullable=False)
    issued_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)
    expires_at: Mapped[str] = mapped_column(Text, nullable=False)
    last_seen_at: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_auth_sessions_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuthSession(username={self.username!r}, "
            f"user_type={self.user_type!r}, expires_at={self.expires_at!r})>"
        )


class StoreConfig(Base):
    """Directly provisioned store credentials (the direct_config source).

    Credentials are an AES-256-GCM envelope holding an access token and/or an
    api_key/api_secret pair. At most one active row per store_url.

    Attributes:
        id: UUID primary key.
        store_url: Normalized store domain (e.g. 'mystore.myshopify.com').
        owner_username: Seller who provisioned the record.
        display_name: Human-readable store name.
        encrypted_credentials: JSON encryption envelope.
        is_active: Whether the record participates in resolution.
        created_at: ISO8601 creation time.
        updated_at: ISO8601 last update time.
    """

    __tablename__ = "store_configs"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=generate_uuid)
    store_url: Mapped[str] = mapped_column(Text, nullable=False)
    owner_username: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    encrypted_credentials: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)

    __table_args__ = (
        Index("idx_store_configs_store_active", "store_url", "is_active"),
        Index("idx_store_configs_owner", "owner_username"),
    )

    def __repr__(self) -> str:
        return (
            f"<StoreConfig(store_url={self.store_url!r}, "
            f"owner={self.owner_username!r}, is_active={self.is_active!r})>"
        )


class ShopifyToken(Base):
    """Legacy OAuth grant (the oauth_flow source).

    Written by the OAuth authorization-code exchange, which lives outside
    StoreLink. Also serves as the legacy store-connection source.

    Attributes:
        id: UUID primary key.
        shop: Store domain the grant was issued for.
        username: Seller who completed the OAuth flow.
        encrypted_token: JSON encryption envelope holding the access token.
        scope: Granted scopes, informational.
        created_at: ISO8601 creation time.
        updated_at: ISO8601 last update time.
    """

    __tablename__ = "shopify_tokens"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=generate_uuid)
    shop: Mapped[str] = mapped_column(Text, nullable=False)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    encrypted_token: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)

    __table_args__ = (
        Index("idx_shopify_tokens_shop", "shop"),
        Index("idx_shopify_tokens_username", "username"),
    )

    def __repr__(self) -> str:
        return f"<ShopifyToken(shop={self.shop!r}, username={self.username!r})>"


class SellerStoreConnection(Base):
    """User-confirmed store connection (the primary registry).

    Attributes:
        id: UUID primary key.
        seller_username: Owning seller.
        store_url: Store domain, natural key across sources.
        store_name: Display name chosen by the seller.
        connection_type: How the store was connected ('direct_api', 'oauth').
        connected_at: ISO8601 first connection time.
        updated_at: ISO8601 last update time.
    """

    __tablename__ = "seller_store_connections"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=generate_uuid)
    seller_username: Mapped[str] = mapped_column(Text, nullable=False)
    store_url: Mapped[str] = mapped_column(Text, nullable=False)
    store_name: Mapped[str] = mapped_column(Text, nullable=False)
    connection_type: Mapped[str] = mapped_column(String(50), nullable=False)
    connected_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)

    __table_args__ = (
        Index("idx_seller_store_connections_seller", "seller_username"),
    )

    def __repr__(self) -> str:
        return (
            f"<SellerStoreConnection(seller={self.seller_username!r}, "
            f"store_url={self.store_url!r})>"
        )


class ProductMapping(Base):
    """Link between a supplier product and the product created in a store.

    Append-only. No uniqueness on (supplier_product_id, shopify_store_url):
    repeated pushes produce repeated rows.
    """

    __tablename__ = "product_shopify_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    supplier_product_id: Mapped[str] = mapped_column(Text, nullable=False)
    shopify_product_id: Mapped[str] = mapped_column(Text, nullable=False)
    shopify_store_url: Mapped[str] = mapped_column(Text, nullable=False)
    pushed_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)

    __table_args__ = (
        Index("idx_product_mappings_supplier", "supplier_product_id"),
    )


class WebhookReceipt(Base):
    """Receipt of a processed webhook delivery, used for de-duplication.

    Only the delivery id and routing headers are kept; the payload is never
    persisted.
    """

    __tablename__ = "webhook_receipts"

    webhook_id: Mapped[str] = mapped_column(Text, primary_key=True)
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    shop_domain: Mapped[str] = mapped_column(Text, nullable=False, default="")
    received_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)

    __table_args__ = (
        Index("idx_webhook_receipts_received_at", "received_at"),
    )
