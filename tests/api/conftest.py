"""Pytest fixtures for API tests.

Builds the app through ``create_app`` with an in-memory database, a fixed
credential key, a frozen clock and a mock Shopify transport, so no test
touches the network or the user's data directory.
"""

from collections.abc import Generator

import httpx
import pytest
from fastapi.testclient import TestClient

from storelink.api.main import create_app
from storelink.config import Settings
from storelink.db.connection import Database
from storelink.services.credential_store import CredentialStore
from storelink.services.session_authenticator import SessionAuthenticator
from storelink.services.store_registry import StoreConnectionRegistry

WEBHOOK_SECRET = "s3cret"
SESSION_TTL = 3600


class ShopifyStub:
    """Stands in for the Shopify Admin API and records what it received."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status = 201
        self.body: dict = {"product": {"id": 555, "title": "Hat"}}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        session_ttl_seconds=SESSION_TTL,
        cookie_secure=True,
        webhook_secret=WEBHOOK_SECRET,
    )


@pytest.fixture
def shopify() -> ShopifyStub:
    return ShopifyStub()


@pytest.fixture
def app(settings, database, key, shopify, clock):
    return create_app(
        settings=settings,
        database=database,
        credential_key=key,
        shopify_transport=httpx.MockTransport(shopify),
        clock=clock,
    )


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def issue_session(database: Database, clock):
    """Issue a session directly through the authenticator and return its token."""

    def _issue(username: str = "alice", user_type: str = "seller") -> str:
        with database.session_scope() as db:
            authenticator = SessionAuthenticator(db, ttl_seconds=SESSION_TTL, clock=clock)
            return authenticator.issue(f"id-{username}", username, user_type).token

    return _issue


@pytest.fixture
def seller_headers(issue_session) -> dict[str, str]:
    return {"Cookie": f"session_token={issue_session('alice')}"}


@pytest.fixture
def seed(database: Database, key: bytes):
    """Run a callback against a CredentialStore and registry on a committed session."""

    def _seed(callback):
        with database.session_scope() as db:
            return callback(CredentialStore(db, key), StoreConnectionRegistry(db))

    return _seed
