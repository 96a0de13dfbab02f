import hashlib
import hmac
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient

from config import Settings, get_settings
from database import SessionStore, StoreRepository
from errors import UpstreamError
from main import app, get_client_factory, get_repository, get_session_store
from schemas import OAuthSession, StoreRecord, default_selections, normalize_selections

TEST_SHOP = "a.myshopify.com"
TEST_SECRET = "test-app-secret"
TEST_HOST = "http://localhost:8000"


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class InMemoryStoreRepository(StoreRepository):
    def __init__(self):
        self.docs: Dict[str, Dict[str, Any]] = {}

    def add(self, shop: str = TEST_SHOP, api_key: Optional[str] = "K1", access_token: Optional[str] = "shpat_test", **flags) -> StoreRecord:
        self.docs[shop] = {
            "shop": shop,
            "access_token": access_token,
            "api_key": api_key,
            "data_selections": normalize_selections(flags),
        }
        return StoreRecord.from_document(self.docs[shop])

    def find_by_shop(self, shop):
        doc = self.docs.get(shop)
        return StoreRecord.from_document(doc) if doc else None

    def find_by_api_key(self, api_key):
        for doc in self.docs.values():
            if doc["api_key"] == api_key:
                return StoreRecord.from_document(doc)
        return None

    def save_authentication(self, shop, access_token, new_api_key):
        doc = self.docs.setdefault(shop, {
            "shop": shop,
            "api_key": new_api_key,
            "data_selections": default_selections(),
        })
        doc["access_token"] = access_token
        return StoreRecord.from_document(doc)

    def replace_selections(self, shop, selections):
        doc = self.docs.get(shop)
        if doc is None:
            return None
        doc["data_selections"] = dict(selections)
        return StoreRecord.from_document(doc)


class InMemorySessionStore(SessionStore):
    def __init__(self):
        self.sessions: Dict[str, OAuthSession] = {}

    def get(self, session_id):
        return self.sessions.get(session_id)

    def set(self, session_id, session):
        self.sessions[session_id] = session

    def delete(self, session_id):
        self.sessions.pop(session_id, None)


class FakeShopifyClient:
    """Serves canned bodies per path and records every call."""

    def __init__(self, shop: str, access_token: str, bodies: Dict[str, Any], calls: List[tuple], failing: set):
        self.shop = shop
        self.access_token = access_token
        self.bodies = bodies
        self.calls = calls
        self.failing = failing

    def get(self, path, params=None):
        self.calls.append((self.shop, path, dict(params or {})))
        if path in self.failing:
            raise UpstreamError(f"Shopify {path} returned HTTP 503: unavailable")
        return self.bodies.get(path, {})


class FakeUpstream:
    def __init__(self):
        self.calls: List[tuple] = []
        self.failing: set = set()
        self.bodies: Dict[str, Any] = {
            "orders.json": {"orders": [{"id": 1001, "name": "#1001"}]},
            "customers.json": {"customers": [{"id": 201, "email": "alex@example.com"}]},
            "products.json": {"products": [{"id": 1, "title": "T-Shirt"}]},
            "inventory_items.json": {"inventory_items": [{"id": 808, "sku": "TS-1"}]},
            "reports.json": {"reports": [{"id": 5, "name": "Sales"}]},
        }

    def factory(self, shop, access_token):
        return FakeShopifyClient(shop, access_token, self.bodies, self.calls, self.failing)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(
        shopify_api_key="test-app-key",
        shopify_api_secret=TEST_SECRET,
        host=TEST_HOST,
        database_url="mongodb://localhost:27017",
        database_name="test",
    )


@pytest.fixture
def repository() -> InMemoryStoreRepository:
    return InMemoryStoreRepository()


@pytest.fixture
def sessions() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def client(settings, repository, sessions, upstream):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_session_store] = lambda: sessions
    app.dependency_overrides[get_client_factory] = lambda: upstream.factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sign():
    """Compute the hmac Shopify would attach to a redirect query."""
    def _sign(params: Dict[str, str], secret: str = TEST_SECRET) -> str:
        message = urlencode(sorted((k, v) for k, v in params.items() if k != "hmac"))
        return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()
    return _sign
