"""Shared pytest fixtures: fake Redis, in-memory data store, app container."""
from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import pytest

from storefront.api.deps import Container, RequestContext, build_container, get_context
from storefront.core.config import ApiConfig, CartConfig, DatabaseConfig, PricingConfig, Settings
from storefront.core.events import CartCountNotifier
from storefront.core.exceptions import TransportError
from storefront.infra.datastore import InMemoryDataStore
from storefront.integrations.redis_kv import RedisKeyValueStore
from storefront.services.identity import Session


@dataclass
class FakeRedisClient:
    data: dict[str, str] = field(default_factory=dict)
    expiry: dict[str, int] = field(default_factory=dict)
    setex_calls: list[tuple[str, int]] = field(default_factory=list)

    def ping(self) -> bool:
        return True

    def get(self, key: str):
        return self.data.get(key)

    def setex(self, key: str, ttl: int, value: str) -> bool:
        self.data[key] = value
        self.expiry[key] = ttl
        self.setex_calls.append((key, ttl))
        return True

    def delete(self, key: str) -> int:
        existed = 1 if key in self.data else 0
        self.data.pop(key, None)
        self.expiry.pop(key, None)
        return existed

    def set(self, key: str, value: str, nx: bool = False, ex: int | None = None):
        if nx and key in self.data:
            return False
        self.data[key] = value
        if ex is not None:
            self.expiry[key] = ex
        return True

    def eval(self, _script: str, _keys_count: int, key: str, token: str) -> int:
        if self.data.get(key) == token:
            self.delete(key)
            return 1
        return 0


class FlakyDataStore:
    """Wraps the in-memory store and fails chosen (operation, table) calls."""

    def __init__(self, inner: InMemoryDataStore) -> None:
        self.inner = inner
        self._rules: dict[tuple[str, str], int] = {}
        self.calls: list[tuple[str, str]] = []

    def fail(self, operation: str, table: str, after: int = 0) -> None:
        """Fail ``operation`` on ``table`` once ``after`` calls have succeeded."""
        self._rules[(operation, table)] = after

    def heal(self) -> None:
        self._rules.clear()

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.inner.rows(table)

    def _check(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        key = (operation, table)
        if key not in self._rules:
            return
        if self._rules[key] > 0:
            self._rules[key] -= 1
            return
        raise TransportError(f"{operation} on {table} failed: connection reset", table=table)

    async def query(self, table, filters=None, **kwargs):
        self._check("query", table)
        return await self.inner.query(table, filters, **kwargs)

    async def insert(self, table, row):
        self._check("insert", table)
        return await self.inner.insert(table, row)

    async def update(self, table, filters, patch):
        self._check("update", table)
        await self.inner.update(table, filters, patch)

    async def delete(self, table, filters):
        self._check("delete", table)
        await self.inner.delete(table, filters)

    @asynccontextmanager
    async def atomic(self):
        async with self.inner.atomic():
            yield self


PRODUCTS = [
    {"id": "prod-a", "name": "Canvas Tote", "price": 5000, "discount_price": None, "category": "bags",
     "brand": "Acme", "rating": 4.5, "featured": True},
    {"id": "prod-b", "name": "Leather Wallet", "price": 10000, "discount_price": 8000, "category": "accessories",
     "brand": "Hide", "rating": 4.0, "featured": False},
    {"id": "prod-c", "name": "Wool Scarf", "price": 2500, "discount_price": None, "category": "accessories",
     "brand": "Acme", "rating": 3.5, "featured": False},
]


@pytest.fixture
def fake_redis() -> FakeRedisClient:
    return FakeRedisClient()


@pytest.fixture
def kv(fake_redis) -> RedisKeyValueStore:
    return RedisKeyValueStore(client=fake_redis)


@pytest.fixture
def memory_store() -> InMemoryDataStore:
    store = InMemoryDataStore()
    for product in PRODUCTS:
        store.rows("products").append(dict(product))
    return store


@pytest.fixture
def store(memory_store) -> FlakyDataStore:
    return FlakyDataStore(memory_store)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database=DatabaseConfig(url=None),
        redis_url=None,
        pricing=PricingConfig(),
        cart=CartConfig(),
        api=ApiConfig(rate_limit_disabled=True),
        environment="test",
    )


@pytest.fixture
def container(settings, store, kv) -> Container:
    return build_container(settings, store, kv, CartCountNotifier(kv=kv))


@pytest.fixture
def new_context(container):
    """Factory for session-bound services, like one API request."""

    def _make(session: Session | None = None) -> RequestContext:
        return get_context(container=container, session=session or Session())

    return _make


@pytest.fixture
def register(container):
    """Create an account directly through the auth provider."""

    async def _register(email: str = "ana@example.com", password: str = "secret123", name: str = "Ana Lopez"):
        return await container.auth.sign_up(email, password, name)

    return _register
