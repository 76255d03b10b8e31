"""Cart storage strategies: guest carts in the KV store, user carts in the data store."""
from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from storefront.core.exceptions import ConstraintViolation
from storefront.core.logging_config import logger
from storefront.domain.cart import CartLine, normalize_lines
from storefront.infra.datastore import DataStore, utc_now
from storefront.integrations.redis_kv import RedisKeyValueStore


class OwnerLocks:
    """Per-owner asyncio locks; an owner's lock is dropped once no task holds or awaits it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, owner: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(owner, asyncio.Lock())
        self._users[owner] = self._users.get(owner, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[owner] -= 1
            if not self._users[owner]:
                del self._users[owner]
                del self._locks[owner]


class CartStore(ABC):
    """Uniform cart persistence keyed by an owner id.

    Implementations keep at most one line per product and never persist a
    line with a quantity below one.
    """

    @abstractmethod
    async def get_lines(self, owner: str) -> list[CartLine]:
        ...

    @abstractmethod
    async def add(self, owner: str, product_id: str, quantity: int) -> CartLine:
        ...

    @abstractmethod
    async def set_quantity(self, owner: str, product_id: str, quantity: int) -> bool:
        """Returns False when the product has no line."""

    @abstractmethod
    async def remove(self, owner: str, product_id: str) -> bool:
        ...

    @abstractmethod
    async def clear(self, owner: str) -> None:
        ...

    @abstractmethod
    async def replace(self, owner: str, lines: list[CartLine]) -> None:
        ...

    async def count(self, owner: str) -> int:
        return sum(line.quantity for line in await self.get_lines(owner))


class LocalCartStore(CartStore):
    """Guest carts stored as ``[{"id": ..., "quantity": ...}]`` JSON under ``cart:guest:{id}``."""

    def __init__(self, kv: RedisKeyValueStore, *, ttl_seconds: int = 30 * 24 * 60 * 60) -> None:
        self._kv = kv
        self._ttl = ttl_seconds
        self._locks = OwnerLocks()

    @staticmethod
    def _key(owner: str) -> str:
        return f"cart:guest:{owner}"

    def _load(self, owner: str) -> list[CartLine]:
        raw = self._kv.get(self._key(owner))
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Malformed guest cart for %s, treating as empty: %s", owner, exc)
            return []
        if not isinstance(data, list):
            logger.warning("Guest cart for %s is not a list, treating as empty", owner)
            return []
        lines: list[CartLine] = []
        for item in data:
            if not isinstance(item, dict):
                continue
            try:
                lines.append(CartLine.from_dict(item))
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping bad guest cart entry for %s: %s", owner, exc)
        return normalize_lines(lines)

    def _save(self, owner: str, lines: list[CartLine]) -> None:
        if not lines:
            self._kv.delete(self._key(owner))
            return
        payload = json.dumps([line.to_dict() for line in lines], ensure_ascii=False)
        self._kv.set(self._key(owner), payload, ttl=self._ttl)

    async def get_lines(self, owner: str) -> list[CartLine]:
        return self._load(owner)

    async def add(self, owner: str, product_id: str, quantity: int) -> CartLine:
        async with self._locks.hold(owner):
            with self._kv.lock(self._key(owner)):
                lines = self._load(owner)
                for line in lines:
                    if line.product_id == product_id:
                        line.quantity += int(quantity)
                        self._save(owner, lines)
                        return line
                line = CartLine(product_id, int(quantity))
                lines.append(line)
                self._save(owner, lines)
                return line

    async def set_quantity(self, owner: str, product_id: str, quantity: int) -> bool:
        async with self._locks.hold(owner):
            with self._kv.lock(self._key(owner)):
                lines = self._load(owner)
                for line in lines:
                    if line.product_id == product_id:
                        line.quantity = max(1, int(quantity))
                        self._save(owner, lines)
                        return True
                return False

    async def remove(self, owner: str, product_id: str) -> bool:
        async with self._locks.hold(owner):
            with self._kv.lock(self._key(owner)):
                lines = self._load(owner)
                kept = [line for line in lines if line.product_id != product_id]
                if len(kept) == len(lines):
                    return False
                self._save(owner, kept)
                return True

    async def clear(self, owner: str) -> None:
        async with self._locks.hold(owner):
            self._kv.delete(self._key(owner))

    async def replace(self, owner: str, lines: list[CartLine]) -> None:
        async with self._locks.hold(owner):
            with self._kv.lock(self._key(owner)):
                self._save(owner, normalize_lines(lines))


class RemoteCartStore(CartStore):
    """Authenticated carts as rows of the ``cart`` table (unique per user and product)."""

    TABLE = "cart"

    def __init__(self, store: DataStore) -> None:
        self._store = store
        self._locks = OwnerLocks()

    async def _rows(self, owner: str, store: DataStore | None = None) -> list[dict[str, Any]]:
        return await (store or self._store).query(self.TABLE, {"user_id": owner}, order_by="created_at")

    async def _find(self, owner: str, product_id: str) -> dict[str, Any] | None:
        rows = await self._store.query(self.TABLE, {"user_id": owner, "product_id": product_id}, limit=1)
        return rows[0] if rows else None

    async def _write_quantity(
        self, owner: str, product_id: str, quantity: int, store: DataStore | None = None
    ) -> None:
        await (store or self._store).update(
            self.TABLE,
            {"user_id": owner, "product_id": product_id},
            {"quantity": int(quantity), "updated_at": utc_now()},
        )

    async def get_lines(self, owner: str) -> list[CartLine]:
        lines = []
        for row in await self._rows(owner):
            quantity = int(row.get("quantity") or 0)
            if quantity >= 1:
                lines.append(CartLine(str(row["product_id"]), quantity))
        return normalize_lines(lines)

    async def add(self, owner: str, product_id: str, quantity: int) -> CartLine:
        async with self._locks.hold(owner):
            existing = await self._find(owner, product_id)
            if existing:
                new_quantity = int(existing.get("quantity") or 0) + int(quantity)
                await self._write_quantity(owner, product_id, new_quantity)
                return CartLine(product_id, new_quantity)
            try:
                await self._store.insert(
                    self.TABLE,
                    {"user_id": owner, "product_id": product_id, "quantity": int(quantity)},
                )
                return CartLine(product_id, int(quantity))
            except ConstraintViolation:
                # Another writer created the line between our read and insert.
                logger.info("Cart line race for user=%s product=%s, incrementing", owner, product_id)
                existing = await self._find(owner, product_id)
                current = int(existing.get("quantity") or 0) if existing else 0
                await self._write_quantity(owner, product_id, current + int(quantity))
                return CartLine(product_id, current + int(quantity))

    async def set_quantity(self, owner: str, product_id: str, quantity: int) -> bool:
        async with self._locks.hold(owner):
            if not await self._find(owner, product_id):
                return False
            await self._write_quantity(owner, product_id, max(1, int(quantity)))
            return True

    async def remove(self, owner: str, product_id: str) -> bool:
        async with self._locks.hold(owner):
            if not await self._find(owner, product_id):
                return False
            await self._store.delete(self.TABLE, {"user_id": owner, "product_id": product_id})
            return True

    async def clear(self, owner: str) -> None:
        async with self._locks.hold(owner):
            await self._store.delete(self.TABLE, {"user_id": owner})

    async def replace(self, owner: str, lines: list[CartLine]) -> None:
        """Upsert every line and drop rows for products not in ``lines``, in one transaction."""
        wanted = {line.product_id: line.quantity for line in normalize_lines(lines)}
        async with self._locks.hold(owner):
            async with self._store.atomic() as tx:
                current = {
                    str(row["product_id"]): int(row.get("quantity") or 0) for row in await self._rows(owner, tx)
                }
                for product_id, quantity in wanted.items():
                    if product_id in current:
                        if current[product_id] != quantity:
                            await self._write_quantity(owner, product_id, quantity, tx)
                    else:
                        await tx.insert(
                            self.TABLE,
                            {"user_id": owner, "product_id": product_id, "quantity": quantity},
                        )
                for product_id in current.keys() - wanted.keys():
                    await tx.delete(self.TABLE, {"user_id": owner, "product_id": product_id})
