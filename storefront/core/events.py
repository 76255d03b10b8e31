"""
Cart-count change notifications with a pluggable pub/sub backend.

Supports:
- In-memory pub/sub for a single process
- Redis pub/sub for a best-effort broadcast across processes and tabs
"""
from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import redis.asyncio as aioredis

from storefront.integrations.redis_kv import RedisKeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class CartCountEvent:
    """Payload broadcast after every cart mutation."""

    owner: str
    count: int
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "cart_updated",
            "owner": self.owner,
            "count": int(self.count),
            "created_at": self.created_at.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CartCountEvent:
        return cls(
            owner=str(data["owner"]),
            count=int(data.get("count", 0)),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


CartCountHandler = Callable[[CartCountEvent], Awaitable[None]]


class PubSubBackend(ABC):
    """Abstract base for pub/sub backends."""

    @abstractmethod
    async def publish(self, channel: str, event: CartCountEvent) -> None:
        pass

    @abstractmethod
    async def subscribe(self, channel: str, handler: CartCountHandler) -> None:
        pass

    @abstractmethod
    async def unsubscribe(self, channel: str, handler: CartCountHandler) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


async def _dispatch(handlers: set[CartCountHandler], channel: str, event: CartCountEvent) -> None:
    for handler in handlers:
        try:
            await handler(event)
        except Exception as e:
            logger.error(f"Cart count handler error in channel {channel}: {e}")


class InMemoryPubSub(PubSubBackend):
    """In-memory pub/sub for single-process deployments."""

    def __init__(self):
        self._subscribers: dict[str, set[CartCountHandler]] = {}
        self._lock = asyncio.Lock()

    async def publish(self, channel: str, event: CartCountEvent) -> None:
        handlers = self._subscribers.get(channel, set()).copy()
        await _dispatch(handlers, channel, event)

    async def subscribe(self, channel: str, handler: CartCountHandler) -> None:
        async with self._lock:
            self._subscribers.setdefault(channel, set()).add(handler)
            logger.debug("Subscribed to %s, total: %s", channel, len(self._subscribers[channel]))

    async def unsubscribe(self, channel: str, handler: CartCountHandler) -> None:
        async with self._lock:
            if channel in self._subscribers:
                self._subscribers[channel].discard(handler)
                if not self._subscribers[channel]:
                    del self._subscribers[channel]

    async def close(self) -> None:
        self._subscribers.clear()


class RedisPubSub(PubSubBackend):
    """Redis-based pub/sub; delivery is best effort."""

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._redis = None
        self._pubsub = None
        self._subscribers: dict[str, set[CartCountHandler]] = {}
        self._listener_task: asyncio.Task | None = None
        self._running = False

    async def _ensure_connected(self) -> None:
        if self._redis is None:
            self._redis = aioredis.from_url(self._redis_url)
            self._pubsub = self._redis.pubsub()
            self._running = True
            self._listener_task = asyncio.create_task(self._listen())

    async def _listen(self) -> None:
        while self._running and self._pubsub:
            try:
                if not self._subscribers:
                    await asyncio.sleep(0.5)
                    continue
                message = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message and message["type"] == "message":
                    channel = message["channel"]
                    if isinstance(channel, bytes):
                        channel = channel.decode()
                    event = CartCountEvent.from_dict(json.loads(message["data"]))
                    handlers = self._subscribers.get(channel, set()).copy()
                    await _dispatch(handlers, channel, event)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Redis cart listener error: {e}")
                await asyncio.sleep(1)

    async def publish(self, channel: str, event: CartCountEvent) -> None:
        await self._ensure_connected()
        await self._redis.publish(channel, event.to_json())

    async def subscribe(self, channel: str, handler: CartCountHandler) -> None:
        await self._ensure_connected()
        if channel not in self._subscribers:
            self._subscribers[channel] = set()
            await self._pubsub.subscribe(channel)
        self._subscribers[channel].add(handler)

    async def unsubscribe(self, channel: str, handler: CartCountHandler) -> None:
        if channel in self._subscribers:
            self._subscribers[channel].discard(handler)
            if not self._subscribers[channel]:
                del self._subscribers[channel]
                if self._pubsub:
                    await self._pubsub.unsubscribe(channel)

    async def close(self) -> None:
        self._running = False
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
        if self._pubsub:
            await self._pubsub.aclose()
        if self._redis:
            await self._redis.aclose()


class CartCountNotifier:
    """Observable cart count, one channel per cart owner.

    ``publish`` never raises: a failing backend or subscriber is logged and
    the caller's mutation still counts as done.
    """

    COUNT_KEY = "cart_count:{owner}"

    def __init__(self, backend: PubSubBackend | None = None, kv: RedisKeyValueStore | None = None):
        self._backend = backend or InMemoryPubSub()
        self._kv = kv
        # Mirrors subscriptions so same-process delivery survives a broken broker.
        self._local: InMemoryPubSub | None = (
            None if isinstance(self._backend, InMemoryPubSub) else InMemoryPubSub()
        )

    @classmethod
    def from_redis_url(cls, redis_url: str | None, kv: RedisKeyValueStore | None = None) -> CartCountNotifier:
        backend: PubSubBackend = RedisPubSub(redis_url) if redis_url else InMemoryPubSub()
        return cls(backend, kv)

    @staticmethod
    def channel(owner: str) -> str:
        return f"cart:{owner}"

    def last_known(self, owner: str) -> int:
        """Cached count for instant paint before the authoritative count loads."""
        if self._kv is None:
            return 0
        raw = self._kv.get(self.COUNT_KEY.format(owner=owner))
        try:
            return max(0, int(raw)) if raw is not None else 0
        except ValueError:
            return 0

    async def publish(self, owner: str, count: int) -> None:
        if self._kv is not None:
            try:
                self._kv.set(self.COUNT_KEY.format(owner=owner), str(int(count)))
            except Exception as e:
                logger.warning("Could not cache cart count for %s: %s", owner, e)
        event = CartCountEvent(owner, int(count))
        try:
            await self._backend.publish(self.channel(owner), event)
        except Exception as e:
            logger.warning("Cart count broadcast failed for %s: %s", owner, e)
            if self._local is not None:
                await self._local.publish(self.channel(owner), event)

    async def subscribe(self, owner: str, handler: CartCountHandler) -> None:
        if self._local is not None:
            await self._local.subscribe(self.channel(owner), handler)
        try:
            await self._backend.subscribe(self.channel(owner), handler)
        except Exception as e:
            if self._local is None:
                raise
            logger.warning("Cart count subscribe degraded to local for %s: %s", owner, e)

    async def unsubscribe(self, owner: str, handler: CartCountHandler) -> None:
        if self._local is not None:
            await self._local.unsubscribe(self.channel(owner), handler)
        await self._backend.unsubscribe(self.channel(owner), handler)

    async def close(self) -> None:
        if self._local is not None:
            await self._local.close()
        await self._backend.close()
