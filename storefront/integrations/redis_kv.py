"""Redis-backed key-value store with TTL, per-key lock and memory fallback."""
from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

import redis

from storefront.core.logging_config import logger


class RedisKeyValueStore:
    """String key-value storage persisted in Redis.

    When Redis is not configured or a call fails, the store switches to an
    in-process dict for the rest of its lifetime and keeps serving requests.
    """

    LOCK_TTL_SECONDS = 5
    LOCK_WAIT_SECONDS = 2.0

    def __init__(self, redis_url: str | None = None, *, client: Any = None):
        self._redis_url = redis_url
        self._client = client if client is not None else self._init_client()
        self._memory: dict[str, str] = {}
        self._memory_expiry: dict[str, float] = {}

    @property
    def uses_redis(self) -> bool:
        return self._client is not None

    def _switch_to_memory_fallback(self, reason: Exception | str) -> None:
        logger.warning("Redis KV fallback to memory mode: %s", reason)
        self._client = None

    def _init_client(self):
        if not self._redis_url:
            logger.warning("REDIS_URL is not set; key-value store uses in-memory fallback")
            return None

        try:
            client = redis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            client.ping()
            logger.info("Redis key-value store enabled")
            return client
        except Exception as exc:
            logger.warning("Redis KV init failed, fallback to in-memory: %s", exc)
            return None

    # -- memory backend -------------------------------------------------

    def _memory_expired(self, key: str) -> bool:
        deadline = self._memory_expiry.get(key)
        if deadline is not None and time.monotonic() >= deadline:
            self._memory.pop(key, None)
            self._memory_expiry.pop(key, None)
            return True
        return False

    def _memory_set(self, key: str, value: str, ttl: int | None) -> None:
        self._memory[key] = value
        if ttl:
            self._memory_expiry[key] = time.monotonic() + ttl
        else:
            self._memory_expiry.pop(key, None)

    # -- public API -----------------------------------------------------

    def get(self, key: str) -> str | None:
        if self._client:
            try:
                return self._client.get(key)
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        if self._memory_expired(key):
            return None
        return self._memory.get(key)

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        if self._client:
            try:
                if ttl:
                    self._client.setex(key, ttl, value)
                else:
                    self._client.set(key, value)
                return
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        self._memory_set(key, value, ttl)

    def set_if_absent(self, key: str, value: str, ttl: int | None = None) -> bool:
        if self._client:
            try:
                return bool(self._client.set(key, value, nx=True, ex=ttl))
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        self._memory_expired(key)
        if key in self._memory:
            return False
        self._memory_set(key, value, ttl)
        return True

    def delete(self, key: str) -> None:
        if self._client:
            try:
                self._client.delete(key)
                return
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        self._memory.pop(key, None)
        self._memory_expiry.pop(key, None)

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        """Best-effort cross-process lock; proceeds unlocked on timeout."""
        if not self._client:
            yield
            return

        lock_key = f"lock:{name}"
        token = str(uuid.uuid4())
        deadline = time.monotonic() + self.LOCK_WAIT_SECONDS
        acquired = False

        while time.monotonic() < deadline:
            try:
                acquired = bool(self._client.set(lock_key, token, nx=True, ex=self.LOCK_TTL_SECONDS))
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
                break
            if acquired:
                break
            time.sleep(0.05)

        if not acquired:
            logger.warning("KV lock timeout for %s; proceeding without lock", name)
            yield
            return

        try:
            yield
        finally:
            try:
                unlock_lua = (
                    "if redis.call('get', KEYS[1]) == ARGV[1] "
                    "then return redis.call('del', KEYS[1]) else return 0 end"
                )
                self._client.eval(unlock_lua, 1, lock_key, token)
            except Exception as exc:
                logger.debug("KV unlock failed for %s: %s", name, exc)
