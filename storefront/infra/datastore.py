"""External data store contract and the in-memory implementation."""
from __future__ import annotations

import copy
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncContextManager, AsyncIterator, Iterable, Mapping, Protocol

from storefront.core.exceptions import ConstraintViolation, DataStoreError
from storefront.core.logging_config import logger


@dataclass(frozen=True, slots=True)
class In:
    """Filter: column value is one of ``values``."""

    values: tuple[Any, ...]

    def __init__(self, values: Iterable[Any]) -> None:
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True, slots=True)
class Gte:
    """Filter: column value is greater than or equal to ``value``."""

    value: Any


Filters = Mapping[str, Any]

TABLES = (
    "users",
    "profiles",
    "products",
    "cart",
    "orders",
    "order_items",
    "coupons",
    "banners",
    "reviews",
    "wishlists",
)

UNIQUE_KEYS: Mapping[str, tuple[tuple[str, ...], ...]] = {
    "users": (("email",),),
    "cart": (("user_id", "product_id"),),
    "coupons": (("code",),),
    "wishlists": (("user_id", "product_id"),),
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DataStore(Protocol):
    """Generic remote store: CRUD + query, each raising ``DataStoreError`` subclasses."""

    async def query(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        ...

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        ...

    async def update(self, table: str, filters: Filters, patch: Mapping[str, Any]) -> None:
        ...

    async def delete(self, table: str, filters: Filters) -> None:
        ...

    def atomic(self) -> AsyncContextManager[DataStore]:
        ...


def matches(row: Mapping[str, Any], filters: Filters | None) -> bool:
    for column, expected in (filters or {}).items():
        value = row.get(column)
        if isinstance(expected, In):
            if value not in expected.values:
                return False
        elif isinstance(expected, Gte):
            if isinstance(expected.value, datetime) and isinstance(value, str):
                value = datetime.fromisoformat(value)
            if value is None or value < expected.value:
                return False
        elif value != expected:
            return False
    return True


def require_filters(operation: str, table: str, filters: Filters | None) -> None:
    if not filters:
        raise DataStoreError(f"Refusing unfiltered {operation} on '{table}'", table=table)


class InMemoryDataStore:
    """Process-local store used for development and tests.

    Enforces the same uniqueness keys as the SQL schema and gives
    ``atomic()`` snapshot/rollback semantics.
    """

    def __init__(self, unique_keys: Mapping[str, tuple[tuple[str, ...], ...]] | None = None):
        self._tables: dict[str, list[dict[str, Any]]] = {name: [] for name in TABLES}
        self._unique = dict(UNIQUE_KEYS if unique_keys is None else unique_keys)

    def rows(self, table: str) -> list[dict[str, Any]]:
        """Direct view of a table, for seeding and assertions."""
        return self._tables.setdefault(table, [])

    def _check_unique(self, table: str, candidate: Mapping[str, Any], skip: dict[str, Any] | None = None) -> None:
        for key in self._unique.get(table, ()):
            wanted = tuple(candidate.get(column) for column in key)
            for row in self.rows(table):
                if row is skip:
                    continue
                if tuple(row.get(column) for column in key) == wanted:
                    raise ConstraintViolation(
                        f"duplicate key value violates unique constraint on {table}{key}",
                        table=table,
                    )

    async def query(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        found = [dict(row) for row in self.rows(table) if matches(row, filters)]
        if order_by:
            found.sort(key=lambda row: _sort_key(row.get(order_by)), reverse=descending)
        if limit is not None:
            found = found[: max(0, limit)]
        return found

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        now = utc_now()
        record = {"id": uuid.uuid4().hex, "created_at": now, "updated_at": now, **dict(row)}
        self._check_unique(table, record)
        self.rows(table).append(record)
        return dict(record)

    async def update(self, table: str, filters: Filters, patch: Mapping[str, Any]) -> None:
        require_filters("update", table, filters)
        for row in self.rows(table):
            if matches(row, filters):
                self._check_unique(table, {**row, **patch}, skip=row)
                row.update(patch)

    async def delete(self, table: str, filters: Filters) -> None:
        require_filters("delete", table, filters)
        self._tables[table] = [row for row in self.rows(table) if not matches(row, filters)]

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[InMemoryDataStore]:
        snapshot = copy.deepcopy(self._tables)
        try:
            yield self
        except BaseException:
            self._tables = snapshot
            logger.debug("In-memory transaction rolled back")
            raise


def _sort_key(value: Any) -> tuple[bool, Any]:
    return (value is None, 0 if value is None else value)
