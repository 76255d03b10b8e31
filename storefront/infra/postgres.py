"""
PostgreSQL-backed data store: psycopg pool, composed SQL, worker-thread calls.
"""
from __future__ import annotations

from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Callable, Iterator, Mapping, TypeVar

import anyio
import psycopg
from psycopg import errors as pg_errors
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool, PoolTimeout

from storefront.core.exceptions import ConstraintViolation, DataStoreError, TransportError
from storefront.core.logging_config import logger
from storefront.infra.datastore import Filters, Gte, In, require_filters
from storefront.infra.schema import SCHEMA_STATEMENTS

T = TypeVar("T")


@contextmanager
def translate_errors(operation: str, table: str | None = None) -> Iterator[None]:
    """Map driver exceptions onto the data store error taxonomy."""
    try:
        yield
    except (pg_errors.UniqueViolation, pg_errors.ForeignKeyViolation, pg_errors.CheckViolation) as exc:
        raise ConstraintViolation(f"{operation} on '{table}' violated a constraint: {exc}", table=table) from exc
    except (psycopg.OperationalError, psycopg.InterfaceError, PoolTimeout) as exc:
        raise TransportError(f"{operation} on '{table}' failed: {exc}", table=table) from exc
    except psycopg.Error as exc:
        raise DataStoreError(f"{operation} on '{table}' failed: {exc}", table=table) from exc


def _adapt(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return Jsonb(value)
    return value


def build_where(filters: Filters | None) -> tuple[sql.Composable, list[Any]]:
    if not filters:
        return sql.SQL(""), []
    clauses: list[sql.Composable] = []
    params: list[Any] = []
    for column, expected in filters.items():
        ident = sql.Identifier(column)
        if isinstance(expected, In):
            clauses.append(sql.SQL("{} = ANY(%s)").format(ident))
            params.append(list(expected.values))
        elif isinstance(expected, Gte):
            clauses.append(sql.SQL("{} >= %s").format(ident))
            params.append(expected.value)
        elif expected is None:
            clauses.append(sql.SQL("{} IS NULL").format(ident))
        else:
            clauses.append(sql.SQL("{} = %s").format(ident))
            params.append(_adapt(expected))
    return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses), params


class PostgresDatabase:
    """Synchronous table access over a psycopg connection pool."""

    def __init__(
        self,
        database_url: str,
        *,
        min_size: int = 1,
        max_size: int = 5,
        timeout: float = 60,
    ) -> None:
        self.pool = ConnectionPool(
            conninfo=database_url,
            min_size=min_size,
            max_size=max_size,
            timeout=timeout,
            kwargs={"row_factory": dict_row},
            open=True,
        )
        logger.info("PostgreSQL pool ready (min=%s, max=%s)", min_size, max_size)

    @contextmanager
    def get_connection(self) -> Iterator[psycopg.Connection]:
        with translate_errors("connect"):
            with self.pool.connection() as conn:
                yield conn

    def close(self) -> None:
        self.pool.close()

    def init_schema(self) -> None:
        with self.get_connection() as conn, translate_errors("init_schema"):
            for statement in SCHEMA_STATEMENTS:
                conn.execute(statement)
        logger.info("Database schema ensured")

    def _execute(self, conn: psycopg.Connection | None, operation: str, table: str, query, params) -> list[dict]:
        def run(active: psycopg.Connection) -> list[dict]:
            with translate_errors(operation, table):
                cursor = active.execute(query, params)
                return list(cursor.fetchall()) if cursor.description else []

        if conn is not None:
            return run(conn)
        with self.get_connection() as pooled:
            return run(pooled)

    def select(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        conn: psycopg.Connection | None = None,
    ) -> list[dict[str, Any]]:
        where, params = build_where(filters)
        query = sql.SQL("SELECT * FROM {}").format(sql.Identifier(table)) + where
        if order_by:
            direction = sql.SQL(" DESC") if descending else sql.SQL(" ASC")
            query += sql.SQL(" ORDER BY {}").format(sql.Identifier(order_by)) + direction
        if limit is not None:
            query += sql.SQL(" LIMIT %s")
            params.append(int(limit))
        return self._execute(conn, "query", table, query, params)

    def insert_row(self, table: str, row: Mapping[str, Any], *, conn: psycopg.Connection | None = None) -> dict:
        columns = list(row.keys())
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            sql.SQL(", ").join(sql.Placeholder() for _ in columns),
        )
        rows = self._execute(conn, "insert", table, query, [_adapt(row[c]) for c in columns])
        return dict(rows[0]) if rows else dict(row)

    def update_rows(
        self,
        table: str,
        filters: Filters,
        patch: Mapping[str, Any],
        *,
        conn: psycopg.Connection | None = None,
    ) -> None:
        require_filters("update", table, filters)
        if not patch:
            return
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in patch
        )
        where, params = build_where(filters)
        query = sql.SQL("UPDATE {} SET ").format(sql.Identifier(table)) + assignments + where
        self._execute(conn, "update", table, query, [_adapt(v) for v in patch.values()] + params)

    def delete_rows(self, table: str, filters: Filters, *, conn: psycopg.Connection | None = None) -> None:
        require_filters("delete", table, filters)
        where, params = build_where(filters)
        query = sql.SQL("DELETE FROM {}").format(sql.Identifier(table)) + where
        self._execute(conn, "delete", table, query, params)


class PostgresDataStore:
    """Async ``DataStore`` facade; each call runs in a worker thread."""

    def __init__(self, db: PostgresDatabase, *, conn: psycopg.Connection | None = None) -> None:
        self._db = db
        self._conn = conn

    @property
    def sync(self) -> PostgresDatabase:
        return self._db

    async def _run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return await anyio.to_thread.run_sync(lambda: func(*args, **kwargs))

    async def query(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        return await self._run(
            self._db.select,
            table,
            filters,
            order_by=order_by,
            descending=descending,
            limit=limit,
            conn=self._conn,
        )

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        return await self._run(self._db.insert_row, table, row, conn=self._conn)

    async def update(self, table: str, filters: Filters, patch: Mapping[str, Any]) -> None:
        await self._run(self._db.update_rows, table, filters, patch, conn=self._conn)

    async def delete(self, table: str, filters: Filters) -> None:
        await self._run(self._db.delete_rows, table, filters, conn=self._conn)

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[PostgresDataStore]:
        """One transaction on a dedicated pooled connection; nested calls reuse it."""
        if self._conn is not None:
            yield self
            return

        pool = self._db.pool
        with translate_errors("begin"):
            conn = await self._run(pool.getconn)
        try:
            yield PostgresDataStore(self._db, conn=conn)
        except BaseException:
            await self._run(conn.rollback)
            raise
        else:
            with translate_errors("commit"):
                await self._run(conn.commit)
        finally:
            await self._run(pool.putconn, conn)

    async def close(self) -> None:
        await self._run(self._db.close)
