"""Base repository over the external data store."""
from __future__ import annotations

from typing import Any

from storefront.infra.datastore import DataStore


class BaseRepository:
    """Base repository class with common helpers."""

    table: str = ""

    def __init__(self, store: DataStore) -> None:
        """Initialize repository with a data store.

        Args:
            store: Object implementing the ``DataStore`` protocol
        """
        self.store = store

    async def _first(self, filters: dict[str, Any], table: str | None = None) -> dict[str, Any] | None:
        rows = await self.store.query(table or self.table, filters, limit=1)
        return rows[0] if rows else None

    @staticmethod
    def _get_field(obj: Any, field_name: str, default: Any = None) -> Any:
        """Safely extract field from a row dict or object."""
        if not obj:
            return default
        if isinstance(obj, dict):
            return obj.get(field_name, default)
        return getattr(obj, field_name, default)
