"""Record store: Supabase client initialization and the key/value helpers the core relies on."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import structlog
from supabase import Client, create_client

from prompt_keeper.config import get_settings
from prompt_keeper.core.errors import NotFoundError

logger = structlog.get_logger()


class RecordStore:
    """Wrapper around the Supabase client addressing rows as ``table/id``.

    Tables are flat JSON records keyed by a text ``id`` column. The core only
    needs point reads and writes plus equality queries on one field; none of
    these calls are transactional with one another.
    """

    def __init__(self, client: Client) -> None:
        self._client = client

    @property
    def client(self) -> Client:
        """Access the raw Supabase client."""
        return self._client

    def get(self, table: str, id: str) -> dict[str, Any] | None:
        """Read one record by ID, or None when absent."""
        result = self._client.table(table).select("*").eq("id", id).limit(1).execute()
        return result.data[0] if result.data else None

    def set(self, table: str, id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Create or replace the record stored under ``id``."""
        result = self._client.table(table).upsert({**data, "id": id}).execute()
        return result.data[0]

    def insert(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a record and return the created row."""
        result = self._client.table(table).insert(data).execute()
        return result.data[0]

    def update(self, table: str, id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Patch a record by ID. Raises NotFoundError if the row is gone."""
        result = self._client.table(table).update(data).eq("id", id).execute()
        if not result.data:
            raise NotFoundError(table, id)
        return result.data[0]

    def remove(self, table: str, id: str) -> None:
        """Delete a record by ID. Removing a missing record is a no-op."""
        self._client.table(table).delete().eq("id", id).execute()

    def query_equal(self, table: str, field: str, value: Any) -> list[dict[str, Any]]:
        """All records whose ``field`` equals ``value``."""
        return self.select(table, filters={field: value})

    def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select records with optional filters, ordering, and limit."""
        query = self._client.table(table).select("*")

        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)

        if order_by:
            query = query.order(order_by, desc=not ascending)

        if limit:
            query = query.limit(limit)

        result = query.execute()
        return result.data


@lru_cache
def get_record_store() -> RecordStore:
    """Get cached record store instance."""
    settings = get_settings()
    client = create_client(settings.supabase_url, settings.supabase_key)
    logger.info("supabase.connected", url=settings.supabase_url)
    return RecordStore(client)
