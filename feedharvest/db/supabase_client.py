# feedharvest/db/supabase_client.py
import os
from typing import Any, Dict, List, Optional

from feedharvest.core.errors import RecordStoreError
from feedharvest.core.logging import get_logger

logger = get_logger(__name__)

_client = None


def _init_client(url: Optional[str] = None, key: Optional[str] = None):
    """
    Lazily create a singleton Supabase client.

    Returns:
        client instance or None if misconfigured.
    """
    global _client
    if _client is not None:
        return _client

    url = url or os.getenv("SUPABASE_URL")
    key = key or os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        logger.debug("Supabase disabled: SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY missing")
        return None

    from supabase import create_client

    _client = create_client(url, key)
    logger.info(f"Supabase client initialized for {url}")
    return _client


def get_supabase(url: Optional[str] = None, key: Optional[str] = None):
    """Convenience wrapper used by other modules."""
    return _init_client(url, key)


class SupabaseRecordStore:
    """
    One collection stored in a Supabase table keyed by ``id``.

    ``create`` upserts on ``id`` so a repeated write replaces the earlier row.
    Failures surface as RecordStoreError; retries belong to the async caller.
    """

    def __init__(self, client: Any, table: str):
        self._client = client
        self._table = table

    def _query(self, query: Dict[str, Any]):
        q = self._client.table(self._table).select("*")
        for field, value in query.items():
            q = q.eq(field, value)
        return q

    def create(self, record: Dict[str, Any]) -> None:
        if not record.get("id"):
            raise RecordStoreError("record has no id")

        try:
            self._client.table(self._table).upsert(dict(record), on_conflict="id").execute()
        except Exception as e:
            raise RecordStoreError(f"upsert into '{self._table}' failed: {e}") from e

    def get_item(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            result = self._query(query).limit(1).execute()
        except Exception as e:
            raise RecordStoreError(f"select from '{self._table}' failed: {e}") from e
        rows = result.data or []
        return rows[0] if rows else None

    def get_list(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            result = self._query(query).execute()
        except Exception as e:
            raise RecordStoreError(f"select from '{self._table}' failed: {e}") from e
        return list(result.data or [])
