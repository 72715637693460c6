"""
Supabase Data Store
===================

Bounded Context: Persistence (Supabase / PostgREST)

Concrete DataStore over supabase-py. The same Client must be shared with
SupabaseAuth so queries run with the signed-in user's token (row level
security applies to every table).

Example:
    >>> client = create_supabase_client(url, key)
    >>> store = SupabaseStore(client)
    >>> store.fetch_recent_access_logs(limit=10)
"""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from .base import DataStore
from .errors import StoreError

logger = logging.getLogger(__name__)


def create_supabase_client(url: Optional[str] = None, key: Optional[str] = None) -> Client:
    """
    Create a Supabase client.

    Args:
        url: Project URL (default: SUPABASE_URL env var)
        key: Anon key (default: SUPABASE_ANON_KEY env var)

    Raises:
        StoreError: If credentials are missing or the client cannot be built
    """
    url = url or os.getenv("SUPABASE_URL")
    key = key or os.getenv("SUPABASE_ANON_KEY")
    if not url or not key:
        raise StoreError(
            "Supabase credentials not configured. "
            "Set SUPABASE_URL and SUPABASE_ANON_KEY or the supabase section of the config."
        )
    try:
        client = create_client(url, key)
    except Exception as e:
        raise StoreError(f"Failed to create Supabase client: {e}") from e
    logger.info(f"✅ Supabase client ready ({url})")
    return client


class SupabaseStore(DataStore):
    """
    DataStore backed by Supabase PostgREST.

    Attributes:
        client: Shared supabase-py Client
    """

    def __init__(self, client: Client):
        self.client = client

    def _execute(self, description: str, query) -> List[Dict[str, Any]]:
        try:
            result = query.execute()
        except APIError as e:
            logger.error(f"❌ Failed to {description}: {e.message}")
            raise StoreError(e.message or f"Failed to {description}") from e
        except httpx.HTTPError as e:
            logger.error(f"❌ Failed to {description}: {e}")
            raise StoreError(f"Failed to {description}: {e}") from e
        return (result.data or []) if result is not None else []

    def select(
        self,
        table: str,
        columns: str = "*",
        match: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = self.client.table(table).select(columns)
        for column, value in (match or {}).items():
            query = query.eq(column, value)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.limit(limit)
        return self._execute(f"query {table}", query)

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        rows = self._execute(f"insert into {table}", self.client.table(table).insert(row))
        return rows[0] if rows else {}

    def update(
        self,
        table: str,
        values: Dict[str, Any],
        match: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        if not match:
            raise StoreError(f"Refusing to update {table} without a filter")
        query = self.client.table(table).update(values)
        for column, value in match.items():
            query = query.eq(column, value)
        return self._execute(f"update {table}", query)
