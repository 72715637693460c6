"""
Base Data Store
===============

Bounded Context: Persistence Contract

Abstract row store used by the reconciler (access_logs), the settings
manager (system_settings) and the session (users).

Design:
- Subclasses implement three primitives: select, insert, update
- Audit and profile helpers are built on those primitives
- Every failure surfaces as StoreError

Architecture:
    DataStore (abstract)
        ↓
    SupabaseStore (concrete)
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from doorlock_mqtt.schemas import AccessLogEntry

from .models import UserProfile

logger = logging.getLogger(__name__)


class DataStore(ABC):
    """
    Row-oriented data store.

    Ordering of query results against concurrent change notifications is not
    guaranteed: a row may show up in a notification before or after it
    appears in a fresh query.
    """

    TABLE_ACCESS_LOGS = "access_logs"
    TABLE_SYSTEM_SETTINGS = "system_settings"
    TABLE_USERS = "users"

    @abstractmethod
    def select(
        self,
        table: str,
        columns: str = "*",
        match: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Query rows.

        Args:
            table: Table name
            columns: Column list ("*" or "id, rfid_tag")
            match: Equality filters {column: value}
            order_by: Column to order by
            descending: Order direction
            limit: Maximum number of rows

        Raises:
            StoreError: If the query fails
        """
        raise NotImplementedError("Subclasses must implement select()")

    @abstractmethod
    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert one row and return it as stored (with its id).

        Raises:
            StoreError: If the insert fails
        """
        raise NotImplementedError("Subclasses must implement insert()")

    @abstractmethod
    def update(
        self,
        table: str,
        values: Dict[str, Any],
        match: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        """
        Update rows matching all equality filters.

        Raises:
            StoreError: If the update fails
        """
        raise NotImplementedError("Subclasses must implement update()")

    # ===== Generic helpers =====

    def select_one(
        self,
        table: str,
        columns: str = "*",
        match: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """First matching row or None."""
        rows = self.select(table, columns=columns, match=match, limit=1)
        return rows[0] if rows else None

    def query_recent(
        self,
        table: str,
        limit: int,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> List[Dict[str, Any]]:
        return self.select(table, order_by=order_by, descending=descending, limit=limit)

    def query_all(
        self,
        table: str,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> List[Dict[str, Any]]:
        return self.select(table, order_by=order_by, descending=descending)

    # ===== Access logs =====

    def record_access_log(self, entry: AccessLogEntry) -> AccessLogEntry:
        """
        Insert an access log entry.

        Returns:
            The stored entry (with id) or the given entry when the store
            does not echo the row back
        """
        row = self.insert(self.TABLE_ACCESS_LOGS, entry.to_insert_row())
        if row and row.get('created_at') is not None:
            return AccessLogEntry.from_dict(row)
        return entry

    def fetch_recent_access_logs(self, limit: int = 10) -> List[AccessLogEntry]:
        return _parse_entries(self.query_recent(self.TABLE_ACCESS_LOGS, limit))

    def fetch_access_history(self) -> List[AccessLogEntry]:
        return _parse_entries(self.query_all(self.TABLE_ACCESS_LOGS))

    # ===== Users =====

    def find_user_profile(self, auth_id: str) -> Optional[UserProfile]:
        """Profile row linked to an auth identity, if any."""
        row = self.select_one(self.TABLE_USERS, match={'auth_id': auth_id})
        return UserProfile.from_dict(row) if row else None


def _parse_entries(rows: List[Dict[str, Any]]) -> List[AccessLogEntry]:
    entries = []
    for row in rows:
        try:
            entries.append(AccessLogEntry.from_dict(row))
        except ValueError as e:
            logger.warning(f"⚠️ Skipping malformed access log row {row.get('id')}: {e}")
    return entries
