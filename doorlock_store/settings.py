"""
System Settings Manager
=======================

Bounded Context: Door Password and RFID Tags

The lock reads its keypad password and allowed RFID tags from the single
row of the system_settings table.

Validation:
  - Empty password or tag: rejected before any remote call
  - Tag already in the cached list: rejected before any remote call
  - Tag already in the freshly read row: rejected before the write
  - Removing a tag that is not present succeeds (the unchanged list is written)
"""

import logging
from typing import List, Optional

from .base import DataStore
from .errors import ValidationError
from .models import SystemSettings

logger = logging.getLogger(__name__)

# Row targeted when the table is still empty
DEFAULT_SETTINGS_ID = 1


class SystemSettingsManager:
    """
    Door password and RFID tag list management.

    Example:
        manager = SystemSettingsManager(store)
        manager.add_rfid_tag("A1B2C3D4")
        manager.change_door_password("2468")
    """

    TABLE = DataStore.TABLE_SYSTEM_SETTINGS

    def __init__(self, store: DataStore):
        self.store = store
        self._tags: List[str] = []

    @property
    def cached_tags(self) -> List[str]:
        return list(self._tags)

    def get_settings(self) -> Optional[SystemSettings]:
        row = self.store.select_one(self.TABLE)
        return SystemSettings.from_dict(row) if row else None

    def change_door_password(self, new_password: str) -> None:
        """
        Set the keypad password, creating the settings row if needed.

        Raises:
            ValidationError: If the password is empty
            StoreError: If the read or write fails
        """
        if not new_password:
            raise ValidationError("Enter a new password")

        row = self.store.select_one(self.TABLE, columns="id")
        if row is None:
            self.store.insert(self.TABLE, {"door_password": new_password})
        else:
            self.store.update(self.TABLE, {"door_password": new_password}, {"id": row["id"]})
        logger.info("🔑 Door password updated")

    def list_rfid_tags(self) -> List[str]:
        """Read the tag list from the store and refresh the cache."""
        _, tags = self._read_tags()
        self._tags = tags
        return list(tags)

    def add_rfid_tag(self, tag: str) -> List[str]:
        """
        Append a tag to the allowed list.

        Returns:
            The updated tag list

        Raises:
            ValidationError: If the tag is empty or already present
            StoreError: If the read or write fails
        """
        tag = (tag or "").strip()
        if not tag:
            raise ValidationError("Please enter an RFID tag to add.")
        if tag in self._tags:
            raise ValidationError("This RFID tag already exists.")

        row_id, current = self._read_tags()
        if tag in current:
            self._tags = current
            raise ValidationError("This RFID tag already exists.")

        updated = current + [tag]
        self.store.update(self.TABLE, {"rfid_tag": updated}, {"id": row_id})
        self._tags = updated
        logger.info(f"🏷️ RFID tag added ({len(updated)} total)")
        return list(updated)

    def remove_rfid_tag(self, tag: str) -> List[str]:
        """
        Remove a tag from the allowed list. Absent tags are not an error.

        Returns:
            The updated tag list
        """
        row_id, current = self._read_tags()
        updated = [t for t in current if t != tag]
        self.store.update(self.TABLE, {"rfid_tag": updated}, {"id": row_id})
        self._tags = updated
        logger.info(f"🏷️ RFID tag removed ({len(updated)} total)")
        return list(updated)

    def _read_tags(self):
        row = self.store.select_one(self.TABLE, columns="id, rfid_tag")
        if row is None:
            return DEFAULT_SETTINGS_ID, []
        settings = SystemSettings.from_dict(row)
        return settings.id if settings.id is not None else DEFAULT_SETTINGS_ID, settings.rfid_tags
