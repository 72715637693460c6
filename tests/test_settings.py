"""
Unit tests for SystemSettingsManager (door password and RFID tags).
"""

import pytest

from doorlock_store import SystemSettingsManager, ValidationError

TABLE = "system_settings"


@pytest.fixture
def manager(store):
    return SystemSettingsManager(store)


@pytest.fixture
def seeded(store):
    store.seed(TABLE, [{'id': 3, 'door_password': '1234', 'rfid_tag': ['AA11', 'BB22']}])
    return store


class TestDoorPassword:
    """Tests for change_door_password."""

    def test_empty_password_rejected(self, manager, store):
        with pytest.raises(ValidationError):
            manager.change_door_password("")
        assert store.inserts == 0
        assert store.updates == 0

    def test_creates_row_when_missing(self, manager, store):
        manager.change_door_password("2468")

        assert store.inserts == 1
        assert store.rows(TABLE)[0]['door_password'] == "2468"

    def test_updates_existing_row(self, manager, seeded):
        manager.change_door_password("2468")

        assert seeded.inserts == 0
        assert seeded.rows(TABLE)[0]['door_password'] == "2468"
        assert manager.get_settings().door_password == "2468"


class TestRfidTags:
    """Tests for the RFID tag list."""

    def test_list_tags(self, manager, seeded):
        assert manager.list_rfid_tags() == ['AA11', 'BB22']
        assert manager.cached_tags == ['AA11', 'BB22']

    def test_list_tags_without_row(self, manager):
        assert manager.list_rfid_tags() == []

    def test_add_tag(self, manager, seeded):
        assert manager.add_rfid_tag("  CC33 ") == ['AA11', 'BB22', 'CC33']
        assert seeded.rows(TABLE)[0]['rfid_tag'] == ['AA11', 'BB22', 'CC33']

    def test_duplicate_in_cache_rejected_without_write(self, manager, seeded):
        manager.list_rfid_tags()

        with pytest.raises(ValidationError, match="already exists"):
            manager.add_rfid_tag("AA11")
        assert seeded.updates == 0

    def test_duplicate_in_store_rejected_without_write(self, manager, seeded):
        # Cache is empty; the fresh read catches it
        with pytest.raises(ValidationError, match="already exists"):
            manager.add_rfid_tag("BB22")
        assert seeded.updates == 0
        assert manager.cached_tags == ['AA11', 'BB22']

    def test_empty_tag_rejected(self, manager, seeded):
        with pytest.raises(ValidationError, match="Please enter an RFID tag"):
            manager.add_rfid_tag("   ")
        assert seeded.updates == 0

    def test_remove_tag(self, manager, seeded):
        assert manager.remove_rfid_tag("AA11") == ['BB22']
        assert seeded.rows(TABLE)[0]['rfid_tag'] == ['BB22']

    def test_remove_absent_tag_succeeds(self, manager, seeded):
        assert manager.remove_rfid_tag("ZZ99") == ['AA11', 'BB22']
        assert seeded.updates == 1

    def test_non_list_column_treated_as_empty(self, manager, store):
        store.seed(TABLE, [{'id': 1, 'rfid_tag': None}])

        assert manager.add_rfid_tag("AA11") == ['AA11']
