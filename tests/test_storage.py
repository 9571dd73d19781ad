"""Tests for the storage module."""

import pytest
from quotadeck.storage import Storage, DEFAULT_DB_PATH


@pytest.fixture
def temp_db(tmp_path):
    """Create a temporary database for testing."""
    db_path = tmp_path / "test_prefs.db"
    storage = Storage(db_path)
    return storage


class TestStorage:
    """Tests for the Storage class."""

    def test_init_creates_database(self, tmp_path):
        """Test that initialization creates the database file."""
        db_path = tmp_path / "nested" / "new_prefs.db"
        assert not db_path.exists()

        storage = Storage(db_path)

        assert db_path.exists()
        assert storage.db_path == db_path

    def test_get_missing_value(self, temp_db):
        """Test that unknown keys return None."""
        assert temp_db.get_value("missing") is None

    def test_set_and_get_value(self, temp_db):
        """Test storing and reading back a value."""
        temp_db.set_value("prefs", '{"displayMode": "family"}')
        assert temp_db.get_value("prefs") == '{"displayMode": "family"}'

    def test_set_value_replaces(self, temp_db):
        """Test that writing a key twice keeps only the latest value."""
        temp_db.set_value("prefs", "first")
        temp_db.set_value("prefs", "second")

        assert temp_db.get_value("prefs") == "second"

    def test_values_survive_reopen(self, tmp_path):
        """Test that values persist across Storage instances."""
        db_path = tmp_path / "prefs.db"
        Storage(db_path).set_value("prefs", "kept")

        assert Storage(db_path).get_value("prefs") == "kept"

    def test_delete_value(self, temp_db):
        """Test deleting keys."""
        temp_db.set_value("prefs", "x")

        assert temp_db.delete_value("prefs") is True
        assert temp_db.delete_value("prefs") is False
        assert temp_db.get_value("prefs") is None

    def test_default_path(self):
        """Test the default database location."""
        assert DEFAULT_DB_PATH.name == "preferences.db"
        assert ".config/quotadeck" in str(DEFAULT_DB_PATH)
