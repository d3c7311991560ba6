# src/leadscout/tests/test_storage.py
"""
Unit tests for the SQLAlchemy key/value store.

Tests cover:
- Open/close lifecycle and file-backed persistence
- Get, put and delete
- Corrupt documents and encoding errors
- Collection fallbacks on read and write failures
"""
from unittest.mock import MagicMock

import pytest

from leadscout.errors import PersistenceError
from leadscout.storage import Collection, KeyValueStore, KeyValueEntry, memory_store


class TestKeyValueStore:
    """Tests for KeyValueStore."""

    @pytest.mark.unit
    def test_missing_key_returns_default(self, store):
        """Test that an absent key yields the default."""
        assert store.get("leads") is None
        assert store.get("leads", []) == []

    @pytest.mark.unit
    def test_put_then_get(self, store):
        """Test that stored documents decode to equal values."""
        store.put("notes", {"a": [{"text": "hi"}]})
        assert store.get("notes") == {"a": [{"text": "hi"}]}

    @pytest.mark.unit
    def test_put_replaces(self, store):
        """Test that a second put overwrites the first."""
        store.put("leads", [1])
        store.put("leads", [1, 2])
        assert store.get("leads") == [1, 2]

    @pytest.mark.unit
    def test_delete(self, store):
        """Test that deleted keys read as missing."""
        store.put("leads", [1])
        store.delete("leads")
        store.delete("leads")
        assert store.get("leads", "gone") == "gone"

    @pytest.mark.unit
    def test_unserializable_value(self, store):
        """Test that values JSON cannot encode raise PersistenceError."""
        with pytest.raises(PersistenceError) as exc_info:
            store.put("leads", [object()])
        assert exc_info.value.key == "leads"

    @pytest.mark.unit
    def test_corrupt_document(self, store):
        """Test that a non-JSON document raises PersistenceError."""
        with store._session() as session, session.begin():
            session.add(KeyValueEntry(key="leads", value="{not json"))
        with pytest.raises(PersistenceError) as exc_info:
            store.get("leads")
        assert "corrupt" in exc_info.value.reason

    @pytest.mark.unit
    def test_file_store_persists_across_reopen(self, tmp_path):
        """Test that a file-backed store survives close and reopen."""
        url = f"sqlite:///{tmp_path / 'leads.db'}"
        with KeyValueStore(url) as first:
            first.put("projects", [{"id": "p1", "name": "Bakeries"}])
        with KeyValueStore(url) as second:
            assert second.get("projects") == [{"id": "p1", "name": "Bakeries"}]

    @pytest.mark.unit
    def test_lifecycle(self):
        """Test that is_open tracks open and close."""
        kv = memory_store()
        assert kv.is_open is True
        kv.close()
        assert kv.is_open is False

    @pytest.mark.unit
    def test_unreachable_database(self, tmp_path):
        """Test that an unusable database path raises on open."""
        url = f"sqlite:///{tmp_path / 'missing' / 'dir' / 'leads.db'}"
        with pytest.raises(PersistenceError):
            KeyValueStore(url).open()


class ListCollection(Collection):
    key = "things"
    container = list


class TestCollection:
    """Tests for Collection fallbacks."""

    @pytest.mark.unit
    def test_load_empty(self, store):
        """Test that a missing document loads as the empty container."""
        assert ListCollection(store)._load() == []

    @pytest.mark.unit
    def test_load_wrong_type(self, store):
        """Test that a document of the wrong shape is ignored."""
        store.put("things", {"not": "a list"})
        assert ListCollection(store)._load() == []

    @pytest.mark.unit
    def test_load_failure_returns_empty(self):
        """Test that read errors are logged and yield the empty container."""
        broken = MagicMock()
        broken.get.side_effect = PersistenceError("things", "disk on fire")
        assert ListCollection(broken)._load() == []

    @pytest.mark.unit
    def test_save_failure_returns_false(self):
        """Test that write errors are logged and reported as False."""
        broken = MagicMock()
        broken.put.side_effect = PersistenceError("things", "read-only")
        assert ListCollection(broken)._save([1]) is False

    @pytest.mark.unit
    def test_save_success(self, store):
        """Test that a successful save returns True and persists."""
        assert ListCollection(store)._save([1]) is True
        assert store.get("things") == [1]
