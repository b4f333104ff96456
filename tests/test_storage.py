"""Tests for storage.py - JSON file record store."""

import json
from unittest.mock import patch

import pytest

from etnopapers.errors import CapacityError
from etnopapers.storage import RecordStore


class TestRecordStore:
    """Tests for record CRUD operations."""

    def test_empty_store(self, store):
        assert store.load_all() == []
        assert store.count() == 0
        assert store.get_by_id("missing") is None

    def test_create_sets_timestamps(self, store, make_record):
        stored = store.create(make_record())

        assert stored.created_at is not None
        assert stored.updated_at == stored.created_at
        assert store.count() == 1

    def test_persisted_with_data_file_keys(self, store, make_record, data_dir):
        record = store.create(make_record())

        with open(data_dir / "data.json", encoding="utf-8") as f:
            data = json.load(f)
        assert data[0]["id"] == record.id
        assert data[0]["titulo"] == record.title
        assert data[0]["autores"] == record.authors

    def test_reload_from_disk(self, store, make_record, data_dir):
        record = store.create(make_record())
        reopened = RecordStore(str(data_dir))
        assert reopened.get_by_id(record.id) == record

    def test_load_all_returns_copies(self, store, make_record):
        store.create(make_record())
        loaded = store.load_all()
        loaded[0].authors.append("Intruso, X.")
        assert store.load_all()[0].authors == ["Silva, M. A."]

    def test_duplicate_id_rejected(self, store, make_record):
        record = make_record()
        store.create(record)
        with pytest.raises(ValueError):
            store.create(record)

    def test_capacity_limit(self, data_dir, make_record):
        store = RecordStore(str(data_dir), record_limit=2)
        store.create(make_record())
        store.create(make_record())

        assert store.is_at_limit()
        assert store.remaining_capacity() == 0
        with pytest.raises(CapacityError) as exc_info:
            store.create(make_record())
        assert exc_info.value.limit == 2
        assert store.count() == 2

    def test_update_advances_updated_at(self, store, make_record):
        stored = store.create(make_record())
        edited = stored.model_copy(update={"abstract": "Resumo revisado"})

        assert store.update(edited)
        reloaded = store.get_by_id(stored.id)
        assert reloaded.abstract == "Resumo revisado"
        assert reloaded.created_at == stored.created_at
        assert reloaded.updated_at > stored.updated_at

    def test_update_missing(self, store, make_record):
        assert not store.update(make_record())

    def test_delete(self, store, make_record):
        stored = store.create(make_record())
        assert store.delete(stored.id)
        assert not store.delete(stored.id)
        assert store.count() == 0

    def test_delete_many(self, store, make_record):
        ids = [store.create(make_record()).id for _ in range(3)]
        assert store.delete_many([ids[0], ids[2], "missing"]) == 2
        assert [r.id for r in store.load_all()] == [ids[1]]
        assert store.delete_many([]) == 0

    def test_failed_create_leaves_store_unchanged(self, store, make_record, data_dir):
        with patch("etnopapers.storage.tempfile.mkstemp", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                store.create(make_record())

        assert store.count() == 0
        assert not (data_dir / "data.json").exists()

    def test_failed_update_and_delete_leave_store_unchanged(self, store, make_record):
        stored = store.create(make_record())
        edited = stored.model_copy(update={"abstract": "Resumo revisado"})
        other = store.create(make_record(title="Pesca artesanal"))

        with patch("etnopapers.storage.tempfile.mkstemp", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                store.update(edited)
            with pytest.raises(OSError):
                store.delete(other.id)
            with pytest.raises(OSError):
                store.delete_many([stored.id])

        assert store.get_by_id(stored.id).abstract == stored.abstract
        assert store.count() == 2
        assert RecordStore(str(store.data_dir)).count() == 2

    def test_corrupt_file_moved_aside(self, data_dir, make_record):
        (data_dir / "data.json").write_text("{not json", encoding="utf-8")
        store = RecordStore(str(data_dir))

        assert store.load_all() == []
        assert list(data_dir.glob("data.json.corrupt-*"))

        store.create(make_record())
        assert store.count() == 1
