"""Tests for data persistence."""

import json
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from food_tracker.data_store import (
    BackendType,
    DataStore,
    JSONEncoder,
    StorageError,
    create_data_store,
)
from food_tracker.models import Foodstuffs
from food_tracker.sqlite_store import SQLiteStore


class TestJSONEncoder:
    """Tests for custom JSON encoder."""

    def test_encode_uuid(self):
        uid = uuid4()
        assert json.dumps({"id": uid}, cls=JSONEncoder) == f'{{"id": "{uid}"}}'

    def test_encode_datetime(self):
        dt = datetime(2026, 1, 16, 9, 30, tzinfo=timezone.utc)
        assert json.loads(json.dumps({"d": dt}, cls=JSONEncoder))["d"] == "2026-01-16T09:30:00+00:00"

    def test_encode_decimal_keeps_precision(self):
        assert json.dumps({"p": Decimal("2.10")}, cls=JSONEncoder) == '{"p": "2.10"}'

    def test_encode_fallback_raises(self):
        with pytest.raises(TypeError):
            json.dumps({"s": {1, 2}}, cls=JSONEncoder)


class TestDataStoreInit:
    """Tests for DataStore initialization."""

    def test_creates_directories(self, tmp_path):
        data_dir = tmp_path / "nested" / "data"
        DataStore(data_dir=data_dir)
        assert data_dir.is_dir()

    def test_default_data_dir(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        store = DataStore()
        assert store.data_dir == tmp_path / "data"

    def test_empty_store(self, data_store):
        assert data_store.fetch_all() == []
        assert not data_store.has_pending_changes


@pytest.fixture(params=["json", "sqlite"])
def store(request, temp_data_dir):
    """Each backend behind the same contract."""
    return create_data_store(BackendType(request.param), data_dir=temp_data_dir)


def reopen(store, temp_data_dir):
    """A fresh instance of the same backend over the same files."""
    if isinstance(store, SQLiteStore):
        return SQLiteStore(db_path=store.db_path)
    return DataStore(data_dir=temp_data_dir)


class TestRecordStoreContract:
    """Behaviour shared by the JSON and SQLite backends."""

    def test_insert_then_fetch_by_id(self, store, sample_record):
        store.insert(sample_record)
        assert store.fetch_by_id(sample_record.id) == sample_record
        assert store.fetch_by_id(str(sample_record.id)) == sample_record

    def test_fetch_missing(self, store):
        assert store.fetch_by_id(uuid4()) is None

    def test_insert_is_pending_until_persist(self, store, sample_record, temp_data_dir):
        store.insert(sample_record)
        assert store.has_pending_changes
        assert reopen(store, temp_data_dir).fetch_all() == []

        store.persist()
        assert not store.has_pending_changes
        assert reopen(store, temp_data_dir).fetch_by_id(sample_record.id) == sample_record

    def test_persist_round_trip_all_fields(self, store, sample_record, temp_data_dir):
        store.insert(sample_record)
        store.persist()

        loaded = reopen(store, temp_data_dir).fetch_by_id(sample_record.id)
        assert loaded.name == "Oat Milk"
        assert loaded.brand == "Oatly"
        assert loaded.weight == 1000
        assert loaded.barcode == "731107111111"
        assert loaded.enjoy is True
        assert loaded.health is False
        assert loaded.current_price.regular_price == Decimal("2.10")
        assert loaded.current_price.special_price == Decimal("1.75")
        assert loaded.photos == sample_record.photos
        assert loaded.reviews == sample_record.reviews
        assert loaded.date == sample_record.date

    def test_insert_same_id_replaces(self, store, sample_record):
        store.insert(sample_record)
        changed = sample_record.model_copy(deep=True)
        changed.name = "Barista Oat Milk"
        store.insert(changed)
        store.persist()

        records = store.fetch_all()
        assert len(records) == 1
        assert records[0].name == "Barista Oat Milk"

    def test_fetch_returns_copies(self, store, sample_record):
        store.insert(sample_record)
        store.persist()

        fetched = store.fetch_by_id(sample_record.id)
        fetched.name = "Mutated"
        fetched.prices.clear()
        again = store.fetch_by_id(sample_record.id)
        assert again.name == "Oat Milk"
        assert len(again.prices) == 1

    def test_insert_copies_argument(self, store):
        record = Foodstuffs(name="Eggs")
        store.insert(record)
        record.name = "Changed after insert"
        assert store.fetch_by_id(record.id).name == "Eggs"

    def test_fetch_all_sorted_by_name(self, store):
        for name in ["banana", "Apple", "cherry"]:
            store.insert(Foodstuffs(name=name))
        store.persist()
        assert [r.name for r in store.fetch_all()] == ["Apple", "banana", "cherry"]

    def test_fetch_all_unsorted_keeps_insertion_order(self, store):
        for name in ["zucchini", "apple", "melon"]:
            store.insert(Foodstuffs(name=name))
        store.persist()
        assert [r.name for r in store.fetch_all(sorted_by_name=False)] == [
            "zucchini",
            "apple",
            "melon",
        ]

    def test_delete(self, store, sample_record, temp_data_dir):
        other = Foodstuffs(name="Butter")
        store.insert(sample_record)
        store.insert(other)
        store.persist()

        store.delete(sample_record)
        assert store.fetch_by_id(sample_record.id) is None
        store.persist()

        reopened = reopen(store, temp_data_dir)
        assert reopened.fetch_by_id(sample_record.id) is None
        assert [r.id for r in reopened.fetch_all()] == [other.id]

    def test_delete_by_id_string(self, store, sample_record):
        store.insert(sample_record)
        store.persist()
        store.delete(str(sample_record.id))
        store.persist()
        assert store.fetch_all() == []

    def test_rollback_discards_staged_changes(self, store, sample_record):
        store.insert(sample_record)
        store.persist()

        store.insert(Foodstuffs(name="Staged"))
        store.delete(sample_record.id)
        store.rollback()

        assert not store.has_pending_changes
        assert [r.id for r in store.fetch_all()] == [sample_record.id]

    def test_price_history_order_survives_persist(self, store, temp_data_dir):
        record = Foodstuffs(name="Coffee")
        day = datetime(2026, 2, 1, tzinfo=timezone.utc)
        record.add_price(Decimal("5.00"), on=day)
        record.add_price(Decimal("4.50"), on=day)
        store.insert(record)
        store.persist()

        loaded = reopen(store, temp_data_dir).fetch_by_id(record.id)
        assert [p.regular_price for p in loaded.prices] == [Decimal("5.00"), Decimal("4.50")]


class TestJSONStoreFile:
    """Tests for the on-disk JSON layout."""

    def test_file_layout(self, data_store, sample_record, temp_data_dir):
        data_store.insert(sample_record)
        data_store.persist()

        raw = json.loads((temp_data_dir / "foodstuffs.json").read_text())
        assert raw["version"] == "1.0"
        assert "last_updated" in raw
        assert raw["items"][0]["id"] == str(sample_record.id)
        assert raw["items"][0]["prices"][0]["regular_price"] == "2.10"

    def test_no_temp_file_left(self, data_store, sample_record, temp_data_dir):
        data_store.insert(sample_record)
        data_store.persist()
        assert not (temp_data_dir / "foodstuffs.json.tmp").exists()

    def test_corrupt_file_raises_storage_error(self, temp_data_dir):
        (temp_data_dir / "foodstuffs.json").write_text("{not json")
        store = DataStore(data_dir=temp_data_dir)
        with pytest.raises(StorageError):
            store.fetch_all()

    def test_invalid_record_raises_storage_error(self, temp_data_dir):
        (temp_data_dir / "foodstuffs.json").write_text(
            json.dumps({"version": "1.0", "items": [{"id": "not-a-uuid"}]})
        )
        with pytest.raises(StorageError):
            DataStore(data_dir=temp_data_dir).fetch_all()

    def test_write_failure_raises_storage_error(self, data_store, monkeypatch):
        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("food_tracker.data_store.os.replace", broken_replace)
        data_store.insert(Foodstuffs(name="Flour"))
        with pytest.raises(StorageError, match="disk full"):
            data_store.persist()
        assert data_store.has_pending_changes


class TestCreateDataStore:
    """Tests for backend selection."""

    def test_default_is_json(self, temp_data_dir):
        assert isinstance(create_data_store(data_dir=temp_data_dir), DataStore)

    def test_sqlite_uses_data_dir(self, temp_data_dir):
        store = create_data_store(BackendType.SQLITE, data_dir=temp_data_dir)
        assert isinstance(store, SQLiteStore)
        assert store.db_path == temp_data_dir / "foodstuffs.db"

    def test_sqlite_explicit_path(self, tmp_path):
        db_path = tmp_path / "elsewhere" / "mine.db"
        store = create_data_store(BackendType.SQLITE, db_path=db_path)
        assert store.db_path == db_path
        assert db_path.exists()
