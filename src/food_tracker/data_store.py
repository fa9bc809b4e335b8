"""Data persistence for Food Tracker.

This module provides the record store with support for JSON (default) or SQLite backends.
Use create_data_store() to get the appropriate backend based on configuration.
"""

import json
import logging
import os
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Protocol
from uuid import UUID

from pydantic import ValidationError

from .models import Foodstuffs, utc_now

logger = logging.getLogger(__name__)

STORE_VERSION = "1.0"


class StorageError(Exception):
    """Raised when the underlying storage medium cannot be read or written."""


class BackendType(str, Enum):
    """Data storage backend types."""

    JSON = "json"
    SQLITE = "sqlite"


class RecordStore(Protocol):
    """Protocol defining the record store interface."""

    def insert(self, record: Foodstuffs) -> None: ...
    def fetch_all(self, sorted_by_name: bool = True) -> list[Foodstuffs]: ...
    def fetch_by_id(self, record_id: UUID | str) -> Foodstuffs | None: ...
    def delete(self, record: Foodstuffs | UUID | str) -> None: ...
    def persist(self) -> None: ...
    def rollback(self) -> None: ...

    @property
    def has_pending_changes(self) -> bool: ...


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for our data types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Decimal):
            return str(obj)
        return super().default(obj)


def coerce_id(record: Foodstuffs | UUID | str) -> UUID:
    """Accept a record, UUID or UUID string and return the UUID."""
    if isinstance(record, Foodstuffs):
        return record.id
    if isinstance(record, UUID):
        return record
    return UUID(record)


def sort_by_name(records: list[Foodstuffs]) -> list[Foodstuffs]:
    return sorted(records, key=lambda r: (r.name.casefold(), r.brand.casefold()))


class DataStore:
    """Manages JSON file persistence for foodstuffs records.

    Changes are staged in memory and written by persist(). Records handed
    out by fetch_* are copies, so mutating them has no effect until they
    are inserted again.
    """

    def __init__(self, data_dir: Path | None = None):
        """Initialize data store.

        Args:
            data_dir: Directory for data files. Defaults to ./data
        """
        self.data_dir = data_dir or Path.cwd() / "data"
        self._records: dict[UUID, Foodstuffs] | None = None
        self._dirty = False
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory {self.data_dir}: {e}") from e

    def _store_path(self) -> Path:
        """Path to the records file."""
        return self.data_dir / "foodstuffs.json"

    def _load(self) -> dict[UUID, Foodstuffs]:
        """Read committed records from disk."""
        path = self._store_path()
        if not path.exists():
            return {}

        try:
            with open(path) as f:
                data = json.load(f)
            items = [Foodstuffs.model_validate(item) for item in data.get("items", [])]
        except (OSError, json.JSONDecodeError, ValidationError, AttributeError) as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

        logger.debug("Loaded %d records from %s", len(items), path)
        return {item.id: item for item in items}

    @property
    def records(self) -> dict[UUID, Foodstuffs]:
        if self._records is None:
            self._records = self._load()
        return self._records

    @property
    def has_pending_changes(self) -> bool:
        return self._dirty

    # --- Record Operations ---

    def insert(self, record: Foodstuffs) -> None:
        """Stage a record, replacing any stored record with the same id.

        Args:
            record: Foodstuffs to insert
        """
        self.records[record.id] = record.model_copy(deep=True)
        self._dirty = True

    def fetch_all(self, sorted_by_name: bool = True) -> list[Foodstuffs]:
        """Get all records.

        Args:
            sorted_by_name: Order by name (case-insensitive) instead of insertion order

        Returns:
            List of Foodstuffs copies
        """
        records = [r.model_copy(deep=True) for r in self.records.values()]
        if sorted_by_name:
            return sort_by_name(records)
        return records

    def fetch_by_id(self, record_id: UUID | str) -> Foodstuffs | None:
        """Get a specific record by ID.

        Args:
            record_id: UUID of the record

        Returns:
            Foodstuffs if found, None otherwise
        """
        record = self.records.get(coerce_id(record_id))
        if record is None:
            return None
        return record.model_copy(deep=True)

    def delete(self, record: Foodstuffs | UUID | str) -> None:
        """Stage removal of a record. Unknown ids are ignored."""
        if self.records.pop(coerce_id(record), None) is not None:
            self._dirty = True

    def persist(self) -> None:
        """Write all records to disk.

        The file is replaced atomically, so a crash leaves either the old or
        the new contents.

        Raises:
            StorageError: If the file cannot be written
        """
        path = self._store_path()
        tmp_path = path.with_name(path.name + ".tmp")
        payload = {
            "version": STORE_VERSION,
            "last_updated": utc_now(),
            "items": [r.model_dump() for r in self.records.values()],
        }

        try:
            with open(tmp_path, "w") as f:
                json.dump(payload, f, cls=JSONEncoder, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Cannot write {path}: {e}") from e

        self._dirty = False
        logger.debug("Persisted %d records to %s", len(self.records), path)

    def rollback(self) -> None:
        """Discard staged changes."""
        self._records = None
        self._dirty = False


def create_data_store(
    backend: BackendType = BackendType.JSON,
    data_dir: Path | None = None,
    db_path: Path | None = None,
) -> RecordStore:
    """Create a record store with the specified backend.

    Args:
        backend: Which backend to use (json or sqlite)
        data_dir: Directory for data files (used by JSON backend, also used
                  as base path for SQLite if db_path not specified)
        db_path: Path to SQLite database file (only used by SQLite backend)

    Returns:
        A DataStore or SQLiteStore instance

    Example:
        # Use JSON backend (default)
        store = create_data_store()

        # Use SQLite with custom path
        store = create_data_store(
            BackendType.SQLITE,
            db_path=Path("./my_data/foodstuffs.db")
        )
    """
    if backend == BackendType.SQLITE:
        from .sqlite_store import SQLiteStore

        if db_path is None and data_dir is not None:
            db_path = data_dir / "foodstuffs.db"

        return SQLiteStore(db_path=db_path)
    else:
        return DataStore(data_dir=data_dir)
