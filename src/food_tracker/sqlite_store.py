"""SQLite-based data persistence for Food Tracker.

This module provides SQLite database storage as an alternative to JSON files.
It implements the same interface as DataStore for seamless switching.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from .data_store import StorageError, coerce_id, sort_by_name
from .models import Foodstuffs, Photo, Price, Review

logger = logging.getLogger(__name__)


class SQLiteStore:
    """Manages SQLite database persistence for foodstuffs records."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | None = None):
        """Initialize SQLite store.

        Args:
            db_path: Path to the SQLite database file. Defaults to ./data/foodstuffs.db
        """
        if db_path is None:
            db_path = Path.cwd() / "data" / "foodstuffs.db"
        self.db_path = db_path
        self._pending: dict[UUID, Foodstuffs] = {}
        self._deleted: set[UUID] = set()
        self._ensure_directories()
        self._init_database()

    def _ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create {self.db_path.parent}: {e}") from e

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper cleanup."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Database error in {self.db_path}: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self) -> None:
        """Initialize database schema if not exists."""
        with self._get_connection() as conn:
            conn.executescript("""
                -- Schema version tracking
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                );

                -- Foodstuffs records
                CREATE TABLE IF NOT EXISTS foodstuffs (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL DEFAULT '',
                    brand TEXT NOT NULL DEFAULT '',
                    weight REAL NOT NULL DEFAULT 0.0,
                    barcode TEXT NOT NULL DEFAULT '',
                    date TEXT NOT NULL,
                    enjoy INTEGER NOT NULL DEFAULT 0,
                    health INTEGER NOT NULL DEFAULT 0,
                    seq INTEGER NOT NULL
                );

                -- Price history, kept in list order by position
                CREATE TABLE IF NOT EXISTS prices (
                    id TEXT PRIMARY KEY,
                    foodstuffs_id TEXT NOT NULL REFERENCES foodstuffs(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    regular_price TEXT NOT NULL,
                    special_price TEXT,
                    date TEXT NOT NULL
                );

                -- Photo references
                CREATE TABLE IF NOT EXISTS photos (
                    id TEXT PRIMARY KEY,
                    foodstuffs_id TEXT NOT NULL REFERENCES foodstuffs(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    filename TEXT NOT NULL,
                    date TEXT NOT NULL
                );

                -- Reviews
                CREATE TABLE IF NOT EXISTS reviews (
                    id TEXT PRIMARY KEY,
                    foodstuffs_id TEXT NOT NULL REFERENCES foodstuffs(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    text TEXT NOT NULL,
                    date TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_prices_foodstuffs ON prices(foodstuffs_id);
                CREATE INDEX IF NOT EXISTS idx_photos_foodstuffs ON photos(foodstuffs_id);
                CREATE INDEX IF NOT EXISTS idx_reviews_foodstuffs ON reviews(foodstuffs_id);

                -- Record schema version
                INSERT OR IGNORE INTO schema_version (version) VALUES (1);
            """)

    # --- Row mapping ---

    def _row_to_record(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Foodstuffs:
        """Build a Foodstuffs record and its children from a row."""
        record_id = row["id"]
        prices = [
            Price(
                id=UUID(p["id"]),
                regular_price=Decimal(p["regular_price"]),
                special_price=Decimal(p["special_price"]) if p["special_price"] is not None else None,
                date=datetime.fromisoformat(p["date"]),
            )
            for p in conn.execute(
                "SELECT * FROM prices WHERE foodstuffs_id = ? ORDER BY position", (record_id,)
            ).fetchall()
        ]
        photos = [
            Photo(id=UUID(p["id"]), filename=p["filename"], date=datetime.fromisoformat(p["date"]))
            for p in conn.execute(
                "SELECT * FROM photos WHERE foodstuffs_id = ? ORDER BY position", (record_id,)
            ).fetchall()
        ]
        reviews = [
            Review(id=UUID(r["id"]), text=r["text"], date=datetime.fromisoformat(r["date"]))
            for r in conn.execute(
                "SELECT * FROM reviews WHERE foodstuffs_id = ? ORDER BY position", (record_id,)
            ).fetchall()
        ]

        return Foodstuffs(
            id=UUID(record_id),
            name=row["name"],
            brand=row["brand"],
            weight=row["weight"],
            barcode=row["barcode"],
            date=datetime.fromisoformat(row["date"]),
            prices=prices,
            photos=photos,
            reviews=reviews,
            enjoy=bool(row["enjoy"]),
            health=bool(row["health"]),
        )

    def _write_record(self, conn: sqlite3.Connection, record: Foodstuffs) -> None:
        """Replace a record and all of its children."""
        record_id = str(record.id)
        existing = conn.execute(
            "SELECT seq FROM foodstuffs WHERE id = ?", (record_id,)
        ).fetchone()
        if existing:
            seq = existing["seq"]
        else:
            seq = conn.execute("SELECT COALESCE(MAX(seq), 0) + 1 FROM foodstuffs").fetchone()[0]

        conn.execute("DELETE FROM foodstuffs WHERE id = ?", (record_id,))
        conn.execute(
            """
            INSERT INTO foodstuffs
            (id, name, brand, weight, barcode, date, enjoy, health, seq)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record_id,
                record.name,
                record.brand,
                record.weight,
                record.barcode,
                record.date.isoformat(),
                int(record.enjoy),
                int(record.health),
                seq,
            ),
        )

        conn.executemany(
            """
            INSERT INTO prices
            (id, foodstuffs_id, position, regular_price, special_price, date)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    str(p.id),
                    record_id,
                    position,
                    str(p.regular_price),
                    str(p.special_price) if p.special_price is not None else None,
                    p.date.isoformat(),
                )
                for position, p in enumerate(record.prices)
            ],
        )
        conn.executemany(
            """
            INSERT INTO photos (id, foodstuffs_id, position, filename, date)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (str(p.id), record_id, position, p.filename, p.date.isoformat())
                for position, p in enumerate(record.photos)
            ],
        )
        conn.executemany(
            """
            INSERT INTO reviews (id, foodstuffs_id, position, text, date)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (str(r.id), record_id, position, r.text, r.date.isoformat())
                for position, r in enumerate(record.reviews)
            ],
        )

    # --- Record Operations ---

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._pending or self._deleted)

    def insert(self, record: Foodstuffs) -> None:
        """Stage a record, replacing any stored record with the same id."""
        self._deleted.discard(record.id)
        self._pending[record.id] = record.model_copy(deep=True)

    def fetch_all(self, sorted_by_name: bool = True) -> list[Foodstuffs]:
        """Get all records, including staged changes.

        Args:
            sorted_by_name: Order by name (case-insensitive) instead of insertion order

        Returns:
            List of Foodstuffs copies
        """
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM foodstuffs ORDER BY seq").fetchall()
            stored = [self._row_to_record(conn, row) for row in rows]

        records: dict[UUID, Foodstuffs] = {
            r.id: r for r in stored if r.id not in self._deleted
        }
        for record_id, record in self._pending.items():
            records[record_id] = record.model_copy(deep=True)

        result = list(records.values())
        if sorted_by_name:
            return sort_by_name(result)
        return result

    def fetch_by_id(self, record_id: UUID | str) -> Foodstuffs | None:
        """Get a specific record by ID.

        Args:
            record_id: UUID of the record

        Returns:
            Foodstuffs if found, None otherwise
        """
        key = coerce_id(record_id)
        if key in self._deleted:
            return None
        if key in self._pending:
            return self._pending[key].model_copy(deep=True)

        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM foodstuffs WHERE id = ?", (str(key),)
            ).fetchone()

            if not row:
                return None

            return self._row_to_record(conn, row)

    def delete(self, record: Foodstuffs | UUID | str) -> None:
        """Stage removal of a record."""
        key = coerce_id(record)
        self._pending.pop(key, None)
        self._deleted.add(key)

    def persist(self) -> None:
        """Commit staged changes in a single transaction.

        Raises:
            StorageError: If the database cannot be written
        """
        if not self.has_pending_changes:
            return

        with self._get_connection() as conn:
            for key in self._deleted:
                conn.execute("DELETE FROM foodstuffs WHERE id = ?", (str(key),))
            for record in self._pending.values():
                self._write_record(conn, record)

        logger.debug(
            "Persisted %d records, deleted %d, in %s",
            len(self._pending),
            len(self._deleted),
            self.db_path,
        )
        self._pending.clear()
        self._deleted.clear()

    def rollback(self) -> None:
        """Discard staged changes."""
        self._pending.clear()
        self._deleted.clear()
