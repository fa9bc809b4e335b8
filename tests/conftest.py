"""Shared test fixtures for Food Tracker."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from food_tracker.catalog import CatalogManager
from food_tracker.data_store import DataStore
from food_tracker.models import Foodstuffs, Review
from food_tracker.photo_library import PhotoLibrary

JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 32 + b"\xff\xd9"


@pytest.fixture
def temp_data_dir(tmp_path):
    """Create a temporary data directory."""
    data_dir = tmp_path / "test_data"
    data_dir.mkdir()
    return data_dir


@pytest.fixture
def data_store(temp_data_dir):
    """Create a DataStore with temporary directory."""
    return DataStore(data_dir=temp_data_dir)


@pytest.fixture
def photo_library(temp_data_dir):
    """Create a PhotoLibrary inside the temporary data directory."""
    return PhotoLibrary(temp_data_dir / "photos")


@pytest.fixture
def catalog(data_store, photo_library):
    """Create a CatalogManager with temporary storage."""
    return CatalogManager(store=data_store, photos=photo_library)


@pytest.fixture
def jpeg_bytes():
    return JPEG_BYTES


@pytest.fixture
def jpeg_file(tmp_path):
    """A small JPEG-looking file outside the library."""
    path = tmp_path / "snap.jpg"
    path.write_bytes(JPEG_BYTES)
    return path


@pytest.fixture
def sample_record(photo_library):
    """A fully populated record with one photo on disk."""
    photo = photo_library.save(JPEG_BYTES, on=datetime(2026, 1, 16, 9, 0, tzinfo=timezone.utc))
    record = Foodstuffs(
        name="Oat Milk",
        brand="Oatly",
        weight=1000,
        barcode="731107111111",
        date=datetime(2026, 1, 16, 9, 0, tzinfo=timezone.utc),
        photos=[photo],
        reviews=[
            Review(text="Creamy", date=datetime(2026, 1, 17, 8, 0, tzinfo=timezone.utc)),
        ],
        enjoy=True,
    )
    record.add_price(
        Decimal("2.10"), Decimal("1.75"), on=datetime(2026, 1, 16, 9, 0, tzinfo=timezone.utc)
    )
    return record
