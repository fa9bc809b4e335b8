"""Food Tracker - Catalogue groceries with price history, photos and reviews."""

from .backup import (
    ArchiveImportError,
    BackupRunner,
    ExportError,
    ExportPackager,
    ImportFailure,
    ImportMerger,
    OperationInProgressError,
)
from .catalog import CatalogManager, FoodstuffsNotFoundError, PhotoNotFoundError
from .config import ConfigManager
from .data_store import BackendType, create_data_store, DataStore, RecordStore, StorageError
from .drafts import DraftValidationError, FoodstuffsDraft, PriceValidationError
from .models import (
    ExportResult,
    Foodstuffs,
    FoodstuffsTransfer,
    ImportResult,
    MergePolicy,
    Photo,
    Price,
    Review,
)
from .output_formatter import OutputFormatter
from .photo_library import PhotoLibrary
from .sqlite_store import SQLiteStore

__version__ = "0.1.0"

__all__ = [
    "ArchiveImportError",
    "BackendType",
    "BackupRunner",
    "CatalogManager",
    "ConfigManager",
    "create_data_store",
    "DataStore",
    "DraftValidationError",
    "ExportError",
    "ExportPackager",
    "ExportResult",
    "Foodstuffs",
    "FoodstuffsDraft",
    "FoodstuffsNotFoundError",
    "FoodstuffsTransfer",
    "ImportFailure",
    "ImportMerger",
    "ImportResult",
    "MergePolicy",
    "OperationInProgressError",
    "OutputFormatter",
    "Photo",
    "PhotoLibrary",
    "PhotoNotFoundError",
    "Price",
    "PriceValidationError",
    "RecordStore",
    "Review",
    "SQLiteStore",
    "StorageError",
]
