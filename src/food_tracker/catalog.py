"""Foodstuffs catalog operations."""

import logging
from datetime import datetime
from pathlib import Path
from uuid import UUID

from .data_store import RecordStore, StorageError
from .drafts import FoodstuffsDraft
from .models import Foodstuffs
from .photo_library import PhotoLibrary

logger = logging.getLogger(__name__)


class FoodstuffsNotFoundError(Exception):
    """Raised when a record is not found."""

    def __init__(self, record_id: UUID | str):
        self.record_id = record_id
        super().__init__(f"Foodstuffs with ID '{record_id}' not found")


class PhotoNotFoundError(Exception):
    """Raised when a record has no photo with the given filename."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"Photo '{filename}' not found")


def record_data(record: Foodstuffs) -> dict:
    """JSON-ready view of a record, with its current price and latest entry dates."""
    data = record.model_dump(mode="json")
    current = record.current_price
    data["current_price"] = current.model_dump(mode="json") if current else None
    for key in ("latest_price_date", "latest_photo_date", "latest_review_date"):
        value = getattr(record, key)
        data[key] = value.isoformat() if value else None
    return data


class CatalogManager:
    """Manages foodstuffs records and their photo files."""

    def __init__(self, store: RecordStore, photos: PhotoLibrary):
        """Initialize catalog manager.

        Args:
            store: Record store holding the foodstuffs
            photos: Library owning the photo files
        """
        self.store = store
        self.photos = photos

    def get_foodstuff(self, record_id: UUID | str) -> Foodstuffs:
        """Get a specific record by ID.

        Raises:
            FoodstuffsNotFoundError: If record not found
        """
        try:
            record = self.store.fetch_by_id(record_id)
        except ValueError:
            raise FoodstuffsNotFoundError(record_id) from None
        if record is None:
            raise FoodstuffsNotFoundError(record_id)
        return record

    def _commit(self, draft: FoodstuffsDraft) -> Foodstuffs:
        """Commit a draft, then delete files of photos it dropped."""
        removed = draft.removed_photos()
        try:
            record = draft.commit(self.store)
        except StorageError:
            self.store.rollback()
            raise
        self._delete_unreferenced_photos(removed)
        return record

    def _delete_unreferenced_photos(self, filenames: list[str]) -> None:
        """Delete photo files that no stored record still references."""
        if not filenames:
            return
        in_use = {name for r in self.store.fetch_all() for name in r.photo_filenames}
        for filename in filenames:
            if filename in in_use:
                logger.debug("Keeping photo %s, still referenced", filename)
                continue
            try:
                self.photos.delete(filename)
            except OSError as e:
                logger.warning("Could not delete photo %s: %s", filename, e)

    def add_foodstuff(
        self,
        name: str,
        brand: str = "",
        weight: str | float = "",
        barcode: str = "",
        regular_price: str | None = None,
        special_price: str = "",
        review: str = "",
        enjoy: bool = False,
        health: bool = False,
        photo_files: list[Path] | None = None,
    ) -> dict:
        """Add a new record.

        Args:
            name: Item name
            brand: Brand name
            weight: Weight in grams
            barcode: Numeric barcode, truncated to 12 digits
            regular_price: Regular price as typed
            special_price: Special price as typed, blank for none
            review: Initial review, ignored when blank
            enjoy: Enjoy flag
            health: Health flag
            photo_files: Images to copy into the photo library

        Returns:
            Dict with success status and record data

        Raises:
            PriceValidationError: If the price pair is invalid
            DraftValidationError: If the name is blank
        """
        draft = FoodstuffsDraft()
        draft.set_details(
            name=name, brand=brand, weight=weight, barcode=barcode, enjoy=enjoy, health=health
        )
        if regular_price:
            draft.add_price(regular_price, special_price, on=draft.record.date)
        if review:
            draft.add_review(review, on=draft.record.date)

        saved_photos = []
        for path in photo_files or []:
            photo = self.photos.import_file(path)
            saved_photos.append(photo.filename)
            draft.attach_photo(photo)

        try:
            record = self._commit(draft)
        except Exception:
            for filename in saved_photos:
                self.photos.delete(filename)
            raise

        logger.info("Added %s (%s)", record.name, record.id)
        return {
            "success": True,
            "message": f"Added {record.name} to the catalog",
            "data": {"foodstuff": record_data(record)},
        }

    def update_foodstuff(
        self,
        record_id: UUID | str,
        name: str | None = None,
        brand: str | None = None,
        weight: str | float | None = None,
        barcode: str | None = None,
        enjoy: bool | None = None,
        health: bool | None = None,
    ) -> dict:
        """Update the scalar fields of a record.

        Raises:
            FoodstuffsNotFoundError: If record not found
        """
        draft = FoodstuffsDraft(self.get_foodstuff(record_id))
        draft.set_details(
            name=name, brand=brand, weight=weight, barcode=barcode, enjoy=enjoy, health=health
        )
        record = self._commit(draft)

        return {
            "success": True,
            "message": f"Updated {record.name}",
            "data": {"foodstuff": record_data(record)},
        }

    def remove_foodstuff(self, record_id: UUID | str) -> dict:
        """Remove a record and delete photo files no other record uses.

        Raises:
            FoodstuffsNotFoundError: If record not found
        """
        record = self.get_foodstuff(record_id)
        self.store.delete(record)
        try:
            self.store.persist()
        except StorageError:
            self.store.rollback()
            raise

        self._delete_unreferenced_photos(record.photo_filenames)

        logger.info("Removed %s (%s)", record.name, record.id)
        return {
            "success": True,
            "message": f"Removed {record.name} from the catalog",
            "data": {"foodstuff": record_data(record)},
        }

    def list_foodstuffs(self, sorted_by_name: bool = True) -> dict:
        records = self.store.fetch_all(sorted_by_name=sorted_by_name)
        return {
            "success": True,
            "data": {
                "foodstuffs": [record_data(r) for r in records],
                "total": len(records),
            },
        }

    def search(self, text: str) -> dict:
        """Find records whose name or brand contains the text, ignoring case."""
        needle = text.strip().casefold()
        records = [
            r
            for r in self.store.fetch_all()
            if needle in r.name.casefold() or needle in r.brand.casefold()
        ]
        return {
            "success": True,
            "data": {
                "foodstuffs": [record_data(r) for r in records],
                "total": len(records),
                "query": text,
            },
        }

    def brand_suggestions(self, text: str) -> list[str]:
        """Known brands containing the text.

        Brands differing only in case are listed once, spelled as on the
        first record by name.
        """
        needle = text.strip().casefold()
        if not needle:
            return []
        brands: dict[str, str] = {}
        for record in self.store.fetch_all():
            if record.brand and needle in record.brand.casefold():
                brands.setdefault(record.brand.casefold(), record.brand)
        return sorted(brands.values(), key=str.casefold)

    def add_price(
        self,
        record_id: UUID | str,
        regular_price: str,
        special_price: str = "",
        on: datetime | None = None,
    ) -> dict:
        """Record a new price.

        Raises:
            FoodstuffsNotFoundError: If record not found
            PriceValidationError: If the price pair is invalid
        """
        draft = FoodstuffsDraft(self.get_foodstuff(record_id))
        draft.add_price(regular_price, special_price, on=on)
        record = self._commit(draft)

        return {
            "success": True,
            "message": f"Added price for {record.name}",
            "data": {
                "item": record.name,
                "current_price": record.current_price.model_dump(mode="json"),
                "price_points": [p.model_dump(mode="json") for p in record.prices],
            },
        }

    def price_history(self, record_id: UUID | str) -> dict:
        record = self.get_foodstuff(record_id)
        current = record.current_price
        return {
            "success": True,
            "data": {
                "item": record.name,
                "current_price": current.model_dump(mode="json") if current else None,
                "price_points": [p.model_dump(mode="json") for p in record.prices],
            },
        }

    def add_review(self, record_id: UUID | str, text: str) -> dict:
        """Add a review. Blank text is dropped on commit."""
        draft = FoodstuffsDraft(self.get_foodstuff(record_id))
        draft.add_review(text)
        record = self._commit(draft)

        return {
            "success": True,
            "message": f"Reviewed {record.name}",
            "data": {"foodstuff": record_data(record)},
        }

    def attach_photo(self, record_id: UUID | str, image_path: Path) -> dict:
        """Copy an image into the library and attach it to a record."""
        draft = FoodstuffsDraft(self.get_foodstuff(record_id))
        photo = self.photos.import_file(image_path)
        draft.attach_photo(photo)
        try:
            record = self._commit(draft)
        except Exception:
            self.photos.delete(photo.filename)
            raise

        return {
            "success": True,
            "message": f"Attached photo to {record.name}",
            "data": {"foodstuff": record_data(record), "photo": photo.model_dump(mode="json")},
        }

    def detach_photo(self, record_id: UUID | str, filename: str) -> dict:
        """Remove a photo from a record, deleting the file once nothing uses it.

        Raises:
            FoodstuffsNotFoundError: If record not found
            PhotoNotFoundError: If the record has no such photo
        """
        draft = FoodstuffsDraft(self.get_foodstuff(record_id))
        if filename not in draft.record.photo_filenames:
            raise PhotoNotFoundError(filename)
        draft.remove_photo(filename)
        record = self._commit(draft)

        return {
            "success": True,
            "message": f"Removed photo {filename} from {record.name}",
            "data": {"foodstuff": record_data(record)},
        }
