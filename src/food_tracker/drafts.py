"""Input rules and draft editing for foodstuffs records.

Edits are made on a FoodstuffsDraft, a deep copy of the stored record, and
only reach the store when the draft is committed.
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from .data_store import RecordStore
from .models import Foodstuffs, Photo, Price, Review

MAX_BARCODE_DIGITS = 12
MAX_WEIGHT_DIGITS = 4


class PriceValidationError(ValueError):
    """Raised when a regular/special price pair is not acceptable."""


class DraftValidationError(ValueError):
    """Raised when a draft cannot be committed."""


def filter_numeric_input(text: str) -> str:
    """Keep digits and one decimal point with at most two digits after it.

    >>> filter_numeric_input("£1.239")
    '1.23'
    """
    filtered = "".join(ch for ch in text if ch.isdigit() or ch == ".")
    whole, sep, rest = filtered.partition(".")
    if not sep:
        return whole
    fraction = rest.split(".", 1)[0]
    return f"{whole}.{fraction[:2]}"


def sanitize_barcode(text: str) -> str:
    """Digits only, truncated to the length of a UPC-A code."""
    return re.sub(r"\D", "", text)[:MAX_BARCODE_DIGITS]


def sanitize_weight(text: str) -> str:
    return re.sub(r"\D", "", text)[:MAX_WEIGHT_DIGITS]


def parse_decimal(text: str) -> Decimal | None:
    cleaned = filter_numeric_input(text.strip())
    if not cleaned or cleaned == ".":
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def validate_price_pair(regular: Decimal, special: Decimal | None) -> None:
    """Reject a special price that is not strictly below the regular price.

    Raises:
        PriceValidationError: With a user-facing message
    """
    if special is None:
        return
    if special > regular:
        raise PriceValidationError("Special price cannot exceed the regular price")
    if special == regular:
        raise PriceValidationError("A special price must be lower than the regular price")


def parse_price_pair(regular_text: str, special_text: str = "") -> tuple[Decimal, Decimal | None]:
    """Parse and validate price form input.

    Args:
        regular_text: Regular price as typed, required
        special_text: Special price as typed, blank for none

    Returns:
        Tuple of (regular, special)

    Raises:
        PriceValidationError: If the regular price is missing or the pair is invalid
    """
    regular = parse_decimal(regular_text)
    if regular is None:
        raise PriceValidationError("A regular price is required")

    special = parse_decimal(special_text) if special_text.strip() else None
    validate_price_pair(regular, special)
    return regular, special


class FoodstuffsDraft:
    """Editable snapshot of a record.

    Discarding the draft is the cancel path; nothing is written until commit().
    """

    def __init__(self, record: Foodstuffs | None = None):
        self.original = record
        self.record = record.model_copy(deep=True) if record is not None else Foodstuffs()

    @property
    def is_new(self) -> bool:
        return self.original is None

    @property
    def id(self) -> UUID:
        return self.record.id

    def set_details(
        self,
        name: str | None = None,
        brand: str | None = None,
        weight: str | float | None = None,
        barcode: str | None = None,
        enjoy: bool | None = None,
        health: bool | None = None,
    ) -> None:
        """Update scalar fields; None leaves a field as it is."""
        if name is not None:
            self.record.name = name
        if brand is not None:
            self.record.brand = brand
        if weight is not None:
            # Whole grams only, capped at the same digit count as typed input
            text = weight if isinstance(weight, str) else str(int(weight))
            digits = sanitize_weight(text)
            self.record.weight = float(digits) if digits else 0.0
        if barcode is not None:
            self.record.barcode = sanitize_barcode(barcode)
        if enjoy is not None:
            self.record.enjoy = enjoy
        if health is not None:
            self.record.health = health

    def add_price(
        self, regular_text: str, special_text: str = "", on: datetime | None = None
    ) -> Price:
        regular, special = parse_price_pair(regular_text, special_text)
        return self.record.add_price(regular, special, on=on)

    def replace_price(self, index: int, regular_text: str, special_text: str = "") -> Price:
        """Overwrite the price at index, keeping its id and date."""
        regular, special = parse_price_pair(regular_text, special_text)
        current = self.record.prices[index]
        updated = current.model_copy(update={"regular_price": regular, "special_price": special})
        self.record.prices[index] = updated
        return updated

    def add_review(self, text: str = "", on: datetime | None = None) -> Review:
        return self.record.add_review(text, on=on)

    def edit_review(self, review_id: UUID, text: str) -> None:
        for review in self.record.reviews:
            if review.id == review_id:
                review.text = text
                return
        raise KeyError(review_id)

    def remove_review(self, review_id: UUID) -> None:
        self.record.reviews = [r for r in self.record.reviews if r.id != review_id]

    def attach_photo(self, photo: Photo) -> None:
        self.record.photos.append(photo)

    def remove_photo(self, filename: str) -> None:
        self.record.photos = [p for p in self.record.photos if p.filename != filename]

    def removed_photos(self) -> list[str]:
        """Filenames present in the original record but not in the draft."""
        if self.original is None:
            return []
        kept = set(self.record.photo_filenames)
        return [name for name in self.original.photo_filenames if name not in kept]

    def commit(self, store: RecordStore) -> Foodstuffs:
        """Apply the draft to the store and persist it.

        Blank reviews are dropped and the rest ordered newest first.

        Raises:
            DraftValidationError: If the name is blank
        """
        if not self.record.name.strip():
            raise DraftValidationError("A name is required")

        self.record.name = self.record.name.strip()
        self.record.brand = self.record.brand.strip()
        self.record.reviews = sorted(
            (r for r in self.record.reviews if not r.is_blank),
            key=lambda r: r.date,
            reverse=True,
        )
        store.insert(self.record)
        store.persist()
        return self.record.model_copy(deep=True)
