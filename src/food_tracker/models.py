"""Core data models for Food Tracker."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class MergePolicy(str, Enum):
    """How an import treats a record whose id already exists."""

    KEEP_EXISTING = "keep-existing"
    OVERWRITE = "overwrite"


class Price(BaseModel):
    """A single price observation.

    No relationship between regular and special price is enforced here;
    callers validate the pair before constructing.
    """

    id: UUID = Field(default_factory=uuid4)
    regular_price: Decimal
    special_price: Decimal | None = None
    date: datetime = Field(default_factory=utc_now)

    @field_validator("date")
    @classmethod
    def normalize_date(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def effective_price(self) -> Decimal:
        """Price actually paid: the special price when there is one."""
        if self.special_price is not None:
            return self.special_price
        return self.regular_price


class Photo(BaseModel):
    """Reference to a JPEG in the photo library."""

    id: UUID = Field(default_factory=uuid4)
    date: datetime = Field(default_factory=utc_now)
    filename: str

    @field_validator("date")
    @classmethod
    def normalize_date(cls, value: datetime) -> datetime:
        return _as_utc(value)


class Review(BaseModel):
    """A free-text review."""

    id: UUID = Field(default_factory=uuid4)
    text: str
    date: datetime = Field(default_factory=utc_now)

    @field_validator("date")
    @classmethod
    def normalize_date(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()


class Foodstuffs(BaseModel):
    """A catalogued grocery item with its price, photo and review history."""

    id: UUID = Field(default_factory=uuid4)
    name: str = ""
    brand: str = ""
    weight: float = 0.0
    barcode: str = ""
    date: datetime = Field(default_factory=utc_now)
    prices: list[Price] = Field(default_factory=list)
    photos: list[Photo] = Field(default_factory=list)
    reviews: list[Review] = Field(default_factory=list)
    enjoy: bool = False
    health: bool = False

    @field_validator("date")
    @classmethod
    def normalize_date(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def current_price(self) -> Price | None:
        """Get the most recent price."""
        if not self.prices:
            return None
        return sorted(self.prices, key=lambda p: p.date, reverse=True)[0]

    def add_price(
        self,
        regular: Decimal,
        special: Decimal | None = None,
        on: datetime | None = None,
    ) -> Price:
        """Append a price and keep the history newest first.

        Entries sharing a date keep their insertion order.
        """
        price = Price(
            regular_price=regular,
            special_price=special,
            date=on if on is not None else utc_now(),
        )
        self.prices.append(price)
        self.prices.sort(key=lambda p: p.date, reverse=True)
        return price

    @property
    def sorted_reviews(self) -> list[Review]:
        """Reviews, newest first."""
        return sorted(self.reviews, key=lambda r: r.date, reverse=True)

    def add_review(self, text: str, on: datetime | None = None) -> Review:
        review = Review(text=text, date=on if on is not None else utc_now())
        self.reviews.append(review)
        return review

    @property
    def latest_price_date(self) -> datetime | None:
        if not self.prices:
            return None
        return max(p.date for p in self.prices)

    @property
    def latest_photo_date(self) -> datetime | None:
        if not self.photos:
            return None
        return max(p.date for p in self.photos)

    @property
    def latest_review_date(self) -> datetime | None:
        if not self.reviews:
            return None
        return max(r.date for r in self.reviews)

    @property
    def photo_filenames(self) -> list[str]:
        return [photo.filename for photo in self.photos]


# --- Archive transfer shapes ---
#
# These mirror the entities field for field but own the manifest key names,
# so the in-memory models can change without breaking existing archives.


class _TransferModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PriceTransfer(_TransferModel):
    id: UUID
    regular_price: Decimal = Field(alias="regularPrice")
    special_price: Decimal | None = Field(default=None, alias="specialPrice")
    date: datetime


class PhotoTransfer(_TransferModel):
    id: UUID
    date: datetime
    filename: str


class ReviewTransfer(_TransferModel):
    id: UUID
    text: str
    date: datetime


class FoodstuffsTransfer(_TransferModel):
    """Flat, format-stable projection of a Foodstuffs record."""

    id: UUID
    name: str
    brand: str
    weight: float
    barcode: str
    date: datetime
    prices: list[PriceTransfer]
    photos: list[PhotoTransfer]
    reviews: list[ReviewTransfer]
    enjoy: bool
    health: bool

    @classmethod
    def from_record(cls, record: Foodstuffs) -> "FoodstuffsTransfer":
        return cls(
            id=record.id,
            name=record.name,
            brand=record.brand,
            weight=record.weight,
            barcode=record.barcode,
            date=record.date,
            prices=[
                PriceTransfer(
                    id=p.id,
                    regular_price=p.regular_price,
                    special_price=p.special_price,
                    date=p.date,
                )
                for p in record.prices
            ],
            photos=[
                PhotoTransfer(id=p.id, date=p.date, filename=p.filename)
                for p in record.photos
            ],
            reviews=[
                ReviewTransfer(id=r.id, text=r.text, date=r.date) for r in record.reviews
            ],
            enjoy=record.enjoy,
            health=record.health,
        )

    def to_record(self) -> Foodstuffs:
        return Foodstuffs(
            id=self.id,
            name=self.name,
            brand=self.brand,
            weight=self.weight,
            barcode=self.barcode,
            date=self.date,
            prices=[
                Price(
                    id=p.id,
                    regular_price=p.regular_price,
                    special_price=p.special_price,
                    date=p.date,
                )
                for p in self.prices
            ],
            photos=[Photo(id=p.id, date=p.date, filename=p.filename) for p in self.photos],
            reviews=[Review(id=r.id, text=r.text, date=r.date) for r in self.reviews],
            enjoy=self.enjoy,
            health=self.health,
        )


# --- Backup results ---


class ExportResult(BaseModel):
    """Outcome of an export."""

    archive_path: Path
    records: int
    photos_copied: int = 0
    photos_missing: list[str] = Field(default_factory=list)


class ImportResult(BaseModel):
    """Outcome of an import, including anything skipped along the way."""

    inserted: list[UUID] = Field(default_factory=list)
    updated: list[UUID] = Field(default_factory=list)
    unchanged: list[UUID] = Field(default_factory=list)
    photos_copied: int = 0
    photos_present: int = 0
    photos_missing: list[str] = Field(default_factory=list)
    failures: list[str] = Field(default_factory=list)

    @property
    def records_seen(self) -> int:
        return len(self.inserted) + len(self.updated) + len(self.unchanged)

    @property
    def partial(self) -> bool:
        """True when something was skipped."""
        return bool(self.failures or self.photos_missing)
