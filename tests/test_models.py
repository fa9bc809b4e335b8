"""Tests for data models."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from food_tracker.models import (
    Foodstuffs,
    FoodstuffsTransfer,
    ImportResult,
    Photo,
    Price,
    Review,
)

EARLIER = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)
LATER = datetime(2026, 1, 20, 12, 0, tzinfo=timezone.utc)


class TestFoodstuffs:
    """Tests for the Foodstuffs model."""

    def test_defaults(self):
        """New record has an id, a date and empty collections."""
        record = Foodstuffs(name="Bread")
        assert isinstance(record.id, UUID)
        assert record.date.tzinfo is not None
        assert record.prices == []
        assert record.photos == []
        assert record.reviews == []
        assert record.enjoy is False
        assert record.health is False

    def test_naive_dates_become_utc(self):
        """Naive datetimes are read as UTC."""
        record = Foodstuffs(name="Bread", date=datetime(2026, 1, 1, 10, 0))
        assert record.date == datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)

    def test_current_price_empty(self):
        """No prices means no current price."""
        assert Foodstuffs(name="Bread").current_price is None

    def test_add_price_newest_first(self):
        """Adding prices keeps history newest first."""
        record = Foodstuffs(name="Cheese")
        record.add_price(Decimal("10.00"), Decimal("8.00"), on=EARLIER)
        record.add_price(Decimal("9.00"), None, on=LATER)

        current = record.current_price
        assert current.regular_price == Decimal("9.00")
        assert current.special_price is None
        assert [p.date for p in record.prices] == [LATER, EARLIER]
        assert record.prices[0] == current

    def test_add_older_price_goes_last(self):
        """A backdated price does not become current."""
        record = Foodstuffs(name="Cheese")
        record.add_price(Decimal("9.00"), on=LATER)
        record.add_price(Decimal("10.00"), on=EARLIER)
        assert record.current_price.regular_price == Decimal("9.00")

    def test_same_day_prices_keep_insertion_order(self):
        """Entries with equal dates stay in insertion order."""
        record = Foodstuffs(name="Cheese")
        first = record.add_price(Decimal("3.00"), on=EARLIER)
        second = record.add_price(Decimal("2.50"), on=EARLIER)
        assert [p.id for p in record.prices] == [first.id, second.id]
        assert len(record.prices) == 2

    def test_special_equal_to_regular_is_accepted(self):
        """The entity does not validate the price pair."""
        price = Price(regular_price=Decimal("10.00"), special_price=Decimal("10.00"))
        assert price.special_price == price.regular_price

        record = Foodstuffs(name="Cheese")
        record.add_price(Decimal("10.00"), Decimal("12.00"))
        assert record.current_price.special_price == Decimal("12.00")

    def test_effective_price(self):
        assert Price(regular_price=Decimal("4"), special_price=Decimal("3")).effective_price == Decimal("3")
        assert Price(regular_price=Decimal("4")).effective_price == Decimal("4")

    def test_sorted_reviews(self):
        """Reviews come back newest first."""
        record = Foodstuffs(name="Jam")
        record.add_review("old", on=EARLIER)
        record.add_review("new", on=LATER)
        assert [r.text for r in record.sorted_reviews] == ["new", "old"]

    def test_latest_dates(self):
        record = Foodstuffs(name="Jam")
        assert record.latest_price_date is None
        assert record.latest_photo_date is None
        assert record.latest_review_date is None

        record.add_price(Decimal("1"), on=EARLIER)
        record.photos.append(Photo(filename="a.jpg", date=LATER))
        record.add_review("ok", on=EARLIER)
        assert record.latest_price_date == EARLIER
        assert record.latest_photo_date == LATER
        assert record.latest_review_date == EARLIER

    def test_review_blank(self):
        assert Review(text="  \n").is_blank
        assert not Review(text="tasty").is_blank


class TestFoodstuffsTransfer:
    """Tests for the archive transfer shape."""

    def test_round_trip_preserves_fields(self, sample_record):
        """Projecting to the transfer shape and back keeps every field."""
        restored = FoodstuffsTransfer.from_record(sample_record).to_record()
        assert restored == sample_record

    def test_manifest_keys(self, sample_record):
        """Price keys use the archive names."""
        dumped = FoodstuffsTransfer.from_record(sample_record).model_dump(
            mode="json", by_alias=True
        )
        price = dumped["prices"][0]
        assert "regularPrice" in price
        assert "specialPrice" in price
        assert price["regularPrice"] == "2.10"
        assert set(dumped) == {
            "id",
            "name",
            "brand",
            "weight",
            "barcode",
            "date",
            "prices",
            "photos",
            "reviews",
            "enjoy",
            "health",
        }

    def test_accepts_numeric_prices_and_missing_special(self):
        """Numbers and omitted special prices decode."""
        transfer = FoodstuffsTransfer.model_validate(
            {
                "id": "5c3b1d2e-0000-4000-8000-000000000001",
                "name": "Tea",
                "brand": "Yorkshire",
                "weight": 250,
                "barcode": "5010357",
                "date": "2026-01-16T09:00:00Z",
                "prices": [
                    {
                        "id": "5c3b1d2e-0000-4000-8000-000000000002",
                        "regularPrice": 3.5,
                        "date": "2026-01-16T09:00:00Z",
                    }
                ],
                "photos": [],
                "reviews": [],
                "enjoy": True,
                "health": False,
            }
        )
        record = transfer.to_record()
        assert record.prices[0].regular_price == Decimal("3.5")
        assert record.prices[0].special_price is None
        assert record.date.tzinfo is not None


class TestImportResult:
    def test_partial(self):
        assert not ImportResult().partial
        assert ImportResult(photos_missing=["a.jpg"]).partial
        assert ImportResult(failures=["bad"]).partial

    def test_records_seen(self):
        result = ImportResult(inserted=[uuid4()], unchanged=[uuid4(), uuid4()])
        assert result.records_seen == 3

