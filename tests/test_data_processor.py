"""
Tests for the DataProcessor.

Covers ASIN validation, text and image cleanup, price snapshots, review
filtering and review date parsing.
"""

from datetime import datetime, timezone as dt_timezone

import pytest

from collector.services.data_processor import (
    DataProcessor,
    is_valid_asin,
    normalize_asin,
    parse_review_date,
)
from collector.services.results import ErrorKind
from collector.services.scraperapi_types import (
    PriceInfo,
    ProductData,
    RatingInfo,
    ReviewData,
    ReviewsResponse,
    SellerInfo,
)


@pytest.fixture
def processor():
    return DataProcessor()


class TestAsinValidation:

    @pytest.mark.parametrize("value,expected", [
        ("B08N5WRWNW", True),
        (" b08n5wrwnw ", True),
        ("X08N5WRWNW", False),
        ("B08N5WRWN", False),
        ("B08N5WRWNW1", False),
        ("", False),
        (None, False),
    ])
    def test_is_valid_asin(self, value, expected):
        assert is_valid_asin(value) is expected

    def test_normalize_asin(self):
        assert normalize_asin(" b08n5wrwnw ") == "B08N5WRWNW"
        assert normalize_asin("not-an-asin") is None


class TestProcessProduct:

    def test_cleans_fields(self, processor):
        data = ProductData(
            asin=" b08n5wrwnw ",
            title="  Echo   Dot \n (4th Gen) ",
            brand=" Amazon ",
            images=["https://a.example/1.jpg", "ftp://a.example/2.jpg"],
            rating=RatingInfo(value=4.7, count=100),
            price=PriceInfo(current=49.99, currency="EUR"),
        )

        result = processor.process_product(data, product_id="abc")

        assert result.success
        entity = result.entity
        assert entity.id == "abc"
        assert entity.asin == "B08N5WRWNW"
        assert entity.title == "Echo Dot (4th Gen)"
        assert entity.brand == "Amazon"
        assert entity.images == ["https://a.example/1.jpg"]
        assert entity.rating == 4.7
        assert entity.review_count == 100
        assert entity.currency == "EUR"

    def test_defaults_currency_to_usd(self, processor):
        result = processor.process_product(ProductData(asin="B08N5WRWNW", title="Echo"))

        assert result.entity.currency == "USD"
        assert result.entity.rating is None
        assert result.entity.review_count == 0

    def test_invalid_asin(self, processor):
        result = processor.process_product(ProductData(asin="12345", title="Bad"))

        assert not result.success
        assert result.error_kind == ErrorKind.INVALID_ASIN
        assert "12345" in result.error


class TestProcessPrice:

    def test_no_price_returns_none(self, processor):
        assert processor.process_price(ProductData(asin="B08N5WRWNW", title="Echo"), "p1") is None

    def test_snapshot_fields(self, processor):
        data = ProductData(
            asin="B08N5WRWNW",
            title="Echo",
            price=PriceInfo(current=171.95, original=199.99),
            availability=" In  Stock ",
            seller=SellerInfo(name="Amazon.com", rating=4.9),
        )

        price = processor.process_price(data, "p1")

        assert price.product_id == "p1"
        assert price.price == 171.95
        assert price.original_price == 199.99
        assert price.currency == "USD"
        assert price.availability == "In Stock"
        assert price.seller_name == "Amazon.com"
        assert price.seller_rating == 4.9
        assert price.prime_eligible is False


class TestProcessReviews:

    def test_filters_invalid_reviews(self, processor):
        reviews = ReviewsResponse(reviews=[
            ReviewData(rating=5, text="Excellent"),
            ReviewData(rating=4.4, text="  Good   enough  ", author="  jane "),
            ReviewData(rating=3, text="   "),
            ReviewData(rating=0, text="No rating"),
            ReviewData(rating=6, text="Too many stars"),
        ])

        processed = processor.process_reviews(reviews, "p1")

        assert len(processed) == 2
        assert processed[0].rating == 5
        assert processed[1].rating == 4
        assert processed[1].text == "Good enough"
        assert processed[1].author == "jane"

    def test_unparseable_date_keeps_review(self, processor):
        reviews = ReviewsResponse(reviews=[
            ReviewData(rating=5, text="Fine", date="sometime last year"),
        ])

        processed = processor.process_reviews(reviews, "p1")

        assert len(processed) == 1
        assert processed[0].date is None

    def test_bad_helpful_count_drops_only_that_review(self, processor):
        reviews = ReviewsResponse(reviews=[
            ReviewData(rating=5, text="Fine", helpful_count="many"),
            ReviewData(rating=4, text="Also fine", helpful_count=3),
        ])

        processed = processor.process_reviews(reviews, "p1")

        assert [r.text for r in processed] == ["Also fine"]
        assert processed[0].helpful_count == 3


class TestReviewDates:

    def test_reviewed_in_phrase(self):
        parsed = parse_review_date("Reviewed in the United States on October 22, 2023")

        assert parsed == datetime(2023, 10, 22, tzinfo=dt_timezone.utc)

    def test_iso_with_z(self):
        parsed = parse_review_date("2024-01-05T10:30:00Z")

        assert parsed == datetime(2024, 1, 5, 10, 30, tzinfo=dt_timezone.utc)

    def test_plain_date(self):
        assert parse_review_date("2024-01-05") == datetime(2024, 1, 5, tzinfo=dt_timezone.utc)

    def test_unparseable(self):
        assert parse_review_date("yesterday") is None
        assert parse_review_date("") is None
        assert parse_review_date(None) is None


class TestProcessSeller:

    def test_seller(self, processor):
        seller = processor.process_seller(SellerInfo(name="  Big   Shop ", rating=4.2))

        assert seller.name == "Big Shop"
        assert seller.rating == 4.2
        assert seller.feedback_count == 0
