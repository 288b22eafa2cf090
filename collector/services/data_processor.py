"""
Data Processor - maps normalized records onto storage entities.

Pure: no database or network access. The worker persists what comes out.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from typing import Dict, List, Optional

from collector.services.response_normalizer import is_absolute_url
from collector.services.results import ErrorKind, ProcessResult
from collector.services.scraperapi_types import (
    ProductData,
    ReviewsResponse,
    SellerInfo,
)

logger = logging.getLogger(__name__)

ASIN_PATTERN = re.compile(r"^B[A-Z0-9]{9}$")

# "Reviewed in the United States on October 22, 2023"
REVIEWED_ON_PATTERN = re.compile(r"on\s+(\w+\s+\d+,\s+\d+)")

DATE_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%d %B %Y", "%Y/%m/%d")


@dataclass
class ProcessedProduct:
    asin: str
    title: str
    description: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    images: List[str] = field(default_factory=list)
    rating: Optional[float] = None
    review_count: int = 0
    availability: Optional[str] = None
    currency: str = "USD"
    specifications: Dict[str, str] = field(default_factory=dict)
    features: List[str] = field(default_factory=list)
    id: Optional[str] = None


@dataclass
class ProcessedPrice:
    product_id: str
    price: float
    original_price: Optional[float] = None
    currency: str = "USD"
    availability: Optional[str] = None
    seller_name: Optional[str] = None
    seller_rating: Optional[float] = None
    prime_eligible: bool = False


@dataclass
class ProcessedReview:
    product_id: str
    rating: int
    text: str
    author: str = "Anonymous"
    title: Optional[str] = None
    date: Optional[datetime] = None
    verified: bool = False
    helpful_count: int = 0


@dataclass
class ProcessedSeller:
    name: str
    rating: Optional[float] = None
    feedback_count: int = 0


def normalize_asin(value) -> Optional[str]:
    """Trim and uppercase an ASIN; None if it does not match the format."""
    if not value or not isinstance(value, str):
        return None
    cleaned = value.strip().upper()
    if not ASIN_PATTERN.match(cleaned):
        return None
    return cleaned


def is_valid_asin(value) -> bool:
    """
    Check ASIN format without raising.

    >>> is_valid_asin(" b08n5wrwnw ")
    True
    """
    return normalize_asin(value) is not None


def normalize_text(text: str) -> str:
    """Trim and collapse runs of whitespace to a single space."""
    return re.sub(r"\s+", " ", text.strip())


def parse_review_date(value) -> Optional[datetime]:
    """
    Parse a review date.

    Handles "Reviewed in <place> on <Month> <Day>, <Year>", ISO dates and
    a few plain English formats. Unparseable input yields None.
    """
    if not value or not isinstance(value, str):
        return None

    candidates = []
    if "Reviewed" in value or "on " in value:
        match = REVIEWED_ON_PATTERN.search(value)
        if match:
            candidates.append(match.group(1))
    candidates.append(value.strip())

    for candidate in candidates:
        parsed = _parse_date_string(candidate)
        if parsed is not None:
            return parsed
    return None


def _parse_date_string(value: str) -> Optional[datetime]:
    iso_value = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(iso_value)
    except ValueError:
        parsed = None

    if parsed is None:
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_timezone.utc)
    return parsed


class DataProcessor:
    """
    Maps normalized ScraperAPI records onto storage entities.

    All methods are pure and safe to call from any thread.
    """

    def process_product(self, data: ProductData, product_id: Optional[str] = None) -> ProcessResult:
        """
        Build the product entity.

        Args:
            data: Normalized product
            product_id: Id of the stored product when this is an update

        Returns:
            ProcessResult with a ProcessedProduct, or failure kind
            ``invalid_asin`` when the identifier does not match the format
        """
        asin = normalize_asin(data.asin)
        if asin is None:
            return ProcessResult.failure(
                ErrorKind.INVALID_ASIN, f"Invalid ASIN format: {data.asin}"
            )

        product = ProcessedProduct(
            id=product_id,
            asin=asin,
            title=normalize_text(data.title),
            description=normalize_text(data.description) if data.description else None,
            brand=normalize_text(data.brand) if data.brand else None,
            category=normalize_text(data.category) if data.category else None,
            images=[image for image in data.images if is_absolute_url(image)],
            rating=data.rating.value if data.rating else None,
            review_count=data.rating.count if data.rating else 0,
            availability=normalize_text(data.availability) if data.availability else None,
            currency=(data.price.currency if data.price else None) or "USD",
            specifications=dict(data.specifications or {}),
            features=list(data.features or []),
        )
        return ProcessResult.ok(product)

    def process_price(self, data: ProductData, product_id: str) -> Optional[ProcessedPrice]:
        """Build a price snapshot; None when the product carried no price."""
        if data.price is None:
            return None

        return ProcessedPrice(
            product_id=product_id,
            price=data.price.current,
            original_price=data.price.original,
            currency=data.price.currency or "USD",
            availability=normalize_text(data.availability) if data.availability else None,
            seller_name=data.seller.name if data.seller else None,
            seller_rating=data.seller.rating if data.seller else None,
            # Not derivable from the structured API
            prime_eligible=False,
        )

    def process_reviews(self, reviews: ReviewsResponse, product_id: str) -> List[ProcessedReview]:
        """
        Build review entities.

        Reviews with empty text or a rating outside [1, 5] are dropped, as
        is any single review that fails to convert.
        """
        processed = []
        for review in reviews.reviews:
            if not review.text or not review.text.strip():
                continue
            if not review.rating or review.rating < 1 or review.rating > 5:
                continue

            try:
                processed.append(ProcessedReview(
                    product_id=product_id,
                    rating=int(round(review.rating)),
                    title=normalize_text(review.title) if review.title else None,
                    text=normalize_text(review.text),
                    author=normalize_text(review.author or "Anonymous") or "Anonymous",
                    date=parse_review_date(review.date) if review.date else None,
                    verified=bool(review.verified),
                    helpful_count=int(review.helpful_count or 0),
                ))
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Error processing review for {product_id}: {e}")

        dropped = len(reviews.reviews) - len(processed)
        if dropped:
            logger.debug(f"Dropped {dropped} invalid reviews for {product_id}")
        return processed

    def process_seller(self, seller: SellerInfo) -> ProcessedSeller:
        return ProcessedSeller(
            name=normalize_text(seller.name),
            rating=seller.rating,
            # Not exposed by the structured API
            feedback_count=0,
        )

    def is_valid_asin(self, value) -> bool:
        return is_valid_asin(value)


_data_processor: Optional[DataProcessor] = None


def get_data_processor() -> DataProcessor:
    """Get the global DataProcessor instance."""
    global _data_processor
    if _data_processor is None:
        _data_processor = DataProcessor()
    return _data_processor
