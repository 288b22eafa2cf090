"""
Canonical data types for ScraperAPI structured Amazon payloads.

The scraping API returns the same information under several field names
and shapes. The response normalizer maps every variant onto these
dataclasses so downstream code only ever sees one shape.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class PriceInfo:
    """Current price of a product as shown on the product page."""

    current: float
    original: Optional[float] = None
    currency: str = "USD"


@dataclass
class RatingInfo:
    """Aggregate star rating."""

    value: float
    count: int = 0


@dataclass
class SellerInfo:
    """Seller offering the product."""

    name: str
    rating: Optional[float] = None


@dataclass
class ReviewData:
    """A single customer review."""

    rating: float
    text: str = ""
    author: str = "Anonymous"
    title: Optional[str] = None
    date: Optional[str] = None
    verified: bool = False
    helpful_count: int = 0


@dataclass
class ReviewsResponse:
    """Reviews for one product plus the aggregate stats of page 1."""

    reviews: List[ReviewData] = field(default_factory=list)
    average_rating: float = 0.0
    total_reviews: int = 0


@dataclass
class ProductData:
    """
    Canonical product record.

    ``embedded_reviews`` holds raw review dicts that arrived on the product
    payload itself; they are canonicalized by the worker before use.
    """

    asin: str
    title: str
    description: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    images: List[str] = field(default_factory=list)
    price: Optional[PriceInfo] = None
    rating: Optional[RatingInfo] = None
    availability: Optional[str] = None
    seller: Optional[SellerInfo] = None
    specifications: Dict[str, str] = field(default_factory=dict)
    features: List[str] = field(default_factory=list)

    embedded_reviews: List[Dict[str, Any]] = field(default_factory=list)
    embedded_average_rating: Optional[float] = None
    embedded_total_reviews: Optional[int] = None

    @property
    def has_embedded_reviews(self) -> bool:
        return bool(self.embedded_reviews)


@dataclass
class SearchResponse:
    """Normalized keyword search result page."""

    products: List[ProductData] = field(default_factory=list)
    total_results: int = 0
    query: str = ""
    skipped_count: int = 0
