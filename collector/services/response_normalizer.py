"""
Response Normalizer - maps ScraperAPI payloads onto canonical records.

The structured Amazon endpoints return the same information under several
field names and shapes depending on page layout and API version. Each
canonical field is resolved from an ordered list of fallbacks here; no
other module looks at raw payloads.

All functions are pure. Anomalies are logged, never raised.

Usage:
    from collector.services.response_normalizer import normalize_product

    product = normalize_product(payload, requested_asin="B08N5WRWNW")
    if product is None:
        ...  # payload had no usable identifier
"""

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from collector.services.scraperapi_types import (
    PriceInfo,
    ProductData,
    RatingInfo,
    ReviewData,
    ReviewsResponse,
    SearchResponse,
    SellerInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Product"
DEFAULT_CURRENCY = "USD"
DEFAULT_AUTHOR = "Anonymous"

# Currency symbols, thousands separators and whitespace
PRICE_STRIP_PATTERN = re.compile(r"[$€£¥₹\s,]")

# Leading "4.0 out of 5 stars" that the review page renders into the title
STAR_TITLE_PATTERN = re.compile(
    r"^\d+\.?\d*\s+out\s+of\s+\d+\s+stars\s*\n*\s*", re.IGNORECASE
)

# Canonical review field name -> upstream names, in order of preference
REVIEW_FIELD_ALIASES = {
    "rating": ("stars",),
    "text": ("review",),
    "author": ("username",),
    "verified": ("verified_purchase",),
    "helpfulCount": ("total_found_helpful", "helpful_count"),
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def is_absolute_url(value: Any) -> bool:
    """Check if a value is an absolute http(s) URL."""
    if not isinstance(value, str):
        return False
    try:
        result = urlparse(value)
        return all([result.scheme in ("http", "https"), result.netloc])
    except ValueError:
        return False


def parse_price_string(value: Any) -> Optional[float]:
    """
    Parse a price given as a number or a currency formatted string.

    Args:
        value: 171.95, "$171.95", "1,299.00 €", ...

    Returns:
        The numeric price, or None if it cannot be parsed
    """
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        cleaned = PRICE_STRIP_PATTERN.sub("", value)
        match = re.match(r"^[+-]?(\d+\.?\d*|\.\d+)", cleaned)
        if match:
            return float(match.group(0))
    return None


def _parse_number(value: Any) -> Optional[float]:
    """Parse a number or numeric string (leading numeric prefix)."""
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        match = re.match(r"^\s*[+-]?(\d+\.?\d*|\.\d+)", value)
        if match:
            return float(match.group(0))
    return None


def _parse_count(value: Any) -> Optional[int]:
    """Parse an integer count such as 1234 or "1,234"."""
    if _is_number(value):
        return int(value)
    if isinstance(value, str):
        parsed = _parse_number(value.replace(",", ""))
        if parsed is not None:
            return int(parsed)
    return None


def extract_asin(raw: Dict[str, Any], requested_asin: Optional[str] = None) -> Optional[str]:
    """
    Resolve the product identifier from a payload.

    Order: root ``asin``, ``product_information.asin`` (or ``ASIN``), then
    the identifier the caller asked for.
    """
    asin = _non_empty_str(raw.get("asin"))
    if asin:
        return asin.strip()

    info = raw.get("product_information")
    if isinstance(info, dict):
        nested = _non_empty_str(info.get("asin")) or _non_empty_str(info.get("ASIN"))
        if nested:
            logger.debug("Using ASIN from nested product_information")
            return nested.strip()

    if _non_empty_str(requested_asin):
        logger.debug(f"ASIN not in response, using requested ASIN {requested_asin}")
        return requested_asin.strip()

    return None


def normalize_price(raw: Dict[str, Any]) -> Optional[PriceInfo]:
    """
    Resolve the current/original price and currency.

    Current price priority: ``pricing``, ``price`` (number, string or
    {current, original, currency}), ``currentPrice``. Original price comes
    from the structured price, else ``list_price``, else ``originalPrice``.
    """
    current = None
    original = None
    currency = None

    price = raw.get("price")
    if raw.get("pricing") is not None:
        current = parse_price_string(raw.get("pricing"))
    elif _is_number(price) or isinstance(price, str):
        current = parse_price_string(price)
    elif isinstance(price, dict):
        current = parse_price_string(price.get("current"))
        original = parse_price_string(price.get("original"))
        currency = _non_empty_str(price.get("currency"))
    elif raw.get("currentPrice") is not None:
        current = parse_price_string(raw.get("currentPrice"))

    if original is None:
        if raw.get("list_price") is not None:
            original = parse_price_string(raw.get("list_price"))
        elif raw.get("originalPrice") is not None:
            original = parse_price_string(raw.get("originalPrice"))

    if current is None:
        return None

    return PriceInfo(
        current=current,
        original=original,
        currency=currency or _non_empty_str(raw.get("currency")) or DEFAULT_CURRENCY,
    )


def normalize_rating(raw: Dict[str, Any]) -> Optional[RatingInfo]:
    """
    Resolve the aggregate rating.

    Accepts a bare ``rating`` number paired with ``reviewCount``, a
    ``{value, count}`` object, or ``averageRating`` / ``average_rating``.
    """
    count = _parse_count(raw.get("reviewCount"))
    if count is None:
        count = _parse_count(raw.get("total_reviews"))

    rating = raw.get("rating")
    if _is_number(rating):
        return RatingInfo(value=float(rating), count=count or 0)

    if isinstance(rating, dict):
        value = _parse_number(rating.get("value"))
        if value is not None:
            return RatingInfo(value=value, count=_parse_count(rating.get("count")) or 0)

    for key in ("averageRating", "average_rating"):
        value = _parse_number(raw.get(key))
        if value is not None:
            return RatingInfo(value=value, count=count or 0)

    return None


def normalize_seller(raw: Dict[str, Any]) -> Optional[SellerInfo]:
    """Resolve the seller from a string, a {name, rating} object or ``sellerName``."""
    seller = raw.get("seller")
    if _non_empty_str(seller):
        return SellerInfo(name=seller.strip())
    if isinstance(seller, dict) and _non_empty_str(seller.get("name")):
        return SellerInfo(
            name=seller["name"].strip(),
            rating=_parse_number(seller.get("rating")),
        )
    if _non_empty_str(raw.get("sellerName")):
        return SellerInfo(name=raw["sellerName"].strip())
    return None


def normalize_images(raw: Dict[str, Any]) -> List[str]:
    """Resolve image URLs from ``images``, ``imageUrls`` or ``image``."""
    images = raw.get("images")
    if not isinstance(images, list):
        images = raw.get("imageUrls")
    if not isinstance(images, list):
        images = [raw["image"]] if raw.get("image") else []

    valid = [image for image in images if is_absolute_url(image)]
    if len(valid) < len(images):
        logger.debug(f"Dropped {len(images) - len(valid)} invalid image URLs")
    return valid


def normalize_specifications(raw: Dict[str, Any]) -> Dict[str, str]:
    """
    Resolve specifications from ``specifications`` or ``product_information``.

    Only scalar values are kept, stringified.
    """
    source = raw.get("specifications")
    if not isinstance(source, dict):
        source = raw.get("product_information")
    if not isinstance(source, dict):
        return {}

    specs = {}
    for key, value in source.items():
        if str(key).lower() == "asin" or value is None or isinstance(value, (dict, list)):
            continue
        specs[str(key)] = str(value).strip()
    return specs


def normalize_features(raw: Dict[str, Any]) -> List[str]:
    features = raw.get("features")
    if not isinstance(features, list):
        features = raw.get("feature_bullets")
    if not isinstance(features, list):
        return []
    return [feature for feature in features if isinstance(feature, str)]


def normalize_product(
    raw: Any, requested_asin: Optional[str] = None
) -> Optional[ProductData]:
    """
    Normalize a product payload.

    Args:
        raw: Decoded JSON from the product endpoint or one search item
        requested_asin: Identifier the caller asked for, used when the
            payload carries none

    Returns:
        ProductData, or None if no non-empty identifier can be resolved
    """
    if not isinstance(raw, dict):
        logger.warning(f"Product payload is not an object: {type(raw).__name__}")
        return None

    asin = extract_asin(raw, requested_asin)
    if not asin:
        logger.warning("Product payload has no ASIN, skipping")
        return None

    title = (
        _non_empty_str(raw.get("title"))
        or _non_empty_str(raw.get("name"))
        or _non_empty_str(raw.get("productName"))
        or DEFAULT_TITLE
    )

    product = ProductData(
        asin=asin,
        title=title,
        description=_non_empty_str(raw.get("description")),
        brand=_non_empty_str(raw.get("brand")),
        category=_non_empty_str(raw.get("category")),
        images=normalize_images(raw),
        price=normalize_price(raw),
        rating=normalize_rating(raw),
        availability=(
            _non_empty_str(raw.get("availability"))
            or _non_empty_str(raw.get("availability_status"))
        ),
        seller=normalize_seller(raw),
        specifications=normalize_specifications(raw),
        features=normalize_features(raw),
    )

    reviews = raw.get("reviews")
    if isinstance(reviews, list) and reviews:
        product.embedded_reviews = [review for review in reviews if isinstance(review, dict)]
        average = _parse_number(raw.get("average_rating"))
        if average is None:
            average = _parse_number(raw.get("averageRating"))
        total = _parse_count(raw.get("total_reviews"))
        if total is None:
            total = _parse_count(raw.get("totalReviews"))
        product.embedded_average_rating = average or 0.0
        product.embedded_total_reviews = total or len(reviews)

    return product


def normalize_search_response(raw: Any, query: str = "") -> SearchResponse:
    """
    Normalize a search payload.

    Tolerates a bare list, ``{products}``, ``{results}``, and empty or
    malformed payloads. Items are validated one by one; invalid items are
    dropped and counted in ``skipped_count``.

    Args:
        raw: Decoded JSON from the search endpoint
        query: The keyword that was searched

    Returns:
        SearchResponse (never raises)
    """
    if isinstance(raw, list):
        items = raw
        total = len(raw)
        resolved_query = query
    elif not isinstance(raw, dict):
        logger.warning(f"Search response is not an object: {type(raw).__name__}")
        return SearchResponse(products=[], total_results=0, query=query)
    elif raw.get("results") and not raw.get("products"):
        items = raw["results"] if isinstance(raw["results"], list) else []
        total = _parse_count(raw.get("totalResults"))
        if total is None:
            total = _parse_count(raw.get("total"))
        resolved_query = _non_empty_str(raw.get("query")) or query
    elif not raw.get("products") and not raw.get("results"):
        logger.warning("Search response missing products/results")
        return SearchResponse(products=[], total_results=0, query=query)
    else:
        items = raw["products"] if isinstance(raw["products"], list) else []
        total = _parse_count(raw.get("totalResults"))
        resolved_query = _non_empty_str(raw.get("query")) or query

    products = []
    skipped = 0
    for item in items:
        product = normalize_product(item) if isinstance(item, dict) else None
        if product is None:
            skipped += 1
            continue
        products.append(product)

    if skipped:
        logger.info(f"Filtered out {skipped} invalid search results for '{resolved_query}'")

    return SearchResponse(
        products=products,
        total_results=total if total is not None else len(products),
        query=resolved_query or "",
        skipped_count=skipped,
    )


def canonicalize_review(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map upstream review field names onto canonical ones.

    A non-empty upstream value wins over the canonical one; an empty one
    only fills a canonical field that is absent. A leading
    "N out of 5 stars" artifact is stripped from the title; a title left
    empty becomes absent.
    """
    review = dict(raw)
    for canonical, aliases in REVIEW_FIELD_ALIASES.items():
        values = [review[alias] for alias in aliases if alias in review]
        if not values:
            continue
        filled = [value for value in values if value]
        if filled:
            review[canonical] = filled[0]
        elif review.get(canonical) is None:
            review[canonical] = values[0]

    title = review.get("title")
    if isinstance(title, str):
        title = STAR_TITLE_PATTERN.sub("", title).strip()
        review["title"] = title or None

    return review


def normalize_review(raw: Dict[str, Any]) -> ReviewData:
    """
    Normalize one review.

    Numbers pass through unchanged; numeric strings are clamped into [1, 5];
    anything unparseable becomes 0 so the data processor rejects it.
    """
    review = canonicalize_review(raw)

    rating_raw = review.get("rating")
    if _is_number(rating_raw):
        rating = float(rating_raw)
    else:
        parsed = _parse_number(rating_raw)
        rating = max(1.0, min(5.0, parsed)) if parsed is not None else 0.0

    helpful = _parse_count(review.get("helpfulCount"))
    verified = review.get("verified")

    return ReviewData(
        rating=rating,
        title=_non_empty_str(review.get("title")),
        text=review.get("text") if isinstance(review.get("text"), str) else "",
        author=_non_empty_str(review.get("author")) or DEFAULT_AUTHOR,
        date=_non_empty_str(review.get("date")),
        verified=verified if isinstance(verified, bool) else False,
        helpful_count=helpful or 0,
    )


def normalize_reviews_response(raw: Any) -> ReviewsResponse:
    """
    Normalize a reviews payload.

    ``averageRating`` / ``totalReviews`` (or their snake_case forms) may be
    numbers or numeric strings and default to 0.
    """
    if not isinstance(raw, dict):
        logger.warning(f"Reviews response is not an object: {type(raw).__name__}")
        return ReviewsResponse()

    items = raw.get("reviews")
    reviews = []
    if isinstance(items, list):
        reviews = [normalize_review(item) for item in items if isinstance(item, dict)]

    average = _parse_number(raw.get("averageRating"))
    if average is None:
        average = _parse_number(raw.get("average_rating"))
    total = _parse_count(raw.get("totalReviews"))
    if total is None:
        total = _parse_count(raw.get("total_reviews"))

    return ReviewsResponse(
        reviews=reviews,
        average_rating=average or 0.0,
        total_reviews=total or 0,
    )
