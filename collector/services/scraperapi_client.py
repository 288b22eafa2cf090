"""
ScraperAPI Client - structured Amazon endpoints.

Endpoints:
- /structured/amazon/product  (asin)
- /structured/amazon/search   (query, country)
- /structured/amazon/reviews  (asin, page)

Requests are retried with exponential backoff on HTTP 429, 5xx, timeouts
and connection errors. Payloads go through the response normalizer before
they leave this module.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
from django.conf import settings

from collector.services.response_normalizer import (
    normalize_product,
    normalize_reviews_response,
    normalize_search_response,
)
from collector.services.scraperapi_types import (
    ProductData,
    ReviewsResponse,
    SearchResponse,
)

logger = logging.getLogger(__name__)


class ScraperAPIError(Exception):
    """Error from a ScraperAPI request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ScraperAPIClient:
    """
    Async client for the ScraperAPI structured Amazon endpoints.

    Example:
        client = ScraperAPIClient()
        product = await client.get_product("B08N5WRWNW")
    """

    BASE_URL = "https://api.scraperapi.com"
    PRODUCT_ENDPOINT = "/structured/amazon/product"
    SEARCH_ENDPOINT = "/structured/amazon/search"
    REVIEWS_ENDPOINT = "/structured/amazon/reviews"

    MAX_RETRIES = 3
    RETRY_BASE_DELAY = 2.0  # seconds
    RETRY_CODES = {429, 500, 502, 503, 504}
    DEFAULT_TIMEOUT = 70.0

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ):
        """
        Initialize the ScraperAPI client.

        Args:
            api_key: ScraperAPI key (defaults to settings.SCRAPERAPI_API_KEY)
            base_url: API root (defaults to settings.SCRAPERAPI_BASE_URL)
            timeout: Request timeout in seconds
            max_retries: Attempts per request
        """
        self.api_key = api_key or getattr(settings, "SCRAPERAPI_API_KEY", "")
        self.base_url = (
            base_url or getattr(settings, "SCRAPERAPI_BASE_URL", self.BASE_URL)
        ).rstrip("/")
        self.timeout = timeout or getattr(
            settings, "SCRAPERAPI_REQUEST_TIMEOUT", self.DEFAULT_TIMEOUT
        )
        self.max_retries = max(
            1,
            max_retries
            if max_retries is not None
            else getattr(settings, "SCRAPERAPI_MAX_RETRIES", self.MAX_RETRIES),
        )

        if not self.api_key:
            logger.warning("ScraperAPI API key not configured")

    async def get_product(self, asin: str) -> Optional[ProductData]:
        """
        Fetch one product.

        Args:
            asin: Product identifier to fetch

        Returns:
            Normalized ProductData, or None if the payload failed validation

        Raises:
            ScraperAPIError: On a non-retryable HTTP error or exhausted retries
        """
        logger.info(f"Fetching product data for ASIN {asin}")

        payload = await self._make_request(self.PRODUCT_ENDPOINT, {"asin": asin})
        product = normalize_product(payload, requested_asin=asin)

        if product is None:
            logger.warning(f"Product data validation failed for ASIN {asin}")
            return None

        if product.has_embedded_reviews:
            logger.debug(
                f"Found {len(product.embedded_reviews)} reviews in product response for {asin}"
            )
        return product

    async def search_products(self, query: str, country: str = "us") -> SearchResponse:
        """
        Search products by keyword.

        Args:
            query: Search keyword
            country: Marketplace country code

        Returns:
            SearchResponse; invalid items are dropped, never raised

        Raises:
            ScraperAPIError: On a non-retryable HTTP error or exhausted retries
        """
        payload = await self._make_request(
            self.SEARCH_ENDPOINT, {"query": query, "country": country}
        )
        response = normalize_search_response(payload, query)
        logger.info(
            f"Search '{query}' returned {len(response.products)} valid products "
            f"({response.skipped_count} skipped)"
        )
        return response

    async def get_product_reviews(self, asin: str, page: int = 1) -> ReviewsResponse:
        """
        Fetch one page of reviews.

        A 404 means the reviews endpoint is not available on the current
        plan and yields an empty response instead of an error.

        Args:
            asin: Product identifier
            page: 1-based page number

        Returns:
            ReviewsResponse

        Raises:
            ScraperAPIError: On other HTTP errors or exhausted retries
        """
        logger.debug(f"Fetching reviews for ASIN {asin}, page {page}")

        try:
            payload = await self._make_request(
                self.REVIEWS_ENDPOINT, {"asin": asin, "page": str(page)}
            )
        except ScraperAPIError as e:
            if e.status_code == 404:
                logger.warning(
                    f"Reviews endpoint not available (404) for ASIN {asin}; skipping reviews"
                )
                return ReviewsResponse(reviews=[], average_rating=0.0, total_reviews=0)
            raise

        return normalize_reviews_response(payload)

    async def _make_request(self, endpoint: str, params: Dict[str, str]) -> Any:
        """
        Send a GET request with retry logic and exponential backoff.

        Args:
            endpoint: Path below the API root
            params: Query parameters (api_key is added here)

        Returns:
            Decoded JSON payload

        Raises:
            ScraperAPIError: If the response is not retryable or retries are exhausted
        """
        url = f"{self.base_url}{endpoint}"
        query = {"api_key": self.api_key, **params}
        last_error: Optional[str] = None
        last_status: Optional[int] = None

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=query)

                    if response.status_code not in self.RETRY_CODES:
                        if response.status_code >= 400:
                            raise ScraperAPIError(
                                f"ScraperAPI error ({response.status_code}): "
                                f"{response.text[:500]}",
                                status_code=response.status_code,
                            )
                        try:
                            return response.json()
                        except ValueError as e:
                            raise ScraperAPIError(
                                f"Invalid JSON from ScraperAPI {endpoint}: {e}",
                                status_code=response.status_code,
                            )

                    last_status = response.status_code
                    last_error = f"HTTP {response.status_code}: {response.text[:200]}"
                    logger.warning(
                        "Retryable error on attempt %d/%d for %s: %s",
                        attempt + 1,
                        self.max_retries,
                        endpoint,
                        last_error,
                    )

            except httpx.TimeoutException as e:
                last_status = None
                last_error = f"Request timeout after {self.timeout}s: {str(e)}"
                logger.warning(
                    "Timeout on attempt %d/%d for %s: %s",
                    attempt + 1,
                    self.max_retries,
                    endpoint,
                    last_error,
                )

            except httpx.TransportError as e:
                last_status = None
                last_error = f"Connection error: {str(e)}"
                logger.warning(
                    "Connection error on attempt %d/%d for %s: %s",
                    attempt + 1,
                    self.max_retries,
                    endpoint,
                    last_error,
                )

            if attempt < self.max_retries - 1:
                delay = self.RETRY_BASE_DELAY * (2 ** attempt)
                logger.debug("Waiting %.1fs before retry %d", delay, attempt + 2)
                await asyncio.sleep(delay)

        raise ScraperAPIError(
            f"Max retries ({self.max_retries}) exceeded: {last_error}",
            status_code=last_status,
        )
