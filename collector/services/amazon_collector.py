"""
Amazon Collector - quota-gated collection operations.

Wraps the ScraperAPI client with the monthly usage budget: every external
call is preceded by a quota check and followed by one recorded usage unit.
Expected conditions (quota exhausted, upstream failure after retries) come
back as failed CollectResult values.
"""

import logging
from typing import Optional

from asgiref.sync import sync_to_async

from collector.services.results import (
    QUOTA_EXCEEDED_MESSAGE,
    CollectResult,
    ErrorKind,
)
from collector.services.scraperapi_client import ScraperAPIClient, ScraperAPIError
from collector.services.scraperapi_types import ReviewsResponse
from collector.services.usage_tracker import UsageTracker

logger = logging.getLogger(__name__)

# Upper bound on review pages fetched for one request
MAX_REVIEW_PAGES = 5


class AmazonCollector:
    """
    Collects product, search and review data within the usage budget.

    Args:
        client: ScraperAPI client (a default one is created if omitted)
        usage_tracker: Monthly budget; None disables quota checks
    """

    def __init__(
        self,
        client: Optional[ScraperAPIClient] = None,
        usage_tracker: Optional[UsageTracker] = None,
    ):
        self.client = client or ScraperAPIClient()
        self.usage_tracker = usage_tracker

    async def _check_usage_limit(self) -> bool:
        if self.usage_tracker is None:
            return True
        return await sync_to_async(self.usage_tracker.can_make_call, thread_sensitive=True)()

    async def _track_usage(self, calls: int = 1) -> None:
        if self.usage_tracker is not None:
            await sync_to_async(self.usage_tracker.record_usage, thread_sensitive=True)(calls)

    async def collect_product_by_asin(self, asin: str) -> CollectResult:
        """
        Collect a single product.

        Returns:
            CollectResult whose data is the normalized ProductData, or None
            when the payload failed validation
        """
        if not await self._check_usage_limit():
            return CollectResult.failure(ErrorKind.QUOTA_EXCEEDED, QUOTA_EXCEEDED_MESSAGE)

        try:
            product = await self.client.get_product(asin)
        except ScraperAPIError as e:
            logger.error(f"Product fetch failed for {asin}: {e}")
            return CollectResult.failure(ErrorKind.UPSTREAM_ERROR, str(e))

        await self._track_usage(1)
        return CollectResult.ok(product, api_calls=1)

    async def collect_products_by_search(
        self,
        keyword: str,
        limit: Optional[int] = None,
        country: str = "us",
    ) -> CollectResult:
        """
        Collect products for a search keyword.

        Returns:
            CollectResult whose data is the SearchResponse, with products
            truncated to ``limit`` when given
        """
        if not await self._check_usage_limit():
            return CollectResult.failure(ErrorKind.QUOTA_EXCEEDED, QUOTA_EXCEEDED_MESSAGE)

        logger.info(f"Searching for keyword '{keyword}'")

        try:
            response = await self.client.search_products(keyword, country or "us")
        except ScraperAPIError as e:
            logger.error(f"Search failed for '{keyword}': {e}")
            return CollectResult.failure(ErrorKind.UPSTREAM_ERROR, str(e))

        await self._track_usage(1)

        if limit:
            response.products = response.products[:limit]
            logger.debug(f"Limited search results to {len(response.products)} products")

        return CollectResult.ok(response, api_calls=1)

    async def collect_reviews(self, asin: str, limit: Optional[int] = None) -> CollectResult:
        """
        Collect reviews, paging until ``limit`` is met.

        Page 1 is always fetched. Further pages are requested only when a
        limit is given and not yet reached; paging stops at an empty page or
        after MAX_REVIEW_PAGES pages. Aggregate stats come from page 1.

        Returns:
            CollectResult whose data is a ReviewsResponse
        """
        api_calls = 0

        if not await self._check_usage_limit():
            return CollectResult.failure(ErrorKind.QUOTA_EXCEEDED, QUOTA_EXCEEDED_MESSAGE)

        try:
            first_page = await self.client.get_product_reviews(asin, 1)
        except ScraperAPIError as e:
            logger.error(f"Review fetch failed for {asin}: {e}")
            return CollectResult.failure(ErrorKind.UPSTREAM_ERROR, str(e))

        await self._track_usage(1)
        api_calls += 1

        reviews = list(first_page.reviews)
        page = 2

        while limit and len(reviews) < limit and page <= MAX_REVIEW_PAGES:
            if not await self._check_usage_limit():
                return CollectResult.failure(
                    ErrorKind.QUOTA_EXCEEDED, QUOTA_EXCEEDED_MESSAGE, api_calls=api_calls
                )

            try:
                page_response = await self.client.get_product_reviews(asin, page)
            except ScraperAPIError as e:
                logger.error(f"Review page {page} failed for {asin}: {e}")
                return CollectResult.failure(
                    ErrorKind.UPSTREAM_ERROR, str(e), api_calls=api_calls
                )

            await self._track_usage(1)
            api_calls += 1

            if not page_response.reviews:
                break

            reviews.extend(page_response.reviews)
            page += 1

        if limit:
            reviews = reviews[:limit]

        return CollectResult.ok(
            ReviewsResponse(
                reviews=reviews,
                average_rating=first_page.average_rating,
                total_reviews=first_page.total_reviews,
            ),
            api_calls=api_calls,
        )

    async def collect_price_history(self, asin: str) -> CollectResult:
        """
        Collect the current price of a product.

        History accrues through repeated scheduled calls; this is a single
        product fetch.
        """
        return await self.collect_product_by_asin(asin)
