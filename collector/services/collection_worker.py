"""
Collection Worker - executes one dequeued collection job.

Per job:
1. Reconcile the job record (suspended jobs are skipped and flagged so
   a resume enqueues them again)
2. Dispatch to the product, search, review or price_update handler
3. Mark the record completed with the handler's output, or failed with
   the error message, and re-raise so the queue can decide on a retry

Handlers raise ``JobFailure`` for conditions that end the job; every
other expected condition comes back from the collector and processor as
a result value. Storage calls run through sync_to_async so the event loop
never blocks on the ORM.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from asgiref.sync import sync_to_async
from django.conf import settings

from collector.models import JobType
from collector.monitoring import add_job_breadcrumb, capture_job_error
from collector.services import persistence
from collector.services.amazon_collector import AmazonCollector
from collector.services.data_processor import DataProcessor, get_data_processor, normalize_asin
from collector.services.response_normalizer import normalize_reviews_response
from collector.services.results import ErrorKind, JobFailure
from collector.services.scraperapi_types import ProductData, ReviewsResponse
from collector.services.usage_tracker import get_usage_tracker

logger = logging.getLogger(__name__)


def _db(func):
    """Wrap a synchronous ORM function for use from the event loop."""
    return sync_to_async(func, thread_sensitive=True)


@dataclass
class JobContext:
    """Per-execution bookkeeping."""

    job_id: str
    api_calls: int = 0


class CollectionWorker:
    """
    Runs collection jobs.

    Args:
        collector: AmazonCollector (defaults to one gated by the global
            usage tracker)
        processor: DataProcessor
        review_fetch_limit: Reviews to fetch for a product whose payload
            carried none
    """

    def __init__(
        self,
        collector: Optional[AmazonCollector] = None,
        processor: Optional[DataProcessor] = None,
        review_fetch_limit: Optional[int] = None,
    ):
        self.collector = collector or AmazonCollector(usage_tracker=get_usage_tracker())
        self.processor = processor or get_data_processor()
        self.review_fetch_limit = review_fetch_limit or getattr(
            settings, "COLLECTOR_REVIEW_FETCH_LIMIT", 50
        )
        self._handlers = {
            JobType.PRODUCT: self.handle_product,
            JobType.SEARCH: self.handle_search,
            JobType.REVIEW: self.handle_review,
            JobType.PRICE_UPDATE: self.handle_price_update,
        }

    async def process_job(self, job_id: str, job_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Execute one job.

        Args:
            job_id: Queue job id, also the job record's primary key
            job_data: {type, asin?, keyword?, limit?, country?}

        Returns:
            Handler output summary, or None when the job is suspended

        Raises:
            JobFailure: When a handler ends the job
            Exception: Unexpected faults, after the record is marked failed
        """
        job_type = str(job_data.get("type", ""))

        job = await _db(persistence.start_job_record)(job_id, job_type, job_data)
        if job is None:
            return None

        ctx = JobContext(job_id=job_id)
        add_job_breadcrumb(job_id, job_type, message="Job started", extra_data=job_data)

        try:
            output = await self.dispatch(job_data, ctx)
        except Exception as e:
            logger.error(f"Error processing job {job_id} ({job_type}): {e}")
            await _db(persistence.fail_job_record)(job_id, str(e), ctx.api_calls)
            capture_job_error(e, job_id=job_id, job_data=job_data)
            raise

        await _db(persistence.complete_job_record)(job_id, output, ctx.api_calls)
        logger.info(f"Job {job_id} ({job_type}) completed using {ctx.api_calls} API calls")
        return output

    async def dispatch(self, job_data: Dict[str, Any], ctx: JobContext) -> Dict[str, Any]:
        """Route a job to its handler."""
        handler = self._handlers.get(job_data.get("type"))
        if handler is None:
            raise JobFailure(
                f"Unknown job type: {job_data.get('type')}",
                ErrorKind.UNKNOWN_JOB_TYPE,
            )
        return await handler(job_data, ctx)

    # ============================================================
    # Handlers
    # ============================================================

    async def handle_product(self, job_data: Dict[str, Any], ctx: JobContext) -> Dict[str, Any]:
        asin = job_data.get("asin")
        if not asin:
            raise JobFailure("ASIN is required for product job", ErrorKind.INVALID_INPUT)
        if not self.processor.is_valid_asin(asin):
            raise JobFailure(f"Invalid ASIN format: {asin}", ErrorKind.INVALID_ASIN)
        asin = normalize_asin(asin)

        logger.info(f"Starting product job for ASIN {asin}")

        result = await self.collector.collect_product_by_asin(asin)
        ctx.api_calls += result.api_calls
        if not result.success:
            raise JobFailure.from_result(result)

        if result.data is None:
            existing = await _db(persistence.get_product_by_asin)(asin)
            if existing is not None:
                logger.warning(
                    f"Product validation failed for ASIN {asin}, but product exists "
                    f"in database. Skipping update."
                )
                return {"asin": existing.asin, "skipped": True}

            raise JobFailure(
                f"Failed to fetch product data for ASIN: {asin}. "
                f"Product validation failed or product not found.",
                ErrorKind.NO_DATA,
            )

        return await self._save_product(result.data, ctx)

    async def handle_search(self, job_data: Dict[str, Any], ctx: JobContext) -> Dict[str, Any]:
        keyword = job_data.get("keyword")
        if not keyword:
            raise JobFailure("Keyword is required for search job", ErrorKind.INVALID_INPUT)

        logger.info(f"Starting search job for keyword '{keyword}'")

        result = await self.collector.collect_products_by_search(
            keyword,
            limit=job_data.get("limit"),
            country=job_data.get("country") or "us",
        )
        ctx.api_calls += result.api_calls
        if not result.success:
            raise JobFailure.from_result(result)

        search = result.data
        success_count = 0
        error_count = 0

        for item in search.products:
            try:
                product_data = await self._fetch_details(item, ctx)
                await self._save_product(product_data, ctx)
                success_count += 1
            except Exception as e:
                error_count += 1
                logger.error(f"Error processing product {item.asin or 'unknown'}: {e}")

        await _db(persistence.record_search)(
            ctx.job_id, search.query or keyword, search.total_results, success_count
        )

        logger.info(
            f"Search job completed: {success_count} products saved, {error_count} errors"
        )
        return {
            "keyword": keyword,
            "total_results": search.total_results,
            "success_count": success_count,
            "error_count": error_count,
        }

    async def handle_review(self, job_data: Dict[str, Any], ctx: JobContext) -> Dict[str, Any]:
        asin = job_data.get("asin")
        if not asin:
            raise JobFailure("ASIN is required for review job", ErrorKind.INVALID_INPUT)

        product = await _db(persistence.get_product_by_asin)(asin)
        if product is None:
            raise JobFailure(f"Product with ASIN {asin} not found", ErrorKind.NOT_FOUND)

        result = await self.collector.collect_reviews(product.asin, limit=job_data.get("limit"))
        ctx.api_calls += result.api_calls
        if not result.success:
            raise JobFailure.from_result(result)

        reviews: ReviewsResponse = result.data
        processed = self.processor.process_reviews(reviews, str(product.id))
        saved = await _db(persistence.append_reviews)(product, processed)
        await _db(persistence.update_review_stats)(
            product, reviews.average_rating, reviews.total_reviews
        )

        return {
            "asin": product.asin,
            "reviews_saved": saved,
            "average_rating": reviews.average_rating,
            "total_reviews": reviews.total_reviews,
        }

    async def handle_price_update(self, job_data: Dict[str, Any], ctx: JobContext) -> Dict[str, Any]:
        asin = job_data.get("asin")
        if not asin:
            raise JobFailure("ASIN is required for price update job", ErrorKind.INVALID_INPUT)

        product = await _db(persistence.get_product_by_asin)(asin)
        if product is None:
            raise JobFailure(f"Product with ASIN {asin} not found", ErrorKind.NOT_FOUND)

        result = await self.collector.collect_price_history(product.asin)
        ctx.api_calls += result.api_calls
        if not result.success:
            raise JobFailure.from_result(result)

        price = self.processor.process_price(result.data, str(product.id)) if result.data else None
        if price is None:
            logger.warning(f"No price data available for product {product.asin}")
            return {"asin": product.asin, "price_saved": False}

        snapshot = await _db(persistence.save_price)(product, price)
        return {
            "asin": product.asin,
            "price_saved": True,
            "price": str(snapshot.price),
            "currency": snapshot.currency,
        }

    # ============================================================
    # Shared steps
    # ============================================================

    async def _fetch_details(self, item: ProductData, ctx: JobContext) -> ProductData:
        """Full product detail for a search item, falling back to the item."""
        if not self.processor.is_valid_asin(item.asin):
            logger.warning(f"Invalid ASIN format: {item.asin}, skipping full details fetch")
            return item

        result = await self.collector.collect_product_by_asin(item.asin)
        ctx.api_calls += result.api_calls
        if result.success and result.data is not None:
            return result.data

        logger.warning(
            f"Could not fetch full details for {item.asin}, using search data: "
            f"{result.error or 'validation failed'}"
        )
        return item

    async def _save_product(self, product_data: ProductData, ctx: JobContext) -> Dict[str, Any]:
        """Upsert the product, its seller, one price snapshot and its reviews."""
        existing = await _db(persistence.get_product_by_asin)(product_data.asin)

        processed = self.processor.process_product(
            product_data, str(existing.id) if existing else None
        )
        if not processed.success:
            raise JobFailure.from_result(processed)

        product = await _db(persistence.upsert_product)(processed.entity)

        if product_data.seller is not None:
            await _db(persistence.link_seller)(
                product, self.processor.process_seller(product_data.seller)
            )

        price = self.processor.process_price(product_data, str(product.id))
        if price is not None:
            await _db(persistence.save_price)(product, price)
        else:
            logger.warning(f"No price data available for product {product.asin}")

        reviews_saved = await self._refresh_reviews(product, product_data, ctx)

        return {
            "asin": product.asin,
            "product_id": str(product.id),
            "created": existing is None,
            "price_saved": price is not None,
            "reviews_saved": reviews_saved,
        }

    async def _refresh_reviews(self, product, product_data: ProductData, ctx: JobContext) -> int:
        """
        Replace the stored reviews of a product.

        Embedded reviews from the product payload are preferred over a
        separate paginated fetch. Failures are logged and never fail the job.
        """
        try:
            if product_data.has_embedded_reviews:
                logger.debug(
                    f"Using {len(product_data.embedded_reviews)} reviews from product response"
                )
                reviews = normalize_reviews_response({
                    "reviews": product_data.embedded_reviews,
                    "averageRating": product_data.embedded_average_rating,
                    "totalReviews": product_data.embedded_total_reviews,
                })
            else:
                result = await self.collector.collect_reviews(
                    product.asin, limit=self.review_fetch_limit
                )
                ctx.api_calls += result.api_calls
                if not result.success:
                    logger.warning(
                        f"Could not fetch reviews separately for {product.asin}: {result.error}"
                    )
                    return 0
                reviews = result.data

            if not reviews.reviews:
                logger.info(f"No reviews found for product {product.asin}")
                return 0

            processed = self.processor.process_reviews(reviews, str(product.id))
            return await _db(persistence.replace_reviews)(product, processed)

        except Exception as e:
            logger.error(f"Error processing reviews for {product.asin}: {e}")
            return 0
