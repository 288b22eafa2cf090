"""
Storage operations used by the collection worker.

Plain synchronous ORM functions. The async worker calls them through
``sync_to_async(..., thread_sensitive=True)``. Every write is an
independent upsert or append; only review replacement groups its
delete and insert in one transaction.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from collector.models import (
    JobStatus,
    PriceSnapshot,
    Product,
    ProductSearch,
    ProductSeller,
    Review,
    ScrapeJob,
    Seller,
)
from collector.services.data_processor import (
    ProcessedPrice,
    ProcessedProduct,
    ProcessedReview,
    ProcessedSeller,
)

logger = logging.getLogger(__name__)


def _to_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.01"))


# ============================================================
# Job records
# ============================================================


def _drop_if_suspended(job: ScrapeJob) -> bool:
    """
    Record that this delivery of a suspended job is being discarded.

    The flag is only set while the row is still suspended, so a resume
    that lands in between lets the delivery run instead.
    """
    if job.status != JobStatus.SUSPENDED:
        return False
    marked = ScrapeJob.objects.filter(pk=job.pk, status=JobStatus.SUSPENDED).update(
        dropped_while_suspended=True, updated_at=timezone.now()
    )
    if marked:
        logger.info(f"Job {job.pk} is suspended, skipping execution")
        return True
    job.refresh_from_db()
    return job.status == JobStatus.SUSPENDED


def start_job_record(job_id: str, job_type: str, job_input: Dict[str, Any]) -> Optional[ScrapeJob]:
    """
    Reconcile the job record at dequeue time and mark it running.

    - existing and suspended: flagged as dropped and None is returned; the
      job is enqueued again on resume
    - existing: marked running with a fresh started_at
    - missing: inserted as running; if a concurrent producer inserted the
      same id first, the row is re-read and marked running instead

    Raises:
        IntegrityError: If the insert conflicts but no row can be re-read
    """
    job = ScrapeJob.objects.filter(pk=job_id).first()

    if job is not None:
        if _drop_if_suspended(job):
            return None
        job.start()
        return job

    try:
        with transaction.atomic():
            return ScrapeJob.objects.create(
                id=job_id,
                type=job_type,
                status=JobStatus.RUNNING,
                input=job_input,
                is_scheduled=False,
                started_at=timezone.now(),
            )
    except IntegrityError:
        logger.info(f"Job {job_id} was created concurrently, updating instead")
        job = ScrapeJob.objects.filter(pk=job_id).first()
        if job is None:
            logger.warning(f"Job {job_id} duplicate key error but job not found on recheck")
            raise
        if _drop_if_suspended(job):
            return None
        job.start()
        return job


def complete_job_record(job_id: str, output: Optional[Dict[str, Any]], api_calls_used: int) -> None:
    job = ScrapeJob.objects.filter(pk=job_id).first()
    if job is None:
        logger.warning(f"Job {job_id} disappeared before completion")
        return
    job.complete(success=True, output=output, api_calls_used=api_calls_used)


def fail_job_record(job_id: str, error_message: str, api_calls_used: int) -> None:
    job = ScrapeJob.objects.filter(pk=job_id).first()
    if job is None:
        logger.warning(f"Job {job_id} disappeared before failure could be recorded")
        return
    job.complete(success=False, error_message=error_message, api_calls_used=api_calls_used)


# ============================================================
# Products, prices, sellers
# ============================================================


def get_product_by_asin(asin: str) -> Optional[Product]:
    if not asin:
        return None
    return Product.objects.filter(asin=asin.strip().upper()).first()


def upsert_product(processed: ProcessedProduct) -> Product:
    """
    Insert or update a product by ASIN.

    A concurrent insert of the same ASIN is resolved by updating the row
    that won.
    """
    defaults = {
        "title": processed.title,
        "description": processed.description,
        "brand": processed.brand,
        "category": processed.category,
        "images": processed.images,
        "rating": processed.rating,
        "review_count": processed.review_count,
        "availability": processed.availability,
        "currency": processed.currency,
        "specifications": processed.specifications,
        "features": processed.features,
    }

    try:
        with transaction.atomic():
            product, created = Product.objects.update_or_create(
                asin=processed.asin, defaults=defaults
            )
    except IntegrityError:
        logger.info(f"Product {processed.asin} inserted concurrently, updating instead")
        product, created = Product.objects.update_or_create(
            asin=processed.asin, defaults=defaults
        )

    logger.info(
        f"{'Inserted' if created else 'Updated'} product: {product.asin} - {product.title[:80]}"
    )
    return product


def save_price(product: Product, processed: ProcessedPrice) -> PriceSnapshot:
    snapshot = PriceSnapshot.objects.create(
        product=product,
        price=_to_decimal(processed.price),
        original_price=_to_decimal(processed.original_price),
        currency=processed.currency,
        availability=processed.availability,
        seller_name=processed.seller_name,
        seller_rating=processed.seller_rating,
        prime_eligible=processed.prime_eligible,
    )
    logger.info(f"Added price entry for {product.asin}: {snapshot.currency} {snapshot.price}")
    return snapshot


def link_seller(product: Product, processed: ProcessedSeller) -> Optional[Seller]:
    """Create or refresh the seller and link it to the product."""
    if not processed.name:
        return None

    defaults = {"feedback_count": processed.feedback_count}
    if processed.rating is not None:
        defaults["rating"] = processed.rating

    try:
        with transaction.atomic():
            seller, _ = Seller.objects.update_or_create(name=processed.name, defaults=defaults)
    except IntegrityError:
        seller = Seller.objects.get(name=processed.name)

    ProductSeller.objects.update_or_create(
        product=product, seller=seller, defaults={"last_seen_at": timezone.now()}
    )
    return seller


# ============================================================
# Reviews
# ============================================================


def _build_reviews(product: Product, reviews: List[ProcessedReview]) -> List[Review]:
    return [
        Review(
            product=product,
            rating=review.rating,
            title=review.title,
            text=review.text,
            author=review.author,
            date=review.date,
            verified=review.verified,
            helpful_count=review.helpful_count,
        )
        for review in reviews
    ]


def replace_reviews(product: Product, reviews: List[ProcessedReview]) -> int:
    """Delete all stored reviews of the product and insert the new set."""
    with transaction.atomic():
        Review.objects.filter(product=product).delete()
        Review.objects.bulk_create(_build_reviews(product, reviews))
    logger.info(f"Saved {len(reviews)} reviews for product {product.asin}")
    return len(reviews)


def append_reviews(product: Product, reviews: List[ProcessedReview]) -> int:
    Review.objects.bulk_create(_build_reviews(product, reviews))
    return len(reviews)


def update_review_stats(product: Product, average_rating: float, total_reviews: int) -> None:
    product.rating = average_rating
    product.review_count = total_reviews
    product.save(update_fields=["rating", "review_count", "updated_at"])


# ============================================================
# Searches
# ============================================================


def record_search(job_id: Optional[str], query: str, total_results: int,
                  products_collected: int) -> ProductSearch:
    return ProductSearch.objects.create(
        job_id=job_id if job_id and ScrapeJob.objects.filter(pk=job_id).exists() else None,
        query=query,
        total_results=total_results,
        products_collected=products_collected,
    )
