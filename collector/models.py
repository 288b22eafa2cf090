"""
Django models for the Product Data Collector.

Models:
- ScrapeJob: status record for every queued collection job
- Product: one row per Amazon product (unique ASIN)
- PriceSnapshot: append-only price history
- Review: customer reviews per product
- Seller / ProductSeller: sellers seen on product pages
- ProductSearch: keyword search runs
- ApiUsage: monthly external API call budget
- RecurringSchedule: cron-style recurrence for scheduled jobs
"""

import uuid

from django.db import models
from django.utils import timezone


class JobType(models.TextChoices):
    """Kind of collection work a job performs."""

    PRODUCT = "product", "Product"
    SEARCH = "search", "Search"
    REVIEW = "review", "Review"
    PRICE_UPDATE = "price_update", "Price Update"


class JobStatus(models.TextChoices):
    """Lifecycle state of a job record."""

    PENDING = "pending", "Pending"
    RUNNING = "running", "Running"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    SUSPENDED = "suspended", "Suspended"


class ScrapeJob(models.Model):
    """
    Status record for a queued collection job.

    The primary key is the queue's job id, so the broker message and this
    row always refer to each other by the same identifier. Rows are created
    by the producer (pending) or, when missing, by the worker on dequeue.
    """

    id = models.CharField(max_length=64, primary_key=True)
    type = models.CharField(max_length=20, choices=JobType.choices)
    status = models.CharField(
        max_length=20, choices=JobStatus.choices, default=JobStatus.PENDING
    )

    input = models.JSONField(default=dict, blank=True)
    output = models.JSONField(null=True, blank=True)
    error = models.TextField(blank=True, null=True)

    is_scheduled = models.BooleanField(default=False)
    api_calls_used = models.IntegerField(default=0)
    dropped_while_suspended = models.BooleanField(
        default=False,
        help_text="Set when a worker discarded the queued message of this suspended job.",
    )

    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "scrape_jobs"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="scrape_jobs_status_idx"),
            models.Index(fields=["type", "is_scheduled"], name="scrape_jobs_type_sched_idx"),
        ]

    def __str__(self):
        return f"Job {self.id} - {self.type} ({self.status})"

    @property
    def duration_seconds(self):
        """Calculate job duration."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def is_finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def start(self):
        """Mark job as running."""
        self.status = JobStatus.RUNNING
        self.started_at = timezone.now()
        self.save(update_fields=["status", "started_at", "updated_at"])

    def complete(self, success: bool = True, error_message: str = None, output=None,
                 api_calls_used: int = None):
        """Mark job as completed or failed."""
        self.status = JobStatus.COMPLETED if success else JobStatus.FAILED
        self.completed_at = timezone.now()
        update_fields = ["status", "completed_at", "updated_at"]
        if error_message:
            self.error = error_message
            update_fields.append("error")
        if output is not None:
            self.output = output
            update_fields.append("output")
        if api_calls_used is not None:
            self.api_calls_used = api_calls_used
            update_fields.append("api_calls_used")
        self.save(update_fields=update_fields)


class Product(models.Model):
    """
    An Amazon product identified by its ASIN.

    Re-collection updates the row in place; history lives in PriceSnapshot.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    asin = models.CharField(max_length=10, unique=True, db_index=True)

    title = models.TextField()
    description = models.TextField(blank=True, null=True)
    brand = models.TextField(blank=True, null=True)
    category = models.TextField(blank=True, null=True)
    images = models.JSONField(default=list, blank=True)

    rating = models.FloatField(null=True, blank=True)
    review_count = models.IntegerField(default=0)
    availability = models.TextField(blank=True, null=True)
    currency = models.TextField(default="USD")

    specifications = models.JSONField(default=dict, blank=True)
    features = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "products"
        ordering = ["-updated_at"]

    def __str__(self):
        return f"{self.asin} - {self.title[:60]}"


class PriceSnapshot(models.Model):
    """Single price observation. Rows are never updated."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(
        Product, on_delete=models.CASCADE, related_name="prices"
    )

    price = models.DecimalField(max_digits=12, decimal_places=2)
    original_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )
    currency = models.TextField(default="USD")
    availability = models.TextField(blank=True, null=True)

    seller_name = models.TextField(blank=True, null=True)
    seller_rating = models.FloatField(null=True, blank=True)
    prime_eligible = models.BooleanField(default=False)

    collected_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "prices"
        ordering = ["-collected_at"]
        indexes = [
            models.Index(fields=["product", "collected_at"], name="prices_product_collected_idx"),
        ]

    def __str__(self):
        return f"{self.product_id} {self.currency} {self.price} @ {self.collected_at}"


class Review(models.Model):
    """Customer review of a product."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(
        Product, on_delete=models.CASCADE, related_name="reviews"
    )

    rating = models.IntegerField()
    title = models.TextField(blank=True, null=True)
    text = models.TextField()
    author = models.TextField(default="Anonymous")
    author_id = models.TextField(blank=True, null=True)
    date = models.DateTimeField(null=True, blank=True)
    verified = models.BooleanField(default=False)
    helpful_count = models.IntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "reviews"
        ordering = ["-date", "-created_at"]
        indexes = [
            models.Index(fields=["product", "created_at"], name="reviews_product_created_idx"),
        ]

    def __str__(self):
        return f"{self.rating}* by {self.author} on {self.product_id}"


class Seller(models.Model):
    """Marketplace seller seen on a product page."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.TextField(unique=True)
    rating = models.FloatField(null=True, blank=True)
    feedback_count = models.IntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "sellers"
        ordering = ["name"]

    def __str__(self):
        return self.name


class ProductSeller(models.Model):
    """Link between a product and a seller offering it."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(
        Product, on_delete=models.CASCADE, related_name="product_sellers"
    )
    seller = models.ForeignKey(
        Seller, on_delete=models.CASCADE, related_name="product_sellers"
    )
    last_seen_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "product_sellers"
        unique_together = ["product", "seller"]


class ProductSearch(models.Model):
    """One executed keyword search."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    query = models.TextField()
    total_results = models.IntegerField(default=0)
    products_collected = models.IntegerField(default=0)
    job = models.ForeignKey(
        ScrapeJob,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="searches",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "product_searches"
        ordering = ["-created_at"]

    def __str__(self):
        return f"'{self.query}' ({self.products_collected}/{self.total_results})"


class ApiUsage(models.Model):
    """
    External API call budget for one calendar month.

    Created lazily on first access in a month and never deleted.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    month = models.CharField(
        max_length=7,
        unique=True,
        help_text="Month key in YYYY-MM format.",
    )
    calls_used = models.IntegerField(default=0)
    calls_limit = models.IntegerField(default=1000)
    last_used = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "api_usage"
        ordering = ["-month"]
        verbose_name = "API Usage"
        verbose_name_plural = "API Usage"

    def __str__(self):
        return f"{self.month}: {self.calls_used}/{self.calls_limit}"

    @property
    def remaining(self) -> int:
        return max(0, self.calls_limit - self.calls_used)

    @property
    def percentage_used(self) -> float:
        if self.calls_limit <= 0:
            return 100.0
        return round(self.calls_used / self.calls_limit * 100, 2)


class RecurringSchedule(models.Model):
    """
    Cron-style recurrence attached to a scheduled job record.

    The beat sweep enqueues ``next_job_id`` whenever ``next_run_at`` has
    passed, then rotates the id and computes the following fire time.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    job = models.OneToOneField(
        ScrapeJob,
        on_delete=models.CASCADE,
        related_name="schedule",
    )
    job_type = models.CharField(max_length=20, choices=JobType.choices)
    payload = models.JSONField(default=dict)

    pattern = models.CharField(max_length=100)
    timezone = models.CharField(max_length=64, default="UTC")

    is_active = models.BooleanField(default=True)
    next_job_id = models.CharField(max_length=64)
    next_run_at = models.DateTimeField(db_index=True)
    last_run_at = models.DateTimeField(null=True, blank=True)
    run_count = models.IntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "recurring_schedules"
        ordering = ["next_run_at"]
        indexes = [
            models.Index(fields=["is_active", "next_run_at"], name="recurring_active_next_idx"),
        ]

    def __str__(self):
        return f"{self.job_type} '{self.pattern}' ({self.timezone})"
