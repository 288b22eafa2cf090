"""
Initial schema for the Product Data Collector.
"""

import uuid
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


JOB_TYPE_CHOICES = [
    ("product", "Product"),
    ("search", "Search"),
    ("review", "Review"),
    ("price_update", "Price Update"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ScrapeJob",
            fields=[
                ("id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("type", models.CharField(choices=JOB_TYPE_CHOICES, max_length=20)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("running", "Running"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("suspended", "Suspended"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("input", models.JSONField(blank=True, default=dict)),
                ("output", models.JSONField(blank=True, null=True)),
                ("error", models.TextField(blank=True, null=True)),
                ("is_scheduled", models.BooleanField(default=False)),
                ("api_calls_used", models.IntegerField(default=0)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "scrape_jobs",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="scrape_jobs_status_idx"),
                    models.Index(fields=["type", "is_scheduled"], name="scrape_jobs_type_sched_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("asin", models.CharField(db_index=True, max_length=10, unique=True)),
                ("title", models.TextField()),
                ("description", models.TextField(blank=True, null=True)),
                ("brand", models.CharField(blank=True, max_length=255, null=True)),
                ("category", models.CharField(blank=True, max_length=255, null=True)),
                ("images", models.JSONField(blank=True, default=list)),
                ("rating", models.FloatField(blank=True, null=True)),
                ("review_count", models.IntegerField(default=0)),
                ("availability", models.CharField(blank=True, max_length=255, null=True)),
                ("currency", models.CharField(default="USD", max_length=3)),
                ("specifications", models.JSONField(blank=True, default=dict)),
                ("features", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "products",
                "ordering": ["-updated_at"],
            },
        ),
        migrations.CreateModel(
            name="PriceSnapshot",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("price", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "original_price",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True),
                ),
                ("currency", models.CharField(default="USD", max_length=3)),
                ("availability", models.CharField(blank=True, max_length=255, null=True)),
                ("seller_name", models.CharField(blank=True, max_length=255, null=True)),
                ("seller_rating", models.FloatField(blank=True, null=True)),
                ("prime_eligible", models.BooleanField(default=False)),
                ("collected_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="prices",
                        to="collector.product",
                    ),
                ),
            ],
            options={
                "db_table": "prices",
                "ordering": ["-collected_at"],
                "indexes": [
                    models.Index(
                        fields=["product", "collected_at"], name="prices_product_collected_idx"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Review",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("rating", models.IntegerField()),
                ("title", models.TextField(blank=True, null=True)),
                ("text", models.TextField()),
                ("author", models.CharField(default="Anonymous", max_length=255)),
                ("author_id", models.CharField(blank=True, max_length=255, null=True)),
                ("date", models.DateTimeField(blank=True, null=True)),
                ("verified", models.BooleanField(default=False)),
                ("helpful_count", models.IntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="reviews",
                        to="collector.product",
                    ),
                ),
            ],
            options={
                "db_table": "reviews",
                "ordering": ["-date", "-created_at"],
                "indexes": [
                    models.Index(
                        fields=["product", "created_at"], name="reviews_product_created_idx"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Seller",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("name", models.CharField(max_length=255, unique=True)),
                ("rating", models.FloatField(blank=True, null=True)),
                ("feedback_count", models.IntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "sellers",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="ProductSeller",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("last_seen_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="product_sellers",
                        to="collector.product",
                    ),
                ),
                (
                    "seller",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="product_sellers",
                        to="collector.seller",
                    ),
                ),
            ],
            options={
                "db_table": "product_sellers",
                "unique_together": {("product", "seller")},
            },
        ),
        migrations.CreateModel(
            name="ProductSearch",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("query", models.CharField(max_length=500)),
                ("total_results", models.IntegerField(default=0)),
                ("products_collected", models.IntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "job",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="searches",
                        to="collector.scrapejob",
                    ),
                ),
            ],
            options={
                "db_table": "product_searches",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ApiUsage",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                (
                    "month",
                    models.CharField(
                        help_text="Month key in YYYY-MM format.", max_length=7, unique=True
                    ),
                ),
                ("calls_used", models.IntegerField(default=0)),
                ("calls_limit", models.IntegerField(default=1000)),
                ("last_used", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "api_usage",
                "ordering": ["-month"],
                "verbose_name": "API Usage",
                "verbose_name_plural": "API Usage",
            },
        ),
        migrations.CreateModel(
            name="RecurringSchedule",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("job_type", models.CharField(choices=JOB_TYPE_CHOICES, max_length=20)),
                ("payload", models.JSONField(default=dict)),
                ("pattern", models.CharField(max_length=100)),
                ("timezone", models.CharField(default="UTC", max_length=64)),
                ("is_active", models.BooleanField(default=True)),
                ("next_job_id", models.CharField(max_length=64)),
                ("next_run_at", models.DateTimeField(db_index=True)),
                ("last_run_at", models.DateTimeField(blank=True, null=True)),
                ("run_count", models.IntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "job",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="schedule",
                        to="collector.scrapejob",
                    ),
                ),
            ],
            options={
                "db_table": "recurring_schedules",
                "ordering": ["next_run_at"],
                "indexes": [
                    models.Index(
                        fields=["is_active", "next_run_at"], name="recurring_active_next_idx"
                    ),
                ],
            },
        ),
    ]
