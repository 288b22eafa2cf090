"""
Django admin configuration for collector models.

Job records are read-only apart from the suspend, resume and cancel
actions; products can be browsed with their price history inline and
queued for collection.
"""

from django.contrib import admin, messages
from django.utils.html import format_html

from collector.models import (
    ApiUsage,
    PriceSnapshot,
    Product,
    ProductSearch,
    RecurringSchedule,
    Review,
    ScrapeJob,
    Seller,
)
from collector.services.scheduler import JobScheduler, JobStateError

STATUS_COLORS = {
    "pending": "#ffc107",
    "running": "#007bff",
    "completed": "#28a745",
    "failed": "#dc3545",
    "suspended": "#6c757d",
}


@admin.register(ScrapeJob)
class ScrapeJobAdmin(admin.ModelAdmin):
    """Read-only view of collection job records."""

    list_display = [
        "id_short",
        "type",
        "status_badge",
        "is_scheduled",
        "api_calls_used",
        "created_at",
        "duration_display",
    ]
    list_filter = [
        "status",
        "type",
        "is_scheduled",
        ("created_at", admin.DateFieldListFilter),
    ]
    search_fields = ["id"]
    actions = ["suspend_jobs", "resume_jobs", "cancel_jobs"]
    readonly_fields = [
        "id",
        "type",
        "status",
        "input",
        "output",
        "error",
        "is_scheduled",
        "api_calls_used",
        "created_at",
        "started_at",
        "completed_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    fieldsets = (
        ("Job Information", {
            "fields": ("id", "type", "status", "is_scheduled", "input"),
        }),
        ("Timing", {
            "fields": ("created_at", "started_at", "completed_at", "updated_at"),
        }),
        ("Result", {
            "fields": ("api_calls_used", "output", "error"),
        }),
    )

    def id_short(self, obj):
        """Display shortened job ID."""
        return str(obj.id)[:8]
    id_short.short_description = "Job ID"

    def status_badge(self, obj):
        """Display status as colored badge."""
        return format_html(
            '<span style="background-color: {}; color: white; '
            'padding: 2px 8px; border-radius: 4px;">{}</span>',
            STATUS_COLORS.get(obj.status, "#6c757d"), obj.status.title()
        )
    status_badge.short_description = "Status"
    status_badge.admin_order_field = "status"

    def duration_display(self, obj):
        """Display job duration in human-readable format."""
        seconds = obj.duration_seconds
        if seconds is None:
            return "-"
        if seconds < 60:
            return f"{seconds:.1f}s"
        return f"{seconds / 60:.1f}m"
    duration_display.short_description = "Duration"

    def _apply(self, request, queryset, operation, verb):
        count = 0
        for job in queryset:
            try:
                if operation(job.id) is not None:
                    count += 1
            except JobStateError as e:
                self.message_user(request, f"Job {str(job.id)[:8]}: {e}", level=messages.WARNING)
        self.message_user(request, f"{verb} {count} job(s).")

    @admin.action(description="Suspend selected jobs")
    def suspend_jobs(self, request, queryset):
        """Suspend selected jobs that have not finished."""
        self._apply(request, queryset, JobScheduler().suspend_job, "Suspended")

    @admin.action(description="Resume selected jobs")
    def resume_jobs(self, request, queryset):
        """Resume selected suspended jobs."""
        self._apply(request, queryset, JobScheduler().resume_job, "Resumed")

    @admin.action(description="Cancel selected jobs")
    def cancel_jobs(self, request, queryset):
        """Cancel selected jobs and their schedules."""
        scheduler = JobScheduler()
        count = sum(1 for job in queryset if scheduler.cancel_scheduled_job(job.id))
        self.message_user(request, f"Cancelled {count} job(s).")


class PriceSnapshotInline(admin.TabularInline):
    model = PriceSnapshot
    extra = 0
    fields = ["price", "original_price", "currency", "availability", "seller_name", "collected_at"]
    readonly_fields = fields
    ordering = ["-collected_at"]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ["asin", "title", "brand", "rating", "review_count", "updated_at"]
    list_filter = ["currency", "category"]
    search_fields = ["asin", "title", "brand"]
    readonly_fields = ["id", "created_at", "updated_at"]
    inlines = [PriceSnapshotInline]
    actions = ["collect_now"]

    @admin.action(description="Collect now")
    def collect_now(self, request, queryset):
        """Queue a manual product collection for each selected product."""
        scheduler = JobScheduler()
        count = 0
        for product in queryset:
            scheduler.trigger_manual_collection({"type": "product", "asin": product.asin})
            count += 1
        self.message_user(
            request,
            f"Queued collection for {count} product(s). Jobs will be processed shortly."
        )


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ["product", "rating", "author", "verified", "date"]
    list_filter = ["rating", "verified"]
    search_fields = ["product__asin", "author", "title"]
    raw_id_fields = ["product"]


@admin.register(Seller)
class SellerAdmin(admin.ModelAdmin):
    list_display = ["name", "rating", "feedback_count", "updated_at"]
    search_fields = ["name"]


@admin.register(ProductSearch)
class ProductSearchAdmin(admin.ModelAdmin):
    list_display = ["query", "total_results", "products_collected", "created_at"]
    search_fields = ["query"]
    raw_id_fields = ["job"]


@admin.register(ApiUsage)
class ApiUsageAdmin(admin.ModelAdmin):
    list_display = ["month", "calls_used", "calls_limit", "percentage_used", "last_used"]
    ordering = ["-month"]


@admin.register(RecurringSchedule)
class RecurringScheduleAdmin(admin.ModelAdmin):
    list_display = ["job", "job_type", "pattern", "timezone", "is_active", "next_run_at", "run_count"]
    list_filter = ["is_active", "job_type"]
    raw_id_fields = ["job"]
