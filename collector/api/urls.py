"""
Collector API URL configuration.

Endpoints:
- POST   /api/v1/products/collect/            - Trigger product or search collection
- GET    /api/v1/products/                    - List products
- GET    /api/v1/products/<asin>/             - Product with prices and reviews
- GET    /api/v1/products/<asin>/prices/      - Price history
- GET    /api/v1/products/<asin>/reviews/     - Paginated reviews
- POST   /api/v1/products/<asin>/track/       - Start recurring price updates
- DELETE /api/v1/products/<asin>/track/       - Stop recurring price updates
- GET    /api/v1/jobs/                        - Job history and queue stats
- POST   /api/v1/jobs/schedule/               - Schedule recurring price updates
- GET    /api/v1/jobs/<job_id>/               - Job status
- POST   /api/v1/jobs/<job_id>/suspend/       - Suspend job
- POST   /api/v1/jobs/<job_id>/resume/        - Resume job
- GET    /api/v1/usage/                       - Monthly API usage
- GET    /api/v1/dashboard/stats/             - Dashboard statistics
"""

from django.urls import path

from collector.api.views import (
    collect_products,
    list_products,
    product_detail,
    product_prices,
    product_reviews,
    track_product,
    list_jobs,
    schedule_job,
    job_detail,
    suspend_job,
    resume_job,
    usage_stats,
    dashboard_stats,
)

app_name = 'collector_api'

urlpatterns = [
    # Products
    path('products/', list_products, name='list_products'),
    path('products/collect/', collect_products, name='collect_products'),
    path('products/<str:asin>/', product_detail, name='product_detail'),
    path('products/<str:asin>/prices/', product_prices, name='product_prices'),
    path('products/<str:asin>/reviews/', product_reviews, name='product_reviews'),
    path('products/<str:asin>/track/', track_product, name='track_product'),

    # Jobs
    path('jobs/', list_jobs, name='list_jobs'),
    path('jobs/schedule/', schedule_job, name='schedule_job'),
    path('jobs/<str:job_id>/', job_detail, name='job_detail'),
    path('jobs/<str:job_id>/suspend/', suspend_job, name='suspend_job'),
    path('jobs/<str:job_id>/resume/', resume_job, name='resume_job'),

    # Usage and dashboard
    path('usage/', usage_stats, name='usage_stats'),
    path('dashboard/stats/', dashboard_stats, name='dashboard_stats'),
]
