"""
Collector REST API views.

This module provides endpoints for:
- Manual collection triggers (single product or keyword search)
- Products with their price history and reviews
- Recurring price tracking
- Job history, status, scheduling, suspension and resumption
- API usage and dashboard statistics

All endpoints require authentication. Collection failures are reported on
the job record and never surface as a 500 here.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from django.conf import settings
from django.db.models import Count
from django.utils import timezone
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from collector.api.pagination import CollectorPagination
from collector.api.throttling import CollectionTriggerThrottle, ScheduleThrottle
from collector.models import JobStatus, JobType, PriceSnapshot, Product, Review, ScrapeJob
from collector.queue import get_job_queue
from collector.services.scheduler import JobScheduler, JobStateError
from collector.services.usage_tracker import get_usage_tracker

logger = logging.getLogger(__name__)


def _get_scheduler() -> JobScheduler:
    return JobScheduler(get_job_queue())


def _int_param(request, name: str, default: int, maximum: Optional[int] = None) -> int:
    """Positive integer query parameter with a default and optional cap."""
    try:
        value = int(request.query_params.get(name, default))
    except (TypeError, ValueError):
        value = default
    value = max(1, value)
    return min(value, maximum) if maximum else value


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


def _serialize_product(product: Product) -> Dict[str, Any]:
    return {
        'id': str(product.id),
        'asin': product.asin,
        'title': product.title,
        'description': product.description,
        'brand': product.brand,
        'category': product.category,
        'images': product.images,
        'rating': product.rating,
        'review_count': product.review_count,
        'availability': product.availability,
        'currency': product.currency,
        'specifications': product.specifications,
        'features': product.features,
        'created_at': _isoformat(product.created_at),
        'updated_at': _isoformat(product.updated_at),
    }


def _serialize_price(price: PriceSnapshot) -> Dict[str, Any]:
    return {
        'id': str(price.id),
        'price': str(price.price),
        'original_price': str(price.original_price) if price.original_price is not None else None,
        'currency': price.currency,
        'availability': price.availability,
        'seller_name': price.seller_name,
        'seller_rating': price.seller_rating,
        'prime_eligible': price.prime_eligible,
        'collected_at': _isoformat(price.collected_at),
    }


def _serialize_review(review: Review) -> Dict[str, Any]:
    return {
        'id': str(review.id),
        'rating': review.rating,
        'title': review.title,
        'text': review.text,
        'author': review.author,
        'date': _isoformat(review.date),
        'verified': review.verified,
        'helpful_count': review.helpful_count,
    }


def _serialize_job(job: ScrapeJob) -> Dict[str, Any]:
    return {
        'id': job.id,
        'type': job.type,
        'status': job.status,
        'input': job.input,
        'output': job.output,
        'error': job.error,
        'is_scheduled': job.is_scheduled,
        'api_calls_used': job.api_calls_used,
        'started_at': _isoformat(job.started_at),
        'completed_at': _isoformat(job.completed_at),
        'created_at': _isoformat(job.created_at),
        'updated_at': _isoformat(job.updated_at),
        'duration_seconds': job.duration_seconds,
    }


def _get_product_or_none(asin: str) -> Optional[Product]:
    return Product.objects.filter(asin=(asin or '').strip().upper()).first()


def _product_not_found() -> Response:
    return Response(
        {'success': False, 'error': 'Product not found'},
        status=status.HTTP_404_NOT_FOUND
    )


def _job_not_found() -> Response:
    return Response(
        {'success': False, 'error': 'Job not found'},
        status=status.HTTP_404_NOT_FOUND
    )


# ============================================================
# Products
# ============================================================

@extend_schema(
    tags=['Products'],
    summary='Trigger product collection',
    description='''
    Queue a manual collection job.

    With an ASIN a single product is collected; with a keyword a search is
    run and every result is collected. Manual jobs run ahead of scheduled
    price updates.
    ''',
    request={
        'application/json': {
            'type': 'object',
            'properties': {
                'asin': {'type': 'string', 'description': 'Amazon ASIN, e.g. B08N5WRWNW'},
                'keyword': {'type': 'string', 'description': 'Search keyword'},
                'limit': {'type': 'integer', 'description': 'Maximum search results to collect'},
                'country': {'type': 'string', 'default': 'us'},
            },
        }
    },
    responses={
        202: {
            'description': 'Job queued',
            'content': {
                'application/json': {
                    'example': {
                        'success': True,
                        'job_id': '3f2b6c1e-8d4a-4a57-9a8e-1f0c2d3e4b5a',
                        'message': 'Collection job queued',
                    }
                }
            }
        },
        400: {'description': 'Neither ASIN nor keyword given, or invalid limit'},
    },
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([CollectionTriggerThrottle])
def collect_products(request):
    """
    Queue a product or search collection job.

    Request body:
    {
        "asin": "B08N5WRWNW",   // Either asin ...
        "keyword": "headphones", // ... or keyword
        "limit": 10,            // Optional: search result cap
        "country": "us"         // Optional: marketplace country
    }
    """
    data = request.data
    asin = data.get('asin')
    keyword = data.get('keyword')
    limit = data.get('limit')

    if limit is not None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            return Response(
                {'success': False, 'error': 'limit must be a positive integer'},
                status=status.HTTP_400_BAD_REQUEST
            )

    job_data = {
        'type': JobType.PRODUCT.value if asin else JobType.SEARCH.value,
        'asin': asin,
        'keyword': keyword,
        'limit': limit,
        'country': data.get('country'),
    }

    try:
        job_id = _get_scheduler().trigger_manual_collection(job_data)
    except ValueError as e:
        logger.warning(f"Rejected collection request: {e}")
        return Response(
            {'success': False, 'error': str(e)},
            status=status.HTTP_400_BAD_REQUEST
        )

    return Response(
        {'success': True, 'job_id': job_id, 'message': 'Collection job queued'},
        status=status.HTTP_202_ACCEPTED
    )


@extend_schema(
    tags=['Products'],
    summary='List products',
    description='Paginated list of collected products, newest first.',
    parameters=[
        OpenApiParameter(name='page', type=int, required=False),
        OpenApiParameter(name='limit', type=int, required=False, description='Page size (max 100)'),
        OpenApiParameter(name='search', type=str, required=False, description='Title contains'),
    ],
    responses={200: OpenApiTypes.OBJECT},
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_products(request):
    search = request.query_params.get('search')

    products = Product.objects.order_by('-created_at')
    if search:
        products = products.filter(title__icontains=search)

    paginator = CollectorPagination()
    page = paginator.paginate_queryset(products, request)
    return paginator.get_paginated_response(
        [_serialize_product(p) for p in page], key='products'
    )


@extend_schema(
    tags=['Products'],
    summary='Get product',
    description='Product with its latest 30 price snapshots and 50 reviews.',
    responses={200: OpenApiTypes.OBJECT, 404: {'description': 'Product not found'}},
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def product_detail(request, asin):
    product = _get_product_or_none(asin)
    if product is None:
        return _product_not_found()

    prices = product.prices.order_by('-collected_at')[:30]
    reviews = product.reviews.order_by('-date', '-created_at')[:50]

    return Response({
        'product': _serialize_product(product),
        'price_history': [_serialize_price(p) for p in prices],
        'reviews': [_serialize_review(r) for r in reviews],
    })


@extend_schema(
    tags=['Products'],
    summary='Get price history',
    description='All price snapshots of a product, newest first.',
    responses={200: OpenApiTypes.OBJECT, 404: {'description': 'Product not found'}},
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def product_prices(request, asin):
    product = _get_product_or_none(asin)
    if product is None:
        return _product_not_found()

    prices = product.prices.order_by('-collected_at')
    return Response({'prices': [_serialize_price(p) for p in prices]})


@extend_schema(
    tags=['Products'],
    summary='Get product reviews',
    parameters=[
        OpenApiParameter(name='page', type=int, required=False),
        OpenApiParameter(name='limit', type=int, required=False, description='Page size (max 100)'),
    ],
    responses={200: OpenApiTypes.OBJECT, 404: {'description': 'Product not found'}},
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def product_reviews(request, asin):
    product = _get_product_or_none(asin)
    if product is None:
        return _product_not_found()

    reviews = product.reviews.order_by('-date', '-created_at')

    paginator = CollectorPagination()
    page = paginator.paginate_queryset(reviews, request)
    return paginator.get_paginated_response(
        [_serialize_review(r) for r in page], key='reviews'
    )


@extend_schema(
    tags=['Products'],
    summary='Start or stop price tracking',
    description='''
    POST schedules recurring price updates for the product (default every
    6 hours). DELETE cancels every schedule tracking the product.
    ''',
    request={
        'application/json': {
            'type': 'object',
            'properties': {
                'cron_pattern': {'type': 'string', 'default': '0 */6 * * *'},
                'timezone': {'type': 'string', 'default': 'UTC'},
            },
        }
    },
    responses={
        201: {'description': 'Tracking started'},
        200: {'description': 'Tracking stopped'},
        400: {'description': 'Invalid ASIN, cron pattern or timezone'},
    },
)
@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
@throttle_classes([ScheduleThrottle])
def track_product(request, asin):
    scheduler = _get_scheduler()

    if request.method == 'DELETE':
        cancelled = scheduler.stop_tracking(asin)
        return Response({
            'success': True,
            'cancelled': cancelled,
            'message': 'Product tracking stopped',
        })

    cron_pattern = request.data.get('cron_pattern') or getattr(
        settings, 'COLLECTOR_DEFAULT_TRACK_PATTERN', '0 */6 * * *'
    )
    tz_name = request.data.get('timezone') or 'UTC'

    try:
        job_id = scheduler.schedule_product_updates(asin, cron_pattern, tz_name)
    except ValueError as e:
        return Response(
            {'success': False, 'error': str(e)},
            status=status.HTTP_400_BAD_REQUEST
        )

    return Response(
        {'success': True, 'job_id': job_id, 'message': 'Product tracking started'},
        status=status.HTTP_201_CREATED
    )


# ============================================================
# Jobs
# ============================================================

@extend_schema(
    tags=['Jobs'],
    summary='List jobs',
    description='Most recent job records with queue statistics.',
    parameters=[
        OpenApiParameter(name='limit', type=int, required=False, description='Max jobs (default 50)'),
    ],
    responses={200: OpenApiTypes.OBJECT},
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_jobs(request):
    limit = _int_param(request, 'limit', 50, 500)
    scheduler = _get_scheduler()

    return Response({
        'jobs': [_serialize_job(job) for job in scheduler.get_job_history(limit)],
        'queue': scheduler.queue.get_queue_stats(),
    })


@extend_schema(
    tags=['Jobs'],
    summary='Get job status',
    description='Job record combined with the queue state of the job.',
    parameters=[
        OpenApiParameter(name='job_id', type=str, location=OpenApiParameter.PATH),
    ],
    responses={200: OpenApiTypes.OBJECT, 404: {'description': 'Job not found'}},
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def job_detail(request, job_id):
    queue = get_job_queue()
    state = queue.get_job_state(job_id)
    if state is None:
        return _job_not_found()

    job = queue.get_job(job_id)
    return Response({
        'job': _serialize_job(job) if job else None,
        'state': {
            **state,
            'processed_on': _isoformat(state['processed_on']),
            'finished_on': _isoformat(state['finished_on']),
        },
    })


@extend_schema(
    tags=['Jobs'],
    summary='Schedule recurring price updates',
    request={
        'application/json': {
            'type': 'object',
            'properties': {
                'asin': {'type': 'string'},
                'cron_pattern': {'type': 'string', 'example': '0 */6 * * *'},
                'timezone': {'type': 'string', 'default': 'UTC'},
            },
            'required': ['asin', 'cron_pattern'],
        }
    },
    responses={
        201: {'description': 'Scheduled job created'},
        400: {'description': 'Missing or invalid parameters'},
    },
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([ScheduleThrottle])
def schedule_job(request):
    asin = request.data.get('asin')
    cron_pattern = request.data.get('cron_pattern')

    if not asin or not cron_pattern:
        return Response(
            {'success': False, 'error': 'asin and cron_pattern are required'},
            status=status.HTTP_400_BAD_REQUEST
        )

    try:
        job_id = _get_scheduler().schedule_product_updates(
            asin, cron_pattern, request.data.get('timezone') or 'UTC'
        )
    except ValueError as e:
        return Response(
            {'success': False, 'error': str(e)},
            status=status.HTTP_400_BAD_REQUEST
        )

    return Response(
        {'success': True, 'job_id': job_id, 'message': 'Scheduled job created'},
        status=status.HTTP_201_CREATED
    )


@extend_schema(
    tags=['Jobs'],
    summary='Suspend job',
    description='''
    Suspend a job that has not finished. A queued job is skipped when a
    worker picks it up; a running job is not interrupted.
    ''',
    request=None,
    responses={
        200: {'description': 'Job suspended'},
        400: {'description': 'Job already finished'},
        404: {'description': 'Job not found'},
    },
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def suspend_job(request, job_id):
    try:
        job = _get_scheduler().suspend_job(job_id)
    except JobStateError as e:
        return Response(
            {'success': False, 'error': str(e)},
            status=status.HTTP_400_BAD_REQUEST
        )

    if job is None:
        return _job_not_found()

    return Response({'success': True, 'message': 'Job suspended successfully'})


@extend_schema(
    tags=['Jobs'],
    summary='Resume job',
    request=None,
    responses={
        200: {'description': 'Job resumed'},
        400: {'description': 'Job is not suspended'},
        404: {'description': 'Job not found'},
    },
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def resume_job(request, job_id):
    try:
        job = _get_scheduler().resume_job(job_id)
    except JobStateError as e:
        return Response(
            {'success': False, 'error': str(e)},
            status=status.HTTP_400_BAD_REQUEST
        )

    if job is None:
        return _job_not_found()

    return Response({'success': True, 'message': 'Job resumed successfully'})


# ============================================================
# Usage and dashboard
# ============================================================

@extend_schema(
    tags=['Usage'],
    summary='API usage this month',
    responses={
        200: {
            'description': 'Usage summary',
            'content': {
                'application/json': {
                    'example': {
                        'month': '2025-01',
                        'calls_used': 120,
                        'calls_limit': 1000,
                        'remaining': 880,
                        'percentage_used': 12.0,
                    }
                }
            }
        },
    },
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def usage_stats(request):
    return Response(get_usage_tracker().get_usage_stats())


def _top_products(annotation: str, count_field: str, output_key: str, limit: int = 5):
    products = (
        Product.objects.annotate(**{annotation: Count(count_field)})
        .filter(**{f'{annotation}__gt': 0})
        .order_by(f'-{annotation}')[:limit]
    )
    return [
        {**_serialize_product(p), output_key: getattr(p, annotation)}
        for p in products
    ]


@extend_schema(
    tags=['Dashboard'],
    summary='Dashboard statistics',
    description='''
    Totals for products, prices, reviews and jobs, the ten most recent
    jobs, queue statistics, API usage, and the products with the most
    price snapshots and reviews.
    ''',
    responses={200: OpenApiTypes.OBJECT},
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_stats(request):
    seven_days_ago = timezone.now() - timedelta(days=7)
    job_counts = dict(
        ScrapeJob.objects.values_list('status').annotate(count=Count('id')).order_by()
    )

    return Response({
        'products': {
            'total': Product.objects.count(),
            'recent': Product.objects.filter(created_at__gte=seven_days_ago).count(),
        },
        'prices': {'total': PriceSnapshot.objects.count()},
        'reviews': {'total': Review.objects.count()},
        'jobs': {
            'total': sum(job_counts.values()),
            'completed': job_counts.get(JobStatus.COMPLETED, 0),
            'failed': job_counts.get(JobStatus.FAILED, 0),
            'running': job_counts.get(JobStatus.RUNNING, 0),
            'recent': [_serialize_job(job) for job in ScrapeJob.objects.order_by('-created_at')[:10]],
        },
        'queue': get_job_queue().get_queue_stats(),
        'usage': get_usage_tracker().get_usage_stats(),
        'most_tracked': _top_products('price_total', 'prices', 'price_count'),
        'most_reviewed': _top_products('review_total', 'reviews', 'stored_reviews'),
    })
