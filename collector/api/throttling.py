"""
Throttle classes for the collector API.
"""

from rest_framework.throttling import UserRateThrottle


class CollectionTriggerThrottle(UserRateThrottle):
    """
    Throttle for manual collection triggers.

    Rate: 30 requests per hour per user. Every trigger spends external
    API calls from the monthly budget.
    Applied to: /api/v1/products/collect/
    """

    rate = '30/hour'
    scope = 'collection_trigger'


class ScheduleThrottle(UserRateThrottle):
    """
    Throttle for endpoints that create recurring schedules.

    Rate: 20 requests per hour per user.
    Applied to: /api/v1/products/<asin>/track/, /api/v1/jobs/schedule/
    """

    rate = '20/hour'
    scope = 'schedule'
