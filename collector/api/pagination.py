"""
Pagination for collector API list endpoints.

Pages are selected with ``?page=`` and sized with ``?limit=`` (capped at
100). Responses carry the items under their own key next to a
``pagination`` summary.
"""

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class CollectorPagination(PageNumberPagination):
    """Page-number pagination using ``limit`` as the page size parameter."""

    page_size_query_param = 'limit'
    max_page_size = 100

    def get_pagination(self):
        paginator = self.page.paginator
        return {
            'page': self.page.number,
            'limit': paginator.per_page,
            'total': paginator.count,
            'total_pages': paginator.num_pages if paginator.count else 0,
        }

    def get_paginated_response(self, data, key='results'):
        return Response({key: data, 'pagination': self.get_pagination()})
