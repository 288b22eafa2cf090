"""
Pytest configuration and fixtures for the Product Data Collector test suite.
"""

import pytest


@pytest.fixture(scope="session")
def django_db_setup(django_db_blocker):
    """Configure the test database and run migrations."""
    from django.core.management import call_command

    with django_db_blocker.unblock():
        call_command("migrate", "--run-syncdb", verbosity=0)


@pytest.fixture(autouse=True)
def clear_cache():
    """Reset throttle and job start counters between tests."""
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Create a test API client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def user(db):
    """Create a regular user."""
    from django.contrib.auth import get_user_model

    return get_user_model().objects.create_user(
        username="collector-user",
        password="test-password",
    )


@pytest.fixture
def authenticated_client(api_client, user):
    """API client logged in as a regular user."""
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def product(db):
    """Create a stored product."""
    from collector.models import Product

    return Product.objects.create(
        asin="B08N5WRWNW",
        title="Echo Dot (4th Gen) Smart speaker",
        brand="Amazon",
        category="Electronics",
        images=["https://m.media-amazon.com/images/I/echo.jpg"],
        rating=4.7,
        review_count=12034,
        availability="In Stock",
        currency="USD",
    )


@pytest.fixture
def product_payload():
    """Raw product payload as returned by the structured product endpoint."""
    return {
        "asin": "B08N5WRWNW",
        "name": "Echo Dot (4th Gen)   Smart speaker",
        "pricing": "$49.99",
        "list_price": "$59.99",
        "brand": "Amazon",
        "images": [
            "https://m.media-amazon.com/images/I/echo.jpg",
            "not-a-url",
        ],
        "average_rating": 4.7,
        "total_reviews": 12034,
        "availability_status": "In Stock",
        "product_information": {
            "ASIN": "B08N5WRWNW",
            "Item Weight": "12 ounces",
        },
        "feature_bullets": ["Improved speaker", "Voice control"],
    }


@pytest.fixture
def mock_usage_tracker():
    """Usage tracker double that always allows calls."""
    from unittest.mock import MagicMock

    tracker = MagicMock()
    tracker.can_make_call.return_value = True
    return tracker
