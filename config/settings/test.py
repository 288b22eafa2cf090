"""
Test settings for the Product Data Collector.

Uses in-memory SQLite and eager Celery for fast test execution.
"""

from .base import *

DEBUG = False

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "collector-tests",
    }
}

# Run tasks synchronously
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

LOGGING["loggers"]["django"]["level"] = "WARNING"
LOGGING["loggers"]["collector"]["level"] = "WARNING"

AUTH_PASSWORD_VALIDATORS = []

PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

SENTRY_DSN = ""

SCRAPERAPI_API_KEY = "test-key"
SCRAPERAPI_REQUEST_TIMEOUT = 5
SCRAPERAPI_MAX_RETRIES = 3
SCRAPERAPI_MONTHLY_LIMIT = 1000
COLLECTOR_DEFAULT_JOB_ATTEMPTS = 3
COLLECTOR_JOB_BACKOFF_SECONDS = 0
