"""
Development settings for the Product Data Collector.

SQLite database, local Redis broker and verbose logging.
"""

import os
from .base import *

DEBUG = True

ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

# Switch to the PostgreSQL block below to test against the shared database
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# DATABASES = {
#     "default": {
#         "ENGINE": "django.db.backends.postgresql",
#         "NAME": os.getenv("DB_NAME", "product_collector"),
#         "USER": os.getenv("DB_USER", "postgres"),
#         "PASSWORD": os.getenv("DB_PASSWORD", ""),
#         "HOST": os.getenv("DB_HOST", "localhost"),
#         "PORT": os.getenv("DB_PORT", "5432"),
#     }
# }

# Database cache so the rate limiter works across local worker processes
# (create it with `manage.py createcachetable`)
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.db.DatabaseCache",
        "LOCATION": "cache_table",
    }
}

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

LOGGING["loggers"]["django"]["level"] = "DEBUG"
LOGGING["loggers"]["collector"]["level"] = "DEBUG"

INTERNAL_IPS = ["127.0.0.1"]

AUTH_PASSWORD_VALIDATORS = []

# Fail fast in development
SCRAPERAPI_MAX_RETRIES = 1
COLLECTOR_DEFAULT_JOB_ATTEMPTS = 1
