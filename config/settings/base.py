"""
Django base settings for the Product Data Collector.

This module contains settings common to all environments.
For more information on this file, see
https://docs.djangoproject.com/en/4.2/topics/settings/
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv(
    "SECRET_KEY",
    "django-insecure-collector-dev-key-change-in-production"
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv("DEBUG", "True") == "True"

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")


# Application definition

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party apps
    "rest_framework",
    "drf_spectacular",
    # Local apps
    "collector",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"


# Database
# Configured in environment-specific settings (development.py, production.py, test.py)

DATABASES = {
    # Override in environment-specific settings
}


AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]


# Internationalization

LANGUAGE_CODE = "en-us"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True


# Static files (CSS, JavaScript, Images)

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Cache - backs the global job start rate limiter.
# Configured in environment-specific settings

CACHES = {
    # Override in environment-specific settings
}


# Celery Configuration
# https://docs.celeryproject.org/en/stable/django/first-steps-with-django.html

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 15 * 60  # 15 minutes max for a collection job
# Store task name/args with results so job state lookups can return the payload
CELERY_RESULT_EXTENDED = True
CELERY_RESULT_EXPIRES = 24 * 60 * 60

# Bounded concurrency: each worker process handles one job at a time
CELERY_WORKER_CONCURRENCY = int(os.getenv("CELERY_WORKER_CONCURRENCY", "5"))
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_TASK_ACKS_LATE = True
CELERY_TASK_REJECT_ON_WORKER_LOST = True

# Priority support on the Redis transport (0 = highest)
CELERY_BROKER_TRANSPORT_OPTIONS = {
    "queue_order_strategy": "priority",
    "priority_steps": list(range(10)),
    "sep": ":",
}

CELERY_TASK_ROUTES = {
    "collector.tasks.process_collection_job": {"queue": "collection"},
    "collector.tasks.check_due_schedules": {"queue": "default"},
    "collector.tasks.clean_old_jobs": {"queue": "default"},
}


# Django REST Framework Configuration
# https://www.django-rest-framework.org/

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PAGINATION_CLASS": "collector.api.pagination.CollectorPagination",
    "PAGE_SIZE": 20,
}


# DRF Spectacular (OpenAPI/Swagger) Configuration

SPECTACULAR_SETTINGS = {
    "TITLE": "Product Data Collector API",
    "DESCRIPTION": "Amazon product, price and review collection service",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}


# Logging Configuration
# https://docs.djangoproject.com/en/4.2/topics/logging/

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
        "collector": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
    },
}


# ScraperAPI (structured Amazon endpoints)

SCRAPERAPI_API_KEY = os.getenv("SCRAPERAPI_API_KEY", "")
SCRAPERAPI_BASE_URL = os.getenv("SCRAPERAPI_BASE_URL", "https://api.scraperapi.com")

# Monthly call budget of the plan
SCRAPERAPI_MONTHLY_LIMIT = int(
    os.getenv("SCRAPERAPI_MONTHLY_LIMIT", os.getenv("SCRAPERAPI_FREE_TIER_LIMIT", "1000"))
)

# Structured endpoints render the page upstream, so responses are slow
SCRAPERAPI_REQUEST_TIMEOUT = float(os.getenv("SCRAPERAPI_REQUEST_TIMEOUT", "70"))

# Attempts per request (429, 5xx, timeouts and connection errors are retried)
SCRAPERAPI_MAX_RETRIES = int(os.getenv("SCRAPERAPI_MAX_RETRIES", "3"))


# Collector Configuration

# Deliveries per job before it is left failed
COLLECTOR_DEFAULT_JOB_ATTEMPTS = int(os.getenv("COLLECTOR_DEFAULT_JOB_ATTEMPTS", "3"))

# Base of the exponential job backoff (seconds)
COLLECTOR_JOB_BACKOFF_SECONDS = float(os.getenv("COLLECTOR_JOB_BACKOFF_SECONDS", "2"))

# Global start rate across all workers
COLLECTOR_RATE_LIMIT_MAX_STARTS = int(os.getenv("COLLECTOR_RATE_LIMIT_MAX_STARTS", "10"))
COLLECTOR_RATE_LIMIT_WINDOW_SECONDS = int(
    os.getenv("COLLECTOR_RATE_LIMIT_WINDOW_SECONDS", "60")
)

# Reviews pulled alongside a product when the payload carries none
COLLECTOR_REVIEW_FETCH_LIMIT = int(os.getenv("COLLECTOR_REVIEW_FETCH_LIMIT", "50"))

# Finished job records are kept this long before clean_old_jobs removes them
COLLECTOR_COMPLETED_JOB_RETENTION_HOURS = int(
    os.getenv("COLLECTOR_COMPLETED_JOB_RETENTION_HOURS", "24")
)
COLLECTOR_FAILED_JOB_RETENTION_DAYS = int(
    os.getenv("COLLECTOR_FAILED_JOB_RETENTION_DAYS", "7")
)

# Default cron pattern for tracked products (every 6 hours)
COLLECTOR_DEFAULT_TRACK_PATTERN = os.getenv("COLLECTOR_DEFAULT_TRACK_PATTERN", "0 */6 * * *")


# Sentry Configuration
# https://docs.sentry.io/platforms/python/guides/django/

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.2"))

# Initialize Sentry
import sentry_sdk

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        send_default_pii=False,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        environment=SENTRY_ENVIRONMENT,
    )
