"""
Collector Django application.

Collects Amazon product, price and review data through ScraperAPI and
keeps it in the relational store, driven by queued Celery jobs.
"""
