"""
Services module for the Product Data Collector.

Contains:
- scraperapi_client: ScraperAPI structured Amazon endpoints client
- response_normalizer: Multi-shape payload normalization
- amazon_collector: Quota-gated collection operations
- data_processor: Mapping of normalized records onto storage entities
- usage_tracker: Monthly external API call budget
- collection_worker: Execution of dequeued collection jobs
- scheduler: Manual triggers, price tracking and suspension
"""

from collector.services.scraperapi_client import ScraperAPIClient, ScraperAPIError
from collector.services.amazon_collector import AmazonCollector
from collector.services.data_processor import DataProcessor, get_data_processor
from collector.services.usage_tracker import UsageTracker, get_usage_tracker
