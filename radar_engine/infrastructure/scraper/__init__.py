# Scraper Package
"""
Page-level scraping steps.

This module provides:
- RateLimiter: Token bucket per site
- wait_for_container: Progressive container wait
- scroll_page: Fixed and adaptive scrolling
- AdExtractor: Listing extraction from container HTML
"""

from radar_engine.infrastructure.scraper.container_waiter import (
    ContainerWaitResult,
    find_selector,
    wait_for_container,
)
from radar_engine.infrastructure.scraper.parsers import AdExtractionOutput, AdExtractor
from radar_engine.infrastructure.scraper.rate_limiter import BucketStatus, RateLimiter
from radar_engine.infrastructure.scraper.scroller import scroll_page

__all__ = [
    # Rate limiting
    "RateLimiter",
    "BucketStatus",
    # Page steps
    "ContainerWaitResult",
    "find_selector",
    "wait_for_container",
    "scroll_page",
    # Extraction
    "AdExtractor",
    "AdExtractionOutput",
]
