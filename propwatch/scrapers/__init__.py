"""Scraper system for fetching property listings from Spanish listing sites.

This package provides:
- Base scraper classes for browser-rendered and static HTML sources
- Utility modules for rate limiting, the shared browser and text extraction
- Factory for creating and managing scraper instances
- The orchestrator that runs a full crawl cycle (propwatch.scrapers.orchestrator)
"""

from .base import (
    BaseSourceScraper,
    BrowserSourceScraper,
    HttpSourceScraper,
    RawListing,
    SearchTarget,
)
from .factory import ScraperFactory, get_scraper_factory, scraper_factory

__all__ = [
    # Base classes
    "BaseSourceScraper",
    "BrowserSourceScraper",
    "HttpSourceScraper",
    # Data structures
    "RawListing",
    "SearchTarget",
    # Factory
    "ScraperFactory",
    "scraper_factory",
    "get_scraper_factory",
]
