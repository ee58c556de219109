"""Factory for creating and managing source scraper instances."""

from typing import Dict, List, Optional, Type

import structlog

from propwatch.scrapers.base import BaseSourceScraper, BrowserSourceScraper
from propwatch.scrapers.utils.browser_manager import BrowserSessionManager, get_browser_manager
from propwatch.scrapers.utils.rate_limiter import RateLimiter, get_rate_limiter

logger = structlog.get_logger(__name__)


class ScraperFactory:
    """Registry of source scrapers keyed by source id.

    Injects the process-wide rate limiter and browser manager into every
    scraper it creates.
    """

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        browser: Optional[BrowserSessionManager] = None,
    ):
        self._rate_limiter = rate_limiter
        self._browser = browser
        self._registry: Dict[str, Type[BaseSourceScraper]] = {}

    def register_scraper(self, source_id: str, scraper_class: Type[BaseSourceScraper]) -> None:
        """Register a scraper class for a source.

        Args:
            source_id: Source identifier (e.g. "FOTOCASA")
            scraper_class: Class inheriting from BaseSourceScraper
        """
        if not issubclass(scraper_class, BaseSourceScraper):
            raise ValueError(f"Scraper class must inherit from BaseSourceScraper: {scraper_class}")

        self._registry[source_id.upper()] = scraper_class
        logger.debug("scraper_registered", source=source_id, scraper=scraper_class.__name__)

    def create_scraper(self, source_id: str) -> Optional[BaseSourceScraper]:
        """Create a configured scraper, or None if the source is unknown."""
        scraper_class = self._registry.get(source_id.upper())
        if scraper_class is None:
            logger.warning("scraper_not_found", source=source_id)
            return None

        rate_limiter = self._rate_limiter or get_rate_limiter()
        if issubclass(scraper_class, BrowserSourceScraper):
            return scraper_class(rate_limiter=rate_limiter, browser=self._browser or get_browser_manager())
        return scraper_class(rate_limiter=rate_limiter)

    def get_registered_sources(self) -> List[str]:
        return list(self._registry.keys())

    def has_scraper(self, source_id: str) -> bool:
        return source_id.upper() in self._registry


# Global factory instance
scraper_factory = ScraperFactory()


def get_scraper_factory() -> ScraperFactory:
    """Get the global scraper factory instance."""
    return scraper_factory
