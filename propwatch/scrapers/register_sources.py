"""Register all source scrapers with the factory.

Import and call register_all_scrapers() at process startup (the CLI does).
"""

from typing import Optional

import structlog

from propwatch.scrapers.factory import ScraperFactory, get_scraper_factory
from propwatch.scrapers.sources import FotocasaScraper, IdealistaScraper, PisosComScraper

logger = structlog.get_logger(__name__)

SCRAPERS = [
    ("PISOSCOM", PisosComScraper),
    ("FOTOCASA", FotocasaScraper),
    # Registered but not enabled by default
    ("IDEALISTA", IdealistaScraper),
]


def register_all_scrapers(factory: Optional[ScraperFactory] = None) -> None:
    """Register every available source scraper with the factory."""
    factory = factory or get_scraper_factory()

    for source_id, scraper_class in SCRAPERS:
        factory.register_scraper(source_id, scraper_class)

    logger.info("scrapers_registered", count=len(SCRAPERS), sources=factory.get_registered_sources())
