"""Base source scraper interface.

Every listing source inherits from BaseSourceScraper (through the browser
or plain HTTP variant) and implements page parsing. URL building, per-page
error containment and per-element error containment live here.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

import httpx
import structlog
from bs4 import BeautifulSoup, Tag

from propwatch.config import settings
from propwatch.core.exceptions import ParseError
from propwatch.models.listing import OperationType, PropertyType
from propwatch.scrapers.utils.browser_manager import BrowserSessionManager, get_browser_manager
from propwatch.scrapers.utils.normalizer import LocationInfo
from propwatch.scrapers.utils.rate_limiter import RateLimiter, get_rate_limiter
from propwatch.scrapers.utils.retry import http_retry
from propwatch.scrapers.utils.user_agents import default_headers

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RawListing:
    """One property ad as extracted from a search page, before reconciliation."""

    external_id: str  # Source-specific ad id
    source: str
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    operation_type: Optional[OperationType] = None
    property_type: Optional[PropertyType] = None
    rooms: Optional[int] = None
    bathrooms: Optional[int] = None
    area_m2: Optional[Decimal] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    zone: Optional[str] = None
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None
    image_urls: Tuple[str, ...] = ()
    url: Optional[str] = None

    def __post_init__(self):
        if not self.external_id:
            raise ValueError("external_id is required")
        if not self.source:
            raise ValueError("source is required")


class SearchTarget(NamedTuple):
    """One search page to crawl: a (location, operation type) pair."""

    url: str
    city: str
    province: Optional[str]
    operation_type: OperationType


class BaseSourceScraper(ABC):
    """Abstract base class for all listing sources.

    Subclasses set source_id, base_url and LOCATIONS (display name ->
    source slug and province) and implement build_search_url(),
    fetch_document(), select_items() and parse_item().
    """

    source_id: str = ""  # Must be overridden (e.g. "FOTOCASA")
    base_url: str = ""
    LOCATIONS: Dict[str, LocationInfo] = {}

    def __init__(self, rate_limiter: Optional[RateLimiter] = None):
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.logger = logger.bind(source=self.source_id)

    @abstractmethod
    def build_search_url(self, slug: str, operation_type: OperationType) -> str:
        """Search page URL for a location slug and operation type."""

    @abstractmethod
    async def fetch_document(self, url: str) -> Optional[BeautifulSoup]:
        """Fetch and parse a search page. Returns None when it can't be fetched."""

    @abstractmethod
    def select_items(self, document: BeautifulSoup) -> List[Tag]:
        """Candidate listing elements on a search page."""

    @abstractmethod
    def parse_item(self, item: Tag, target: SearchTarget) -> RawListing:
        """Map one listing element to a RawListing.

        Raises:
            ParseError: If the element has no detail link or identifier
        """

    def search_targets(self, cities: Sequence[str], operation_types: Sequence[str]) -> List[SearchTarget]:
        """Build one search target per (city, operation type) pair.

        Unknown cities and operation types are skipped with a warning.
        """
        operations: List[OperationType] = []
        for op in operation_types:
            try:
                operations.append(OperationType(op.upper()))
            except ValueError:
                self.logger.warning("unknown_operation_type", operation_type=op)

        targets = []
        for city in cities:
            location = self.LOCATIONS.get(city)
            if location is None:
                self.logger.warning("unknown_location", city=city)
                continue
            for operation in operations:
                targets.append(
                    SearchTarget(
                        url=self.build_search_url(location.slug, operation),
                        city=city,
                        province=location.province,
                        operation_type=operation,
                    )
                )
        return targets

    async def scrape(self, cities: Sequence[str], operation_types: Sequence[str]) -> List[RawListing]:
        """Scrape every search page for the given cities and operation types.

        A page that fails is logged and skipped; the remaining pages still run.
        """
        targets = self.search_targets(cities, operation_types)
        self.logger.info(
            "scrape_started",
            urls=len(targets),
            cities=len(cities),
            operation_types=len(operation_types),
        )

        listings: List[RawListing] = []
        for target in targets:
            try:
                page_listings = await self.scrape_search_page(target)
            except Exception as e:
                self.logger.error("search_page_failed", url=target.url, error=str(e), exc_info=True)
                continue
            listings.extend(page_listings)
            self.logger.info("search_page_scraped", url=target.url, count=len(page_listings))

        self.logger.info("scrape_completed", total=len(listings))
        return listings

    async def scrape_search_page(self, target: SearchTarget) -> List[RawListing]:
        document = await self.fetch_document(target.url)
        if document is None:
            self.logger.warning("search_page_unavailable", url=target.url)
            return []

        items = self.select_items(document)
        self.logger.debug("listing_items_found", url=target.url, count=len(items))
        return self.parse_items(items, target)

    def parse_items(self, items: Sequence[Tag], target: SearchTarget) -> List[RawListing]:
        """Parse every element, skipping the ones that fail."""
        listings = []
        for item in items:
            try:
                listings.append(self.parse_item(item, target))
            except ParseError as e:
                self.logger.debug("listing_item_skipped", reason=e.message)
            except Exception as e:
                self.logger.warning("listing_item_parse_failed", error=str(e))
        return listings

    def _require(self, value: Optional[str], reason: str) -> str:
        if not value:
            raise ParseError(self.source_id, reason)
        return value


class BrowserSourceScraper(BaseSourceScraper):
    """Base class for sources that need script execution to render results.

    Pages are fetched through the shared BrowserSessionManager after taking
    a slot from the shared rate limiter.
    """

    wait_selector: Optional[str] = None

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        browser: Optional[BrowserSessionManager] = None,
    ):
        super().__init__(rate_limiter)
        self.browser = browser or get_browser_manager()

    async def fetch_document(self, url: str) -> Optional[BeautifulSoup]:
        await self.rate_limiter.acquire()
        return await self.browser.fetch_page_with_retry(url, self.wait_selector)


class HttpSourceScraper(BaseSourceScraper):
    """Base class for sources whose search pages are served as static HTML.

    Uses an httpx.AsyncClient; when none is injected, one is opened for the
    duration of scrape() and closed afterwards.
    """

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(rate_limiter)
        self.http_client = http_client

    async def scrape(self, cities: Sequence[str], operation_types: Sequence[str]) -> List[RawListing]:
        if self.http_client is not None:
            return await super().scrape(cities, operation_types)

        async with httpx.AsyncClient(
            timeout=settings.HTTP_TIMEOUT_S,
            follow_redirects=True,
            headers=default_headers(),
        ) as client:
            self.http_client = client
            try:
                return await super().scrape(cities, operation_types)
            finally:
                self.http_client = None

    async def fetch_document(self, url: str) -> Optional[BeautifulSoup]:
        try:
            html = await self._get(url)
        except httpx.HTTPError as e:
            self.logger.warning("http_fetch_failed", url=url, error=str(e))
            return None
        return BeautifulSoup(html, "html.parser")

    @http_retry
    async def _get(self, url: str) -> str:
        if self.http_client is None:
            raise RuntimeError("http_client is only available inside scrape()")
        # Every attempt, retries included, waits for its own slot
        await self.rate_limiter.acquire()
        response = await self.http_client.get(url)
        response.raise_for_status()
        return response.text
