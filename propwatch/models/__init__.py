"""SQLAlchemy models for propwatch.

All models are imported here so metadata.create_all sees every table.
"""

from propwatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from propwatch.models.listing import Listing, OperationType, PropertyType
from propwatch.models.price_history import PriceHistory
from propwatch.models.scraper_run import RunStatus, ScraperRun
from propwatch.models.scraper_config import ScraperConfig
from propwatch.models.search_alert import SearchAlert

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Listing",
    "OperationType",
    "PropertyType",
    "PriceHistory",
    "RunStatus",
    "ScraperRun",
    "ScraperConfig",
    "SearchAlert",
]
