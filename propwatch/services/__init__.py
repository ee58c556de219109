"""Services module for persistence and business logic.

Services wrap an AsyncSession and implement the stores the orchestrator
depends on: the listing catalog, run records, crawl config and alert
matching.
"""

from propwatch.services.alert_service import AlertService, LogNotifier, Notifier
from propwatch.services.catalog_service import CatalogService
from propwatch.services.config_service import ConfigService
from propwatch.services.run_service import RunService

__all__ = [
    "AlertService",
    "LogNotifier",
    "Notifier",
    "CatalogService",
    "ConfigService",
    "RunService",
]
