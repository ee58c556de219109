"""Scraper orchestration.

Drives one crawl cycle end to end: load config, take the single-flight
guard, scrape every configured source in order, filter, reconcile and
persist each listing, finalize the run record, then hand off to alert
matching. Errors are contained at the narrowest level that can absorb
them; nothing escapes run().
"""

import traceback
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

import structlog

from propwatch.core.exceptions import PersistenceError, RunAlreadyActiveError, UnknownSourceError
from propwatch.scrapers.base import BaseSourceScraper, RawListing
from propwatch.scrapers.factory import get_scraper_factory
from propwatch.scrapers.filters import ListingFilters, Predicate, build_chain, passes_filters
from propwatch.services.reconcile import ChangeKind, ListingSnapshot, reconcile, utcnow

logger = structlog.get_logger(__name__)


class CatalogStore(Protocol):
    async def find_by_natural_key(self, external_id: str, source: str) -> Optional[ListingSnapshot]:
        ...

    async def upsert(self, state: ListingSnapshot) -> ListingSnapshot:
        ...

    async def append_price_history(self, listing_id: uuid.UUID, price: Any, at: datetime) -> None:
        ...


class RunStore(Protocol):
    async def reap_stale_runs(self) -> int:
        ...

    async def has_running_run(self) -> bool:
        ...

    async def create_run(self, filters_snapshot: dict) -> Any:
        ...

    async def complete_run(self, run_id: uuid.UUID, counters: dict) -> Any:
        ...

    async def fail_run(self, run_id: uuid.UUID, message: str, details: Optional[str] = None) -> Any:
        ...


class ConfigProvider(Protocol):
    async def get_config(self) -> Any:
        ...


class AlertMatcher(Protocol):
    async def notify_new_matches(self, since: datetime) -> int:
        ...


class ScraperProvider(Protocol):
    def create_scraper(self, source_id: str) -> Optional[BaseSourceScraper]:
        ...


@dataclass
class RunCounters:
    """Aggregate metrics for one run (or one manual single-source pass)."""

    total_found: int = 0
    new_listings: int = 0
    updated_listings: int = 0
    price_changes: int = 0
    filtered_out: int = 0
    errors: int = 0
    source_counts: Dict[str, int] = field(default_factory=dict)

    def record(self, kind: ChangeKind) -> None:
        if kind is ChangeKind.NEW:
            self.new_listings += 1
            return
        self.updated_listings += 1
        if kind is ChangeKind.PRICE_CHANGED:
            self.price_changes += 1

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RunPlan:
    """Plain copy of the config fields a crawl reads after it starts.

    A failed write rolls back the shared session and expires every loaded
    row, so the loop never goes back to the ScraperConfig instance.
    """

    cities: Tuple[str, ...]
    operation_types: Tuple[str, ...]
    sources: Tuple[str, ...]
    filters: ListingFilters

    @classmethod
    def from_config(cls, config: Any) -> "RunPlan":
        return cls(
            cities=tuple(config.cities or ()),
            operation_types=tuple(config.operation_types or ()),
            sources=tuple(config.sources or ()),
            filters=ListingFilters.from_config(config),
        )


class ScraperOrchestrator:
    """Runs crawl cycles against the configured sources.

    Collaborators are injected so the same orchestrator works against the
    SQLAlchemy services or in-memory doubles.
    """

    def __init__(
        self,
        config_provider: ConfigProvider,
        catalog: CatalogStore,
        runs: RunStore,
        alerts: Optional[AlertMatcher] = None,
        scrapers: Optional[ScraperProvider] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config_provider = config_provider
        self.catalog = catalog
        self.runs = runs
        self.alerts = alerts
        self.scrapers = scrapers or get_scraper_factory()
        self._clock = clock
        self.logger = logger.bind(service="orchestrator")

    async def run(self) -> Optional[RunCounters]:
        """Execute one full crawl cycle.

        Returns:
            Counters of the completed run, or None if the run was skipped
            (disabled, another run active) or failed. Never raises.
        """
        try:
            config = await self.config_provider.get_config()
            if not config.enabled:
                self.logger.info("scraper_disabled")
                return None

            await self.runs.reap_stale_runs()
            if await self.runs.has_running_run():
                self.logger.warning("run_already_in_progress")
                return None

            plan = RunPlan.from_config(config)
            run = await self.runs.create_run(config.filters_snapshot())
        except RunAlreadyActiveError:
            self.logger.warning("run_already_in_progress", detected_by="create_run")
            return None
        except Exception as e:
            self.logger.error("run_start_failed", error=str(e), exc_info=True)
            return None

        run_id, started_at = run.id, run.started_at
        log = self.logger.bind(run_id=str(run_id))
        log.info("run_started", sources=list(plan.sources), cities=list(plan.cities))

        try:
            counters = RunCounters()
            chain = build_chain(plan.filters)
            for source_id in plan.sources:
                scraper = self.scrapers.create_scraper(source_id)
                if scraper is None:
                    log.warning("unknown_source_skipped", source=source_id)
                    continue
                await self._run_source(scraper, plan, chain, counters, log)

            await self.runs.complete_run(run_id, counters.as_dict())
        except Exception as e:
            log.error("run_failed", error=str(e), exc_info=True)
            await self._mark_failed(run_id, e, log)
            return None

        log.info("run_finished", **{k: v for k, v in counters.as_dict().items() if k != "source_counts"})
        await self._notify_alerts(started_at, log)
        return counters

    async def run_single_source(self, source_id: str) -> RunCounters:
        """Scrape, filter and persist one source without a run record.

        Raises:
            UnknownSourceError: If no scraper is registered for source_id
        """
        plan = RunPlan.from_config(await self.config_provider.get_config())
        scraper = self.scrapers.create_scraper(source_id)
        if scraper is None:
            raise UnknownSourceError(source_id)

        log = self.logger.bind(mode="single_source")
        counters = RunCounters()
        chain = build_chain(plan.filters)
        await self._run_source(scraper, plan, chain, counters, log)
        log.info("single_source_finished", source=scraper.source_id, **counters.as_dict())
        return counters

    async def _run_source(
        self,
        scraper: BaseSourceScraper,
        plan: RunPlan,
        chain: Sequence[Predicate],
        counters: RunCounters,
        log: Any,
    ) -> None:
        source_id = scraper.source_id
        try:
            listings: List[RawListing] = await scraper.scrape(list(plan.cities), list(plan.operation_types))
        except Exception as e:
            log.error("source_failed", source=source_id, error=str(e), exc_info=True)
            counters.source_counts[source_id] = 0
            return

        counters.source_counts[source_id] = len(listings)
        counters.total_found += len(listings)
        log.info("source_scraped", source=source_id, count=len(listings))

        for listing in listings:
            if not passes_filters(listing, chain):
                counters.filtered_out += 1
                continue
            try:
                kind = await self._persist(listing)
            except PersistenceError as e:
                counters.errors += 1
                log.warning(
                    "listing_persist_failed",
                    source=source_id,
                    external_id=listing.external_id,
                    error=e.message,
                )
                continue
            except Exception as e:
                counters.errors += 1
                log.error(
                    "listing_processing_failed",
                    source=source_id,
                    external_id=listing.external_id,
                    error=str(e),
                    exc_info=True,
                )
                continue
            counters.record(kind)

    async def _persist(self, listing: RawListing) -> ChangeKind:
        now = self._clock()
        existing = await self.catalog.find_by_natural_key(listing.external_id, listing.source)
        result = reconcile(existing, listing, now)
        stored = await self.catalog.upsert(result.state)
        if result.record_price is not None:
            await self.catalog.append_price_history(stored.id, result.record_price, now)
        return result.kind

    async def _mark_failed(self, run_id: uuid.UUID, error: Exception, log: Any) -> None:
        try:
            details = "".join(traceback.format_exception(type(error), error, error.__traceback__))
            await self.runs.fail_run(run_id, str(error) or type(error).__name__, details)
        except Exception as e:
            log.error("run_fail_not_recorded", error=str(e), exc_info=True)

    async def _notify_alerts(self, since: datetime, log: Any) -> None:
        if self.alerts is None:
            return
        try:
            sent = await self.alerts.notify_new_matches(since)
            log.info("alerts_notified", sent=sent)
        except Exception as e:
            log.error("alert_matching_failed", error=str(e), exc_info=True)
