"""Search alert matching for newly seen listings."""

from datetime import datetime
from typing import List, Optional, Protocol

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from propwatch.models.listing import Listing
from propwatch.models.search_alert import SearchAlert

logger = structlog.get_logger(__name__)


class Notifier(Protocol):
    """Delivery channel for alert matches (push, email, ...)."""

    async def send(self, alert: SearchAlert, listing: Listing) -> None:
        ...


class LogNotifier:
    """Notifier that only logs the match. Used when no push transport is configured."""

    async def send(self, alert: SearchAlert, listing: Listing) -> None:
        logger.info(
            "alert_match",
            alert_id=str(alert.id),
            alert_name=alert.name or "Tu alerta",
            listing_id=str(listing.id),
            title=listing.title or "Nuevo inmueble",
            price=str(listing.price) if listing.price is not None else None,
            url=listing.url,
        )


class AlertService:
    """Matches active search alerts against listings first seen since a given time."""

    def __init__(self, db: AsyncSession, notifier: Optional[Notifier] = None):
        self.db = db
        self.notifier = notifier or LogNotifier()
        self.logger = logger.bind(service="alert_service")

    async def get_active_alerts(self) -> List[SearchAlert]:
        result = await self.db.execute(
            select(SearchAlert).where(SearchAlert.is_active == True).order_by(SearchAlert.created_at)  # noqa: E712
        )
        return list(result.scalars().all())

    async def find_matches(self, alert: SearchAlert, since: datetime) -> List[Listing]:
        """Active listings first seen at or after `since` that satisfy the alert.

        Null criteria match everything; bounds are inclusive.
        """
        stmt = select(Listing).where(
            Listing.is_active == True,  # noqa: E712
            Listing.first_seen_at >= since,
        )
        if alert.operation_type:
            stmt = stmt.where(Listing.operation_type == alert.operation_type)
        if alert.property_type:
            stmt = stmt.where(Listing.property_type == alert.property_type)
        if alert.city:
            stmt = stmt.where(func.lower(Listing.city) == alert.city.lower())
        if alert.min_price is not None:
            stmt = stmt.where(Listing.price >= alert.min_price)
        if alert.max_price is not None:
            stmt = stmt.where(Listing.price <= alert.max_price)
        if alert.min_rooms is not None:
            stmt = stmt.where(Listing.rooms >= alert.min_rooms)
        if alert.max_rooms is not None:
            stmt = stmt.where(Listing.rooms <= alert.max_rooms)
        if alert.min_area is not None:
            stmt = stmt.where(Listing.area_m2 >= alert.min_area)
        if alert.max_area is not None:
            stmt = stmt.where(Listing.area_m2 <= alert.max_area)

        result = await self.db.execute(stmt.order_by(Listing.first_seen_at.desc()))
        return list(result.scalars().all())

    async def notify_new_matches(self, since: datetime) -> int:
        """Notify every active alert about listings first seen since `since`.

        A failure for one alert is logged and does not affect the others.

        Returns:
            Number of notifications sent
        """
        alerts = await self.get_active_alerts()
        self.logger.info("checking_alert_matches", alerts=len(alerts), since=since.isoformat())

        sent = 0
        for alert in alerts:
            try:
                matches = await self.find_matches(alert, since)
                if not matches:
                    continue

                self.logger.info("alert_matches_found", alert_id=str(alert.id), count=len(matches))
                if not alert.push_token:
                    self.logger.debug("alert_has_no_push_token", alert_id=str(alert.id))
                    continue

                for listing in matches:
                    await self.notifier.send(alert, listing)
                    sent += 1
            except Exception as e:
                self.logger.error("alert_check_failed", alert_id=str(alert.id), error=str(e), exc_info=True)

        return sent
