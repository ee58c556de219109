"""Catalog service: listing storage and price history.

Implements the catalog store the orchestrator writes through. Reads hand
back detached ListingSnapshot values; writes take the state produced by
reconcile().
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from propwatch.core.exceptions import PersistenceError
from propwatch.models.listing import Listing
from propwatch.models.price_history import PriceHistory
from propwatch.services.reconcile import ListingSnapshot

logger = structlog.get_logger(__name__)


class CatalogService:
    """Service for persisted listings and their price history."""

    def __init__(self, db: AsyncSession):
        """Initialize catalog service.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="catalog_service")

    async def find_by_natural_key(self, external_id: str, source: str) -> Optional[ListingSnapshot]:
        """Look up a listing by its (external_id, source) pair."""
        try:
            result = await self.db.execute(
                select(Listing).where(
                    Listing.external_id == external_id,
                    Listing.source == source,
                )
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"lookup of {source}/{external_id} failed: {e}") from e

        listing = result.scalar_one_or_none()
        return ListingSnapshot.from_model(listing) if listing else None

    async def upsert(self, state: ListingSnapshot) -> ListingSnapshot:
        """Insert a new listing (state.id is None) or overwrite an existing one.

        Returns:
            The stored state, with id populated

        Raises:
            PersistenceError: If the write fails; the session is rolled back
        """
        try:
            if state.id is None:
                listing = Listing(**state.column_values())
                self.db.add(listing)
            else:
                listing = await self.db.get(Listing, state.id)
                if listing is None:
                    raise PersistenceError(f"listing {state.id} no longer exists")
                for name, value in state.column_values().items():
                    setattr(listing, name, value)

            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"upsert of {state.source}/{state.external_id} failed: {e}") from e

        self.logger.debug(
            "listing_upserted",
            listing_id=str(listing.id),
            source=state.source,
            external_id=state.external_id,
        )
        return ListingSnapshot.from_model(listing)

    async def append_price_history(self, listing_id: uuid.UUID, price: Decimal, at: datetime) -> None:
        """Append one price observation for a listing."""
        try:
            self.db.add(PriceHistory(listing_id=listing_id, price=price, recorded_at=at))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"price history for {listing_id} failed: {e}") from e

        self.logger.debug("price_history_recorded", listing_id=str(listing_id), price=str(price))

    async def get_price_history(self, listing_id: uuid.UUID) -> List[PriceHistory]:
        """Price history for a listing, newest first."""
        result = await self.db.execute(
            select(PriceHistory)
            .where(PriceHistory.listing_id == listing_id)
            .order_by(PriceHistory.recorded_at.desc())
        )
        return list(result.scalars().all())

    async def count_listings(self, source: Optional[str] = None) -> int:
        stmt = select(func.count(Listing.id))
        if source:
            stmt = stmt.where(Listing.source == source)
        result = await self.db.execute(stmt)
        return result.scalar_one()
