"""Price history tracking for listings."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from propwatch.models.base import Base, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from propwatch.models.listing import Listing


class PriceHistory(UUIDPrimaryKeyMixin, Base):
    """Append-only price observations for a listing.

    A row is written when a listing's price is first known and every time
    it differs from the last recorded price.
    """

    __tablename__ = "price_history"

    listing_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_price_history_listing_recorded", "listing_id", "recorded_at"),
    )

    listing: Mapped["Listing"] = relationship(back_populates="price_history")

    def __repr__(self) -> str:
        return f"<PriceHistory(listing_id={self.listing_id}, price={self.price}, recorded_at={self.recorded_at})>"
