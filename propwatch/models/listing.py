"""Listing model: the persisted, deduplicated record for one property ad."""

import enum
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from propwatch.models.base import Base, JSONType, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from propwatch.models.price_history import PriceHistory


class OperationType(str, enum.Enum):
    VENTA = "VENTA"
    ALQUILER = "ALQUILER"


class PropertyType(str, enum.Enum):
    APARTAMENTO = "APARTAMENTO"
    PISO = "PISO"
    CASA = "CASA"
    CHALET = "CHALET"
    DUPLEX = "DUPLEX"
    ATICO = "ATICO"
    ESTUDIO = "ESTUDIO"
    LOFT = "LOFT"
    OTRO = "OTRO"


class Listing(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Property ad scraped from a listing source.

    Each listing is uniquely identified by its (external_id, source) pair.
    first_seen_at is set once on insert; last_seen_at moves on every
    scrape that still finds the ad.
    """

    __tablename__ = "listings"

    # Natural key
    external_id: Mapped[str] = mapped_column(String(100), nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # Descriptive fields
    title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    price_per_m2: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    operation_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    property_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    rooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bathrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    area_m2: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    # Location
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    province: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    zone: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 8), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(11, 8), nullable=True)

    # Media and links
    image_urls: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    # Lifecycle
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    first_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("external_id", "source", name="uq_listing_external_source"),
        Index("idx_listings_first_seen", "first_seen_at"),
    )

    price_history: Mapped[list["PriceHistory"]] = relationship(
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="PriceHistory.recorded_at.desc()",
    )

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, source='{self.source}', external_id='{self.external_id}')>"
