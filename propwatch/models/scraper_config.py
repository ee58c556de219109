"""Crawl configuration consumed at the start of every run."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from propwatch.models.base import Base, JSONType, UUIDPrimaryKeyMixin

DEFAULT_CITIES = ["Madrid", "Barcelona", "Valencia", "Sevilla"]
DEFAULT_OPERATION_TYPES = ["VENTA", "ALQUILER"]
# Idealista sits behind commercial anti-bot protection and is opt-in
DEFAULT_SOURCES = ["PISOSCOM", "FOTOCASA"]
DEFAULT_SCHEDULE = "0 */30 * * * *"


class ScraperConfig(UUIDPrimaryKeyMixin, Base):
    """Singleton-ish crawl configuration.

    Mutated externally (configuration API, admin scripts); the orchestrator
    only reads the most recently updated row.
    """

    __tablename__ = "scraper_config"

    cities: Mapped[list] = mapped_column(JSONType, nullable=False, default=lambda: list(DEFAULT_CITIES))
    operation_types: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=lambda: list(DEFAULT_OPERATION_TYPES)
    )
    # None means every property type passes
    property_types: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)

    # Inclusive post-fetch bounds
    min_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    max_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    min_rooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_rooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    min_area: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    max_area: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Opaque here, owned by whatever external trigger runs the orchestrator
    schedule: Mapped[str] = mapped_column(String(50), nullable=False, default=DEFAULT_SCHEDULE)
    sources: Mapped[list] = mapped_column(JSONType, nullable=False, default=lambda: list(DEFAULT_SOURCES))

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def filters_snapshot(self) -> dict:
        """JSON-safe copy of the settings that shape a run."""

        def _num(value):
            return str(value) if value is not None else None

        return {
            "cities": list(self.cities or []),
            "operation_types": list(self.operation_types or []),
            "property_types": list(self.property_types) if self.property_types is not None else None,
            "min_price": _num(self.min_price),
            "max_price": _num(self.max_price),
            "min_rooms": self.min_rooms,
            "max_rooms": self.max_rooms,
            "min_area": _num(self.min_area),
            "max_area": _num(self.max_area),
            "sources": list(self.sources or []),
        }

    def __repr__(self) -> str:
        return f"<ScraperConfig(id={self.id}, enabled={self.enabled}, sources={self.sources})>"
