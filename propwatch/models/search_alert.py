"""Saved searches that get notified about newly seen listings."""

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from propwatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class SearchAlert(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A user's saved search. Null criteria match everything."""

    __tablename__ = "search_alerts"

    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    # Device token for the push transport
    push_token: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    operation_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    property_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    min_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    max_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    min_rooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_rooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    min_area: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    max_area: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<SearchAlert(id={self.id}, name='{self.name}', active={self.is_active})>"
