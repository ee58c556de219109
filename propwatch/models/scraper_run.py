"""Scraper run tracking: one record per orchestration cycle."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from propwatch.models.base import Base, JSONType, UUIDPrimaryKeyMixin


class RunStatus(str, enum.Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ScraperRun(UUIDPrimaryKeyMixin, Base):
    """Tracks execution of one orchestrator run.

    Created with status RUNNING, then moved exactly once to COMPLETED or
    FAILED. At most one RUNNING row may exist: the partial unique index
    below makes a concurrent second insert fail at the database.
    """

    __tablename__ = "scraper_runs"

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RunStatus.RUNNING.value)

    # Aggregate metrics
    total_found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    new_listings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_listings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_changes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    filtered_out: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Per-source raw listing counts, e.g. {"PISOSCOM": 30, "FOTOCASA": 0}
    source_counts: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    # Error tracking
    error_message: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    error_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Snapshot of the filters in force when the run started
    filters_snapshot: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    __table_args__ = (
        Index(
            "uq_scraper_runs_single_running",
            "status",
            unique=True,
            sqlite_where=text("status = 'RUNNING'"),
            postgresql_where=text("status = 'RUNNING'"),
        ),
    )

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def __repr__(self) -> str:
        return f"<ScraperRun(id={self.id}, status='{self.status}', started_at={self.started_at})>"
