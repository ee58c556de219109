"""Pytest configuration and shared fixtures."""

from decimal import Decimal
from typing import List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from propwatch.models import Base, OperationType, PropertyType, ScraperConfig
from propwatch.scrapers.base import RawListing


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest_asyncio.fixture
async def test_db():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with SessionLocal() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def make_raw():
    """Factory for RawListing values with sensible defaults."""

    def _make(
        external_id: str = "1",
        price: Optional[str] = "200000",
        source: str = "STUB",
        **overrides,
    ) -> RawListing:
        values = dict(
            external_id=external_id,
            source=source,
            title=f"Piso en venta {external_id}",
            price=Decimal(price) if price is not None else None,
            operation_type=OperationType.VENTA,
            property_type=PropertyType.PISO,
            rooms=3,
            bathrooms=2,
            area_m2=Decimal("90"),
            address="Calle Mayor 1",
            city="Madrid",
            province="Madrid",
            url=f"https://example.es/inmueble/{external_id}/",
        )
        values.update(overrides)
        return RawListing(**values)

    return _make


@pytest.fixture
def make_config():
    """Factory for in-memory ScraperConfig rows (not added to a session)."""

    def _make(
        cities: Optional[List[str]] = None,
        operation_types: Optional[List[str]] = None,
        sources: Optional[List[str]] = None,
        **overrides,
    ) -> ScraperConfig:
        values = dict(
            cities=cities or ["Madrid"],
            operation_types=operation_types or ["VENTA"],
            property_types=None,
            min_price=None,
            max_price=None,
            min_rooms=None,
            max_rooms=None,
            min_area=None,
            max_area=None,
            enabled=True,
            schedule="0 */30 * * * *",
            sources=sources or ["STUB"],
        )
        values.update(overrides)
        return ScraperConfig(**values)

    return _make
