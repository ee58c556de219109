"""Loads the crawl configuration consumed at the start of each run."""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from propwatch.models.scraper_config import ScraperConfig

logger = structlog.get_logger(__name__)


class ConfigService:
    """Read access to ScraperConfig, creating the default row on first use."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_config(self) -> ScraperConfig:
        """Return the most recently updated config, creating a default one if none exists."""
        result = await self.db.execute(
            select(ScraperConfig).order_by(ScraperConfig.updated_at.desc()).limit(1)
        )
        config = result.scalar_one_or_none()
        if config is not None:
            return config

        config = ScraperConfig()
        self.db.add(config)
        await self.db.commit()
        await self.db.refresh(config)
        logger.info("default_scraper_config_created", cities=config.cities, sources=config.sources)
        return config
