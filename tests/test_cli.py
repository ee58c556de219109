"""Tests for settings parsing and the command-line parser."""

import pytest

from propwatch.cli import build_parser
from propwatch.config import Settings


class TestSettings:
    @pytest.mark.parametrize(
        "url",
        ["postgres://user:secret@db:5432/propwatch", "postgresql://user:secret@db:5432/propwatch"],
    )
    def test_postgres_urls_use_asyncpg(self, url):
        assert Settings(DATABASE_URL=url).DATABASE_URL == "postgresql+asyncpg://user:secret@db:5432/propwatch"

    def test_sqlite_url_untouched(self):
        assert Settings(DATABASE_URL="sqlite+aiosqlite:///./x.db").DATABASE_URL == "sqlite+aiosqlite:///./x.db"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_REQUESTS_PER_MINUTE", "4")
        monkeypatch.setenv("BROWSER_HEADLESS", "false")

        settings = Settings()

        assert settings.RATE_LIMIT_REQUESTS_PER_MINUTE == 4
        assert settings.BROWSER_HEADLESS is False


class TestParser:
    def test_run_source(self):
        args = build_parser().parse_args(["--log-level", "DEBUG", "run-source", "FOTOCASA"])

        assert args.command == "run-source"
        assert args.source == "FOTOCASA"
        assert args.log_level == "DEBUG"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])
