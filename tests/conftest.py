"""Shared fixtures: temp config home, fast global config and an SQLite store."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from estate_crawler.config import (
    ConfigLocator,
    ConfigRepository,
    CrawlBudget,
    GlobalConfig,
    ScheduleConfig,
    SiteConfig,
    ThrottleSettings,
)
from estate_crawler.store import SQLiteListingStore

from tests.helpers import FakeClock

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixture_html() -> Callable[[str], str]:
    def _load(name: str) -> str:
        return (FIXTURES_DIR / name).read_text(encoding="utf-8")

    return _load


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def global_config(tmp_path: Path) -> GlobalConfig:
    return GlobalConfig(
        crawl=CrawlBudget(
            max_time_seconds=3600,
            max_items_per_run=1000,
            consecutive_skip_threshold=3,
        ),
        throttle=ThrottleSettings(page_interval=0.0, detail_interval=0.0),
        target_areas=["小樽市"],
        database_path=tmp_path / "estate.db",
    )


@pytest.fixture
def sample_site_config() -> Callable[..., SiteConfig]:
    def _builder(**overrides: Any) -> SiteConfig:
        base: dict[str, Any] = {
            "site_key": "fake",
            "enabled": True,
            "schedule": ScheduleConfig(),
        }
        base.update(overrides)
        return SiteConfig(**base)

    return _builder


@pytest.fixture
def store(tmp_path: Path) -> Iterable[SQLiteListingStore]:
    listing_store = SQLiteListingStore(tmp_path / "estate.db")
    yield listing_store
    listing_store.close()


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("ESTATE_CRAWLER_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository
