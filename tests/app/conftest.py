from __future__ import annotations

import pytest
from rich.console import Console

from estate_crawler.app import AppState
from estate_crawler.connectors import ConnectorRegistry
from estate_crawler.link_checker import LinkChecker
from estate_crawler.orchestrator import CrawlOrchestrator
from estate_crawler.scheduler import APSchedulerAdapter

from tests.helpers import FakeConnector, FakeLinkFetcher, listing_urls


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector({("otaru", 1): listing_urls("a", 3)})


@pytest.fixture
def app_state(connector, store, global_config, temp_config_repository, fake_clock) -> AppState:
    registry = ConnectorRegistry([connector])
    orchestrator = CrawlOrchestrator(
        registry,
        store,
        global_config,
        site_configs=temp_config_repository.site_config,
        clock=fake_clock,
        sleep=fake_clock.sleep,
    )
    fetcher = FakeLinkFetcher()
    return AppState(
        repository=temp_config_repository,
        store=store,
        registry=registry,
        orchestrator=orchestrator,
        scheduler=APSchedulerAdapter(),
        fetcher=fetcher,
        link_checker=LinkChecker(
            registry, store, fetcher, global_config, clock=fake_clock, sleep=fake_clock.sleep
        ),
    )


@pytest.fixture
def cli_state(app_state, monkeypatch: pytest.MonkeyPatch) -> AppState:
    """Route the CLI to ``app_state`` and print tables wide enough to assert on."""

    monkeypatch.setattr("estate_crawler.app.build_state", lambda verbose: app_state)
    monkeypatch.setattr("estate_crawler.app.console", Console(width=200))
    return app_state
