from __future__ import annotations

from datetime import datetime, timezone

from estate_crawler.config import CrawlBudget
from estate_crawler.connectors import ConnectorRegistry
from estate_crawler.link_checker import LinkChecker
from tests.helpers import FakeConnector, FakeLinkFetcher, listing_urls

CHECKED_AT = datetime(2024, 6, 2, 3, 0, tzinfo=timezone.utc)


def seed(store, connector: FakeConnector, urls: list[str], site_key: str = "fake") -> None:
    for url in urls:
        store.save_listing(connector.normalize(connector.fetch_detail(url)), site_key=site_key)


def make_checker(store, fetcher, config, fake_clock, connector=None) -> LinkChecker:
    return LinkChecker(
        ConnectorRegistry([connector or FakeConnector()]),
        store,
        fetcher,
        config,
        clock=fake_clock,
        sleep=fake_clock.sleep,
        now=lambda: CHECKED_AT,
    )


def test_gone_and_sold_out_listings_are_deleted(store, global_config, fake_clock) -> None:
    live, gone, withdrawn, sold = urls = listing_urls("c", 4)
    connector = FakeConnector()
    seed(store, connector, urls)
    fetcher = FakeLinkFetcher(
        {
            gone: (404, gone),
            withdrawn: (410, withdrawn),
            sold: (200, "https://portal.example/bukken/soldout/?id=1"),
        }
    )

    summary = make_checker(store, fetcher, global_config, fake_clock, connector).run()

    assert fetcher.calls == urls
    assert summary.checked == 4
    assert summary.deleted == 3
    assert summary.completed is True
    assert summary.message == "4 checked, 3 deleted"
    assert store.find_listing_by_url(live) is not None
    assert store.count_listings() == 1
    [remaining] = store.listings_to_check(10)
    assert remaining.checked_at == CHECKED_AT


def test_fetch_failure_keeps_listing_and_requeues_it(store, global_config, fake_clock) -> None:
    broken, _ = urls = listing_urls("f", 2)
    seed(store, FakeConnector(), urls)
    fetcher = FakeLinkFetcher(failing=[broken])

    summary = make_checker(store, fetcher, global_config, fake_clock).run()

    assert summary.deleted == 0
    assert len(summary.errors) == 1
    assert broken in summary.errors[0]
    assert store.count_listings() == 2
    assert all(row.checked_at == CHECKED_AT for row in store.listings_to_check(10))


def test_time_budget_leaves_rest_for_next_run(store, global_config, fake_clock) -> None:
    config = global_config.model_copy(
        update={"crawl": CrawlBudget(max_time_seconds=8, max_items_per_run=5)}
    )
    urls = listing_urls("t", 3)
    seed(store, FakeConnector(), urls)
    fetcher = FakeLinkFetcher(on_check=lambda url: fake_clock.advance(5))

    first = make_checker(store, fetcher, config, fake_clock).run()

    assert first.checked == 2
    assert first.completed is False
    assert store.listings_to_check(1)[0].url == urls[2]

    second = make_checker(store, fetcher, config, fake_clock).run(limit=1)

    assert second.checked == 1
    assert second.completed is True
    assert fetcher.calls == urls


def test_batch_size_comes_from_config(store, global_config, fake_clock) -> None:
    config = global_config.model_copy(
        update={"crawl": global_config.crawl.model_copy(update={"max_link_checks": 2})}
    )
    seed(store, FakeConnector(), listing_urls("b", 5))
    fetcher = FakeLinkFetcher()

    summary = make_checker(store, fetcher, config, fake_clock).run()

    assert summary.checked == 2
    assert len(fetcher.calls) == 2


def test_listing_of_unregistered_site_uses_default_rules(store, global_config, fake_clock) -> None:
    moved, gone = urls = listing_urls("u", 2)
    seed(store, FakeConnector(), urls, site_key="homes")
    fetcher = FakeLinkFetcher({moved: (200, "https://portal.example/top/"), gone: (404, gone)})

    summary = make_checker(store, fetcher, global_config, fake_clock).run()

    assert summary.deleted == 1
    assert store.find_listing_by_url(moved) is not None
