"""Sweep stored listing URLs and drop the listings portals no longer show."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

import structlog

from .config import GlobalConfig
from .connectors import Connector, ConnectorRegistry, looks_delisted
from .engine import Fetcher, LinkStatus, Throttle
from .engine.progress import utcnow
from .errors import FetchError, PersistenceError
from .store import ListingStore, StoredListing


@dataclass(slots=True)
class LinkCheckSummary:
    checked: int = 0
    deleted: int = 0
    errors: list[str] = field(default_factory=list)
    completed: bool = False
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "deleted": self.deleted,
            "errors": list(self.errors),
            "completed": self.completed,
            "message": self.message,
        }


class LinkChecker:
    """Re-visit stored listings, least recently checked first, under the run time budget.

    A listing is deleted when its connector reads the response as delisted.
    Any other outcome, fetch failures included, stamps ``checked_at`` so the
    listing moves to the back of the queue.
    """

    def __init__(
        self,
        registry: ConnectorRegistry,
        store: ListingStore,
        fetcher: Fetcher,
        config: GlobalConfig,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.fetcher = fetcher
        self.config = config
        self._clock = clock
        self._sleep = sleep
        self._now = now
        self.logger = logger or structlog.get_logger("estate_crawler.link_checker")

    def run(self, limit: int | None = None) -> LinkCheckSummary:
        summary = LinkCheckSummary()
        started = self._clock()
        throttle = Throttle(self.config.throttle.detail_interval, self._clock, self._sleep)
        try:
            due = self.store.listings_to_check(limit or self.config.crawl.max_link_checks)
        except PersistenceError as exc:
            summary.errors.append(f"Listing read failed: {exc}")
            summary.message = "No listing checked"
            self.logger.error("link_check_read_failed", error=str(exc))
            return summary

        summary.completed = True
        for listing in due:
            if self._clock() - started >= self.config.crawl.max_time_seconds:
                summary.completed = False
                break
            summary.checked += 1
            throttle.wait()
            self._check(listing, summary)

        summary.message = f"{summary.checked} checked, {summary.deleted} deleted"
        self.logger.info("link_check_finished", **summary.to_dict())
        return summary

    def _check(self, listing: StoredListing, summary: LinkCheckSummary) -> None:
        link: LinkStatus | None = None
        connector = self.registry.get(listing.site_key)
        options = connector.request_options() if connector is not None else None
        try:
            link = self.fetcher.check_link(listing.url, options)
        except FetchError as exc:
            summary.errors.append(f"{listing.url}: {exc}")
            self.logger.warning("link_check_failed", url=listing.url, error=str(exc))

        try:
            if link is not None and self._delisted(connector, link):
                self.store.delete_listing(listing.id)
                summary.deleted += 1
                self.logger.info(
                    "listing_delisted",
                    site=listing.site_key,
                    url=listing.url,
                    status=link.status_code,
                    final_url=link.final_url,
                )
            else:
                self.store.mark_checked(listing.id, self._now())
        except PersistenceError as exc:
            summary.errors.append(f"{listing.url}: {exc}")
            self.logger.error("link_check_persist_failed", url=listing.url, error=str(exc))

    @staticmethod
    def _delisted(connector: Connector | None, link: LinkStatus) -> bool:
        if connector is None:
            return looks_delisted(link)
        return connector.is_delisted(link)


__all__ = ["LinkCheckSummary", "LinkChecker"]
