"""Bounded, resumable crawl runs across the areas of one portal site."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable

import structlog

from .address import matches_area
from .config import CrawlMode, GlobalConfig, SiteConfig
from .connectors import AreaTarget, Connector, ConnectorRegistry, SearchParams
from .engine import ProgressStatus, ProgressTracker, RunDedup, Throttle, canonical_url
from .engine.progress import CrawlProgress
from .errors import (
    CrawlerError,
    PersistenceError,
    ProgressWriteError,
    SiteDisabledError,
    UnknownSiteError,
)
from .store import ListingStore

SITE_WIDE_AREA = AreaTarget(key="all", name="北海道全域")


@dataclass(slots=True)
class CrawlSummary:
    """Outcome of one ``CrawlOrchestrator.run`` call."""

    site: str
    mode: str
    processed: int = 0
    inserted: int = 0
    skipped: int = 0
    filtered: int = 0
    areas_completed: int = 0
    areas_total: int = 0
    errors: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    completed: bool = False
    cancelled: bool = False
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "site": self.site,
            "mode": self.mode,
            "processed": self.processed,
            "inserted": self.inserted,
            "skipped": self.skipped,
            "filtered": self.filtered,
            "areas_completed": self.areas_completed,
            "areas_total": self.areas_total,
            "errors": list(self.errors),
            "notes": list(self.notes),
            "completed": self.completed,
            "cancelled": self.cancelled,
            "message": self.message,
        }


class _Stop(str, Enum):
    BUDGET = "budget"
    CANCELLED = "cancelled"
    STORE_FAILURE = "store_failure"


class _Outcome(str, Enum):
    INSERTED = "inserted"
    SKIPPED = "skipped"
    THRESHOLD = "threshold"
    DUPLICATE = "duplicate"
    FILTERED = "filtered"
    FAILED = "failed"


@dataclass(slots=True)
class _RunState:
    summary: CrawlSummary
    mode: CrawlMode
    started: float
    started_at: datetime
    seen: RunDedup = field(default_factory=RunDedup)
    stop: _Stop | None = None


class CrawlOrchestrator:
    """Drive connectors page by page under a time budget and an item budget.

    Everything is sequential: the only blocking points are the fetches made by
    connectors and the two throttles. A run can be killed at any moment; the
    progress row of the area being crawled is saved after every page. The next
    run resumes on the first page not fully attempted, after the candidates of
    that page an earlier run already attempted.
    """

    def __init__(
        self,
        registry: ConnectorRegistry,
        store: ListingStore,
        config: GlobalConfig,
        site_configs: Callable[[str], SiteConfig] | None = None,
        tracker: ProgressTracker | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        logger: structlog.BoundLogger | None = None,
        site_logger: Callable[[str], structlog.BoundLogger] | None = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.config = config
        self.site_configs = site_configs
        self.tracker = tracker or ProgressTracker(
            store, stale_lock_seconds=config.crawl.stale_lock_seconds
        )
        self._clock = clock
        self._sleep = sleep
        self.logger = logger or structlog.get_logger("estate_crawler.orchestrator")
        self._site_logger = site_logger

    # ------------------------------------------------------------------
    def resolve(self, site_key: str) -> Connector:
        """Return the connector of an enabled site or raise a configuration error."""

        connector = self.registry.get(site_key)
        if connector is None:
            raise UnknownSiteError(site_key)
        if self.site_configs is not None and not self.site_configs(connector.key).enabled:
            raise SiteDisabledError(connector.key)
        return connector

    def targets(self, connector: Connector, notes: list[str] | None = None) -> list[AreaTarget]:
        if not connector.supports_area_search:
            return [SITE_WIDE_AREA]
        targets: list[AreaTarget] = []
        for area in self.config.target_areas:
            slug = connector.area_slug(area)
            if slug is None:
                if notes is not None:
                    notes.append(f"No area slug for {area}")
                continue
            if all(target.key != slug for target in targets):
                targets.append(AreaTarget(key=slug, name=area))
        return targets

    def run(
        self,
        site_key: str,
        mode: CrawlMode | str = CrawlMode.INITIAL,
        reset: bool = False,
    ) -> CrawlSummary:
        mode = CrawlMode(mode)
        connector = self.resolve(site_key)
        summary = CrawlSummary(site=connector.key, mode=mode.value)
        base_log = self._site_logger(connector.key) if self._site_logger else self.logger
        log = base_log.bind(site=connector.key, mode=mode.value)

        targets = self.targets(connector, summary.notes)
        summary.areas_total = len(targets)
        state = _RunState(
            summary=summary,
            mode=mode,
            started=self._clock(),
            started_at=self.tracker.now(),
        )
        page_throttle = Throttle(self.config.throttle.page_interval, self._clock, self._sleep)
        detail_throttle = Throttle(self.config.throttle.detail_interval, self._clock, self._sleep)
        log.info("run_started", areas=[target.name for target in targets])

        try:
            if reset:
                deleted = self.tracker.reset(connector.key)
                summary.notes.append(f"Progress reset ({deleted} rows)")
            for target in targets:
                if self._budget_exhausted(state):
                    state.stop = _Stop.BUDGET
                    summary.notes.append("Budget exhausted before all areas were visited")
                    break
                self._crawl_area(connector, target, state, page_throttle, detail_throttle, log)
                if state.stop is not None:
                    break
        except ProgressWriteError as exc:
            # The cursor can no longer be trusted; stop instead of crawling blind.
            summary.errors.append(f"Progress write failed: {exc}")
            log.error("progress_write_failed", error=str(exc))
            state.stop = _Stop.STORE_FAILURE

        self._finish(connector, targets, state)
        log.info("run_finished", **summary.to_dict())
        return summary

    # ------------------------------------------------------------------
    def _crawl_area(
        self,
        connector: Connector,
        target: AreaTarget,
        state: _RunState,
        page_throttle: Throttle,
        detail_throttle: Throttle,
        log: structlog.BoundLogger,
    ) -> None:
        summary = state.summary
        progress = self.tracker.load_or_create(connector.key, target.key, target.name, state.mode)
        area_log = log.bind(area=target.key)

        if self.tracker.cancelled_since(progress, state.started_at):
            state.stop = _Stop.CANCELLED
            summary.notes.append(f"{target.name}: cancel requested")
            return
        if progress.status is ProgressStatus.COMPLETED:
            summary.notes.append(f"{target.name}: already completed")
            return
        if self.tracker.is_busy(progress):
            summary.errors.append(f"{target.name}: another run is in progress")
            area_log.warning("area_busy", last_run_at=str(progress.last_run_at))
            return

        self.tracker.start(progress, state.mode)
        area_log.info("area_started", page=progress.current_page, offset=progress.page_offset)

        while True:
            if self._budget_exhausted(state):
                state.stop = _Stop.BUDGET
                self.tracker.release(progress)
                break
            if self.tracker.is_cancelled(progress):
                self._cancel(progress, state, area_log)
                break

            page = progress.current_page
            page_throttle.wait()
            try:
                candidates = connector.search(SearchParams(area=target, page=page))
            except CrawlerError as exc:
                message = f"{target.name} page {page}: {exc}"
                summary.errors.append(message)
                self.tracker.fail(progress, str(exc))
                area_log.warning("page_failed", page=page, error=str(exc))
                break

            if not candidates:
                self.tracker.complete(progress)
                area_log.info("area_completed", reason="exhausted", total_pages=progress.total_pages)
                break

            page_done = True
            threshold_hit = False
            attempted = progress.page_offset
            for done in candidates[:attempted]:
                state.seen.check_and_add(done.url)
            for candidate in candidates[attempted:]:
                if self._budget_exhausted(state):
                    page_done = False
                    break
                outcome = self._process_candidate(
                    connector, candidate.url, progress, state, detail_throttle, area_log
                )
                attempted += 1
                if outcome is _Outcome.THRESHOLD:
                    threshold_hit = True
                    break

            if threshold_hit:
                self.tracker.complete_by_skips(progress)
                area_log.info("area_completed", reason="skip_threshold", page=page)
                break

            self.tracker.save_page(progress, advance=page_done, offset=attempted)
            area_log.info(
                "page_saved",
                page=page,
                advanced=page_done,
                offset=progress.page_offset,
                inserted=progress.inserted_count,
                skipped=progress.skipped_count,
            )
            if progress.status is ProgressStatus.CANCELLED:
                self._cancel(progress, state, area_log)
                break
            if not page_done:
                state.stop = _Stop.BUDGET
                self.tracker.release(progress)
                break

        if progress.status is ProgressStatus.CANCELLED and state.stop is not _Stop.CANCELLED:
            self._cancel(progress, state, area_log)

    def _process_candidate(
        self,
        connector: Connector,
        url: str,
        progress: CrawlProgress,
        state: _RunState,
        detail_throttle: Throttle,
        log: structlog.BoundLogger,
    ) -> _Outcome:
        summary = state.summary
        url = canonical_url(url)
        if state.seen.check_and_add(url):
            return _Outcome.DUPLICATE

        try:
            existing = self.store.find_listing_by_url(url)
        except PersistenceError as exc:
            summary.errors.append(f"{url}: {exc}")
            return _Outcome.FAILED
        if existing is not None:
            return self._record_skip(progress, state)

        summary.processed += 1
        progress.processed_count += 1
        detail_throttle.wait()
        try:
            detail = connector.fetch_detail(url)
            listing = connector.normalize(detail)
        except CrawlerError as exc:
            summary.errors.append(f"{url}: {exc}")
            log.warning("detail_failed", url=url, error=str(exc))
            return _Outcome.FAILED

        if not connector.supports_area_search:
            area = matches_area(listing.property.normalized_address, self.config.target_areas)
            if area is None:
                summary.filtered += 1
                log.debug("listing_filtered", url=url, address=listing.property.address_raw)
                return _Outcome.FILTERED

        try:
            inserted = self.store.save_listing(listing, site_key=connector.key)
        except PersistenceError as exc:
            summary.errors.append(f"{url}: {exc}")
            log.error("persist_failed", url=url, error=str(exc))
            return _Outcome.FAILED
        if not inserted:
            return self._record_skip(progress, state)

        summary.inserted += 1
        progress.inserted_count += 1
        progress.consecutive_skips = 0
        log.info("listing_inserted", url=url, city=listing.property.city)
        return _Outcome.INSERTED

    def _record_skip(self, progress: CrawlProgress, state: _RunState) -> _Outcome:
        state.summary.skipped += 1
        progress.skipped_count += 1
        progress.consecutive_skips += 1
        if (
            state.mode is CrawlMode.INCREMENTAL
            and progress.consecutive_skips >= self.config.crawl.consecutive_skip_threshold
        ):
            return _Outcome.THRESHOLD
        return _Outcome.SKIPPED

    def _cancel(
        self, progress: CrawlProgress, state: _RunState, log: structlog.BoundLogger
    ) -> None:
        self.tracker.cancel(progress)
        state.stop = _Stop.CANCELLED
        log.info("area_cancelled", page=progress.current_page)

    def _budget_exhausted(self, state: _RunState) -> bool:
        budget = self.config.crawl
        if state.summary.processed >= budget.max_items_per_run:
            return True
        return self._clock() - state.started >= budget.max_time_seconds

    def _finish(self, connector: Connector, targets: list[AreaTarget], state: _RunState) -> None:
        summary = state.summary
        statuses: list[ProgressStatus | None] = []
        try:
            for target in targets:
                progress = self.store.get_progress(connector.key, target.key)
                statuses.append(progress.status if progress is not None else None)
        except PersistenceError as exc:
            summary.errors.append(f"Progress read failed: {exc}")
            statuses = []
        summary.areas_completed = sum(1 for status in statuses if status is ProgressStatus.COMPLETED)
        summary.completed = bool(targets) and summary.areas_completed == len(targets)
        summary.cancelled = state.stop is _Stop.CANCELLED
        if summary.cancelled:
            summary.message = (
                f"Cancelled: {summary.inserted} inserted "
                f"({summary.areas_completed}/{summary.areas_total} areas completed)"
            )
        elif summary.completed:
            summary.message = f"All areas completed: {summary.inserted} inserted"
        else:
            summary.message = (
                f"{summary.inserted} inserted "
                f"({summary.areas_completed}/{summary.areas_total} areas completed)"
            )


__all__ = ["CrawlOrchestrator", "CrawlSummary", "SITE_WIDE_AREA"]
