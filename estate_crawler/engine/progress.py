"""Persisted pagination cursor per (site, area) and its state machine."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

import structlog

from ..config import CrawlMode
from ..errors import PersistenceError, ProgressWriteError

if TYPE_CHECKING:
    from ..store.base import ListingStore


class ProgressStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class CrawlProgress:
    """Cursor and counters of one (site_key, area_key) crawl."""

    site_key: str
    area_key: str
    area_name: str | None = None
    current_page: int = 1
    page_offset: int = 0
    total_pages: int | None = None
    processed_count: int = 0
    inserted_count: int = 0
    skipped_count: int = 0
    consecutive_skips: int = 0
    status: ProgressStatus = ProgressStatus.PENDING
    mode: CrawlMode = CrawlMode.INITIAL
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_run_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        payload["mode"] = self.mode.value
        for name in ("started_at", "completed_at", "last_run_at"):
            value = payload[name]
            payload[name] = value.isoformat() if value is not None else None
        return payload


class ProgressTracker:
    """Apply state transitions to ``CrawlProgress`` rows and write them through the store.

    Every write re-reads the stored status first: a ``cancelled`` row stays
    cancelled no matter what the running crawl saves, until ``start`` begins a
    new run on it.
    """

    def __init__(
        self,
        store: "ListingStore",
        clock: Callable[[], datetime] = utcnow,
        stale_lock_seconds: float = 120.0,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self._clock = clock
        self.stale_lock = timedelta(seconds=stale_lock_seconds)
        self.logger = logger or structlog.get_logger("estate_crawler.progress")

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def load_or_create(
        self, site_key: str, area_key: str, area_name: str | None, mode: CrawlMode
    ) -> CrawlProgress:
        progress = self._read(site_key, area_key)
        if progress is None:
            progress = CrawlProgress(
                site_key=site_key, area_key=area_key, area_name=area_name, mode=mode
            )
            self._write(progress, sticky_cancel=False)
            return progress
        if progress.status is ProgressStatus.COMPLETED and mode is CrawlMode.INCREMENTAL:
            progress.current_page = 1
            progress.page_offset = 0
            progress.total_pages = None
            progress.processed_count = 0
            progress.inserted_count = 0
            progress.skipped_count = 0
            progress.consecutive_skips = 0
            progress.completed_at = None
            progress.error_message = None
            progress.status = ProgressStatus.PENDING
            progress.mode = mode
            self._write(progress, sticky_cancel=False)
            self.logger.info("progress_reset", site=site_key, area=area_key)
        return progress

    def is_busy(self, progress: CrawlProgress) -> bool:
        """True when another run touched this in-progress row recently."""

        if progress.status is not ProgressStatus.IN_PROGRESS or progress.last_run_at is None:
            return False
        return self.now() - progress.last_run_at < self.stale_lock

    def cancelled_since(self, progress: CrawlProgress, since: datetime) -> bool:
        """True when the row carries a cancel requested at or after ``since``."""

        return (
            progress.status is ProgressStatus.CANCELLED
            and progress.last_run_at is not None
            and progress.last_run_at >= since
        )

    def is_cancelled(self, progress: CrawlProgress) -> bool:
        stored = self._read(progress.site_key, progress.area_key)
        if stored is not None and stored.status is ProgressStatus.CANCELLED:
            progress.status = ProgressStatus.CANCELLED
            return True
        return False

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def start(self, progress: CrawlProgress, mode: CrawlMode) -> None:
        now = self.now()
        progress.status = ProgressStatus.IN_PROGRESS
        progress.mode = mode
        progress.error_message = None
        progress.started_at = now
        progress.last_run_at = now
        self._write(progress, sticky_cancel=False)

    def save_page(self, progress: CrawlProgress, *, advance: bool, offset: int = 0) -> None:
        """Flush counters and the cursor.

        The page moves only when every candidate was attempted. Otherwise
        ``offset`` records how many candidates of the current page are done, so
        a resumed run starts after them.
        """

        if advance:
            progress.current_page += 1
            progress.page_offset = 0
        else:
            progress.page_offset = offset
        progress.last_run_at = self.now()
        self._write(progress)

    def complete(self, progress: CrawlProgress) -> None:
        """Pagination exhausted: the current page came back empty."""

        now = self.now()
        progress.status = ProgressStatus.COMPLETED
        progress.total_pages = progress.current_page - 1
        progress.completed_at = now
        progress.last_run_at = now
        self._write(progress)

    def complete_by_skips(self, progress: CrawlProgress) -> None:
        """Incremental short-circuit: only already-stored listings remain."""

        now = self.now()
        progress.status = ProgressStatus.COMPLETED
        progress.completed_at = now
        progress.last_run_at = now
        self._write(progress)

    def fail(self, progress: CrawlProgress, message: str) -> None:
        progress.status = ProgressStatus.ERROR
        progress.error_message = message
        progress.last_run_at = self.now()
        self._write(progress)

    def release(self, progress: CrawlProgress) -> None:
        """Budget ran out: hand the row back so the next run may resume it."""

        if progress.status is ProgressStatus.IN_PROGRESS:
            progress.status = ProgressStatus.PENDING
        progress.last_run_at = self.now()
        self._write(progress)

    def cancel(self, progress: CrawlProgress) -> None:
        progress.status = ProgressStatus.CANCELLED
        progress.last_run_at = self.now()
        self._write(progress)

    def reset(self, site_key: str) -> int:
        """Delete every progress row of a site; returns the number of rows removed."""

        try:
            count = self.store.delete_progress(site_key)
        except PersistenceError as exc:
            self.logger.error("progress_reset_failed", site=site_key, error=str(exc))
            raise ProgressWriteError(str(exc)) from exc
        self.logger.info("progress_deleted", site=site_key, rows=count)
        return count

    def request_cancel(self, site_key: str) -> int:
        """Flag every pending or running area of a site; returns the number of rows flagged."""

        try:
            count = self.store.request_cancel(site_key, requested_at=self.now())
        except PersistenceError as exc:
            raise ProgressWriteError(str(exc)) from exc
        self.logger.info("cancel_requested", site=site_key, rows=count)
        return count

    # ------------------------------------------------------------------
    def _read(self, site_key: str, area_key: str) -> CrawlProgress | None:
        try:
            return self.store.get_progress(site_key, area_key)
        except PersistenceError as exc:
            raise ProgressWriteError(str(exc)) from exc

    def _write(self, progress: CrawlProgress, *, sticky_cancel: bool = True) -> None:
        try:
            if sticky_cancel and progress.status is not ProgressStatus.CANCELLED:
                stored = self.store.get_progress(progress.site_key, progress.area_key)
                if stored is not None and stored.status is ProgressStatus.CANCELLED:
                    progress.status = ProgressStatus.CANCELLED
            self.store.upsert_progress(progress)
        except PersistenceError as exc:
            self.logger.error(
                "progress_write_failed",
                site=progress.site_key,
                area=progress.area_key,
                error=str(exc),
            )
            raise ProgressWriteError(str(exc)) from exc


__all__ = ["CrawlProgress", "ProgressStatus", "ProgressTracker", "utcnow"]
