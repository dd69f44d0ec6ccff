"""APScheduler wrapper that triggers periodic crawl runs per portal site."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import ScheduleConfig, ScheduleType, SiteConfig

JOB_PREFIX = "site::"


def job_id(site_key: str) -> str:
    return f"{JOB_PREFIX}{site_key}"


def build_trigger(schedule: ScheduleConfig):
    """Translate a ``ScheduleConfig`` into an APScheduler trigger."""

    if schedule.type is ScheduleType.CRON:
        return CronTrigger.from_crontab(str(schedule.value))
    if schedule.type is ScheduleType.INTERVAL:
        if isinstance(schedule.value, (int, float)):
            return IntervalTrigger(seconds=float(schedule.value))
        if isinstance(schedule.value, dict):
            return IntervalTrigger(**schedule.value)
        raise ValueError("Interval schedule requires seconds or kwargs dict")
    if schedule.type is ScheduleType.ONCE:
        if schedule.value:
            run_date = datetime.fromisoformat(str(schedule.value))
        else:
            run_date = datetime.now(timezone.utc)
        return DateTrigger(run_date=run_date)
    raise ValueError(f"Unknown schedule type: {schedule.type}")


class APSchedulerAdapter:
    """Register one background job per scheduled site."""

    def __init__(
        self,
        scheduler: BackgroundScheduler | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)
        self.logger = logger or structlog.get_logger("estate_crawler.scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("scheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("scheduler_stopped")

    def schedule_site(self, site: SiteConfig, callback: Callable[[SiteConfig], Any]) -> bool:
        """Add or replace the job of ``site``; sites without a schedule are skipped."""

        if site.schedule is None or not site.enabled:
            self.logger.debug("site_not_scheduled", site=site.site_key, enabled=site.enabled)
            return False
        trigger = build_trigger(site.schedule)
        self.scheduler.add_job(
            callback,
            trigger=trigger,
            id=job_id(site.site_key),
            args=[site],
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info(
            "job_scheduled",
            site=site.site_key,
            mode=site.mode.value,
            schedule=site.schedule.model_dump(mode="json"),
        )
        return True

    def remove_site(self, site_key: str) -> bool:
        if self.scheduler.get_job(job_id(site_key)) is None:
            self.logger.warning("job_remove_failed", site=site_key)
            return False
        self.scheduler.remove_job(job_id(site_key))
        self.logger.info("job_removed", site=site_key)
        return True

    def list_jobs(self) -> list[dict[str, Any]]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter", "JOB_PREFIX", "build_trigger", "job_id"]
