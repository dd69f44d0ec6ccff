from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from estate_crawler.config import CrawlMode, ScheduleConfig, ScheduleType, SiteConfig
from estate_crawler.scheduler import APSchedulerAdapter, build_trigger, job_id


class StubScheduler:
    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.jobs: dict[str, SimpleNamespace] = {}

    def add_job(self, callback, trigger, id, args, replace_existing, max_instances, coalesce):  # noqa: ANN001
        self.calls.append(
            {
                "id": id,
                "args": args,
                "trigger": trigger,
                "callback": callback,
                "replace_existing": replace_existing,
                "max_instances": max_instances,
                "coalesce": coalesce,
            }
        )
        self.jobs[id] = SimpleNamespace(id=id, next_run_time=None, trigger=trigger)

    def get_job(self, job_id):  # noqa: ANN001
        return self.jobs.get(job_id)

    def get_jobs(self):
        return list(self.jobs.values())

    def remove_job(self, job_id):  # noqa: ANN001
        self.calls.append({"event": "remove", "id": job_id})
        del self.jobs[job_id]

    def start(self):
        self.calls.append({"event": "started"})

    def shutdown(self, wait=False):  # noqa: ARG002
        self.calls.append({"event": "shutdown"})


def test_build_triggers() -> None:
    cron_trigger = build_trigger(ScheduleConfig(type=ScheduleType.CRON, value="*/5 * * * *"))
    assert isinstance(cron_trigger, CronTrigger)

    interval_trigger = build_trigger(ScheduleConfig(type=ScheduleType.INTERVAL, value=30))
    assert isinstance(interval_trigger, IntervalTrigger)
    assert interval_trigger.interval.total_seconds() == 30

    future = datetime.now(timezone.utc) + timedelta(minutes=5)
    once_trigger = build_trigger(ScheduleConfig(type=ScheduleType.ONCE, value=future.isoformat()))
    assert isinstance(once_trigger, DateTrigger)
    assert once_trigger.run_date == future

    assert isinstance(build_trigger(ScheduleConfig()), DateTrigger)


def test_interval_kwargs_and_invalid_value() -> None:
    trigger = build_trigger(ScheduleConfig(type=ScheduleType.INTERVAL, value={"minutes": 2}))
    assert isinstance(trigger, IntervalTrigger)
    assert trigger.interval.total_seconds() == 120
    with pytest.raises(ValueError):
        build_trigger(ScheduleConfig.model_construct(type=ScheduleType.INTERVAL, value="fast"))


def test_schedule_site_registers_single_instance_job() -> None:
    stub = StubScheduler()
    adapter = APSchedulerAdapter(scheduler=stub)
    site = SiteConfig(
        site_key="athome",
        mode=CrawlMode.INCREMENTAL,
        schedule=ScheduleConfig(type=ScheduleType.CRON, value="0 6 * * *"),
    )

    def callback(config):  # noqa: ANN001
        return config

    assert adapter.schedule_site(site, callback) is True
    call = stub.calls[0]
    assert call["id"] == job_id("athome") == "site::athome"
    assert call["args"] == [site]
    assert call["callback"] is callback
    assert call["replace_existing"] is True
    assert (call["max_instances"], call["coalesce"]) == (1, True)
    assert isinstance(call["trigger"], CronTrigger)

    jobs = adapter.list_jobs()
    assert [job["id"] for job in jobs] == ["site::athome"]
    assert jobs[0]["trigger"].startswith("cron[")


def test_unscheduled_or_disabled_sites_are_skipped(sample_site_config) -> None:
    stub = StubScheduler()
    adapter = APSchedulerAdapter(scheduler=stub)
    assert adapter.schedule_site(sample_site_config(schedule=None), lambda site: site) is False
    disabled = sample_site_config(
        enabled=False, schedule=ScheduleConfig(type=ScheduleType.INTERVAL, value=60)
    )
    assert adapter.schedule_site(disabled, lambda site: site) is False
    assert stub.calls == []


def test_start_remove_and_shutdown(sample_site_config) -> None:
    stub = StubScheduler()
    adapter = APSchedulerAdapter(scheduler=stub)
    site = sample_site_config(schedule=ScheduleConfig(type=ScheduleType.INTERVAL, value=600))
    adapter.schedule_site(site, lambda config: config)
    adapter.start()
    adapter.start()
    assert adapter.remove_site("fake") is True
    assert adapter.remove_site("fake") is False
    adapter.shutdown()
    adapter.shutdown()
    events = [call.get("event") for call in stub.calls[1:]]
    assert events == ["started", "remove", "shutdown"]
    assert adapter.list_jobs() == []
