from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from estate_crawler.config import (
    DEFAULT_TARGET_AREAS,
    CrawlBudget,
    GlobalConfig,
    HttpSettings,
    ScheduleConfig,
    ScheduleType,
    SiteConfig,
    ThrottleSettings,
)


def test_schedule_config_interval_requires_numeric() -> None:
    with pytest.raises(ValueError):
        ScheduleConfig(type=ScheduleType.INTERVAL)
    with pytest.raises(ValueError):
        ScheduleConfig(type=ScheduleType.INTERVAL, value="every minute")
    cfg = ScheduleConfig(type=ScheduleType.INTERVAL, value={"minutes": 2})
    assert cfg.value == {"minutes": 2}


def test_schedule_config_cron_requires_string() -> None:
    with pytest.raises(ValueError):
        ScheduleConfig(type=ScheduleType.CRON, value=5)


def test_schedule_config_once_accepts_null_or_iso() -> None:
    assert ScheduleConfig().type is ScheduleType.ONCE
    assert ScheduleConfig(type=ScheduleType.ONCE, value="2024-06-01T06:00:00+09:00").value
    with pytest.raises(ValueError):
        ScheduleConfig(type=ScheduleType.ONCE, value=12)


def test_budget_defaults_and_validation() -> None:
    budget = CrawlBudget()
    assert (budget.max_time_seconds, budget.max_items_per_run, budget.consecutive_skip_threshold) == (8.0, 5, 20)
    assert budget.stale_lock_seconds == 120.0
    with pytest.raises(ValidationError):
        CrawlBudget(max_time_seconds=0)
    with pytest.raises(ValidationError):
        CrawlBudget(max_items_per_run=0)
    with pytest.raises(ValidationError):
        CrawlBudget(consecutive_skip_threshold=0)
    assert budget.max_link_checks == 100
    with pytest.raises(ValidationError):
        CrawlBudget(max_link_checks=0)


def test_http_and_throttle_validation() -> None:
    with pytest.raises(ValidationError):
        HttpSettings(retries=0)
    with pytest.raises(ValidationError):
        HttpSettings(timeout=-1)
    with pytest.raises(ValidationError):
        ThrottleSettings(page_interval=-0.5)


def test_http_settings_supports_user_agent_file(tmp_path: Path) -> None:
    ua_file = tmp_path / "uas.txt"
    ua_file.write_text("UA-1\n\nUA-2\n", encoding="utf-8")
    settings = HttpSettings(user_agent_list=ua_file)
    assert settings.user_agent_list == ["UA-1", "UA-2"]
    with pytest.raises(ValidationError):
        HttpSettings(user_agent_list=tmp_path / "missing.txt")


def test_target_areas_are_trimmed_and_deduplicated() -> None:
    assert GlobalConfig().target_areas == DEFAULT_TARGET_AREAS
    assert GlobalConfig(target_areas="小樽市, 余市町,小樽市").target_areas == ["小樽市", "余市町"]
    assert GlobalConfig(target_areas=None).target_areas == []


def test_site_key_cannot_be_blank() -> None:
    assert SiteConfig(site_key=" athome ").site_key == "athome"
    with pytest.raises(ValidationError):
        SiteConfig(site_key="  ")


def test_absolute_database_path_is_kept(tmp_path: Path) -> None:
    config = GlobalConfig(database_path=str(tmp_path / "custom.db"))
    assert config.resolved_database_path(Path("/ignored")) == tmp_path / "custom.db"
