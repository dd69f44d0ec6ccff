"""Pydantic models used across the estate-crawler configuration flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_TARGET_AREAS = ["札幌市", "小樽市", "余市町", "ニセコ町", "倶知安町"]


class CrawlMode(str, Enum):
    """Crawl modes accepted by the trigger surface."""

    INITIAL = "initial"
    INCREMENTAL = "incremental"


class ScheduleType(str, Enum):
    """Scheduler modes for periodic site runs."""

    CRON = "cron"
    INTERVAL = "interval"
    ONCE = "once"


class ScheduleConfig(BaseModel):
    """Configuration describing when a site should be crawled."""

    type: ScheduleType = Field(default=ScheduleType.ONCE)
    value: Any = Field(
        default=None,
        description="Cron expression, interval seconds or ISO datetime, depending on type.",
    )

    @model_validator(mode="after")
    def _validate_value(self) -> "ScheduleConfig":
        if self.type is ScheduleType.CRON and not isinstance(self.value, str):
            raise ValueError("Cron schedule requires string expression")
        if self.type is ScheduleType.INTERVAL and not isinstance(self.value, (int, float, dict)):
            raise ValueError("Interval schedule requires seconds (int/float) or kwargs dict")
        if (
            self.type is ScheduleType.ONCE
            and self.value is not None
            and not isinstance(self.value, str)
        ):
            raise ValueError("Once schedule expects ISO datetime string or null")
        return self


class CrawlBudget(BaseModel):
    """Per-invocation limits for one orchestrator run."""

    max_time_seconds: float = 8.0
    max_items_per_run: int = 5
    consecutive_skip_threshold: int = 20
    # An in_progress row touched more recently than this is owned by another run.
    stale_lock_seconds: float = 120.0
    # Stored listing URLs verified per link-check run.
    max_link_checks: int = 100

    @model_validator(mode="after")
    def _validate_positive(self) -> "CrawlBudget":
        if self.max_time_seconds <= 0:
            raise ValueError("max_time_seconds must be > 0")
        if self.max_items_per_run < 1:
            raise ValueError("max_items_per_run must be >= 1")
        if self.consecutive_skip_threshold < 1:
            raise ValueError("consecutive_skip_threshold must be >= 1")
        if self.stale_lock_seconds < 0:
            raise ValueError("stale_lock_seconds must be >= 0")
        if self.max_link_checks < 1:
            raise ValueError("max_link_checks must be >= 1")
        return self


class HttpSettings(BaseModel):
    """Retry, backoff and timeout parameters for the fetch client."""

    retries: int = 3
    backoff_base: float = 1.0
    timeout: float = 30.0
    user_agent_list: list[str] | Path | None = None

    @field_validator("retries")
    @classmethod
    def _check_retries(cls, value: int) -> int:
        if value < 1:
            raise ValueError("retries must be >= 1")
        return value

    @field_validator("backoff_base", "timeout")
    @classmethod
    def _check_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("HTTP timing values must be non-negative")
        return value

    @model_validator(mode="after")
    def _apply_user_agents(self) -> "HttpSettings":
        if isinstance(self.user_agent_list, Path):
            if not self.user_agent_list.exists():
                raise ValueError(f"UA file not found: {self.user_agent_list}")
            content = self.user_agent_list.read_text(encoding="utf-8").splitlines()
            self.user_agent_list = [line.strip() for line in content if line.strip()]
        return self


class ThrottleSettings(BaseModel):
    """Minimum gaps (seconds) between consecutive page and detail requests."""

    page_interval: float = 1.0
    detail_interval: float = 0.5

    @field_validator("page_interval", "detail_interval")
    @classmethod
    def _check_interval(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Throttle intervals must be non-negative")
        return value


class SiteConfig(BaseModel):
    """Per-portal switches and schedule."""

    site_key: str
    enabled: bool = True
    mode: CrawlMode = CrawlMode.INCREMENTAL
    schedule: ScheduleConfig | None = None

    @field_validator("site_key")
    @classmethod
    def _check_key(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("site_key cannot be empty")
        return value


class GlobalConfig(BaseModel):
    """Global controls shared across sites."""

    crawl: CrawlBudget = Field(default_factory=CrawlBudget)
    http: HttpSettings = Field(default_factory=HttpSettings)
    throttle: ThrottleSettings = Field(default_factory=ThrottleSettings)
    target_areas: list[str] = Field(default_factory=lambda: list(DEFAULT_TARGET_AREAS))
    database_path: Path = Field(default=Path("data/estate.db"))

    @field_validator("target_areas", mode="before")
    @classmethod
    def _coerce_areas(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        areas: list[str] = []
        for item in value:
            name = str(item).strip()
            if name and name not in areas:
                areas.append(name)
        return areas

    @field_validator("database_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def resolved_database_path(self, base_dir: Path) -> Path:
        """Return the SQLite path relative to the project root."""

        if not self.database_path.is_absolute():
            return (base_dir / self.database_path).resolve()
        return self.database_path


__all__ = [
    "CrawlBudget",
    "CrawlMode",
    "DEFAULT_TARGET_AREAS",
    "GlobalConfig",
    "HttpSettings",
    "ScheduleConfig",
    "ScheduleType",
    "SiteConfig",
    "ThrottleSettings",
]
