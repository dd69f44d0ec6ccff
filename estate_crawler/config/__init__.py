"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    DEFAULT_TARGET_AREAS,
    CrawlBudget,
    CrawlMode,
    GlobalConfig,
    HttpSettings,
    ScheduleConfig,
    ScheduleType,
    SiteConfig,
    ThrottleSettings,
)

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
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
