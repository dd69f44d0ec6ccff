"""structlog setup: JSON lines on the console, in crawler.log/error.log and per-site files."""

from __future__ import annotations

import logging
import logging.config
import os
from collections import deque
from pathlib import Path
from typing import Any, Iterable

import structlog

ROOT_LOGGER = "estate_crawler"
SITE_LOGGER_PREFIX = f"{ROOT_LOGGER}.site"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_configured_level: str | None = None


def log_dir() -> Path:
    """``$ESTATE_CRAWLER_HOME/logs`` when the variable is set, else ``logs/`` next to the package."""

    home = os.environ.get("ESTATE_CRAWLER_HOME")
    if home:
        return Path(home).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def crawler_log_path() -> Path:
    return log_dir() / "crawler.log"


def error_log_path() -> Path:
    return log_dir() / "error.log"


def site_log_path(site_key: str) -> Path:
    return log_dir() / "sites" / f"{site_key}.log"


def _file_handler(path: Path, level: str) -> dict[str, Any]:
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "formatter": "json",
        "encoding": "utf-8",
    }


def _dict_config(level: str) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "fmt": JSON_FORMAT,
            }
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
            "crawler_file": _file_handler(crawler_log_path(), "INFO"),
            "error_file": _file_handler(error_log_path(), "ERROR"),
        },
        "loggers": {
            ROOT_LOGGER: {
                "handlers": ["console", "crawler_file", "error_file"],
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Install the handlers once per process; a later call only adjusts the level."""

    global _configured_level
    level = "DEBUG" if verbose else "INFO"
    (log_dir() / "sites").mkdir(parents=True, exist_ok=True)

    if _configured_level is None:
        logging.config.dictConfig(_dict_config(level))
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
    elif level != _configured_level:
        logging.getLogger(ROOT_LOGGER).setLevel(level)
    _configured_level = level
    return structlog.get_logger(ROOT_LOGGER)


def site_logger(site_key: str) -> structlog.BoundLogger:
    """Logger bound with ``site=``; its records also land in ``logs/sites/<site>.log``."""

    configure_logging(verbose=_configured_level == "DEBUG")
    path = site_log_path(site_key)
    py_logger = logging.getLogger(f"{SITE_LOGGER_PREFIX}.{site_key}")
    attached = {
        handler.baseFilename
        for handler in py_logger.handlers
        if isinstance(handler, logging.FileHandler)
    }
    if str(path) not in attached:
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setLevel(logging.INFO)
        root_handlers = logging.getLogger(ROOT_LOGGER).handlers
        if root_handlers:
            handler.setFormatter(root_handlers[0].formatter)
        py_logger.addHandler(handler)
    return structlog.get_logger(py_logger.name).bind(site=site_key)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Last ``line_count`` lines of a log file; empty when the file does not exist."""

    if not path.exists() or line_count <= 0:
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        return list(deque(stream, maxlen=line_count))


def available_site_logs() -> Iterable[Path]:
    sites_dir = log_dir() / "sites"
    if not sites_dir.is_dir():
        return []
    return sorted(sites_dir.glob("*.log"))


__all__ = [
    "available_site_logs",
    "configure_logging",
    "crawler_log_path",
    "error_log_path",
    "log_dir",
    "site_log_path",
    "site_logger",
    "tail_log",
]
