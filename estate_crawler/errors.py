"""Exception taxonomy shared by the fetch, connector, store and orchestrator layers."""

from __future__ import annotations


class CrawlerError(Exception):
    """Base class for all estate-crawler errors."""


class FetchError(CrawlerError):
    """Network failure, timeout or non-2xx status after all retries were used."""

    def __init__(self, url: str, attempts: int, last_error: Exception | None = None) -> None:
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"Fetch failed after {attempts} attempts: {url}{detail}")


class ExtractionError(CrawlerError):
    """An expected pattern is absent from a detail page."""

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"Field '{field}' not found")


class PersistenceError(CrawlerError):
    """The listing store rejected a read or write."""


class ProgressWriteError(PersistenceError):
    """A progress cursor could not be saved; resumability is no longer guaranteed."""


class ConfigurationError(CrawlerError):
    """Invalid trigger input such as an unknown or disabled site."""


class UnknownSiteError(ConfigurationError):
    def __init__(self, site_key: str) -> None:
        self.site_key = site_key
        super().__init__(f"Unknown portal site: {site_key}")


class SiteDisabledError(ConfigurationError):
    def __init__(self, site_key: str) -> None:
        self.site_key = site_key
        super().__init__(f"Portal site is disabled: {site_key}")


__all__ = [
    "ConfigurationError",
    "CrawlerError",
    "ExtractionError",
    "FetchError",
    "PersistenceError",
    "ProgressWriteError",
    "SiteDisabledError",
    "UnknownSiteError",
]
