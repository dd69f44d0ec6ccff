"""HTTP fetching with retry, exponential backoff and browser-like headers."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

import httpx
import structlog

from ..config import HttpSettings
from ..errors import FetchError
from ..infra import UserAgentPool
from .retry import strategies


@dataclass(slots=True)
class FetchOptions:
    """Per-call overrides. Unset values fall back to ``HttpSettings``."""

    headers: dict[str, str] | None = None
    timeout: float | None = None
    retries: int | None = None
    backoff_base: float | None = None


@dataclass(slots=True, frozen=True)
class LinkStatus:
    """Final answer for a stored listing URL after redirects."""

    url: str
    status_code: int
    final_url: str


class Fetcher:
    """Fetch HTML pages, retrying transport errors and non-2xx responses.

    Every call runs its own retry chain. Failures of earlier calls never
    short-circuit later ones.
    """

    def __init__(
        self,
        settings: HttpSettings | None = None,
        ua_pool: UserAgentPool | None = None,
        logger: structlog.BoundLogger | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or HttpSettings()
        self.ua_pool = ua_pool if ua_pool is not None else UserAgentPool.from_settings(self.settings)
        self.logger = logger or structlog.get_logger("estate_crawler.fetcher")
        self._sleep = sleep
        self._client = httpx.Client(follow_redirects=True, timeout=self.settings.timeout)

    def close(self) -> None:
        self._client.close()

    def fetch_html(self, url: str, options: FetchOptions | None = None) -> str:
        response = self._request(url, options, accept=lambda r: 200 <= r.status_code < 300)
        return response.text

    def check_link(self, url: str, options: FetchOptions | None = None) -> LinkStatus:
        """Status and landing URL of ``url``. Any status below 500 is a final answer."""

        response = self._request(url, options, accept=lambda r: r.status_code < 500)
        return LinkStatus(url=url, status_code=response.status_code, final_url=str(response.url))

    # ------------------------------------------------------------------
    def _request(
        self,
        url: str,
        options: FetchOptions | None,
        accept: Callable[[httpx.Response], bool],
    ) -> httpx.Response:
        options = options or FetchOptions()
        chain = strategies.build_chain(
            self.settings,
            self.ua_pool,
            retries=options.retries,
            backoff_base=options.backoff_base,
            timeout=options.timeout,
        )
        context = chain.begin(url)
        while True:
            directive = chain.prepare(context)
            if directive.delay:
                self._sleep(directive.delay)
            headers = dict(directive.headers)
            if options.headers:
                headers.update(options.headers)
            try:
                response = self._client.request(
                    method="GET",
                    url=url,
                    headers=headers,
                    timeout=directive.timeout,
                )
            except httpx.HTTPError as exc:
                self.logger.warning("fetch_error", url=url, attempt=context.attempt, error=str(exc))
                error: Exception = exc
            else:
                if accept(response):
                    return response
                self.logger.warning(
                    "fetch_status", url=url, attempt=context.attempt, status=response.status_code
                )
                error = httpx.HTTPStatusError(
                    f"Unexpected status {response.status_code}",
                    request=httpx.Request("GET", url),
                    response=response,
                )
            if not chain.record_failure(context, error):
                break

        raise FetchError(url, context.max_attempts, context.last_error) from context.last_error


__all__ = ["FetchOptions", "Fetcher", "LinkStatus"]
