"""Per-attempt request shaping: backoff pauses, user agents and browser headers."""

from __future__ import annotations

from ...config import HttpSettings
from ...infra import UserAgentPool
from .chain import RequestDirective, RetryChain, RetryContext, Strategy

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_HEADERS = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "ja,en-US;q=0.7,en;q=0.3",
}


class BackoffStrategy(Strategy):
    """Exponential pause before a retry: ``base * 2 ** (failed_attempts - 1)``."""

    def __init__(self, base: float) -> None:
        self.base = base

    def before_request(self, context: RetryContext, directive: RequestDirective) -> None:
        if context.failed_attempts == 0 or self.base <= 0:
            return
        directive.delay = self.base * 2 ** (context.failed_attempts - 1)


class UserAgentStrategy(Strategy):
    """Pick a user agent from the configured pool for each attempt."""

    def __init__(self, pool: UserAgentPool | None) -> None:
        self.pool = pool

    def before_request(self, context: RetryContext, directive: RequestDirective) -> None:
        ua = self.pool.get() if self.pool else None
        if ua:
            directive.headers.setdefault("User-Agent", ua)


class BrowserHeadersStrategy(Strategy):
    """Fill in desktop-browser headers and the per-attempt timeout."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout

    def before_request(self, context: RetryContext, directive: RequestDirective) -> None:
        for name, value in DEFAULT_HEADERS.items():
            directive.headers.setdefault(name, value)
        if directive.timeout is None:
            directive.timeout = self.timeout


def build_chain(
    settings: HttpSettings,
    ua_pool: UserAgentPool | None,
    *,
    retries: int | None = None,
    backoff_base: float | None = None,
    timeout: float | None = None,
) -> RetryChain:
    """Fresh chain for one fetch; per-call values override ``settings``."""

    return RetryChain(
        retries if retries is not None else settings.retries,
        [
            BackoffStrategy(backoff_base if backoff_base is not None else settings.backoff_base),
            UserAgentStrategy(ua_pool),
            BrowserHeadersStrategy(timeout if timeout is not None else settings.timeout),
        ],
    )


__all__ = [
    "BackoffStrategy",
    "BrowserHeadersStrategy",
    "DEFAULT_HEADERS",
    "UserAgentStrategy",
    "build_chain",
]
