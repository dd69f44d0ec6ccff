"""Attempt accounting for one fetch, plus the hooks that shape each attempt."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence


@dataclass(slots=True)
class RequestDirective:
    """Headers, timeout and pre-attempt pause for the next request."""

    headers: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    delay: float | None = None


@dataclass(slots=True)
class RetryContext:
    url: str
    max_attempts: int
    attempt: int = 1
    last_error: Exception | None = None

    @property
    def failed_attempts(self) -> int:
        return self.attempt - 1


class Strategy(Protocol):
    def before_request(self, context: RetryContext, directive: RequestDirective) -> None:
        """Fill in the directive for ``context.attempt``."""


class RetryChain:
    """Count failed attempts against a budget and run strategies before each try.

    A chain is built per URL by ``build_chain``; it holds no state between
    ``fetch_html`` calls.
    """

    def __init__(self, max_attempts: int, strategies: Sequence[Strategy] = ()) -> None:
        self.max_attempts = max(1, max_attempts)
        self.strategies = list(strategies)

    def begin(self, url: str) -> RetryContext:
        return RetryContext(url=url, max_attempts=self.max_attempts)

    def prepare(self, context: RetryContext) -> RequestDirective:
        directive = RequestDirective()
        for strategy in self.strategies:
            strategy.before_request(context, directive)
        return directive

    def record_failure(self, context: RetryContext, error: Exception) -> bool:
        """Count a failed attempt; True while another attempt is allowed."""

        context.last_error = error
        context.attempt += 1
        return context.attempt <= context.max_attempts


__all__ = ["RequestDirective", "RetryChain", "RetryContext", "Strategy"]
