"""Retry strategy chain used by the fetch client."""

from .chain import RequestDirective, RetryChain, RetryContext, Strategy
from .strategies import (
    DEFAULT_HEADERS,
    BackoffStrategy,
    BrowserHeadersStrategy,
    UserAgentStrategy,
    build_chain,
)

__all__ = [
    "BackoffStrategy",
    "BrowserHeadersStrategy",
    "DEFAULT_HEADERS",
    "RequestDirective",
    "RetryChain",
    "RetryContext",
    "Strategy",
    "UserAgentStrategy",
    "build_chain",
]
