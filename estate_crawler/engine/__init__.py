"""Engine components: fetch, pacing, dedup and progress tracking."""

from .dedup import RunDedup, canonical_url
from .fetcher import FetchOptions, Fetcher, LinkStatus
from .progress import CrawlProgress, ProgressStatus, ProgressTracker
from .throttle import Throttle

__all__ = [
    "CrawlProgress",
    "FetchOptions",
    "Fetcher",
    "LinkStatus",
    "ProgressStatus",
    "ProgressTracker",
    "RunDedup",
    "Throttle",
    "canonical_url",
]
