"""In-run URL deduplication on canonical listing URLs."""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit


def canonical_url(url: str) -> str:
    """Strip query string and fragment so tracking variants collapse to one key."""

    parts = urlsplit(url.strip())
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, "", ""))


class RunDedup:
    """Canonical URLs seen during one orchestrator run."""

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def check_and_add(self, url: str) -> bool:
        """Return True when the URL was already seen; record it otherwise."""

        key = canonical_url(url)
        if key in self._seen:
            return True
        self._seen.add(key)
        return False


__all__ = ["RunDedup", "canonical_url"]
