"""Persistent store interface consumed by the progress tracker and orchestrator."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from ..connectors.types import NormalizedListing, PropertyFields
from ..engine.progress import CrawlProgress


@dataclass(slots=True, frozen=True)
class StoredListing:
    """A persisted listing row as seen by the link checker."""

    id: int
    site_key: str
    url: str
    created_at: datetime | None = None
    checked_at: datetime | None = None


class ListingStore(ABC):
    """Progress rows, physical properties and per-portal listings.

    Implementations wrap driver failures in ``PersistenceError``. Inserting a
    listing whose URL already exists is not an error: ``insert_listing`` and
    ``save_listing`` return ``False``.
    """

    # progress -----------------------------------------------------------
    @abstractmethod
    def get_progress(self, site_key: str, area_key: str) -> CrawlProgress | None: ...

    @abstractmethod
    def upsert_progress(self, progress: CrawlProgress) -> None: ...

    @abstractmethod
    def list_progress(self, site_key: str | None = None) -> list[CrawlProgress]: ...

    @abstractmethod
    def delete_progress(self, site_key: str) -> int: ...

    @abstractmethod
    def request_cancel(self, site_key: str, requested_at: datetime | None = None) -> int:
        """Mark pending and running rows of a site as cancelled."""

    # listings -----------------------------------------------------------
    @abstractmethod
    def find_listing_by_url(self, url: str) -> int | None: ...

    @abstractmethod
    def find_property_by_address(self, address: str) -> int | None: ...

    @abstractmethod
    def find_property_by_normalized_address(self, normalized_address: str) -> int | None: ...

    @abstractmethod
    def insert_property(self, fields: PropertyFields) -> int: ...

    @abstractmethod
    def insert_listing(self, listing: NormalizedListing, *, property_id: int, site_key: str) -> bool: ...

    @abstractmethod
    def save_listing(self, listing: NormalizedListing, *, site_key: str) -> bool:
        """Attach the listing to a property matched by address, or a new one.

        The property and the listing are written in one transaction: a failed
        listing insert leaves no property behind.
        """

    @abstractmethod
    def count_listings(self, site_key: str | None = None) -> int: ...

    @abstractmethod
    def delete_listings(self, site_key: str) -> int:
        """Remove every listing of a site; returns the number of rows removed."""

    @abstractmethod
    def listings_to_check(self, limit: int) -> list[StoredListing]:
        """Listings ordered by last link check, never-checked and oldest first."""

    @abstractmethod
    def mark_checked(self, listing_id: int, checked_at: datetime) -> None: ...

    @abstractmethod
    def delete_listing(self, listing_id: int) -> bool: ...

    def close(self) -> None:
        return


__all__ = ["ListingStore", "StoredListing"]
