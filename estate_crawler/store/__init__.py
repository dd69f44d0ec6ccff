"""Listing and progress persistence."""

from .base import ListingStore, StoredListing
from .sqlite_store import SQLiteListingStore

__all__ = ["ListingStore", "SQLiteListingStore", "StoredListing"]
