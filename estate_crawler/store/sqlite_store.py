"""SQLite-backed listing store."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Iterator

from ..config import CrawlMode
from ..connectors.types import NormalizedListing, PropertyFields
from ..engine.progress import CrawlProgress, ProgressStatus
from ..errors import PersistenceError
from ..infra.storage import SQLiteManager
from .base import ListingStore, StoredListing

# Shorter normalized addresses (a bare town name) are too vague to merge on.
MIN_NORMALIZED_MATCH = 10

_PROGRESS_COLUMNS = (
    "site_key",
    "area_key",
    "area_name",
    "current_page",
    "page_offset",
    "total_pages",
    "processed_count",
    "inserted_count",
    "skipped_count",
    "consecutive_skips",
    "status",
    "mode",
    "error_message",
    "started_at",
    "completed_at",
    "last_run_at",
)


def _dump_time(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _load_time(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _row_to_progress(row: sqlite3.Row) -> CrawlProgress:
    return CrawlProgress(
        site_key=row["site_key"],
        area_key=row["area_key"],
        area_name=row["area_name"],
        current_page=row["current_page"],
        page_offset=row["page_offset"],
        total_pages=row["total_pages"],
        processed_count=row["processed_count"],
        inserted_count=row["inserted_count"],
        skipped_count=row["skipped_count"],
        consecutive_skips=row["consecutive_skips"],
        status=ProgressStatus(row["status"]),
        mode=CrawlMode(row["mode"]),
        error_message=row["error_message"],
        started_at=_load_time(row["started_at"]),
        completed_at=_load_time(row["completed_at"]),
        last_run_at=_load_time(row["last_run_at"]),
    )


class SQLiteListingStore(ListingStore):
    """``ListingStore`` over one SQLite database file."""

    def __init__(self, db_path: Path, manager: SQLiteManager | None = None) -> None:
        self.db_path = db_path
        self.manager = manager or SQLiteManager()
        self._lock = Lock()
        try:
            self._conn = self.manager.connect(db_path)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open database {db_path}: {exc}") from exc

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as exc:
                raise PersistenceError(str(exc)) from exc

    def _fetchone(self, sql: str, params: tuple[Any, ...]) -> sqlite3.Row | None:
        with self._transaction() as conn:
            return conn.execute(sql, params).fetchone()

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------
    def get_progress(self, site_key: str, area_key: str) -> CrawlProgress | None:
        row = self._fetchone(
            "SELECT * FROM scrape_progress WHERE site_key = ? AND area_key = ?",
            (site_key, area_key),
        )
        return _row_to_progress(row) if row is not None else None

    def upsert_progress(self, progress: CrawlProgress) -> None:
        values = (
            progress.site_key,
            progress.area_key,
            progress.area_name,
            progress.current_page,
            progress.page_offset,
            progress.total_pages,
            progress.processed_count,
            progress.inserted_count,
            progress.skipped_count,
            progress.consecutive_skips,
            progress.status.value,
            progress.mode.value,
            progress.error_message,
            _dump_time(progress.started_at),
            _dump_time(progress.completed_at),
            _dump_time(progress.last_run_at),
        )
        columns = ", ".join(_PROGRESS_COLUMNS)
        placeholders = ", ".join("?" for _ in _PROGRESS_COLUMNS)
        updates = ", ".join(
            f"{name} = excluded.{name}" for name in _PROGRESS_COLUMNS[2:]
        )
        with self._transaction() as conn:
            conn.execute(
                f"INSERT INTO scrape_progress ({columns}) VALUES ({placeholders}) "
                f"ON CONFLICT(site_key, area_key) DO UPDATE SET {updates}",
                values,
            )

    def list_progress(self, site_key: str | None = None) -> list[CrawlProgress]:
        with self._transaction() as conn:
            if site_key is None:
                rows = conn.execute(
                    "SELECT * FROM scrape_progress ORDER BY site_key, id"
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM scrape_progress WHERE site_key = ? ORDER BY id",
                    (site_key,),
                ).fetchall()
        return [_row_to_progress(row) for row in rows]

    def delete_progress(self, site_key: str) -> int:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM scrape_progress WHERE site_key = ?", (site_key,))
            return cursor.rowcount

    def request_cancel(self, site_key: str, requested_at: datetime | None = None) -> int:
        stamp = _dump_time(requested_at or datetime.now(timezone.utc))
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE scrape_progress SET status = ?, last_run_at = ? "
                "WHERE site_key = ? AND status IN (?, ?)",
                (
                    ProgressStatus.CANCELLED.value,
                    stamp,
                    site_key,
                    ProgressStatus.PENDING.value,
                    ProgressStatus.IN_PROGRESS.value,
                ),
            )
            return cursor.rowcount


    # ------------------------------------------------------------------
    # Properties and listings
    # ------------------------------------------------------------------
    def find_listing_by_url(self, url: str) -> int | None:
        row = self._fetchone("SELECT id FROM listings WHERE url = ?", (url,))
        return row["id"] if row is not None else None

    def find_property_by_address(self, address: str) -> int | None:
        with self._transaction() as conn:
            return _property_by(conn, "address_raw", address)

    def find_property_by_normalized_address(self, normalized_address: str) -> int | None:
        with self._transaction() as conn:
            return _property_by(conn, "normalized_address", normalized_address)

    def insert_property(self, fields: PropertyFields) -> int:
        with self._transaction() as conn:
            return _insert_property(conn, fields)

    def insert_listing(self, listing: NormalizedListing, *, property_id: int, site_key: str) -> bool:
        with self._transaction() as conn:
            return _insert_listing(conn, listing, property_id, site_key)

    def save_listing(self, listing: NormalizedListing, *, site_key: str) -> bool:
        fields = listing.property
        with self._transaction() as conn:
            if conn.execute("SELECT 1 FROM listings WHERE url = ?", (listing.url,)).fetchone():
                return False
            property_id = None
            if fields.address_raw:
                property_id = _property_by(conn, "address_raw", fields.address_raw)
            if property_id is None and len(fields.normalized_address) > MIN_NORMALIZED_MATCH:
                property_id = _property_by(conn, "normalized_address", fields.normalized_address)
            if property_id is None:
                property_id = _insert_property(conn, fields)
            return _insert_listing(conn, listing, property_id, site_key)

    def count_listings(self, site_key: str | None = None) -> int:
        if site_key is None:
            row = self._fetchone("SELECT COUNT(*) AS total FROM listings", ())
        else:
            row = self._fetchone(
                "SELECT COUNT(*) AS total FROM listings WHERE site_key = ?", (site_key,)
            )
        return int(row["total"]) if row is not None else 0

    def delete_listings(self, site_key: str) -> int:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM listings WHERE site_key = ?", (site_key,))
            return cursor.rowcount

    def listings_to_check(self, limit: int) -> list[StoredListing]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT id, site_key, url, created_at, checked_at FROM listings "
                "ORDER BY checked_at IS NOT NULL, checked_at, created_at, id LIMIT ?",
                (limit,),
            ).fetchall()
        return [
            StoredListing(
                id=row["id"],
                site_key=row["site_key"],
                url=row["url"],
                created_at=_load_time(row["created_at"]),
                checked_at=_load_time(row["checked_at"]),
            )
            for row in rows
        ]

    def mark_checked(self, listing_id: int, checked_at: datetime) -> None:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE listings SET checked_at = ? WHERE id = ?",
                (_dump_time(checked_at), listing_id),
            )

    def delete_listing(self, listing_id: int) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM listings WHERE id = ?", (listing_id,))
            return cursor.rowcount == 1

    def close(self) -> None:
        self.manager.close(self.db_path)


def _property_by(conn: sqlite3.Connection, column: str, value: str) -> int | None:
    row = conn.execute(
        f"SELECT id FROM properties WHERE {column} = ? ORDER BY id LIMIT 1", (value,)
    ).fetchone()
    return row["id"] if row is not None else None


def _insert_property(conn: sqlite3.Connection, fields: PropertyFields) -> int:
    cursor = conn.execute(
        """
        INSERT INTO properties (
            address_raw, normalized_address, city, building_area, land_area,
            built_year, rooms, units, property_type, nearest_station, walk_minutes
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            fields.address_raw,
            fields.normalized_address,
            fields.city,
            fields.building_area,
            fields.land_area,
            fields.built_year,
            fields.rooms,
            fields.units,
            fields.property_type,
            fields.nearest_station,
            fields.walk_minutes,
        ),
    )
    return int(cursor.lastrowid)


def _insert_listing(
    conn: sqlite3.Connection, listing: NormalizedListing, property_id: int, site_key: str
) -> bool:
    cursor = conn.execute(
        """
        INSERT INTO listings (property_id, site_key, url, title, price, external_id, raw_payload)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(url) DO NOTHING
        """,
        (
            property_id,
            site_key,
            listing.url,
            listing.title,
            listing.price,
            listing.external_id,
            json.dumps(listing.raw, ensure_ascii=False, default=str),
        ),
    )
    return cursor.rowcount == 1


__all__ = ["SQLiteListingStore"]
