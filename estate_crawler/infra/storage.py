"""SQLite connection management and schema for listings and crawl progress."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from typing import Dict

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS scrape_progress (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        site_key TEXT NOT NULL,
        area_key TEXT NOT NULL,
        area_name TEXT,
        current_page INTEGER NOT NULL DEFAULT 1,
        page_offset INTEGER NOT NULL DEFAULT 0,
        total_pages INTEGER,
        processed_count INTEGER NOT NULL DEFAULT 0,
        inserted_count INTEGER NOT NULL DEFAULT 0,
        skipped_count INTEGER NOT NULL DEFAULT 0,
        consecutive_skips INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'pending',
        mode TEXT NOT NULL DEFAULT 'initial',
        error_message TEXT,
        started_at TEXT,
        completed_at TEXT,
        last_run_at TEXT,
        UNIQUE (site_key, area_key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS properties (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        address_raw TEXT,
        normalized_address TEXT,
        city TEXT,
        building_area REAL,
        land_area REAL,
        built_year INTEGER,
        rooms INTEGER,
        units INTEGER,
        property_type TEXT,
        nearest_station TEXT,
        walk_minutes INTEGER,
        created_at TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_properties_address ON properties(address_raw)",
    "CREATE INDEX IF NOT EXISTS idx_properties_normalized ON properties(normalized_address)",
    """
    CREATE TABLE IF NOT EXISTS listings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        property_id INTEGER REFERENCES properties(id),
        site_key TEXT NOT NULL,
        url TEXT NOT NULL UNIQUE,
        title TEXT,
        price INTEGER,
        external_id TEXT,
        raw_payload TEXT,
        status TEXT NOT NULL DEFAULT 'active',
        created_at TEXT NOT NULL DEFAULT (datetime('now')),
        checked_at TEXT
    )
    """,
)

# Columns added after the first release; older files get them on connect.
ADDED_COLUMNS = (
    ("scrape_progress", "page_offset", "INTEGER NOT NULL DEFAULT 0"),
    ("listings", "checked_at", "TEXT"),
)


class SQLiteManager:
    """Share one connection per database file and guarantee the schema exists."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        if str(path) != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(str(path), check_same_thread=False)
                conn.row_factory = sqlite3.Row
                self._connections[path] = conn
                self._ensure_schema(conn)
            return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        for statement in SCHEMA_STATEMENTS:
            conn.execute(statement)
        for table, column, ddl in ADDED_COLUMNS:
            existing = {row["name"] for row in conn.execute(f"PRAGMA table_info({table})")}
            if column not in existing:
                conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}")
        conn.commit()

    def close(self, path: Path) -> None:
        with self._lock:
            conn = self._connections.pop(path, None)
        if conn is not None:
            conn.close()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


__all__ = ["ADDED_COLUMNS", "SCHEMA_STATEMENTS", "SQLiteManager"]
