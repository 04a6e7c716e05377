"""
SQLite schema and database initialization.

Defines the two tables podchamp persists: subscribed feeds (with their
backlog size and fetch watermark) and the register of episodes already
downloaded for each feed.
"""

import sqlite3
from pathlib import Path


SCHEMA_SQL = """
-- ============================================================
-- FEEDS: Subscribed podcast feeds
-- ============================================================
CREATE TABLE IF NOT EXISTS feeds (
    name            TEXT    NOT NULL PRIMARY KEY,
    uri             TEXT    NOT NULL,
    backlog         INTEGER NOT NULL DEFAULT 1 CHECK (backlog >= 1),
    fetch_since     TEXT              -- ISO-8601 UTC watermark, NULL until first fetch
);

-- ============================================================
-- REGISTER: Episodes already downloaded, per feed
-- ============================================================
CREATE TABLE IF NOT EXISTS register (
    feed            TEXT    NOT NULL REFERENCES feeds(name) ON DELETE CASCADE ON UPDATE CASCADE,
    guid            TEXT    NOT NULL,
    PRIMARY KEY (feed, guid)
);
"""


def create_all_tables(db_path: Path) -> None:
    """
    Create all tables if they don't exist.

    Args:
        db_path: Path to the SQLite database file
    """
    conn = sqlite3.connect(str(db_path))
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()


def get_table_names(db_path: Path) -> list[str]:
    """
    Get list of all table names in the database.

    Args:
        db_path: Path to the SQLite database file

    Returns:
        Sorted list of table names
    """
    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        )
        return [row[0] for row in cursor.fetchall()]
    finally:
        conn.close()
