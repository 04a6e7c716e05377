"""
Database management and data access layer.

Provides a Database class wrapping the SQLite feeds database: feed
records (add/remove/list/modify), the per-feed fetch watermark, and the
register of episodes already downloaded for each feed.

SQLite is a single-writer store, so every operation runs under one
re-entrant lock held by the Database instance. Callers on any thread may
share a single instance.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from pydantic import ValidationError

from podchamp.errors import DuplicateFeedError, FeedError, FeedNotFoundError, StoreError
from podchamp.models.entities import Feed
from podchamp.models.schema import create_all_tables

logger = logging.getLogger(__name__)


def _encode_timestamp(when: datetime) -> str:
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc).isoformat()


def _decode_timestamp(raw: Optional[str]) -> Optional[datetime]:
    if raw is None:
        return None
    when = datetime.fromisoformat(raw)
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when


def _row_to_feed(row: sqlite3.Row) -> Feed:
    return Feed(
        name=row["name"],
        uri=row["uri"],
        backlog=row["backlog"],
        fetch_since=_decode_timestamp(row["fetch_since"]),
    )


class Database:
    """
    Feed and registration store.

    Example:
        >>> db = Database(Path("podchamp.sqlite"))
        >>> db.initialize()
        >>> feed = db.add_feed("tal", "https://example.com/tal.rss", backlog=3)
        >>> db.is_episode_registered("tal", "guid-001")
        False
    """

    def __init__(self, db_path: Path):
        """
        Initialize database manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    def initialize(self) -> None:
        """
        Initialize database schema.

        Safe to call multiple times (idempotent).

        Raises:
            StoreError: If the database file can't be opened or written
        """
        try:
            create_all_tables(self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open feeds database {self.db_path}: {e}") from e

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """
        Context manager for database connections.

        Holds the instance lock for the lifetime of the connection, commits
        on success and rolls back on any error. SQLite errors are re-raised
        as StoreError.

        Yields:
            sqlite3.Connection: Database connection with row factory set
        """
        with self._lock:
            try:
                conn = sqlite3.connect(str(self.db_path))
            except sqlite3.Error as e:
                raise StoreError(f"Cannot open feeds database {self.db_path}: {e}") from e
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise StoreError(f"Database error: {e}") from e
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()

    # ── Feeds ─────────────────────────────────────────────────────

    def add_feed(self, name: str, uri: str, backlog: int = 1) -> Feed:
        """
        Add a feed subscription.

        Args:
            name: Unique feed name
            uri: Feed URL
            backlog: Number of most-recent episodes to keep caught up to

        Returns:
            The stored Feed

        Raises:
            FeedError: If the name is empty or backlog is not positive
            DuplicateFeedError: If a feed with that name already exists
        """
        try:
            feed = Feed(name=name, uri=uri, backlog=backlog)
        except ValidationError as e:
            raise FeedError(f"Invalid feed {name!r}: {e}") from e
        try:
            with self.get_connection() as conn:
                conn.execute(
                    "INSERT INTO feeds (name, uri, backlog, fetch_since) VALUES (?, ?, ?, NULL)",
                    (feed.name, feed.uri, feed.backlog),
                )
        except StoreError as e:
            if isinstance(e.__cause__, sqlite3.IntegrityError):
                raise DuplicateFeedError(f"{name} already exists") from e.__cause__
            raise
        logger.debug("Added feed %s (%s, backlog=%d)", name, uri, backlog)
        return feed

    def remove_feed(self, name: str) -> None:
        """
        Delete a feed and, by cascade, its registrations.

        Raises:
            FeedNotFoundError: If no such feed exists
        """
        with self.get_connection() as conn:
            cursor = conn.execute("DELETE FROM feeds WHERE name = ?", (name,))
            if cursor.rowcount == 0:
                raise FeedNotFoundError(f"{name} is not a feed")

    def get_feed(self, name: str) -> Feed:
        """
        Retrieve one feed by name.

        Raises:
            FeedNotFoundError: If no such feed exists
        """
        with self.get_connection() as conn:
            row = conn.execute("SELECT * FROM feeds WHERE name = ?", (name,)).fetchone()
        if row is None:
            raise FeedNotFoundError(f"{name} is not a feed")
        return _row_to_feed(row)

    def get_feeds(self, name: Optional[str] = None) -> List[Feed]:
        """
        Retrieve all feeds, or just the named one.

        Unlike get_feed, an unknown name yields an empty list.

        Args:
            name: Restrict the result to this feed

        Returns:
            Feeds ordered by name
        """
        with self.get_connection() as conn:
            if name is None:
                rows = conn.execute("SELECT * FROM feeds ORDER BY name").fetchall()
            else:
                rows = conn.execute("SELECT * FROM feeds WHERE name = ?", (name,)).fetchall()
        return [_row_to_feed(row) for row in rows]

    def set_feed_uri(self, name: str, uri: str) -> None:
        """Change a feed's link."""
        self._update_feed(name, "uri", uri)

    def set_feed_backlog(self, name: str, backlog: int) -> None:
        """
        Change a feed's backlog size.

        Raises:
            ValueError: If backlog is not a positive integer
            FeedNotFoundError: If no such feed exists
        """
        if backlog < 1:
            raise ValueError("backlog must be at least 1")
        self._update_feed(name, "backlog", backlog)

    def _update_feed(self, name: str, column: str, value: object) -> None:
        with self.get_connection() as conn:
            cursor = conn.execute(f"UPDATE feeds SET {column} = ? WHERE name = ?", (value, name))
            if cursor.rowcount == 0:
                raise FeedNotFoundError(f"{name} is not a feed")

    # ── Watermark ─────────────────────────────────────────────────

    def get_fetch_since(self, feed: str) -> Optional[datetime]:
        """Return the feed's watermark, or None if it has never been fetched."""
        return self.get_feed(feed).fetch_since

    def set_fetch_since(self, feed: str, when: datetime) -> None:
        """
        Persist the feed's watermark.

        Args:
            feed: Feed name
            when: New watermark; naive values are taken as UTC
        """
        self._update_feed(feed, "fetch_since", _encode_timestamp(when))
        logger.debug("Watermark for %s set to %s", feed, when.isoformat())

    # ── Registrations ─────────────────────────────────────────────

    def is_episode_registered(self, feed: str, guid: str) -> bool:
        """Check whether an episode has already been downloaded for a feed."""
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM register WHERE feed = ? AND guid = ?",
                (feed, guid),
            ).fetchone()
        return row is not None

    def register_episode(self, feed: str, guid: str) -> None:
        """
        Record that an episode has been downloaded for a feed.

        Raises:
            StoreError: If the episode is already registered or the feed is gone
        """
        with self.get_connection() as conn:
            conn.execute("INSERT INTO register (feed, guid) VALUES (?, ?)", (feed, guid))

    def reset_progress(self, feed: str) -> None:
        """
        Forget every episode fetched for a feed and clear its watermark.

        Raises:
            FeedNotFoundError: If no such feed exists
        """
        with self.get_connection() as conn:
            cursor = conn.execute(
                "UPDATE feeds SET fetch_since = NULL WHERE name = ?", (feed,)
            )
            if cursor.rowcount == 0:
                raise FeedNotFoundError(f"{feed} is not a feed")
            deleted = conn.execute("DELETE FROM register WHERE feed = ?", (feed,)).rowcount
        logger.debug("Reset %s: %d registration(s) removed", feed, deleted)
