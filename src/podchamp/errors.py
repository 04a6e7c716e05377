"""Custom exceptions for podchamp."""

from typing import Optional


class PodchampError(Exception):
    """Base exception for all podchamp errors."""

    pass


class ConfigError(PodchampError):
    """Configuration-related errors."""

    pass


class AlreadyRunningError(PodchampError):
    """Another podchamp process holds the instance lock."""

    pass


class StoreError(PodchampError):
    """Feed database read or write failure."""

    pass


class FeedError(PodchampError):
    """Feed management and per-feed fetch errors."""

    pass


class FeedNotFoundError(FeedError):
    """Feed not found in the database."""

    pass


class DuplicateFeedError(FeedError):
    """Feed already exists."""

    pass


class FeedFetchError(FeedError):
    """Feed document could not be retrieved."""

    pass


class FeedParseError(FeedError):
    """Feed document could not be parsed."""

    pass


class NoEpisodesError(FeedError):
    """Feed parsed but none of its entries is a downloadable episode."""

    pass


class DownloadError(PodchampError):
    """The downloader command failed to start or exited with an error."""

    def __init__(self, message: str, exit_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code
