"""
Ingestion module for feed retrieval, episode indexing and downloading.
"""

from podchamp.ingestion.downloader import build_environment, invoke_downloader
from podchamp.ingestion.rss_parser import (
    Episode,
    EpisodeIndex,
    build_index,
    fetch_document,
    parse_document,
)

__all__ = [
    "Episode",
    "EpisodeIndex",
    "build_environment",
    "build_index",
    "fetch_document",
    "invoke_downloader",
    "parse_document",
]
