"""
RSS/Atom feed retrieval, parsing and episode index construction.

Fetches raw feed documents over HTTP, parses them with feedparser, and
normalizes the entries into an episode index: a newest-first tuple of
episodes that each have a publish date and a downloadable audio URL.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterator, Optional, Tuple

import feedparser
import requests
from dateutil import parser as date_parser

from podchamp import __version__
from podchamp.errors import FeedFetchError, FeedParseError

logger = logging.getLogger(__name__)

USER_AGENT = f"podchamp/{__version__}"


@dataclass(frozen=True)
class Episode:
    """
    A downloadable episode discovered in a feed.

    Attributes:
        guid: Entry id (RSS guid / Atom id), unique within the feed
        title: Episode title, if the entry has one
        published: Publication date, timezone-aware UTC
        audio_url: URL of the first audio enclosure
    """

    guid: str
    title: Optional[str]
    published: datetime
    audio_url: str


EpisodeIndex = Tuple[Episode, ...]


def fetch_document(url: str, timeout: float = 30.0) -> bytes:
    """
    Download a raw feed document.

    Args:
        url: Feed URL
        timeout: Request timeout in seconds

    Returns:
        Response body

    Raises:
        FeedFetchError: On connection failure, timeout or a non-2xx status
    """
    try:
        response = requests.get(
            url,
            headers={"User-Agent": USER_AGENT},
            timeout=timeout,
        )
        response.raise_for_status()
    except requests.exceptions.Timeout as e:
        raise FeedFetchError(f"request to {url} timed out") from e
    except requests.exceptions.HTTPError as e:
        raise FeedFetchError(f"HTTP error from {url}: {e}") from e
    except requests.exceptions.RequestException as e:
        raise FeedFetchError(f"request to {url} failed: {e}") from e

    logger.debug("Fetched %d bytes from %s", len(response.content), url)
    return response.content


def parse_document(raw: bytes) -> Any:
    """
    Parse a raw feed document with feedparser.

    feedparser is lenient: a document with recoverable problems is flagged
    ``bozo`` but still yields entries. Only a bozo document with no entries
    at all is treated as a parse failure.

    Raises:
        FeedParseError: If the document is not a usable feed
    """
    document = feedparser.parse(raw)

    if document.bozo and not document.entries:
        raise FeedParseError(f"failed to parse feed: {document.bozo_exception}")

    if document.bozo:
        logger.debug("Feed parsed with errors: %s", document.bozo_exception)
    return document


def _is_audio(mime: Optional[str]) -> bool:
    if not mime:
        return False
    return mime.split("/", 1)[0].strip().lower() == "audio"


def _media_references(entry: Any) -> Iterator[Tuple[Optional[str], Optional[str]]]:
    """Yield (mime type, url) for every media reference, in document order."""
    for enc in getattr(entry, "enclosures", None) or []:
        yield enc.get("type"), enc.get("href") or enc.get("url")
    for media in getattr(entry, "media_content", None) or []:
        yield media.get("type"), media.get("url")
    for link in getattr(entry, "links", None) or []:
        if link.get("rel", "enclosure") == "enclosure":
            yield link.get("type"), link.get("href")


def extract_audio_url(entry: Any) -> Optional[str]:
    """
    Find the first audio URL among an entry's enclosures, Media RSS content
    and enclosure links.

    Args:
        entry: feedparser entry object

    Returns:
        Audio URL string or None if not found
    """
    for mime, url in _media_references(entry):
        if _is_audio(mime) and url:
            return url
    return None


def extract_published(entry: Any) -> Optional[datetime]:
    """
    Parse an entry's publish date as a UTC-aware datetime.

    feedparser's own ``published_parsed`` is preferred: it is already
    normalized to UTC and understands RFC 822 zone names (``EST``, ``PDT``)
    that dateutil does not. The raw ``published`` string is parsed with
    dateutil only when feedparser couldn't; dates without a zone are then
    taken as UTC.

    Returns:
        Publication datetime, or None if the entry has no usable date
    """
    parsed = entry.get("published_parsed")
    if parsed:
        return datetime(*parsed[:6], tzinfo=timezone.utc)

    raw = entry.get("published")
    if not raw:
        return None
    try:
        when = date_parser.parse(raw)
    except (ValueError, OverflowError):
        return None
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def extract_episode(entry: Any) -> Optional[Episode]:
    """
    Build an Episode from a feed entry.

    Returns:
        Episode, or None if the entry has no publish date or no audio
    """
    published = extract_published(entry)
    if published is None:
        return None

    audio_url = extract_audio_url(entry)
    if audio_url is None:
        return None

    # feed entries without a guid are identified by their audio file
    guid = entry.get("id") or entry.get("guid") or audio_url
    title = entry.get("title") or None
    return Episode(guid=guid, title=title, published=published, audio_url=audio_url)


def build_index(document: Any, now: datetime) -> EpisodeIndex:
    """
    Normalize a parsed feed into a newest-first episode index.

    Entries without a publish date or audio are skipped, as are entries
    dated at or after ``now`` (clock-skewed feeds would otherwise look like
    the most recent episode and widen the backlog).

    Args:
        document: feedparser result
        now: Current time, timezone-aware

    Returns:
        Tuple of episodes sorted by publish date, most recent first.
        Empty if no entry qualifies.
    """
    episodes = []
    skipped = 0
    for entry in document.entries:
        episode = extract_episode(entry)
        if episode is None or episode.published >= now:
            skipped += 1
            continue
        episodes.append(episode)

    if skipped:
        logger.debug("Skipped %d undatable, non-audio or future entries", skipped)

    episodes.sort(key=lambda ep: ep.published, reverse=True)
    return tuple(episodes)
