"""
Fetch planning: how far back to go for one feed.

A feed is kept caught up to its ``backlog`` most recent episodes. The first
fetch of a feed takes the publish date of the N-th newest episode as its
threshold and records it as the feed's watermark (``fetch_since``). Later
fetches keep using that watermark, so only episodes published since then
are considered, even if the feed reorders or republishes older items.

If the backlog is raised far enough that the N-th newest episode is older
than the watermark, the window widens back to the new backlog boundary and
the watermark moves with it.
"""

from dataclasses import dataclass
from datetime import datetime
from itertools import takewhile
from typing import Optional

from podchamp.ingestion.rss_parser import EpisodeIndex
from podchamp.models.entities import Feed


@dataclass(frozen=True)
class FetchPlan:
    """
    Episodes to consider for download in this run.

    Attributes:
        episodes: Newest-first prefix of the index with published >= threshold
        threshold: Cutoff date for this run
        set_fetch_since: New watermark to persist, or None to keep the current one
    """

    episodes: EpisodeIndex
    threshold: datetime
    set_fetch_since: Optional[datetime] = None


def backlog_start_date(backlog: int, index: EpisodeIndex) -> datetime:
    """Publish date of the oldest episode inside the backlog window."""
    position = min(max(backlog, 1), len(index)) - 1
    return index[position].published


def plan_fetch(feed: Feed, index: EpisodeIndex) -> FetchPlan:
    """
    Compute the fetch plan for a feed.

    Args:
        feed: Stored feed record (backlog and watermark)
        index: Non-empty newest-first episode index

    Returns:
        FetchPlan

    Raises:
        ValueError: If the index is empty

    Example:
        backlog=2, no watermark, episodes dated [10, 8, 5]
        -> threshold 8, set_fetch_since 8, episodes dated [10, 8]
    """
    if not index:
        raise ValueError(f"cannot plan a fetch of {feed.name} from an empty episode index")

    start = backlog_start_date(feed.backlog, index)

    if feed.fetch_since is not None and feed.fetch_since <= start:
        # mature feed: keep fetching from the established date
        threshold, set_fetch_since = feed.fetch_since, None
    else:
        # new feed, or backlog grown back past the watermark
        threshold, set_fetch_since = start, start

    episodes = tuple(takewhile(lambda ep: ep.published >= threshold, index))
    return FetchPlan(episodes=episodes, threshold=threshold, set_fetch_since=set_fetch_since)
