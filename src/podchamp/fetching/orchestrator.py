"""
Fetch orchestration across all subscribed feeds.

Feed documents are requested in parallel, one worker thread per feed, and
handled in the order the responses arrive. Each feed is then processed on
its own: parse, index, plan, and download every planned episode that isn't
registered yet, newest first.

Failures are isolated per feed. A feed that can't be fetched, doesn't
parse, has no recognizable episodes, or whose downloader fails ends up as a
failed FeedResult; the other feeds are processed normally. Unexpected
exceptions are confined to their feed the same way and logged at ERROR.
Within a feed, the first failed download stops that feed's run, so older
episodes are never downloaded past a gap. They stay inside the watermark
window and are retried on the next run.

Example:
    >>> report = run_fetch(db, db.get_feeds(), config)
    >>> for result in report.failures:
    ...     print(f"{result.feed_name}: {result.error}")
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from podchamp.config import Config
from podchamp.errors import NoEpisodesError, PodchampError
from podchamp.fetching.planner import plan_fetch
from podchamp.ingestion.downloader import build_environment, invoke_downloader
from podchamp.ingestion.rss_parser import build_index, fetch_document, parse_document
from podchamp.models.database import Database
from podchamp.models.entities import Feed

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
#  Results
# ---------------------------------------------------------------------------

@dataclass
class FeedResult:
    """
    Outcome of fetching one feed.

    Attributes:
        feed_name: Feed the result belongs to
        fetched: Episodes downloaded (counted even if the run later failed)
        error: Failure cause, None on success
    """

    feed_name: str
    fetched: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class FetchReport:
    """Per-feed results of a fetch run, in completion order."""

    results: List[FeedResult] = field(default_factory=list)

    @property
    def fetched_count(self) -> int:
        return sum(result.fetched for result in self.results)

    @property
    def failures(self) -> List[FeedResult]:
        return [result for result in self.results if not result.success]

    @property
    def up_to_date(self) -> bool:
        """True when feeds were checked and nothing needed downloading."""
        return bool(self.results) and self.fetched_count == 0


# ---------------------------------------------------------------------------
#  Per-feed processing
# ---------------------------------------------------------------------------

def process_feed(
    db: Database,
    feed: Feed,
    raw: bytes,
    config: Config,
    now: datetime,
    result: FeedResult,
) -> None:
    """
    Parse one feed document and download its new episodes.

    ``result.fetched`` is incremented after each successful download, so a
    failure part way through still reports what was downloaded.

    Raises:
        PodchampError: Any feed-scoped failure (parse, empty index, store,
            downloader)
    """
    document = parse_document(raw)
    index = build_index(document, now)
    if not index:
        raise NoEpisodesError("contains no recognizable episodes")

    plan = plan_fetch(feed, index)
    logger.debug(
        "%s: %d episode(s) since %s",
        feed.name,
        len(plan.episodes),
        plan.threshold.isoformat(),
    )

    # persist before downloading so an interrupted run resumes from the same window
    if plan.set_fetch_since is not None:
        db.set_fetch_since(feed.name, plan.set_fetch_since)

    for episode in plan.episodes:
        # TODO check registrations for the whole plan in one query
        if db.is_episode_registered(feed.name, episode.guid):
            continue

        env = build_environment(
            feed.name,
            episode.published,
            episode.title,
            date_format=config.date_format,
        )
        invoke_downloader(config.downloader, episode.audio_url, env)
        result.fetched += 1
        db.register_episode(feed.name, episode.guid)
        logger.info("%s: downloaded %s", feed.name, episode.title or episode.guid)


# ---------------------------------------------------------------------------
#  Main fetch entry point
# ---------------------------------------------------------------------------

def run_fetch(
    db: Database,
    feeds: Sequence[Feed],
    config: Config,
    now: Optional[datetime] = None,
) -> FetchReport:
    """
    Fetch every feed and download new episodes.

    Args:
        db: Feed and registration store
        feeds: Feeds to fetch
        config: Downloader, date format, timeout and concurrency settings
        now: Reference time for discarding future-dated entries
            (default: current UTC time)

    Returns:
        FetchReport with one FeedResult per feed
    """
    if now is None:
        now = datetime.now(timezone.utc)

    report = FetchReport()
    if not feeds:
        return report

    max_workers = len(feeds)
    if config.max_concurrent_fetches is not None:
        max_workers = min(max_workers, config.max_concurrent_fetches)

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="podchamp-fetch") as executor:
        futures = {
            executor.submit(fetch_document, feed.uri, config.request_timeout): feed
            for feed in feeds
        }

        for future in as_completed(futures):
            feed = futures[future]
            result = FeedResult(feed_name=feed.name)
            try:
                process_feed(db, feed, future.result(), config, now, result)
            except PodchampError as e:
                result.error = str(e)
                logger.debug("Feed %s failed", feed.name, exc_info=True)
            except Exception as e:
                result.error = f"unexpected error: {e!r}"
                logger.error("Unexpected error processing feed %s", feed.name, exc_info=True)
            report.results.append(result)

    logger.info(
        "Fetch finished: %d episode(s) downloaded, %d feed(s) failed",
        report.fetched_count,
        len(report.failures),
    )
    return report
