"""
Fetch planning and orchestration.

Decides, per feed, which episodes are due for download and drives the
concurrent fetch of all subscribed feeds.
"""

from podchamp.fetching.orchestrator import FeedResult, FetchReport, process_feed, run_fetch
from podchamp.fetching.planner import FetchPlan, backlog_start_date, plan_fetch

__all__ = [
    "FeedResult",
    "FetchPlan",
    "FetchReport",
    "backlog_start_date",
    "plan_fetch",
    "process_feed",
    "run_fetch",
]
