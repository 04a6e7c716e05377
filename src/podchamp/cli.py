"""
Command-line interface for podchamp.

Usage:
    podchamp add NAME LINK [-n BACKLOG]   # Subscribe to a feed
    podchamp rm NAME                      # Unsubscribe
    podchamp ls                           # List feeds
    podchamp mod NAME link LINK           # Change a feed's link
    podchamp mod NAME backlog N           # Change how many recent episodes to keep
    podchamp fetch [NAME]                 # Download new episodes
    podchamp reset NAME                   # Forget what was fetched for a feed
"""

import argparse
import sys
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import HttpUrl, TypeAdapter, ValidationError

from podchamp import __version__
from podchamp.config import get_config, setup_logging
from podchamp.errors import (
    AlreadyRunningError,
    ConfigError,
    FeedError,
    StoreError,
)
from podchamp.fetching.orchestrator import run_fetch
from podchamp.lock import instance_lock
from podchamp.models.database import Database

NO_FEEDS_HINT = "No feeds. You can add one with `podchamp add`."

_http_url = TypeAdapter(HttpUrl)


def _link(value: str) -> str:
    """argparse type: an absolute http(s) URL."""
    try:
        _http_url.validate_python(value)
    except ValidationError:
        raise argparse.ArgumentTypeError(f"{value!r} is not a valid http(s) link")
    return value


def _backlog(value: str) -> int:
    """argparse type: a positive integer."""
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not a number")
    if n < 1:
        raise argparse.ArgumentTypeError("backlog must be at least 1")
    return n


def _err(message: str) -> None:
    print(message, file=sys.stderr)


# ---------------------------------------------------------------------------
#  Commands
# ---------------------------------------------------------------------------

def cmd_add(args, db: Database, config) -> int:
    """Add a feed."""
    db.add_feed(args.name, args.link, backlog=args.backlog)
    _err(f"Added {args.name}")
    return 0


def cmd_rm(args, db: Database, config) -> int:
    """Remove a feed."""
    db.remove_feed(args.name)
    _err(f"Removed {args.name}")
    return 0


def cmd_ls(args, db: Database, config) -> int:
    """List feeds."""
    feeds = db.get_feeds()
    if not feeds:
        _err(NO_FEEDS_HINT)
        return 0

    for feed in feeds:
        print(f"{feed.name:16} {feed.uri}")
    return 0


def cmd_mod_link(args, db: Database, config) -> int:
    """Set a feed's link."""
    db.set_feed_uri(args.feed, args.link)
    _err(f"Changed {args.feed} feed link to {args.link}")
    return 0


def cmd_mod_backlog(args, db: Database, config) -> int:
    """Set the number of most-recent episodes to fetch."""
    db.set_feed_backlog(args.feed, args.n)
    _err(f"Changed {args.feed} backlog to {args.n}")
    return 0


def cmd_reset(args, db: Database, config) -> int:
    """Forget about episodes fetched previously."""
    db.reset_progress(args.feed)
    _err(f"Progress reset for {args.feed}")
    return 0


def cmd_fetch(args, db: Database, config) -> int:
    """Fetch latest episodes."""
    feeds = db.get_feeds(args.feed)
    if not feeds:
        if args.feed is not None:
            _err(f"{args.feed} is not a feed")
            return 1
        _err(NO_FEEDS_HINT)
        return 0

    _err("Fetching " + ", ".join(feed.name for feed in feeds))

    report = run_fetch(db, feeds, config, now=datetime.now(timezone.utc))

    for result in report.failures:
        _err(f"Fetch error: {result.feed_name}: {result.error}")

    if report.up_to_date:
        _err("Already up-to-date")
    return 0


# ---------------------------------------------------------------------------
#  Parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="podchamp",
        description="Fetch new podcast episodes with the download command of your choice",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--database-path",
        default=None,
        help="Path to podchamp's database file [env: PODCHAMP_DATABASE_PATH]",
    )
    parser.add_argument(
        "--runtime-dir",
        default=None,
        help="Directory for the instance lock [env: PODCHAMP_RUNTIME_DIR]",
    )
    parser.add_argument(
        "--downloader",
        default=None,
        help=(
            "Command invoked with each episode URL as its lone argument; metadata is "
            "passed in PODCHAMP_FEED, PODCHAMP_DATE and PODCHAMP_TITLE "
            "[default: wget] [env: PODCHAMP_DOWNLOADER]"
        ),
    )
    parser.add_argument(
        "--date-format",
        default=None,
        help="strftime(3) format of PODCHAMP_DATE [default: %%F] [env: PODCHAMP_DATE_FORMAT]",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # add
    sub_add = subparsers.add_parser("add", help="Add a feed")
    sub_add.add_argument("name", help="A name for the feed")
    sub_add.add_argument("link", type=_link, help="The feed's link")
    sub_add.add_argument(
        "-n", "--backlog",
        type=_backlog,
        default=1,
        help="Number of most-recent episodes to fetch (default: 1)",
    )
    sub_add.set_defaults(func=cmd_add)

    # rm
    sub_rm = subparsers.add_parser("rm", aliases=["remove"], help="Remove a feed")
    sub_rm.add_argument("name", help="The feed to remove")
    sub_rm.set_defaults(func=cmd_rm)

    # ls
    sub_ls = subparsers.add_parser("ls", aliases=["list"], help="List feeds")
    sub_ls.set_defaults(func=cmd_ls)

    # mod -- subcommand group
    sub_mod = subparsers.add_parser("mod", aliases=["modify"], help="Modify a feed's settings")
    sub_mod.add_argument("feed", help="The name of the feed to modify")
    mod_subparsers = sub_mod.add_subparsers(dest="modification", help="Setting to change")
    mod_subparsers.required = True

    sub_mod_link = mod_subparsers.add_parser("link", help="Set the feed's link")
    sub_mod_link.add_argument("link", type=_link, help="The new link")
    sub_mod_link.set_defaults(func=cmd_mod_link)

    sub_mod_backlog = mod_subparsers.add_parser(
        "backlog", help="Set the number of most-recent episodes to fetch"
    )
    sub_mod_backlog.add_argument("n", type=_backlog, help="New backlog size")
    sub_mod_backlog.set_defaults(func=cmd_mod_backlog)

    # fetch
    sub_fetch = subparsers.add_parser("fetch", help="Fetch latest episodes")
    sub_fetch.add_argument("feed", nargs="?", default=None, help="A particular feed to fetch")
    sub_fetch.set_defaults(func=cmd_fetch)

    # reset
    sub_reset = subparsers.add_parser("reset", help="Forget about episodes fetched previously")
    sub_reset.add_argument("feed", help="The feed whose progress should be forgotten")
    sub_reset.set_defaults(func=cmd_reset)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = get_config(
            database_path=args.database_path,
            runtime_dir=args.runtime_dir,
            downloader=args.downloader,
            date_format=args.date_format,
        )
    except ConfigError as e:
        _err(f"Error: {e}")
        return 1
    setup_logging(config.log_level, verbose=args.verbose)

    try:
        with instance_lock(config.runtime_dir):
            db = Database(config.database_path)
            db.initialize()
            return args.func(args, db, config)
    except FeedError as e:
        _err(str(e))
        return 1
    except (AlreadyRunningError, ConfigError, StoreError) as e:
        _err(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        _err("Cancelled")
        return 130


if __name__ == "__main__":
    sys.exit(main())
