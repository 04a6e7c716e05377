"""
Tests for the command-line interface.

Drives ``main()`` with argument lists against a temporary database and
runtime directory, checking exit codes and what gets printed.
"""

import os
import sys
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from podchamp.cli import NO_FEEDS_HINT, main
from podchamp.errors import ConfigError
from podchamp.fetching.orchestrator import FeedResult, FetchReport
from podchamp.lock import LOCK_NAME
from podchamp.models.database import Database

FEED_URL = "https://example.com/feed.xml"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path, restore_root_logger):
    for key in list(os.environ):
        if key.startswith("PODCHAMP_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def paths(tmp_path):
    return {
        "db": tmp_path / "data" / "podchamp.sqlite",
        "run": tmp_path / "run",
    }


@pytest.fixture
def run(paths, capsys):
    """Run the CLI and return (exit code, stdout, stderr)."""

    def _run(*argv):
        code = main([
            "--database-path", str(paths["db"]),
            "--runtime-dir", str(paths["run"]),
            *argv,
        ])
        out, err = capsys.readouterr()
        return code, out, err

    return _run


class TestFeedManagement:
    """add / rm / ls / mod / reset."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage: podchamp" in capsys.readouterr().out

    def test_add_and_list(self, run):
        code, _, err = run("add", "tal", FEED_URL)
        assert code == 0
        assert err.strip() == "Added tal"

        code, out, _ = run("ls")
        assert code == 0
        assert out == f"{'tal':16} {FEED_URL}\n"

    def test_add_with_backlog(self, run, paths):
        run("add", "tal", FEED_URL, "-n", "4")
        assert Database(paths["db"]).get_feed("tal").backlog == 4

    def test_add_duplicate(self, run):
        run("add", "tal", FEED_URL)
        code, _, err = run("add", "tal", FEED_URL)
        assert code == 1
        assert "tal already exists" in err

    def test_add_invalid_link(self, run):
        with pytest.raises(SystemExit) as exc_info:
            run("add", "tal", "not a url")
        assert exc_info.value.code == 2

    def test_add_invalid_backlog(self, run):
        with pytest.raises(SystemExit) as exc_info:
            run("add", "tal", FEED_URL, "--backlog", "0")
        assert exc_info.value.code == 2

    def test_list_empty(self, run):
        code, out, err = run("ls")
        assert code == 0
        assert out == ""
        assert NO_FEEDS_HINT in err

    def test_list_sorted(self, run):
        run("add", "zebra", FEED_URL)
        run("add", "alpha", FEED_URL)
        _, out, _ = run("list")
        assert [line.split()[0] for line in out.splitlines()] == ["alpha", "zebra"]

    def test_remove(self, run):
        run("add", "tal", FEED_URL)
        code, _, err = run("rm", "tal")
        assert code == 0
        assert "Removed tal" in err
        assert NO_FEEDS_HINT in run("ls")[2]

    def test_remove_alias(self, run):
        run("add", "tal", FEED_URL)
        assert run("remove", "tal")[0] == 0

    def test_remove_unknown(self, run):
        code, _, err = run("rm", "nope")
        assert code == 1
        assert "nope is not a feed" in err

    def test_modify_link(self, run, paths):
        run("add", "tal", FEED_URL)
        code, _, err = run("mod", "tal", "link", "https://example.com/moved.xml")
        assert code == 0
        assert "Changed tal feed link to https://example.com/moved.xml" in err
        assert Database(paths["db"]).get_feed("tal").uri == "https://example.com/moved.xml"

    def test_modify_backlog(self, run, paths):
        run("add", "tal", FEED_URL)
        code, _, err = run("modify", "tal", "backlog", "7")
        assert code == 0
        assert "Changed tal backlog to 7" in err
        assert Database(paths["db"]).get_feed("tal").backlog == 7

    def test_modify_unknown(self, run):
        code, _, err = run("mod", "nope", "backlog", "2")
        assert code == 1
        assert "nope is not a feed" in err

    def test_modify_requires_setting(self, run):
        with pytest.raises(SystemExit):
            run("mod", "tal")

    def test_reset(self, run, paths):
        run("add", "tal", FEED_URL)
        db = Database(paths["db"])
        db.set_fetch_since("tal", datetime(2024, 1, 1, tzinfo=timezone.utc))
        db.register_episode("tal", "guid-001")

        code, _, err = run("reset", "tal")

        assert code == 0
        assert "Progress reset for tal" in err
        assert db.get_fetch_since("tal") is None
        assert not db.is_episode_registered("tal", "guid-001")

    def test_reset_unknown(self, run):
        code, _, err = run("reset", "nope")
        assert code == 1
        assert "nope is not a feed" in err


class TestFetchCommand:
    """fetch output, with the fetch run itself patched."""

    def test_no_feeds(self, run):
        code, _, err = run("fetch")
        assert code == 0
        assert NO_FEEDS_HINT in err

    def test_unknown_feed(self, run):
        run("add", "tal", FEED_URL)
        code, _, err = run("fetch", "nope")
        assert code == 1
        assert "nope is not a feed" in err

    @patch("podchamp.cli.run_fetch")
    def test_up_to_date(self, mock_run_fetch, run):
        run("add", "tal", FEED_URL)
        run("add", "rl", FEED_URL)
        mock_run_fetch.return_value = FetchReport(results=[FeedResult("rl"), FeedResult("tal")])

        code, _, err = run("fetch")

        assert code == 0
        assert "Fetching rl, tal" in err
        assert "Already up-to-date" in err

    @patch("podchamp.cli.run_fetch")
    def test_single_feed(self, mock_run_fetch, run):
        run("add", "tal", FEED_URL)
        run("add", "rl", FEED_URL)
        mock_run_fetch.return_value = FetchReport(results=[FeedResult("tal", fetched=1)])

        code, _, err = run("fetch", "tal")

        assert code == 0
        feeds = mock_run_fetch.call_args.args[1]
        assert [feed.name for feed in feeds] == ["tal"]
        assert "Fetching tal" in err
        assert "Already up-to-date" not in err

    @patch("podchamp.cli.run_fetch")
    def test_feed_errors_are_reported(self, mock_run_fetch, run):
        run("add", "tal", FEED_URL)
        mock_run_fetch.return_value = FetchReport(
            results=[FeedResult("tal", error="HTTP error from https://example.com/feed.xml: 404")]
        )

        code, _, err = run("fetch")

        assert code == 0
        assert "Fetch error: tal: HTTP error from https://example.com/feed.xml: 404" in err
        assert "Already up-to-date" in err

    def test_feed_without_episodes(self, run, make_rss):
        run("add", "tal", FEED_URL)
        document = make_rss([{"guid": "ep-1", "title": "Show notes only"}])

        with patch("podchamp.fetching.orchestrator.fetch_document", return_value=document):
            code, _, err = run("fetch")

        assert code == 0
        assert "Fetch error: tal: contains no recognizable episodes\n" in err

    @pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
    def test_end_to_end(self, run, tmp_path, make_rss):
        log = tmp_path / "downloads.txt"
        downloader = tmp_path / "fake-wget"
        downloader.write_text(f'#!/bin/sh\necho "$PODCHAMP_DATE $1" >> "{log}"\n')
        downloader.chmod(0o755)

        run("add", "tal", FEED_URL, "-n", "2")
        document = make_rss([
            {
                "guid": f"ep-{day}",
                "title": f"Day {day}",
                "published": datetime(2024, 1, day, 12, tzinfo=timezone.utc),
                "audio_url": f"https://cdn.example.com/{day}.mp3",
            }
            for day in (10, 8, 5)
        ])

        with patch("podchamp.fetching.orchestrator.fetch_document", return_value=document):
            code, _, err = run("--downloader", str(downloader), "--date-format", "%Y%m%d", "fetch")
            assert code == 0
            assert log.read_text().splitlines() == [
                "20240110 https://cdn.example.com/10.mp3",
                "20240108 https://cdn.example.com/8.mp3",
            ]

            code, _, err = run("--downloader", str(downloader), "fetch")
            assert "Already up-to-date" in err
            assert len(log.read_text().splitlines()) == 2


class TestProcessErrors:
    """Configuration and lock failures."""

    def test_already_running(self, run, paths):
        (paths["run"] / LOCK_NAME).mkdir(parents=True)
        code, _, err = run("ls")
        assert code == 1
        assert "Error: podchamp is already running" in err

    def test_lock_released_after_command(self, run, paths):
        run("add", "tal", FEED_URL)
        assert not (paths["run"] / LOCK_NAME).exists()

    def test_invalid_configuration(self, run, monkeypatch):
        monkeypatch.setenv("PODCHAMP_LOG_LEVEL", "LOUD")
        code, _, err = run("ls")
        assert code == 1
        assert "Error: Invalid configuration" in err

    @patch("podchamp.cli.instance_lock")
    def test_lock_cannot_be_created(self, mock_lock, run):
        mock_lock.side_effect = ConfigError("Cannot create instance lock /run/podchamp.lock: Permission denied")
        code, _, err = run("ls")
        assert code == 1
        assert "Error: Cannot create instance lock" in err
