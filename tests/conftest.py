"""
Shared test fixtures.

Provides pytest fixtures for common test resources including:
- Test configuration with temporary paths
- Temporary feeds database
- A builder for raw RSS documents
"""

import logging
from email.utils import format_datetime
from typing import Any, Dict, Sequence
from xml.sax.saxutils import escape

import pytest

from podchamp.config import Config
from podchamp.models.database import Database


@pytest.fixture
def test_config(tmp_path) -> Config:
    """
    Create test configuration with temporary paths.

    Returns:
        Config: Test configuration
    """
    config = Config(
        database_path=tmp_path / "db" / "podchamp.sqlite",
        runtime_dir=tmp_path / "run",
        downloader="fake-downloader",
        date_format="%Y-%m-%d",
    )
    config.ensure_directories()
    return config


@pytest.fixture
def db(tmp_path) -> Database:
    """Create an initialized Database in a temporary directory."""
    database = Database(tmp_path / "test.sqlite")
    database.initialize()
    return database


def _render_rss(items: Sequence[Dict[str, Any]], title: str = "My Podcast") -> bytes:
    rendered = []
    for item in items:
        parts = [f"<guid>{escape(item['guid'])}</guid>"]
        if item.get("title"):
            parts.append(f"<title>{escape(item['title'])}</title>")
        if item.get("published") is not None:
            parts.append(f"<pubDate>{format_datetime(item['published'], usegmt=True)}</pubDate>")
        if item.get("audio_url"):
            parts.append(
                '<enclosure url="{}" length="1000" type="{}"/>'.format(
                    escape(item["audio_url"]), item.get("audio_type", "audio/mpeg")
                )
            )
        rendered.append("<item>" + "".join(parts) + "</item>")

    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel>'
        f"<title>{escape(title)}</title>"
        "<link>https://example.com/</link>"
        "<description>Test feed</description>"
        + "".join(rendered)
        + "</channel></rss>"
    ).encode("utf-8")


@pytest.fixture
def make_rss():
    """
    Builder for minimal RSS 2.0 documents.

    Each item dict takes ``guid``, ``title``, ``published`` (aware datetime)
    and ``audio_url``; ``audio_type`` defaults to audio/mpeg.
    """
    return _render_rss


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging() changes to the root logger."""
    root = logging.getLogger()
    level, handlers = root.level, root.handlers[:]
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
