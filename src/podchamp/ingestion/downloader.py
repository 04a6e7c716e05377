"""
Episode download through a user-configured external command.

podchamp never downloads audio itself. For each new episode it runs the
configured downloader (``wget`` by default) with the audio URL as its only
argument, and passes feed and episode metadata in ``PODCHAMP_*``
environment variables so the command can name or tag the file.
"""

import logging
import os
import subprocess
from datetime import datetime
from typing import Dict, Mapping, Optional

from podchamp.errors import DownloadError

logger = logging.getLogger(__name__)

ENV_FEED = "PODCHAMP_FEED"
ENV_DATE = "PODCHAMP_DATE"
ENV_TITLE = "PODCHAMP_TITLE"


def build_environment(
    feed_name: Optional[str],
    published: Optional[datetime],
    title: Optional[str],
    date_format: str = "%F",
) -> Dict[str, str]:
    """
    Build the PODCHAMP_* variables for one download.

    Variables whose value is missing are omitted rather than set empty.

    Example:
        >>> build_environment("tal", None, "Pilot")
        {'PODCHAMP_FEED': 'tal', 'PODCHAMP_TITLE': 'Pilot'}
    """
    values = {
        ENV_FEED: feed_name,
        ENV_DATE: published.strftime(date_format) if published is not None else None,
        ENV_TITLE: title,
    }
    return {key: value for key, value in values.items() if value is not None}


def invoke_downloader(
    executable: str,
    audio_url: str,
    env: Mapping[str, str],
) -> None:
    """
    Run the downloader and wait for it to finish.

    The child inherits podchamp's environment, stdout and stderr, with
    ``env`` layered on top.

    Args:
        executable: Downloader command (name on PATH or path)
        audio_url: URL passed as the sole argument
        env: Extra environment variables

    Raises:
        DownloadError: If the command can't be started or exits nonzero
    """
    logger.info("Running %s %s", executable, audio_url)
    try:
        completed = subprocess.run(
            [executable, audio_url],
            env={**os.environ, **env},
            check=False,
        )
    except (OSError, ValueError) as e:
        # ValueError: NUL bytes in the URL or in feed-supplied metadata
        raise DownloadError(f"Download command {executable!r} could not be started: {e}") from e

    if completed.returncode != 0:
        raise DownloadError(
            f"Download command failed with code {completed.returncode}",
            exit_code=completed.returncode,
        )
