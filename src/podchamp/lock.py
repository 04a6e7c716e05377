"""
Single-instance lock.

Only one podchamp process may work on a database at a time. The lock is a
directory created atomically in the runtime directory and removed when the
holder exits, including on exceptions, Ctrl+C and SIGTERM.
"""

import logging
import os
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from podchamp.errors import AlreadyRunningError, ConfigError

logger = logging.getLogger(__name__)

LOCK_NAME = "podchamp.lock"


def _raise_exit(signum, frame):
    raise SystemExit(128 + signum)


@contextmanager
def instance_lock(runtime_dir: Path) -> Iterator[Path]:
    """
    Hold the podchamp instance lock for the duration of the block.

    While held on the main thread, SIGTERM is turned into SystemExit so the
    lock is still released when the process is terminated.

    Args:
        runtime_dir: Directory in which to create the lock

    Yields:
        Path of the lock directory

    Raises:
        AlreadyRunningError: If another process holds the lock
        ConfigError: If the lock can't be created in runtime_dir
    """
    lock_path = runtime_dir / LOCK_NAME
    try:
        runtime_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigError(f"Cannot create runtime directory {runtime_dir}: {e}") from e
    try:
        os.mkdir(lock_path)
    except FileExistsError as e:
        raise AlreadyRunningError(
            f"podchamp is already running (remove {lock_path} if it is not)"
        ) from e
    except OSError as e:
        raise ConfigError(f"Cannot create instance lock {lock_path}: {e}") from e
    logger.debug("Acquired instance lock %s", lock_path)

    previous_handler = None
    on_main_thread = threading.current_thread() is threading.main_thread()
    if on_main_thread:
        previous_handler = signal.signal(signal.SIGTERM, _raise_exit)

    try:
        yield lock_path
    finally:
        if on_main_thread:
            signal.signal(signal.SIGTERM, previous_handler or signal.SIG_DFL)
        try:
            os.rmdir(lock_path)
        except OSError as e:
            logger.warning("Could not release instance lock %s: %s", lock_path, e)
        else:
            logger.debug("Released instance lock %s", lock_path)
