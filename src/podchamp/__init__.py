"""
podchamp

Fetches new podcast episodes from subscribed feeds and hands each one to a
user-configured download command, remembering what has already been
fetched so repeated runs only pick up new episodes.
"""

__version__ = "0.1.0"

from podchamp.config import Config

__all__ = ["Config", "__version__"]
