"""
Data models and database management.

Provides the SQLite schema, the Feed model and the Database class that
stores feeds, fetch watermarks and episode registrations.
"""

from podchamp.models.database import Database
from podchamp.models.entities import Feed
from podchamp.models.schema import SCHEMA_SQL, create_all_tables, get_table_names

__all__ = [
    "Database",
    "Feed",
    "SCHEMA_SQL",
    "create_all_tables",
    "get_table_names",
]
