"""
Pydantic data models for stored records.

These mirror the rows of the ``feeds`` table and validate values on
their way in from the command line or out of SQLite.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Feed(BaseModel):
    """
    Subscribed feed.

    ``fetch_since`` is the persisted watermark: the publish date of the
    oldest episode already considered fetched. It is always UTC-aware.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    name: str = Field(min_length=1)
    uri: str
    backlog: int = Field(default=1, ge=1)
    fetch_since: Optional[datetime] = None

    @field_validator("fetch_since")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

