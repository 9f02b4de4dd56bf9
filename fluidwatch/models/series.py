"""
Time-bucketed series models used for display.

Models:
    SeriesGranularity: Bucket width (Hour, Day, Month)
    SeriesItem: A single non-empty bucket
    Series: Buckets ordered newest first
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class SeriesGranularity(str, Enum):
    """
    Width of a series bucket.

    Month is an approximation of 30 days, not a calendar month.
    """

    HOUR = "Hour"
    DAY = "Day"
    MONTH = "Month"

    @property
    def step(self) -> timedelta:
        """Length of one bucket."""
        if self == SeriesGranularity.HOUR:
            return timedelta(hours=1)
        elif self == SeriesGranularity.DAY:
            return timedelta(days=1)
        return timedelta(days=30)


class SeriesItem(BaseModel):
    """A bucket and the sum of the readings that fell into it."""

    model_config = {"frozen": True, "extra": "forbid"}

    period_start: datetime
    value: str = Field(..., description="Decimal sum as text")


class Series(BaseModel):
    """Summed measurements at a given granularity, newest bucket first."""

    model_config = {"frozen": True, "extra": "forbid"}

    granularity: SeriesGranularity
    items: List[SeriesItem] = Field(default_factory=list)
