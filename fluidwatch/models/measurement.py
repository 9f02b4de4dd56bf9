"""
Measurement model.

A measurement is a single timestamped reading submitted by a meter. Values
are kept as decimal strings so the storage layer never has to care about
numeric precision; they are validated and normalized at ingestion.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from fluidwatch.models.common import ensure_utc, parse_decimal


class Measurement(BaseModel):
    """
    One reading from a flow meter.

    Attributes:
        id: Unique identifier. Backends that deduplicate by time bucket
            return the id of the already stored row on a duplicate.
        meter_id: Meter that produced the reading.
        value: Decimal reading as text (e.g. "3.781159").
        recorded_at: When the reading was accepted (UTC).

    Example:
        >>> m = Measurement(
        ...     id="b0c5...",
        ...     meter_id="meter-1",
        ...     value="5.5",
        ...     recorded_at=datetime(2025, 3, 27, 14, 42, 32, tzinfo=timezone.utc),
        ... )
        >>> m.decimal_value
        Decimal('5.5')
    """

    model_config = {"frozen": True, "extra": "forbid"}

    id: str = Field(..., min_length=1)
    meter_id: str = Field(..., min_length=1)
    value: str
    recorded_at: datetime

    @field_validator("recorded_at")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def decimal_value(self) -> Optional[Decimal]:
        """The parsed value, or None if the stored text is not a number."""
        return parse_decimal(self.value)
