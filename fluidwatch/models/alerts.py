"""
Alert data models for the alerting sweep.

Alerts are tags computed on demand during a sweep; they are never
persisted.

Models:
    AlertType: Anomaly kinds (ConstantFlow, NotReporting)
    Alert: A single tagged anomaly
    FluidMeterAlerts: A meter and the alerts it raised in one sweep
    SweepReport: Outcome of one sweep run
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from fluidwatch.models.meter import FluidMeter


class AlertType(str, Enum):
    """
    Anomaly kinds detected by the sweep.

    Attributes:
        CONSTANT_FLOW: Uninterrupted flow over the sampling window (possible leak).
        NOT_REPORTING: An active meter stopped sending measurements.
    """

    CONSTANT_FLOW = "ConstantFlow"
    NOT_REPORTING = "NotReporting"

    @property
    def description(self) -> str:
        """Human-readable explanation used in digests."""
        if self == AlertType.CONSTANT_FLOW:
            return "Water has been flowing non-stop. There may be a leak."
        return "The meter has stopped reporting measurements."


class Alert(BaseModel):
    """A tagged anomaly."""

    model_config = {"frozen": True, "extra": "forbid"}

    alert_type: AlertType


class FluidMeterAlerts(BaseModel):
    """
    A meter and the alerts it raised.

    Example:
        >>> FluidMeterAlerts(
        ...     meter=meter,
        ...     alerts=[Alert(alert_type=AlertType.CONSTANT_FLOW)],
        ... ).has_alerts
        True
    """

    model_config = {"frozen": True, "extra": "forbid"}

    meter: FluidMeter
    alerts: List[Alert] = Field(default_factory=list)

    @property
    def has_alerts(self) -> bool:
        """Check if at least one detector fired."""
        return len(self.alerts) > 0


class SweepReport(BaseModel):
    """
    Summary of one alert sweep.

    Attributes:
        started_at: Time the sweep claimed the run.
        finished_at: Time the last digest was attempted.
        pages: Number of non-empty meter pages processed.
        meters_evaluated: Active meters evaluated.
        meters_alerting: Meters with at least one alert.
        owners_notified: Digests delivered successfully.
        notification_failures: Digests that failed to deliver.
    """

    started_at: datetime
    finished_at: Optional[datetime] = None
    pages: int = 0
    meters_evaluated: int = 0
    meters_alerting: int = 0
    owners_notified: int = 0
    notification_failures: int = 0
