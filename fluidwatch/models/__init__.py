"""
Shared Pydantic data models for the monitoring system.

Measurement values are decimal strings; all timestamps are aware UTC.

Modules:
    common: Validation issues, metadata rows and time/decimal helpers
    meter: Fluid meters and accounts
    measurement: Meter readings
    series: Time-bucketed series for display
    alerts: Alert tags, per-meter alert lists and sweep reports

Example:
    >>> from fluidwatch.models import FluidMeter, Measurement, SeriesGranularity
    >>> from fluidwatch.models import Alert, AlertType
"""

# Common
from fluidwatch.models.common import (
    Clock,
    FailedValidation,
    Metadata,
    ValidationIssue,
    ensure_utc,
    format_decimal,
    parse_decimal,
    utc_now,
)

# Meter models
from fluidwatch.models.meter import (
    Account,
    FluidMeter,
    FluidMeterStatus,
)

# Measurement models
from fluidwatch.models.measurement import Measurement

# Series models
from fluidwatch.models.series import (
    Series,
    SeriesGranularity,
    SeriesItem,
)

# Alert models
from fluidwatch.models.alerts import (
    Alert,
    AlertType,
    FluidMeterAlerts,
    SweepReport,
)

__all__ = [
    # Common
    "Clock",
    "FailedValidation",
    "Metadata",
    "ValidationIssue",
    "ensure_utc",
    "format_decimal",
    "parse_decimal",
    "utc_now",
    # Meters
    "Account",
    "FluidMeter",
    "FluidMeterStatus",
    # Measurements
    "Measurement",
    # Series
    "Series",
    "SeriesGranularity",
    "SeriesItem",
    # Alerts
    "Alert",
    "AlertType",
    "FluidMeterAlerts",
    "SweepReport",
]
