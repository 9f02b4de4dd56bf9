"""
Anomaly detectors for fluid meters.

Two stateless predicates over a meter and its recent measurements, both
consuming measurements sorted newest first:

    has_constant_flow: The most recent readings all show flow (possible leak)
    isnt_reporting: An active meter has gone quiet

Example:
    >>> detectors = AnomalyDetectors(constant_flow_threshold=5)
    >>> detectors.has_constant_flow(measurements)
    True
"""

from datetime import datetime, timedelta
from typing import Optional, Sequence

import structlog

from fluidwatch.config.models import AlertsConfig
from fluidwatch.models.measurement import Measurement
from fluidwatch.models.meter import FluidMeter

logger = structlog.get_logger(__name__)

DEFAULT_CONSTANT_FLOW_THRESHOLD = 5
DEFAULT_NO_REPORTS_THRESHOLD = timedelta(days=1)


def has_constant_flow(
    measurements: Sequence[Measurement],
    threshold: int = DEFAULT_CONSTANT_FLOW_THRESHOLD,
) -> bool:
    """
    Check for uninterrupted flow over the most recent readings.

    True iff at least `threshold` measurements are present and each of the
    most recent `threshold` is non-zero. A value that does not parse counts
    as no flow.

    Args:
        measurements: Measurements, newest first.
        threshold: Number of consecutive non-zero readings required.

    Returns:
        bool: True if the meter shows constant flow.
    """
    if len(measurements) < threshold:
        return False

    for measurement in measurements[:threshold]:
        value = measurement.decimal_value
        if value is None or value == 0:
            return False

    return True


def isnt_reporting(
    meter: FluidMeter,
    measurements: Sequence[Measurement],
    now: datetime,
    threshold: timedelta = DEFAULT_NO_REPORTS_THRESHOLD,
) -> bool:
    """
    Check whether an active meter stopped reporting.

    True iff the meter is active, its record has not been touched for at
    least `threshold`, and the newest measurement (if any) is at least
    `threshold` old. Callers pass a short lookback slice, so an empty slice
    is the common positive case.

    Args:
        meter: The meter to check.
        measurements: Recent measurements, newest first.
        now: Current time.
        threshold: Staleness threshold.

    Returns:
        bool: True if the meter is not reporting.
    """
    if not meter.is_active:
        return False

    if now - meter.updated_at < threshold:
        return False

    if measurements and now - measurements[0].recorded_at < threshold:
        return False

    return True


class AnomalyDetectors:
    """
    Detector set bound to configured thresholds.

    Attributes:
        constant_flow_threshold: Consecutive non-zero readings for ConstantFlow.
        no_reports_threshold: Staleness for NotReporting.
    """

    def __init__(
        self,
        constant_flow_threshold: int = DEFAULT_CONSTANT_FLOW_THRESHOLD,
        no_reports_threshold: timedelta = DEFAULT_NO_REPORTS_THRESHOLD,
    ) -> None:
        if constant_flow_threshold < 1:
            raise ValueError("constant_flow_threshold must be >= 1")
        self.constant_flow_threshold = constant_flow_threshold
        self.no_reports_threshold = no_reports_threshold

    def has_constant_flow(self, measurements: Sequence[Measurement]) -> bool:
        return has_constant_flow(measurements, self.constant_flow_threshold)

    def isnt_reporting(
        self,
        meter: FluidMeter,
        measurements: Sequence[Measurement],
        now: datetime,
    ) -> bool:
        return isnt_reporting(meter, measurements, now, self.no_reports_threshold)


def create_detectors(config: Optional[AlertsConfig] = None) -> AnomalyDetectors:
    """
    Factory function to create detectors from alert configuration.

    Args:
        config: Alert configuration. Defaults to AlertsConfig().

    Returns:
        AnomalyDetectors: Configured detectors.
    """
    config = config or AlertsConfig()
    return AnomalyDetectors(
        constant_flow_threshold=config.constant_flow_threshold,
        no_reports_threshold=config.no_reports_threshold,
    )
