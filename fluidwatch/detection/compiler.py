"""
Alert compiler.

Reads a bounded lookback of measurements for one meter, runs the anomaly
detectors and returns the meter tagged with the alerts that fired.

Example:
    >>> compiler = AlertCompiler(storage, AnomalyDetectors())
    >>> result = await compiler.get_alerts(meter, now)
    >>> [a.alert_type for a in result.alerts]
    [<AlertType.NOT_REPORTING: 'NotReporting'>]
"""

from datetime import datetime, timedelta
from typing import List, Optional

import structlog

from fluidwatch.config.models import AlertsConfig
from fluidwatch.detection.detectors import AnomalyDetectors, create_detectors
from fluidwatch.errors import InternalError, StorageError
from fluidwatch.interfaces.storage import Storage
from fluidwatch.models.alerts import Alert, AlertType, FluidMeterAlerts
from fluidwatch.models.meter import FluidMeter

logger = structlog.get_logger(__name__)

DEFAULT_LOOKBACK = timedelta(hours=2)
DEFAULT_LOOKBACK_PAGE_SIZE = 10


class AlertCompiler:
    """
    Composes the detectors with a measurement lookback.

    Attributes:
        storage: Storage backend used to read measurements.
        detectors: Detector set.
        lookback: How far back measurements are read.
        page_size: Maximum measurements read per meter.
    """

    def __init__(
        self,
        storage: Storage,
        detectors: AnomalyDetectors,
        lookback: timedelta = DEFAULT_LOOKBACK,
        page_size: int = DEFAULT_LOOKBACK_PAGE_SIZE,
    ) -> None:
        if page_size < detectors.constant_flow_threshold:
            raise ValueError(
                "page_size must be >= the constant flow threshold"
            )
        self.storage = storage
        self.detectors = detectors
        self.lookback = lookback
        self.page_size = page_size

    async def get_alerts(self, meter: FluidMeter, now: datetime) -> FluidMeterAlerts:
        """
        Evaluate one meter.

        Args:
            meter: Meter to evaluate.
            now: Evaluation time.

        Returns:
            FluidMeterAlerts: The meter and the alerts that fired (possibly none).

        Raises:
            InternalError: If the measurements cannot be read.
        """
        try:
            measurements = await self.storage.get_measurements(
                meter.id,
                now - self.lookback,
                now,
                self.page_size,
            )
        except StorageError as e:
            logger.error(
                "alert_measurements_read_failed",
                meter_id=meter.id,
                error=str(e),
            )
            raise InternalError(f"Failed to read measurements for meter {meter.id}") from e

        alerts: List[Alert] = []
        if self.detectors.has_constant_flow(measurements):
            alerts.append(Alert(alert_type=AlertType.CONSTANT_FLOW))
        if self.detectors.isnt_reporting(meter, measurements, now):
            alerts.append(Alert(alert_type=AlertType.NOT_REPORTING))

        if alerts:
            logger.info(
                "meter_alerts_detected",
                meter_id=meter.id,
                owner_id=meter.owner_id,
                alerts=[a.alert_type.value for a in alerts],
                measurements=len(measurements),
            )

        return FluidMeterAlerts(meter=meter, alerts=alerts)


def create_alert_compiler(
    storage: Storage,
    config: Optional[AlertsConfig] = None,
) -> AlertCompiler:
    """
    Factory function to create an AlertCompiler.

    Args:
        storage: Storage backend.
        config: Alert configuration. Defaults to AlertsConfig().

    Returns:
        AlertCompiler: Configured compiler.
    """
    config = config or AlertsConfig()
    return AlertCompiler(
        storage=storage,
        detectors=create_detectors(config),
        lookback=config.lookback,
        page_size=config.lookback_page_size,
    )
