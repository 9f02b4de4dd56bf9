"""
Measurement ingestion.

MeasurementStore is the write path for device readings and the range read
used by the series endpoint. It validates the request, delegates the
rate-limited write to the storage backend and maps backend errors onto the
pipeline's error taxonomy:

    - value does not parse        -> ValidationFailedError(measurement, Invalid)
    - meter unknown or not active -> ValidationFailedError(device_id, Invalid)
    - RateLimitedError            -> ValidationFailedError(request, TooFrequent)
    - any other StorageError      -> InternalError

Example:
    >>> store = MeasurementStore(storage, rate_window=timedelta(minutes=10))
    >>> measurement = await store.save("meter-1", "3.781159")
    >>> measurement.value
    '3.781159'
"""

import uuid
from datetime import datetime, timedelta
from typing import List, Optional

import structlog

from fluidwatch.config.models import MeasurementsConfig
from fluidwatch.errors import (
    InternalError,
    InvalidReferenceError,
    RateLimitedError,
    StorageError,
    TooFrequentError,
)
from fluidwatch.interfaces.storage import Storage
from fluidwatch.models.common import Clock, ensure_utc, format_decimal, parse_decimal, utc_now
from fluidwatch.models.measurement import Measurement

logger = structlog.get_logger(__name__)

DEFAULT_RATE_WINDOW = timedelta(minutes=10)


class MeasurementStore:
    """
    Durable, rate-limited measurement writes plus range reads.

    Attributes:
        storage: Storage backend.
        rate_window: Minimum spacing between accepted measurements of one meter.
    """

    def __init__(
        self,
        storage: Storage,
        rate_window: timedelta = DEFAULT_RATE_WINDOW,
        clock: Clock = utc_now,
    ) -> None:
        self.storage = storage
        self.rate_window = rate_window
        self._clock = clock

    async def save(
        self,
        meter_id: str,
        raw_value: str,
        now: Optional[datetime] = None,
    ) -> Measurement:
        """
        Validate and store a measurement.

        Args:
            meter_id: Meter that produced the reading.
            raw_value: Reading as sent by the device.
            now: Acceptance time. Defaults to the injected clock.

        Returns:
            Measurement: The stored row, or the row already stored for the
                same time bucket on backends that deduplicate.

        Raises:
            ValidationFailedError: Invalid value, unknown/inactive meter, or
                a write inside the rate window.
            InternalError: On storage failure.
        """
        now = ensure_utc(now) if now is not None else self._clock()

        value = parse_decimal(raw_value)
        if value is None:
            logger.info(
                "measurement_rejected",
                meter_id=meter_id,
                reason="invalid_value",
            )
            raise InvalidReferenceError("measurement")

        try:
            meter = await self.storage.get_fluid_meter(meter_id)
        except StorageError as e:
            logger.error(
                "measurement_meter_lookup_failed",
                meter_id=meter_id,
                error=str(e),
            )
            raise InternalError(f"Failed to look up meter {meter_id}") from e

        if meter is None or not meter.is_active:
            logger.info(
                "measurement_rejected",
                meter_id=meter_id,
                reason="unknown_meter" if meter is None else f"meter_{meter.status.value}",
            )
            raise InvalidReferenceError("device_id")

        measurement = Measurement(
            id=str(uuid.uuid4()),
            meter_id=meter_id,
            value=format_decimal(value),
            recorded_at=now,
        )

        try:
            stored = await self.storage.save_measurement(measurement, self.rate_window)
        except RateLimitedError:
            logger.warning(
                "measurement_rate_limited",
                meter_id=meter_id,
                rate_window_seconds=self.rate_window.total_seconds(),
            )
            raise TooFrequentError(meter_id)
        except StorageError as e:
            logger.error(
                "measurement_save_failed",
                meter_id=meter_id,
                error=str(e),
            )
            raise InternalError(f"Failed to save measurement for meter {meter_id}") from e

        if stored.id != measurement.id:
            logger.info(
                "measurement_duplicate",
                meter_id=meter_id,
                measurement_id=stored.id,
            )
        else:
            logger.debug(
                "measurement_saved",
                meter_id=meter_id,
                measurement_id=stored.id,
                value=stored.value,
            )
        return stored

    async def range(
        self,
        meter_id: str,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> List[Measurement]:
        """
        Read measurements for a meter, newest first.

        Args:
            meter_id: Meter identifier.
            start: Lower bound (inclusive).
            end: Upper bound (inclusive).
            limit: Maximum number of rows.

        Returns:
            List[Measurement]: Possibly empty.

        Raises:
            InternalError: On storage failure.
        """
        try:
            return await self.storage.get_measurements(
                meter_id, ensure_utc(start), ensure_utc(end), limit
            )
        except StorageError as e:
            logger.error(
                "measurement_range_failed",
                meter_id=meter_id,
                error=str(e),
            )
            raise InternalError(f"Failed to read measurements for meter {meter_id}") from e


def create_measurement_store(
    storage: Storage,
    config: Optional[MeasurementsConfig] = None,
    clock: Clock = utc_now,
) -> MeasurementStore:
    """
    Factory function to create a MeasurementStore.

    Args:
        storage: Storage backend.
        config: Ingestion configuration. Defaults to MeasurementsConfig().
        clock: Source of the current time.

    Returns:
        MeasurementStore: Configured store.
    """
    config = config or MeasurementsConfig()
    return MeasurementStore(storage, rate_window=config.rate_window, clock=clock)
