"""
Measurement API endpoints.

Provides:
    POST /measurement - Store a reading sent by a device
    GET /fluid-meter/{meter_id}/measurement - Bucketed series for a meter

Authentication and meter ownership checks are handled upstream of this
service.
"""

from datetime import date, datetime
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from fluidwatch.errors import InvalidReferenceError, ValidationFailedError
from fluidwatch.models.common import FailedValidation, ValidationIssue
from fluidwatch.models.measurement import Measurement
from fluidwatch.models.series import Series, SeriesGranularity
from fluidwatch.series.aggregator import create_series, series_window
from services.api.state import AppState, get_app_state

logger = structlog.get_logger(__name__)

router = APIRouter()


class SaveMeasurementRequest(BaseModel):
    """Request body sent by devices."""

    model_config = {"coerce_numbers_to_str": True}

    device_id: str = Field(..., min_length=1, description="Meter id")
    measurement: str = Field(..., description="Reading as a decimal string")


class MeasurementResponse(BaseModel):
    """Response model for a stored measurement."""

    id: str
    device_id: str
    measurement: str
    recorded_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "id": "6f1c2b9e-0f5e-4d38-9a53-6a1f3f0b8c11",
                "device_id": "meter-1",
                "measurement": "3.781159",
                "recorded_at": "2025-03-27T14:42:32Z",
            }
        }

    @classmethod
    def from_measurement(cls, measurement: Measurement) -> "MeasurementResponse":
        return cls(
            id=measurement.id,
            device_id=measurement.meter_id,
            measurement=measurement.value,
            recorded_at=measurement.recorded_at,
        )


@router.post(
    "/measurement",
    response_model=MeasurementResponse,
    summary="Store a measurement",
    description="Stores a reading for an active meter, subject to the rate window.",
)
async def save_measurement(
    body: SaveMeasurementRequest,
    state: AppState = Depends(get_app_state),
) -> MeasurementResponse:
    """
    Store a measurement.

    Returns:
        MeasurementResponse: The stored measurement, or the already stored
            one when the backend deduplicated the write.
    """
    measurement = await state.store.save(body.device_id, body.measurement)
    return MeasurementResponse.from_measurement(measurement)


@router.get(
    "/fluid-meter/{meter_id}/measurement",
    response_model=Series,
    summary="Get a meter's measurement series",
    description=(
        "Hour covers the 24 hours of `day` (required). "
        "Day and Month cover the trailing window ending now."
    ),
)
async def get_measurements(
    meter_id: str,
    granularity: SeriesGranularity = Query(default=SeriesGranularity.DAY),
    day: Optional[date] = Query(default=None, description="YYYY-MM-DD"),
    state: AppState = Depends(get_app_state),
) -> Series:
    """
    Build the series for a meter.

    Returns:
        Series: Non-zero buckets, newest first.
    """
    if granularity == SeriesGranularity.HOUR and day is None:
        raise ValidationFailedError(
            [FailedValidation(field="day", issue=ValidationIssue.REQUIRED)]
        )

    meter = await state.storage.get_fluid_meter(meter_id)
    if meter is None or not meter.status.is_listed:
        raise InvalidReferenceError("meter_id")

    series_config = state.config.measurements.series
    start, end = series_window(
        granularity,
        day,
        state.clock(),
        series_config.default_window,
    )

    measurements = await state.store.range(meter_id, start, end, series_config.max_records)
    series = create_series(measurements, granularity)

    logger.debug(
        "series_served",
        meter_id=meter_id,
        granularity=granularity.value,
        measurements=len(measurements),
        buckets=len(series.items),
    )
    return series
