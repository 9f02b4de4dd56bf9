"""
Series aggregation for measurement display.

Turns a newest-first list of measurements into granularity-bucketed sums.

Algorithm:
    1. Anchor the first bucket boundary at midnight (UTC) of the day after
       the most recent measurement.
    2. Step the boundary back by one unit of granularity (1 hour, 1 day or
       30 days for Month).
    3. A measurement belongs to the bucket (lower, upper]; the bucket is
       labelled with its lower boundary.
    4. Buckets summing to zero are omitted.

Month buckets are a fixed 30 days, not calendar months.

Functions:
    create_series: Bucket measurements into a Series
    series_window: Time range read for a series request
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

import structlog

from fluidwatch.models.common import format_decimal
from fluidwatch.models.measurement import Measurement
from fluidwatch.models.series import Series, SeriesGranularity, SeriesItem

logger = structlog.get_logger(__name__)


def _start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min, tzinfo=timezone.utc)


def create_series(
    measurements: Sequence[Measurement],
    granularity: SeriesGranularity,
) -> Series:
    """
    Aggregate measurements at the given granularity.

    Values that do not parse as decimals are skipped and logged.

    Args:
        measurements: Measurements sorted by recorded_at, newest first.
        granularity: Bucket width.

    Returns:
        Series: Non-zero buckets, newest first.

    Example:
        >>> series = create_series(measurements, SeriesGranularity.HOUR)
        >>> [(i.period_start.hour, i.value) for i in series.items]
        [(14, '6.5'), (13, '25.3'), (12, '3')]
    """
    items: List[SeriesItem] = []
    if not measurements:
        return Series(granularity=granularity, items=items)

    step = granularity.step
    current_start = _start_of_day(measurements[0].recorded_at) + timedelta(days=1)
    i = 0
    skipped = 0

    while i < len(measurements):
        total = Decimal("0")
        while i < len(measurements) and measurements[i].recorded_at > current_start:
            value = measurements[i].decimal_value
            if value is None:
                skipped += 1
                logger.warning(
                    "series_value_skipped",
                    measurement_id=measurements[i].id,
                    meter_id=measurements[i].meter_id,
                    value=measurements[i].value,
                )
            else:
                total += value
            i += 1

        if total != 0:
            items.append(
                SeriesItem(period_start=current_start, value=format_decimal(total))
            )

        current_start -= step

    logger.debug(
        "series_created",
        granularity=granularity.value,
        measurements=len(measurements),
        buckets=len(items),
        skipped=skipped,
    )

    return Series(granularity=granularity, items=items)


def series_window(
    granularity: SeriesGranularity,
    day: Optional[date],
    now: datetime,
    default_window: timedelta,
) -> Tuple[datetime, datetime]:
    """
    Compute the time range to read for a series request.

    Hourly series cover the 24 hours of the given day. Other granularities
    cover the trailing default window ending at now.

    Args:
        granularity: Requested granularity.
        day: Calendar day, required for Hour.
        now: Current time.
        default_window: Trailing window for Day and Month.

    Returns:
        Tuple[datetime, datetime]: (start, end), both inclusive.

    Raises:
        ValueError: If granularity is Hour and day is missing.
    """
    if granularity == SeriesGranularity.HOUR:
        if day is None:
            raise ValueError("day is required for hourly series")
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        return start, start + timedelta(days=1)

    return now - default_window, now
