from datetime import timedelta

import pytest

from fluidwatch.config.models import MeasurementsConfig
from fluidwatch.errors import InternalError, ValidationFailedError
from fluidwatch.ingestion import MeasurementStore, create_measurement_store
from fluidwatch.models.common import ValidationIssue
from fluidwatch.models.meter import FluidMeterStatus
from tests.conftest import NOW, make_measurement


def _issues(exc):
    return [(f.field, f.issue) for f in exc.failures]


@pytest.fixture
def store(storage, clock):
    return MeasurementStore(storage, rate_window=timedelta(minutes=10), clock=clock)


@pytest.mark.asyncio
async def test_save_accepts_valid_measurement(store, storage, seed):
    meter = seed(updated_at=NOW - timedelta(days=1))

    measurement = await store.save(meter.id, "3.781159")

    assert measurement.meter_id == meter.id
    assert measurement.value == "3.781159"
    assert measurement.recorded_at == NOW
    assert storage.measurements[meter.id] == [measurement]
    assert storage.meters[meter.id].updated_at == NOW


@pytest.mark.asyncio
async def test_save_normalizes_value(store, seed):
    meter = seed()

    measurement = await store.save(meter.id, " 2.500 ")

    assert measurement.value == "2.5"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw, stored",
    [
        ("999999999999.5", "999999999999.5"),
        ("0.000000000001", "0.000000000001"),
        ("1.500000000000000000", "1.5"),
        ("0e999999999", "0"),
    ],
)
async def test_save_accepts_values_at_the_limits(store, seed, raw, stored):
    meter = seed()

    measurement = await store.save(meter.id, raw)

    assert measurement.value == stored


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw",
    ["abc", "", "NaN", "inf", "1,5", "1e999999999", "1E+1000000", "1e500000", "1e-13"],
)
async def test_save_rejects_invalid_value(store, storage, seed, raw):
    meter = seed()

    with pytest.raises(ValidationFailedError) as exc_info:
        await store.save(meter.id, raw)

    assert _issues(exc_info.value) == [("measurement", ValidationIssue.INVALID)]
    assert meter.id not in storage.measurements


@pytest.mark.asyncio
async def test_save_rejects_unknown_meter(store):
    with pytest.raises(ValidationFailedError) as exc_info:
        await store.save("nope", "1")

    assert _issues(exc_info.value) == [("device_id", ValidationIssue.INVALID)]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [FluidMeterStatus.INACTIVE, FluidMeterStatus.DELETED])
async def test_save_rejects_meter_that_is_not_active(store, seed, status):
    meter = seed(status=status)

    with pytest.raises(ValidationFailedError) as exc_info:
        await store.save(meter.id, "1")

    assert _issues(exc_info.value) == [("device_id", ValidationIssue.INVALID)]


@pytest.mark.asyncio
async def test_save_inside_rate_window_is_too_frequent(store, storage, clock, seed):
    meter = seed()
    await store.save(meter.id, "1")

    clock.advance(timedelta(minutes=9, seconds=59))
    with pytest.raises(ValidationFailedError) as exc_info:
        await store.save(meter.id, "2")

    assert _issues(exc_info.value) == [("request", ValidationIssue.TOO_FREQUENT)]
    assert len(storage.measurements[meter.id]) == 1


@pytest.mark.asyncio
async def test_save_after_rate_window_is_accepted(store, storage, clock, seed):
    meter = seed()
    await store.save(meter.id, "1")

    clock.advance(timedelta(minutes=10))
    await store.save(meter.id, "2")

    assert [m.value for m in storage.measurements[meter.id]] == ["1", "2"]


@pytest.mark.asyncio
async def test_rate_window_is_per_meter(store, storage, seed):
    first = seed(meter_id="m-1")
    second = seed(meter_id="m-2")

    await store.save(first.id, "1")
    await store.save(second.id, "1")

    assert len(storage.measurements) == 2


@pytest.mark.asyncio
async def test_explicit_time_overrides_clock(store, seed):
    meter = seed()
    at = NOW - timedelta(hours=1)

    measurement = await store.save(meter.id, "1", now=at)

    assert measurement.recorded_at == at


@pytest.mark.asyncio
@pytest.mark.parametrize("operation", ["get_fluid_meter", "save_measurement"])
async def test_storage_failures_are_internal(store, storage, seed, operation):
    meter = seed()
    storage.fail_operations.add(operation)

    with pytest.raises(InternalError):
        await store.save(meter.id, "1")


@pytest.mark.asyncio
async def test_range_returns_newest_first_with_inclusive_bounds(store, storage, seed):
    meter = seed()
    for minutes in (0, 30, 60, 90):
        storage.add_measurement(make_measurement("1", NOW - timedelta(minutes=minutes)))

    rows = await store.range(meter.id, NOW - timedelta(minutes=60), NOW, limit=10)

    assert [r.recorded_at for r in rows] == [
        NOW,
        NOW - timedelta(minutes=30),
        NOW - timedelta(minutes=60),
    ]


@pytest.mark.asyncio
async def test_range_honours_limit(store, storage, seed):
    meter = seed()
    for minutes in range(5):
        storage.add_measurement(make_measurement("1", NOW - timedelta(minutes=minutes)))

    rows = await store.range(meter.id, NOW - timedelta(hours=1), NOW, limit=2)

    assert len(rows) == 2
    assert rows[0].recorded_at == NOW


@pytest.mark.asyncio
async def test_range_storage_failure_is_internal(store, storage, seed):
    meter = seed()
    storage.fail_operations.add("get_measurements")

    with pytest.raises(InternalError):
        await store.range(meter.id, NOW - timedelta(hours=1), NOW, limit=10)


def test_factory_reads_rate_window(storage):
    store = create_measurement_store(storage, MeasurementsConfig(rate_window_seconds=60))

    assert store.rate_window == timedelta(minutes=1)
