from datetime import timedelta

import pytest

from fluidwatch.config.models import AlertsConfig
from fluidwatch.detection import AlertCompiler, AnomalyDetectors, create_alert_compiler
from fluidwatch.errors import InternalError
from fluidwatch.models.alerts import AlertType
from tests.conftest import NOW, make_measurement


def _seed_flow(storage, meter_id, values, spacing=timedelta(minutes=10)):
    for i, value in enumerate(values):
        storage.add_measurement(
            make_measurement(value, NOW - spacing * i, meter_id=meter_id)
        )


@pytest.mark.asyncio
async def test_healthy_meter_has_no_alerts(storage, seed):
    meter = seed()
    _seed_flow(storage, meter.id, ["1", "0", "1"])
    compiler = AlertCompiler(storage, AnomalyDetectors())

    result = await compiler.get_alerts(meter, NOW)

    assert result.meter == meter
    assert result.alerts == []
    assert not result.has_alerts


@pytest.mark.asyncio
async def test_constant_flow_detected(storage, seed):
    meter = seed()
    _seed_flow(storage, meter.id, ["1", "2", "3", "4", "5"])
    compiler = AlertCompiler(storage, AnomalyDetectors())

    result = await compiler.get_alerts(meter, NOW)

    assert [a.alert_type for a in result.alerts] == [AlertType.CONSTANT_FLOW]


@pytest.mark.asyncio
async def test_silent_meter_is_not_reporting(storage, seed):
    meter = seed(updated_at=NOW - timedelta(days=2))
    compiler = AlertCompiler(storage, AnomalyDetectors())

    result = await compiler.get_alerts(meter, NOW)

    assert [a.alert_type for a in result.alerts] == [AlertType.NOT_REPORTING]


@pytest.mark.asyncio
async def test_both_alerts_in_fixed_order(storage, seed):
    meter = seed(updated_at=NOW - timedelta(days=2))
    compiler = AlertCompiler(
        storage,
        AnomalyDetectors(constant_flow_threshold=2, no_reports_threshold=timedelta(hours=1)),
    )
    # Flowing, but the newest reading is older than the no-reports threshold.
    for i, value in enumerate(["1", "1"]):
        storage.add_measurement(
            make_measurement(value, NOW - timedelta(minutes=90 + 10 * i), meter_id=meter.id)
        )

    result = await compiler.get_alerts(meter, NOW)

    assert [a.alert_type for a in result.alerts] == [
        AlertType.CONSTANT_FLOW,
        AlertType.NOT_REPORTING,
    ]


@pytest.mark.asyncio
async def test_lookback_limits_measurements_read(storage, seed):
    meter = seed()
    # Flowing readings exist, but only outside the two hour lookback.
    for i in range(5):
        storage.add_measurement(
            make_measurement("1", NOW - timedelta(hours=3, minutes=10 * i), meter_id=meter.id)
        )
    compiler = AlertCompiler(storage, AnomalyDetectors())

    result = await compiler.get_alerts(meter, NOW)

    assert result.alerts == []


@pytest.mark.asyncio
async def test_storage_failure_becomes_internal_error(storage, seed):
    meter = seed()
    storage.fail_measurements_for.add(meter.id)
    compiler = AlertCompiler(storage, AnomalyDetectors())

    with pytest.raises(InternalError):
        await compiler.get_alerts(meter, NOW)


def test_page_size_must_cover_threshold(storage):
    with pytest.raises(ValueError):
        AlertCompiler(storage, AnomalyDetectors(constant_flow_threshold=5), page_size=4)


def test_factory_reads_alert_config(storage):
    config = AlertsConfig(lookback_seconds=600, lookback_page_size=20)

    compiler = create_alert_compiler(storage, config)

    assert compiler.lookback == timedelta(minutes=10)
    assert compiler.page_size == 20
    assert compiler.detectors.constant_flow_threshold == config.constant_flow_threshold
