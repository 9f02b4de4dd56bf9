from datetime import timedelta

import pytest

from fluidwatch.config.models import AlertsConfig
from fluidwatch.detection import (
    AnomalyDetectors,
    create_detectors,
    has_constant_flow,
    isnt_reporting,
)
from fluidwatch.models.meter import FluidMeterStatus
from tests.conftest import NOW, make_measurement, make_meter


def _readings(*values):
    return [
        make_measurement(value, NOW - timedelta(minutes=10 * i))
        for i, value in enumerate(values)
    ]


class TestConstantFlow:
    def test_all_recent_readings_flowing(self):
        assert has_constant_flow(_readings("1", "2", "0.5", "3", "1"), threshold=5)

    def test_not_enough_readings(self):
        assert not has_constant_flow(_readings("1", "2", "3", "4"), threshold=5)

    def test_a_zero_breaks_the_run(self):
        assert not has_constant_flow(_readings("1", "2", "0", "3", "1"), threshold=5)

    def test_only_the_most_recent_readings_count(self):
        readings = _readings("1", "2", "3", "4", "5", "0", "0")
        assert has_constant_flow(readings, threshold=5)

    def test_newest_zero_breaks_the_run(self):
        readings = _readings("0", "2", "3", "4", "5", "6")
        assert not has_constant_flow(readings, threshold=5)

    def test_unparseable_value_counts_as_no_flow(self):
        assert not has_constant_flow(_readings("1", "x", "1", "1", "1"), threshold=5)

    def test_zero_with_decimals_is_zero(self):
        assert not has_constant_flow(_readings("1", "0.000", "1", "1", "1"), threshold=5)


class TestNotReporting:
    def test_stale_meter_without_measurements(self):
        meter = make_meter(updated_at=NOW - timedelta(days=2))
        assert isnt_reporting(meter, [], NOW)

    def test_recently_updated_meter(self):
        meter = make_meter(updated_at=NOW - timedelta(hours=3))
        assert not isnt_reporting(meter, [], NOW)

    def test_recent_measurement_keeps_meter_alive(self):
        meter = make_meter(updated_at=NOW - timedelta(days=2))
        measurements = [make_measurement("1", NOW - timedelta(hours=1))]
        assert not isnt_reporting(meter, measurements, NOW)

    def test_old_measurement_does_not_keep_meter_alive(self):
        meter = make_meter(updated_at=NOW - timedelta(days=3))
        measurements = [make_measurement("1", NOW - timedelta(days=2))]
        assert isnt_reporting(meter, measurements, NOW)

    @pytest.mark.parametrize(
        "status", [FluidMeterStatus.INACTIVE, FluidMeterStatus.DELETED]
    )
    def test_only_active_meters_can_stop_reporting(self, status):
        meter = make_meter(status=status, updated_at=NOW - timedelta(days=10))
        assert not isnt_reporting(meter, [], NOW)

    def test_exactly_at_threshold_is_not_reporting(self):
        meter = make_meter(updated_at=NOW - timedelta(days=1))
        assert isnt_reporting(meter, [], NOW)


class TestAnomalyDetectors:
    def test_uses_configured_thresholds(self):
        detectors = AnomalyDetectors(
            constant_flow_threshold=2,
            no_reports_threshold=timedelta(hours=1),
        )
        meter = make_meter(updated_at=NOW - timedelta(hours=2))

        assert detectors.has_constant_flow(_readings("1", "1"))
        assert detectors.isnt_reporting(meter, [], NOW)

    def test_rejects_non_positive_threshold(self):
        with pytest.raises(ValueError):
            AnomalyDetectors(constant_flow_threshold=0)

    def test_factory_reads_alert_config(self):
        config = AlertsConfig(
            constant_flow_threshold=3,
            no_reports_threshold_seconds=3600,
        )

        detectors = create_detectors(config)

        assert detectors.constant_flow_threshold == 3
        assert detectors.no_reports_threshold == timedelta(hours=1)
