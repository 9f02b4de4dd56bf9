"""
Anomaly detection for fluid meters.

This module contains the detectors, the per-meter alert compiler and the
sweep that groups alerts by owner and sends digests.

Components:
    detectors: has_constant_flow / isnt_reporting predicates
    compiler: AlertCompiler, detectors plus a measurement lookback
    sweeper: AlertSweeper, cooldown, pagination, grouping and digests

Example:
    >>> from fluidwatch.detection import create_alert_sweeper
    >>>
    >>> sweeper = create_alert_sweeper(storage, notifier, config.alerts)
    >>> report = await sweeper.run()
"""

from fluidwatch.detection.detectors import (
    AnomalyDetectors,
    create_detectors,
    has_constant_flow,
    isnt_reporting,
    DEFAULT_CONSTANT_FLOW_THRESHOLD,
    DEFAULT_NO_REPORTS_THRESHOLD,
)
from fluidwatch.detection.compiler import (
    AlertCompiler,
    create_alert_compiler,
    DEFAULT_LOOKBACK,
    DEFAULT_LOOKBACK_PAGE_SIZE,
)
from fluidwatch.detection.sweeper import (
    AlertSweeper,
    create_alert_sweeper,
    LAST_ALERTS_RUN_KEY,
    DEFAULT_SWEEP_COOLDOWN,
    DEFAULT_METERS_PAGE_SIZE,
)

__all__ = [
    # Detectors
    "AnomalyDetectors",
    "create_detectors",
    "has_constant_flow",
    "isnt_reporting",
    "DEFAULT_CONSTANT_FLOW_THRESHOLD",
    "DEFAULT_NO_REPORTS_THRESHOLD",
    # Compiler
    "AlertCompiler",
    "create_alert_compiler",
    "DEFAULT_LOOKBACK",
    "DEFAULT_LOOKBACK_PAGE_SIZE",
    # Sweeper
    "AlertSweeper",
    "create_alert_sweeper",
    "LAST_ALERTS_RUN_KEY",
    "DEFAULT_SWEEP_COOLDOWN",
    "DEFAULT_METERS_PAGE_SIZE",
]
