"""
FluidWatch flow meter monitoring system.

Ingests periodic readings from field-deployed flow meters, stores them
idempotently, summarizes them into time-bucketed series and runs a periodic
sweep that notifies owners about leaking or silent meters.

This package provides:
- Data models for meters, measurements, series and alerts
- Abstract interfaces for storage backends and notifiers
- Configuration management
- PostgreSQL and Redis storage backends
- The ingestion, aggregation and alerting pipeline
"""

__version__ = "0.1.0"
