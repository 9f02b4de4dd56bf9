"""
Service entry points for the monitoring system.

Services:
    api: FastAPI service for measurement ingestion, series reads and alert sweeps
"""
