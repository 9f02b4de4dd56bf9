"""
HTTP API service.

This package exposes the ingestion and alerting pipeline over HTTP:
- POST /measurement: Store a device reading
- GET /fluid-meter/{meter_id}/measurement: Series of a meter's readings
- POST /alert: Run one alert sweep
- GET /health: Service and storage status

"""
