"""
FastAPI routers for the API service.

This package provides routers for:
- Measurements: Ingestion and series reads
- Alerts: Alert sweep trigger
- Health: Service status

"""
