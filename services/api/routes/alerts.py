"""
Alert API endpoint.

Provides:
    POST /alert - Run one alert sweep (normally called by a scheduler)

Responds 400 when called inside the sweep cooldown.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from fluidwatch.models.alerts import SweepReport
from services.api.state import AppState, get_app_state

router = APIRouter()


class SweepResponse(BaseModel):
    """Response model for a completed sweep."""

    status: str = "ok"
    sweep: SweepReport


@router.post(
    "/alert",
    response_model=SweepResponse,
    summary="Run an alert sweep",
    description="Evaluates all active meters and sends one digest per alerting owner.",
)
async def trigger_alerts(state: AppState = Depends(get_app_state)) -> SweepResponse:
    report = await state.sweeper.run()
    return SweepResponse(sweep=report)
