"""
Fluid meter and account models.

Models:
    FluidMeterStatus: Lifecycle state of a meter (active, inactive, deleted)
    FluidMeter: A registered flow-sensing device
    Account: Read-only view of a meter owner, used to address digests
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from fluidwatch.models.common import ensure_utc


class FluidMeterStatus(str, Enum):
    """
    Meter lifecycle states.

    Attributes:
        ACTIVE: Accepts measurements and takes part in alert sweeps.
        INACTIVE: Still shown to the owner, but ignored by ingestion and alerts.
        DELETED: Hidden from every listing.
    """

    ACTIVE = "active"
    INACTIVE = "inactive"
    DELETED = "deleted"

    @property
    def is_listed(self) -> bool:
        """Check if meters in this state show up in listings."""
        return self != FluidMeterStatus.DELETED


class FluidMeter(BaseModel):
    """
    A registered flow meter.

    Attributes:
        id: Meter identifier, also sent by the device as device_id.
        owner_id: Account that owns the meter.
        name: Human-readable name.
        status: Lifecycle state.
        recorded_at: When the meter was registered.
        updated_at: Last time the meter record changed. Bumped whenever a
            measurement is accepted, so it doubles as a liveness signal.

    Example:
        >>> meter = FluidMeter(
        ...     id="0d7d6f54-6c1f-4b8e-9c1b-1e1d2c3b4a59",
        ...     owner_id="account-1",
        ...     name="Kitchen",
        ...     status=FluidMeterStatus.ACTIVE,
        ...     recorded_at=utc_now(),
        ...     updated_at=utc_now(),
        ... )
    """

    model_config = {"frozen": True, "extra": "forbid"}

    id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    name: str
    status: FluidMeterStatus
    recorded_at: datetime
    updated_at: datetime

    @field_validator("recorded_at", "updated_at")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def is_active(self) -> bool:
        """Check if the meter accepts measurements and is swept."""
        return self.status == FluidMeterStatus.ACTIVE


class Account(BaseModel):
    """Owner of one or more meters."""

    model_config = {"frozen": True, "extra": "forbid"}

    id: str = Field(..., min_length=1)
    name: str
    email: str
