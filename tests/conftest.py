"""Shared fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Callable, List
import uuid

import pytest

from fluidwatch.models.measurement import Measurement
from fluidwatch.models.meter import Account, FluidMeter, FluidMeterStatus
from tests.fakes import InMemoryStorage, RecordingNotifier

NOW = datetime(2025, 3, 27, 14, 42, 32, tzinfo=timezone.utc)


def make_meter(
    meter_id: str = "meter-1",
    owner_id: str = "account-1",
    status: FluidMeterStatus = FluidMeterStatus.ACTIVE,
    updated_at: datetime = NOW,
    name: str = "Kitchen",
) -> FluidMeter:
    return FluidMeter(
        id=meter_id,
        owner_id=owner_id,
        name=name,
        status=status,
        recorded_at=updated_at - timedelta(days=30),
        updated_at=updated_at,
    )


def make_measurement(
    value: str,
    recorded_at: datetime,
    meter_id: str = "meter-1",
) -> Measurement:
    return Measurement(
        id=str(uuid.uuid4()),
        meter_id=meter_id,
        value=value,
        recorded_at=recorded_at,
    )


def make_account(account_id: str = "account-1") -> Account:
    return Account(id=account_id, name=f"Owner {account_id}", email=f"{account_id}@example.com")


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def reference_measurements() -> List[Measurement]:
    """Six readings spread over two hours, newest first."""
    offsets_values = [
        (0, "5.5"),
        (40, "1"),
        (60, "22.3"),
        (80, "1"),
        (100, "2"),
        (120, "3"),
    ]
    return [
        make_measurement(value, NOW - timedelta(minutes=minutes))
        for minutes, value in offsets_values
    ]


@pytest.fixture
def seed(storage: InMemoryStorage) -> Callable[..., FluidMeter]:
    """Insert a meter (and its owner's account) into the in-memory storage."""

    def _seed(with_account: bool = True, **kwargs) -> FluidMeter:
        meter = make_meter(**kwargs)
        storage.meters[meter.id] = meter
        if with_account and meter.owner_id not in storage.accounts:
            storage.accounts[meter.owner_id] = make_account(meter.owner_id)
        return meter

    return _seed
