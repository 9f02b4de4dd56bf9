"""In-memory collaborators used by the tests."""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set, Tuple

from fluidwatch.errors import NotificationError, RateLimitedError, StorageOperationError
from fluidwatch.interfaces.notifier import Notifier
from fluidwatch.interfaces.storage import Storage, WriteStrategy
from fluidwatch.models.alerts import FluidMeterAlerts
from fluidwatch.models.common import Metadata
from fluidwatch.models.measurement import Measurement
from fluidwatch.models.meter import Account, FluidMeter


class InMemoryStorage(Storage):
    """
    Storage double with minimum-interval semantics.

    Failures can be injected per operation through `fail_operations` and
    per meter through `fail_measurements_for`.
    """

    def __init__(self) -> None:
        self.meters: Dict[str, FluidMeter] = {}
        self.measurements: Dict[str, List[Measurement]] = {}
        self.metadata: Dict[str, str] = {}
        self.accounts: Dict[str, Account] = {}
        self.fail_operations: Set[str] = set()
        self.fail_measurements_for: Set[str] = set()
        self.connected = False
        self.calls: List[str] = []

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_operations:
            raise StorageOperationError(f"injected failure in {operation}")

    @property
    def write_strategy(self) -> WriteStrategy:
        return WriteStrategy.MIN_INTERVAL

    async def connect(self) -> None:
        self.connected = True

    async def prepare(self) -> None:
        self._check("prepare")

    async def disconnect(self) -> None:
        self.connected = False

    async def ping(self) -> bool:
        return "ping" not in self.fail_operations

    async def get_fluid_meter(self, meter_id: str) -> Optional[FluidMeter]:
        self._check("get_fluid_meter")
        return self.meters.get(meter_id)

    async def get_active_fluid_meters(
        self,
        page_cursor: Optional[str],
        page_size: int,
    ) -> List[FluidMeter]:
        self._check("get_active_fluid_meters")
        active = sorted(
            (m for m in self.meters.values() if m.is_active),
            key=lambda m: m.id,
        )
        if page_cursor is not None:
            active = [m for m in active if m.id > page_cursor]
        return active[:page_size]

    async def insert_fluid_meter(self, meter: FluidMeter) -> None:
        self._check("insert_fluid_meter")
        self.meters[meter.id] = meter

    async def save_measurement(
        self,
        measurement: Measurement,
        rate_window: timedelta,
    ) -> Measurement:
        self._check("save_measurement")
        rows = self.measurements.setdefault(measurement.meter_id, [])
        if rows:
            last = max(rows, key=lambda m: m.recorded_at)
            if measurement.recorded_at - last.recorded_at < rate_window:
                raise RateLimitedError(measurement.meter_id)
        rows.append(measurement)
        meter = self.meters[measurement.meter_id]
        self.meters[meter.id] = meter.model_copy(update={"updated_at": measurement.recorded_at})
        return measurement

    async def get_measurements(
        self,
        meter_id: str,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> List[Measurement]:
        self._check("get_measurements")
        if meter_id in self.fail_measurements_for:
            raise StorageOperationError(f"injected failure for {meter_id}")
        rows = [
            m for m in self.measurements.get(meter_id, [])
            if start <= m.recorded_at <= end
        ]
        rows.sort(key=lambda m: m.recorded_at, reverse=True)
        return rows[:limit]

    async def get_metadata(self, key: str) -> Optional[Metadata]:
        self._check("get_metadata")
        if key not in self.metadata:
            return None
        return Metadata(key=key, value=self.metadata[key])

    async def save_metadata(self, key: str, value: str) -> None:
        self._check("save_metadata")
        self.metadata[key] = value

    async def account_by_id(self, account_id: str) -> Optional[Account]:
        self._check("account_by_id")
        return self.accounts.get(account_id)

    async def insert_account(self, account: Account) -> None:
        self._check("insert_account")
        self.accounts[account.id] = account

    def add_measurement(self, measurement: Measurement) -> None:
        """Seed a measurement without going through the rate gate."""
        self.measurements.setdefault(measurement.meter_id, []).append(measurement)


class RecordingNotifier(Notifier):
    """Notifier double that records digests and can fail for chosen accounts."""

    def __init__(self, fail_for: Optional[Set[str]] = None) -> None:
        self.sent: List[Tuple[Account, List[FluidMeterAlerts]]] = []
        self.fail_for: Set[str] = set(fail_for or ())
        self.closed = False

    @property
    def name(self) -> str:
        return "recording"

    async def send_digest(
        self,
        account: Account,
        meter_alerts: List[FluidMeterAlerts],
    ) -> None:
        if account.id in self.fail_for:
            raise NotificationError(f"mailbox unavailable for {account.id}")
        self.sent.append((account, list(meter_alerts)))

    async def close(self) -> None:
        self.closed = True

    def recipients(self) -> List[str]:
        return [account.id for account, _ in self.sent]
