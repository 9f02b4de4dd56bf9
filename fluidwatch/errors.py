"""
Error taxonomy for the ingestion and alerting pipeline.

Two families of errors leave the core:

    ValidationFailedError: Recoverable, caused by the caller. Carries a list
        of FailedValidation (field/issue pairs) and is rendered as a 400.
    InternalError: Storage or transport fault, including referential
        integrity violations. Logged with context and rendered as an opaque 500.

Storage backends raise StorageError subclasses; the core converts them
into one of the two families above before they reach a caller.
"""

from typing import List, Optional

from fluidwatch.models.common import FailedValidation, ValidationIssue


class FluidWatchError(Exception):
    """Base exception for all pipeline errors."""

    pass


class ValidationFailedError(FluidWatchError):
    """
    Raised when a request is rejected because of the caller's input.

    Attributes:
        failures: Field level issues. May be empty for a generic bad request.
    """

    def __init__(
        self,
        failures: Optional[List[FailedValidation]] = None,
        message: str = "Request data is invalid",
    ) -> None:
        self.failures: List[FailedValidation] = list(failures or [])
        super().__init__(message)


class InvalidReferenceError(ValidationFailedError):
    """Raised when a request references an unknown or unusable entity."""

    def __init__(self, field: str) -> None:
        super().__init__(
            [FailedValidation(field=field, issue=ValidationIssue.INVALID)],
            message=f"Invalid reference in field '{field}'",
        )


class TooFrequentError(ValidationFailedError):
    """Raised when a meter submits measurements faster than allowed."""

    def __init__(self, meter_id: str) -> None:
        self.meter_id = meter_id
        super().__init__(
            [FailedValidation(field="request", issue=ValidationIssue.TOO_FREQUENT)],
            message=f"Measurements for meter {meter_id} are too frequent",
        )


class SweepCooldownError(ValidationFailedError):
    """Raised when an alert sweep is requested inside the cooldown window."""

    def __init__(self, last_run: str) -> None:
        self.last_run = last_run
        super().__init__([], message=f"Alert sweep already ran at {last_run}")


class InternalError(FluidWatchError):
    """Raised on storage/transport faults. Never shown to clients."""

    pass


class StorageError(Exception):
    """Base exception for storage backend errors."""

    pass


class StorageConnectionError(StorageError):
    """Raised when the storage backend is unreachable."""

    pass


class StorageOperationError(StorageError):
    """Raised when a storage operation fails."""

    pass


class RateLimitedError(StorageError):
    """Raised by a backend when a write falls inside the rate window."""

    def __init__(self, meter_id: str) -> None:
        self.meter_id = meter_id
        super().__init__(f"Rate limiting meter {meter_id}")


class NotificationError(Exception):
    """Raised by a notifier when a digest could not be delivered."""

    pass
