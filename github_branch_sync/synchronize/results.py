"""Contains results of fetch, install and synchronization steps."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar

from github_branch_sync.synchronize.exceptions import SyncError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or the error that prevented producing it."""

    value: T | None = None
    error: SyncError | None = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        """Build a successful result."""
        return cls(value=value)

    @classmethod
    def failure(cls, error: SyncError) -> "Result[T]":
        """Build a failed result."""
        return cls(error=error)

    @property
    def ok(self) -> bool:
        """Whether the step succeeded."""
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, raising the carried error if the step failed."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


class SyncOutcome(Enum):
    """Enum for the outcome of a single synchronization cycle."""

    CONFIG_ERROR = "config_error"
    NOT_DUE = "not_due"
    UP_TO_DATE = "up_to_date"
    SYNCED = "synced"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncCycleResult:
    """Contains the result of one synchronization cycle."""

    outcome: SyncOutcome
    sha: str | None = None
    synced_at: datetime | None = None
    error: SyncError | None = None

    @property
    def succeeded(self) -> bool:
        """Whether the cycle ended without a configuration error or failure."""
        return self.outcome not in (SyncOutcome.CONFIG_ERROR, SyncOutcome.FAILED)
