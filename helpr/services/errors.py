"""Domain error codes and the Result wrapper returned by core operations.

Core operations never raise for an expected domain outcome: a job taken by
another provider or a stale status is an ordinary result. Callers inspect
``result.ok`` and show ``result.error.message``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E", bound=Enum)


class LifecycleError(str, Enum):
    NOT_ASSIGNED_PROVIDER = "not_assigned_provider"
    TERMINAL_STATE = "terminal_state"
    INVALID_CANCELLATION = "invalid_cancellation"
    STATUS_CHANGED = "status_changed"
    SERVICE_NOT_FOUND = "service_not_found"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


class BidError(str, Enum):
    SERVICE_NOT_OPEN = "service_not_open"
    INVALID_AMOUNT = "invalid_amount"
    BID_NOT_FOUND = "bid_not_found"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


class SyncError(str, Enum):
    TRANSIENT = "transient"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES: dict[Enum, str] = {
    LifecycleError.NOT_ASSIGNED_PROVIDER: "You are not the Helpr assigned to this job.",
    LifecycleError.TERMINAL_STATE: "This job cannot move any further.",
    LifecycleError.INVALID_CANCELLATION: "Only a confirmed job can be cancelled.",
    LifecycleError.STATUS_CHANGED: "This job was just updated elsewhere. Refreshing.",
    LifecycleError.SERVICE_NOT_FOUND: "This job no longer exists.",
    BidError.SERVICE_NOT_OPEN: "This job was just taken by another provider.",
    BidError.INVALID_AMOUNT: "Please enter a bid amount greater than zero.",
    BidError.BID_NOT_FOUND: "That Helpr has withdrawn their request.",
    SyncError.TRANSIENT: "Unable to load jobs right now.",
}


@dataclass(frozen=True)
class Result(Generic[T, E]):
    value: T | None = None
    error: E | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> "Result[T, E]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: E) -> "Result[T, E]":
        return cls(error=error)

    def unwrap(self) -> T:
        if self.error is not None:
            raise ValueError(f"unwrap() on failed result: {self.error.value}")
        return self.value
