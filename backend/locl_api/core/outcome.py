"""
Outcome of a best-effort operation: succeeded, succeeded with a fallback, or failed
"""

import enum
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class OutcomeStatus(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FALLBACK = "succeeded_with_fallback"
    FAILED = "failed"


@dataclass
class Outcome(Generic[T]):
    status: OutcomeStatus
    value: Optional[T] = None
    error: Optional[BaseException] = None
    detail: Optional[str] = None

    @classmethod
    def succeeded(cls, value: Optional[T] = None) -> "Outcome[T]":
        return cls(OutcomeStatus.SUCCEEDED, value)

    @classmethod
    def fallback(cls, value: T, error: Optional[BaseException] = None, detail: Optional[str] = None) -> "Outcome[T]":
        return cls(OutcomeStatus.FALLBACK, value, error, detail)

    @classmethod
    def failed(cls, error: Optional[BaseException] = None, value: Optional[T] = None, detail: Optional[str] = None) -> "Outcome[T]":
        return cls(OutcomeStatus.FAILED, value, error, detail)

    @property
    def ok(self) -> bool:
        return self.status != OutcomeStatus.FAILED

    @property
    def used_fallback(self) -> bool:
        return self.status == OutcomeStatus.FALLBACK
