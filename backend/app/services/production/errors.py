"""Domain error kinds and the Result type returned by scheduler commands.

Expected domain conditions (bad transition, wrong quantity, stale write)
come back as ``Result.failure(DomainError)``; nothing here raises.
Infrastructure failures (lost DB connection etc.) still propagate.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    INVALID_TRANSITION = "InvalidTransition"
    PRECONDITION_FAILED = "PreconditionFailed"
    INCOMPATIBLE_STATION = "IncompatibleStation"
    STATION_INACTIVE = "StationInactive"
    INVALID_QUANTITY = "InvalidQuantity"
    MISSING_REASON = "MissingReason"
    INVALID_STATE = "InvalidState"
    CONCURRENT_MODIFICATION = "ConcurrentModification"
    NOT_FOUND = "NotFound"


@dataclass(frozen=True)
class DomainError:
    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T | None = None
    error: DomainError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(
        cls, kind: ErrorKind, message: str, **details: Any
    ) -> "Result[T]":
        return cls(error=DomainError(kind, message, details))

    def unwrap(self) -> T:
        """Return the value, or raise ``ValueError`` carrying the error."""
        if self.error is not None:
            raise ValueError(str(self.error))
        return self.value  # type: ignore[return-value]
