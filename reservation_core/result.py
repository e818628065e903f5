"""Typed outcome for operations whose failure is an expected, frequent event.

A slot being taken is not exceptional, so hold and booking creation return
``Result.success(value)`` or ``Result.failure(ConflictError(...))``.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from reservation_core.errors import ConflictError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[ConflictError] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ConflictError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, raising the carried ConflictError on failure."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
