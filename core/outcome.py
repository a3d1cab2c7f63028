"""
Outcome Type
============
Uniform return type for every operation that calls an external
collaborator (text completion, embeddings, autocomplete, feeds).

    Outcome[T] = Success(T) | Degraded(T, error) | Failure(error)

A degraded outcome carries the documented safe default together with the
error that forced it, so callers apply one recovery policy instead of
re-deriving the default at each call site.

Architecture: Railway-Oriented Programming
"""

from __future__ import annotations

from typing import Callable, Generic, Optional, TypeVar

from core.enums import OutcomeStatus

T = TypeVar("T")
B = TypeVar("B")


class Outcome(Generic[T]):
    """
    Result monad with a middle "degraded" rail.

    Functor laws hold on the value rails:
    - Identity: outcome.map(lambda x: x) == outcome
    - Composition: outcome.map(f).map(g) == outcome.map(lambda x: g(f(x)))
    """

    __slots__ = ("_status", "_value", "_error")

    def __init__(
        self,
        status: OutcomeStatus,
        value: Optional[T] = None,
        error: Optional[Exception] = None,
    ):
        if status is OutcomeStatus.FAILURE and error is None:
            raise ValueError("A failed outcome must carry an error")
        self._status = status
        self._value = value
        self._error = error

    # -------------------------------------------------------------------------
    # Constructors
    # -------------------------------------------------------------------------

    @staticmethod
    def ok(value: T) -> Outcome[T]:
        """Construct a clean success."""
        return Outcome(OutcomeStatus.SUCCESS, value=value)

    @staticmethod
    def degraded(value: T, error: Exception) -> Outcome[T]:
        """Construct a success that fell back to a documented default."""
        return Outcome(OutcomeStatus.DEGRADED, value=value, error=error)

    @staticmethod
    def failure(error: Exception) -> Outcome[T]:
        """Construct a hard failure."""
        return Outcome(OutcomeStatus.FAILURE, error=error)

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    @property
    def status(self) -> OutcomeStatus:
        return self._status

    @property
    def value(self) -> Optional[T]:
        return self._value

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    def is_ok(self) -> bool:
        return self._status is OutcomeStatus.SUCCESS

    def is_degraded(self) -> bool:
        return self._status is OutcomeStatus.DEGRADED

    def is_failure(self) -> bool:
        return self._status is OutcomeStatus.FAILURE

    def has_value(self) -> bool:
        return self._status.has_value

    # -------------------------------------------------------------------------
    # Combinators
    # -------------------------------------------------------------------------

    def map(self, f: Callable[[T], B]) -> Outcome[B]:
        """Transform the carried value, keeping the status and error."""
        if self.is_failure():
            return Outcome.failure(self._error)
        return Outcome(self._status, value=f(self._value), error=self._error)

    def unwrap(self) -> T:
        """
        Extract the value of a success or degraded outcome.

        Raises:
            The carried error when the outcome is a failure.
        """
        if self.is_failure():
            raise self._error
        return self._value

    def unwrap_or(self, default: T) -> T:
        """Extract value or return default."""
        return default if self.is_failure() else self._value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Outcome):
            return NotImplemented
        return (
            self._status == other._status
            and self._value == other._value
            and self._error is other._error
        )

    def __repr__(self) -> str:
        if self.is_failure():
            return f"Outcome.failure({self._error!r})"
        if self.is_degraded():
            return f"Outcome.degraded({self._value!r}, {self._error!r})"
        return f"Outcome.ok({self._value!r})"
