"""Run calls into external collaborators and capture failures as values."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class Outcome(Generic[T]):
    """Either the value returned by a call or the exception it raised."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        """Return ``True`` when the call returned normally."""
        return self.error is None


def attempt(call: Callable[..., T], *args: object, **kwargs: object) -> Outcome[T]:
    """Invoke ``call`` and wrap its result or exception in an :class:`Outcome`."""
    try:
        return Outcome(value=call(*args, **kwargs))
    except Exception as exc:  # pylint: disable=broad-except
        return Outcome(error=exc)


__all__ = ["Outcome", "attempt"]
