"""Atomic publish cell for lazily-built process-wide objects."""

from __future__ import annotations

import threading
from typing import Generic, TypeVar


T = TypeVar("T")


class AtomicReference(Generic[T]):
    """
    Hold one value that may be published at most once per reset.

    Construction of the candidate happens outside this object; only the
    compare-and-set publish is serialized, so racing builders never block
    each other while building.
    """

    def __init__(self, value: T | None = None) -> None:
        self._value = value
        self._lock = threading.Lock()

    def get(self) -> T | None:
        """Return the current value (None when unset)."""
        return self._value

    def compare_and_set(self, expected: T | None, new: T) -> bool:
        """Set `new` only if the current value is `expected`; return True on success."""
        with self._lock:
            if self._value is not expected:
                return False
            self._value = new
            return True

    def publish(self, candidate: T) -> T:
        """Publish `candidate` if unset and return whichever value won."""
        with self._lock:
            if self._value is None:
                self._value = candidate
            return self._value

    def clear(self) -> None:
        """Drop the published value so the next access rebuilds it."""
        with self._lock:
            self._value = None
