"""
Unread counter.
"""

from __future__ import annotations


class UnreadCounter:
    """Unread notification count, clamped at zero."""

    def __init__(self, value: int = 0):
        self._value = max(0, value)

    @property
    def value(self) -> int:
        return self._value

    def set(self, value: int) -> int:
        self._value = max(0, value)
        return self._value

    def decrement(self, amount: int = 1) -> int:
        return self.set(self._value - amount)

    def increment(self, amount: int = 1) -> int:
        return self.set(self._value + amount)

    def reset(self) -> None:
        self._value = 0

    def drift(self, derived: int) -> int:
        """Difference between the stored value and a count derived from the cache."""
        return self._value - derived

    def __int__(self) -> int:
        return self._value

    def __repr__(self) -> str:
        return f"UnreadCounter({self._value})"
