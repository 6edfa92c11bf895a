"""Shared type definitions."""

from collections.abc import Callable

# Monotonic clock returning seconds
Clock = Callable[[], float]

# Blocking sleep taking seconds
Sleep = Callable[[float], None]
