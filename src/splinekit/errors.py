"""Exception types raised by structural spline operations."""

from __future__ import annotations


class SplineError(Exception):
    """Base class for spline engine errors."""


class InvariantViolation(SplineError, ValueError):
    """A mutation would leave the point store in a state its mode cannot represent."""


class StaleCacheError(SplineError, RuntimeError):
    """A distance query ran against a cache that was never built or is out of date."""


class JunctionCycleError(InvariantViolation):
    """Connecting a junction would make spline resolution recursive."""


def recoverable_errors(*, include_runtime: bool = False) -> tuple[type[BaseException], ...]:
    """Return the standard tuple of exceptions a caller may report and continue past."""
    base: tuple[type[BaseException], ...] = (SplineError, ValueError, TypeError)
    if include_runtime:
        base = base + (RuntimeError,)
    return base
