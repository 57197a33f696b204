"""Typed error taxonomy for the PM engine and work-order lifecycle.

Errors carry a machine-readable ``kind`` and a structured ``context`` dict.
No user-facing text is produced here; the web layer maps kinds to responses.
"""

from __future__ import annotations

from typing import Any


class PMTrackError(Exception):
    """Base class for all core errors."""

    kind = "error"

    def __init__(self, message: str = "", **context: Any):
        super().__init__(message or self.kind)
        self.context: dict[str, Any] = context

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.kind,
            "context": {key: _jsonable(value) for key, value in self.context.items()},
        }


class ValidationError(PMTrackError):
    """Input violates a data-model invariant."""

    kind = "validation_error"


class ConfigurationError(PMTrackError):
    """A schedule or setting refers to something the engine does not support."""

    kind = "configuration_error"


class InactiveScheduleError(PMTrackError):
    """Materialization requested on a deactivated schedule."""

    kind = "inactive_schedule"


class OutOfRangeError(PMTrackError):
    """Sequence index outside the schedule's occurrence range."""

    kind = "out_of_range"


class InvalidTransitionError(PMTrackError):
    """Status change not present in the lifecycle transition table."""

    kind = "invalid_transition"


class InsufficientStockError(PMTrackError):
    """Parts issue would drive inventory below zero."""

    kind = "insufficient_stock"


class NotFoundError(PMTrackError):
    """Referenced schedule, work order or inventory item does not exist."""

    kind = "not_found"


class ConcurrencyError(PMTrackError):
    """Optimistic version check failed; the row changed since it was read."""

    kind = "concurrent_modification"


def _jsonable(value: Any) -> Any:
    if hasattr(value, "value"):
        return value.value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)
