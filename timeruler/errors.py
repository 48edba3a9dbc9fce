"""Error taxonomy (library-facing).

Malformed annotations are never errors: the codec drops them. Declined
confirmations are not errors either: `apply_outcome` returns False.
"""

from __future__ import annotations


class TimeRulerError(Exception):
    """Base class for errors raised by timeruler."""


class PreconditionError(TimeRulerError, ValueError):
    """Raised when a request contradicts the loaded data (logic/data inconsistency upstream)."""


class StoreError(TimeRulerError, RuntimeError):
    """Raised when the backing store rejects a read or write."""


__all__ = [
    "PreconditionError",
    "StoreError",
    "TimeRulerError",
]
