from __future__ import annotations


class ProgressWatchError(Exception):
    """Base exception for progresswatch library."""

    pass


class StoreUnavailable(ProgressWatchError):
    """Raised when the progress store cannot be read at all."""

    pass


class MalformedRecord(ProgressWatchError):
    """Raised when stored data is not a valid progress record."""

    pass


class CancelledError(ProgressWatchError):
    """Raised when a watch is abandoned before completion."""

    pass


class TimeoutError(ProgressWatchError):
    """Raised when a wait exceeds its maximum duration."""

    pass
