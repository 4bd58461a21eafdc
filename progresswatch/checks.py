from __future__ import annotations

import logging

from .exceptions import StoreUnavailable
from .models import ProgressRecord
from .store.base import ProgressStore

logger = logging.getLogger("progresswatch.checks")


class StoreFailures:
    """Counts consecutive store read failures for one watch."""

    def __init__(self, limit: int | None = None):
        self.limit = limit
        self.count = 0

    def record(self) -> bool:
        """Register a failure. Returns True once the limit is reached."""
        self.count += 1
        return self.limit is not None and self.count >= self.limit

    def reset(self) -> None:
        self.count = 0


async def read_for_poll(
    store: ProgressStore,
    job_id: str,
    failures: StoreFailures,
) -> ProgressRecord | None:
    """Read a record on a poll tick.

    Returns None when the job is not ready to observe yet, i.e. no record
    exists or the store is temporarily unreadable. MalformedRecord propagates.
    StoreUnavailable propagates only once ``failures.limit`` consecutive
    failures have been seen.
    """
    try:
        record = await store.read(job_id)
    except StoreUnavailable as e:
        if failures.record():
            logger.error(f"Store unavailable for {job_id} after {failures.count} attempts: {e}")
            raise StoreUnavailable(
                f"Store unavailable for {failures.count} consecutive reads: {e}"
            ) from e
        if failures.count == 1:
            logger.warning(f"Store unavailable for {job_id}, retrying: {e}")
        return None

    failures.reset()
    return record
